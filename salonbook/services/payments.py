# Stripe deposits and webhook parsing
import json
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Mapping, Optional

import stripe

from ..errors import PaymentError, ValidationError

logger = logging.getLogger(__name__)


def to_minor_units(amount) -> int:
    """Amount in cents, rounded half up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentService:
    """
    Thin wrapper over the Stripe API
    """

    def __init__(
        self,
        secret_key: Optional[str],
        webhook_secret: Optional[str] = None,
        currency: str = "eur",
        timeout_seconds: int = 10,
    ):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.currency = currency
        self.timeout_seconds = timeout_seconds

        if secret_key:
            stripe.api_key = secret_key
            stripe.max_network_retries = 0
            stripe.default_http_client = stripe.RequestsClient(timeout=timeout_seconds)

    @classmethod
    def from_config(cls, config: Mapping) -> "PaymentService":
        return cls(
            secret_key=config.get("STRIPE_SECRET_KEY"),
            webhook_secret=config.get("STRIPE_WEBHOOK_SECRET"),
            currency=config.get("PAYMENT_CURRENCY", "eur"),
            timeout_seconds=config.get("STRIPE_TIMEOUT_SECONDS", 10),
        )

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    def create_payment_intent(self, amount, appointment_id: str) -> str:
        """
        Create a PaymentIntent for ``amount`` (major units) tagged with the
        appointment id.

        Returns:
            The client secret the browser uses to confirm the payment

        Raises:
            ValidationError: amount is not positive
            PaymentError: Stripe is not configured or the call failed
        """
        amount_cents = to_minor_units(amount)
        if amount_cents <= 0:
            raise ValidationError("Validation failed", {"amount": "Amount must be positive"})

        if not self.configured:
            logger.warning("Stripe secret key not configured")
            raise PaymentError("Payments are not currently available.")

        try:
            intent = stripe.PaymentIntent.create(
                amount=amount_cents,
                currency=self.currency,
                metadata={"appointment_id": str(appointment_id)},
            )
        except stripe.StripeError as e:
            logger.error(
                f"Stripe error creating payment intent for appointment {appointment_id}: {e}"
            )
            raise PaymentError(
                "An error occurred while processing the payment."
            ) from e

        logger.info(
            f"Payment intent {intent.id} created for appointment {appointment_id} "
            f"({amount_cents} {self.currency})"
        )
        return intent.client_secret

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> Dict:
        """
        Verify and decode a webhook delivery.

        The signature is checked only when a webhook secret is configured;
        otherwise the body is decoded as-is.
        """
        if self.webhook_secret:
            try:
                stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
            except ValueError as e:
                raise ValidationError("Invalid payload") from e
            except stripe.SignatureVerificationError as e:
                logger.warning("Invalid signature for webhook")
                raise ValidationError("Invalid signature") from e
        else:
            logger.warning("Stripe webhook secret not configured, skipping signature check")

        try:
            event = json.loads(payload)
        except ValueError as e:
            raise ValidationError("Invalid payload") from e

        if not isinstance(event, dict):
            raise ValidationError("Invalid payload")
        return event


def succeeded_appointment(event: Dict):
    """
    ``(appointment_id, payment_intent_id)`` for a payment_intent.succeeded
    event carrying an appointment id, else None.
    """
    if event.get("type") != "payment_intent.succeeded":
        return None

    intent = (event.get("data") or {}).get("object") or {}
    metadata = intent.get("metadata") or {}
    appointment_id = metadata.get("appointment_id")
    if not appointment_id:
        return None
    return appointment_id, intent.get("id")
