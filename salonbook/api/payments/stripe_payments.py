# Deposit payments and Stripe webhooks
from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ...errors import BookingError
from ...extensions import db
from ...services.appointments import get_appointment, mark_paid
from ...services.payments import PaymentService, succeeded_appointment

payments_bp = Blueprint("payments", __name__, url_prefix="/api")


@payments_bp.route("/create-payment-intent", methods=["POST"])
def create_payment_intent():
    """
    Create a Stripe PaymentIntent for an appointment
    ---
    tags:
      - Payments
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - appointment_id
          properties:
            appointment_id:
              type: string
            amount:
              type: number
              description: Amount in major units; defaults to the deposit, then the total
    responses:
      200:
        description: Client secret for completing the payment
        schema:
          type: object
          properties:
            client_secret:
              type: string
      400:
        description: Invalid amount
      404:
        description: Appointment not found
      502:
        description: Payment provider error
    """
    data = request.get_json(silent=True) or {}

    try:
        appointment = get_appointment(data.get("appointment_id"))
        amount = data.get("amount")
        if amount is None:
            amount = appointment.deposit_amount or appointment.total_amount

        payments = PaymentService.from_config(current_app.config)
        client_secret = payments.create_payment_intent(amount, appointment.id)
    except BookingError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({"client_secret": client_secret}), 200


@payments_bp.route("/webhooks/stripe", methods=["POST"])
def stripe_webhook():
    """
    Stripe webhook endpoint
    ---
    tags:
      - Payments
    parameters:
      - name: Stripe-Signature
        in: header
        type: string
        required: false
      - in: body
        name: body
        required: true
        schema:
          type: object
    responses:
      200:
        description: Event received
        schema:
          type: object
          properties:
            received:
              type: boolean
              example: true
      400:
        description: Invalid payload or signature
    """
    payments = PaymentService.from_config(current_app.config)

    try:
        event = payments.parse_webhook(
            request.get_data(), request.headers.get("Stripe-Signature")
        )
    except BookingError as e:
        return jsonify(e.to_dict()), e.status_code

    paid = succeeded_appointment(event)
    if paid:
        appointment_id, payment_intent_id = paid
        try:
            mark_paid(appointment_id, payment_intent_id)
        except BookingError as e:
            current_app.logger.warning(
                f"Webhook for unknown appointment {appointment_id}: {e.message}"
            )
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(
                f"Failed to record payment for appointment {appointment_id}: {e}"
            )

    # Acknowledge so Stripe does not redeliver
    return jsonify({"received": True}), 200
