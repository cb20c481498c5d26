"""
Multi-step booking flow as an explicit state machine.

The draft is an immutable value the caller keeps between requests: every
transition takes a draft and returns a new one, and a failed transition
raises without touching the caller's copy. Nothing here talks to the
database directly; the catalog is handed in as ``ServiceOption`` values and
the side effects (creating the appointment, asking for a payment intent) are
callables supplied by the caller.

Steps::

    selecting_services -> selecting_stylist -> selecting_datetime
        -> entering_contact_info -> [awaiting_payment] -> submitted
"""

import datetime
import logging
import uuid
from dataclasses import dataclass, field, replace
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..errors import BookingError, InvalidTransitionError, SubmissionError, ValidationError
from ..utils.dates import parse_date, parse_time
from ..utils.validators import clean_str, is_valid_email

logger = logging.getLogger(__name__)

DEFAULT_DEPOSIT_PERCENTAGE = Decimal("20")
CENT = Decimal("0.01")


class BookingStep(str, Enum):
    SELECTING_SERVICES = "selecting_services"
    SELECTING_STYLIST = "selecting_stylist"
    SELECTING_DATETIME = "selecting_datetime"
    ENTERING_CONTACT_INFO = "entering_contact_info"
    AWAITING_PAYMENT = "awaiting_payment"
    SUBMITTED = "submitted"


FORM_STEPS = (
    BookingStep.SELECTING_SERVICES,
    BookingStep.SELECTING_STYLIST,
    BookingStep.SELECTING_DATETIME,
    BookingStep.ENTERING_CONTACT_INFO,
)


def new_submission_token() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class ServiceOption:
    id: str
    name: str
    duration_minutes: int
    price: Decimal
    requires_deposit: bool = False
    is_active: bool = True

    @classmethod
    def from_model(cls, service) -> "ServiceOption":
        return cls(
            id=service.id,
            name=service.name,
            duration_minutes=service.duration_minutes,
            price=Decimal(service.price),
            requires_deposit=bool(service.requires_deposit),
            is_active=bool(service.is_active),
        )


@dataclass(frozen=True)
class ContactInfo:
    first_name: str
    last_name: str
    phone: str
    email: Optional[str] = None
    notes: Optional[str] = None
    accept_terms: bool = False

    @classmethod
    def from_dict(cls, data: Dict) -> "ContactInfo":
        return cls(
            first_name=clean_str(data.get("first_name")),
            last_name=clean_str(data.get("last_name")),
            phone=clean_str(data.get("phone")),
            email=clean_str(data.get("email")) or None,
            notes=clean_str(data.get("notes")) or None,
            accept_terms=data.get("accept_terms") is True,
        )

    def to_dict(self) -> Dict:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "email": self.email,
            "notes": self.notes,
            "accept_terms": self.accept_terms,
        }

    def errors(self) -> Dict[str, str]:
        errors = {}
        if not self.first_name:
            errors["first_name"] = "First name is required"
        if not self.last_name:
            errors["last_name"] = "Last name is required"
        if not self.phone:
            errors["phone"] = "Phone is required"
        if self.email and not is_valid_email(self.email):
            errors["email"] = "Invalid email"
        if not self.accept_terms:
            errors["accept_terms"] = "Please accept the terms"
        return errors


@dataclass(frozen=True)
class BookingSummary:
    total_duration: int
    total_amount: Decimal
    requires_deposit: bool
    deposit_amount: Decimal
    start_time: Optional[datetime.datetime] = None
    end_time: Optional[datetime.datetime] = None

    def to_dict(self) -> Dict:
        return {
            "total_duration": self.total_duration,
            "total_amount": float(self.total_amount),
            "requires_deposit": self.requires_deposit,
            "deposit_amount": float(self.deposit_amount),
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }


@dataclass(frozen=True)
class BookingDraft:
    salon_id: str
    step: BookingStep = BookingStep.SELECTING_SERVICES
    service_ids: Tuple[str, ...] = ()
    stylist_id: Optional[str] = None
    day: Optional[datetime.date] = None
    slot: Optional[datetime.time] = None
    contact: Optional[ContactInfo] = None
    submission_token: str = field(default_factory=new_submission_token)
    appointment_id: Optional[str] = None
    client_secret: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "salon_id": self.salon_id,
            "step": self.step.value,
            "service_ids": list(self.service_ids),
            "stylist_id": self.stylist_id,
            "date": self.day.isoformat() if self.day else None,
            "time_slot": self.slot.strftime("%H:%M") if self.slot else None,
            "contact": self.contact.to_dict() if self.contact else None,
            "submission_token": self.submission_token,
            "appointment_id": self.appointment_id,
            "client_secret": self.client_secret,
        }

    @classmethod
    def from_dict(cls, data: Dict, salon_id: str) -> "BookingDraft":
        """Rebuild a draft sent back by the client; it must belong to ``salon_id``."""
        if not isinstance(data, dict):
            raise ValidationError("Invalid booking draft", {"draft": "Must be an object"})
        if data.get("salon_id", salon_id) != salon_id:
            raise ValidationError(
                "Invalid booking draft", {"salon_id": "Draft belongs to another salon"}
            )

        try:
            step = BookingStep(data.get("step", BookingStep.SELECTING_SERVICES.value))
            day = parse_date(data["date"], "date") if data.get("date") else None
            slot = (
                parse_time(data["time_slot"], "time_slot")
                if data.get("time_slot")
                else None
            )
        except ValueError as e:
            raise ValidationError("Invalid booking draft", {"draft": str(e)}) from e

        service_ids = data.get("service_ids") or []
        if not isinstance(service_ids, list):
            raise ValidationError(
                "Invalid booking draft", {"service_ids": "Must be a list"}
            )

        contact = data.get("contact")
        return cls(
            salon_id=salon_id,
            step=step,
            service_ids=tuple(str(sid) for sid in service_ids),
            stylist_id=data.get("stylist_id") or None,
            day=day,
            slot=slot,
            contact=ContactInfo.from_dict(contact) if isinstance(contact, dict) else None,
            submission_token=data.get("submission_token") or new_submission_token(),
            appointment_id=data.get("appointment_id"),
            client_secret=data.get("client_secret"),
        )


def resolve_deposit_percentage(policies, default=DEFAULT_DEPOSIT_PERCENTAGE) -> Decimal:
    """
    The salon's configured deposit percentage, or ``default`` when the salon
    has not set one.
    """
    if policies and policies.get("deposit_percentage") is not None:
        return Decimal(str(policies["deposit_percentage"]))
    return Decimal(str(default))


class BookingWorkflow:
    """
    Transitions for one salon's booking form.

    Args:
        services: catalog entries the client can pick from
        slot_source: ``(day, duration_minutes, stylist_id) -> iterable of time``
        submit_appointment: creates the appointment from the payload built by
            ``submit`` and returns a dict with at least ``id``
        request_payment: ``(amount, appointment_id) -> client secret``; only
            called when a deposit is required
        stylist_ids: ids accepted by ``choose_stylist``; None accepts any
    """

    def __init__(
        self,
        services: Iterable[ServiceOption],
        slot_source: Callable[[datetime.date, int, Optional[str]], Iterable[datetime.time]],
        submit_appointment: Callable[[Dict], Dict],
        request_payment: Optional[Callable[[Decimal, str], Optional[str]]] = None,
        deposit_percentage: Decimal = DEFAULT_DEPOSIT_PERCENTAGE,
        stylist_ids: Optional[Iterable[str]] = None,
    ):
        self.services = {service.id: service for service in services}
        self.slot_source = slot_source
        self.submit_appointment = submit_appointment
        self.request_payment = request_payment
        self.deposit_percentage = Decimal(deposit_percentage)
        self.stylist_ids = set(stylist_ids) if stylist_ids is not None else None

    @staticmethod
    def start(salon_id: str) -> BookingDraft:
        return BookingDraft(salon_id=salon_id)

    def _require_step(self, draft: BookingDraft, *steps: BookingStep):
        if draft.step not in steps:
            expected = ", ".join(step.value for step in steps)
            raise InvalidTransitionError(
                f"Booking is at step '{draft.step.value}', expected {expected}"
            )

    def _selected(self, draft: BookingDraft) -> List[ServiceOption]:
        return [self.services[sid] for sid in draft.service_ids if sid in self.services]

    def summary(self, draft: BookingDraft) -> BookingSummary:
        """Totals derived from the current selection; recomputed on every call."""
        selected = self._selected(draft)
        total_duration = sum(service.duration_minutes for service in selected)
        total_amount = sum((service.price for service in selected), Decimal("0"))
        requires_deposit = any(service.requires_deposit for service in selected)

        deposit_amount = Decimal("0.00")
        if requires_deposit:
            deposit_amount = (total_amount * self.deposit_percentage / 100).quantize(
                CENT, rounding=ROUND_HALF_UP
            )

        start_time = end_time = None
        if draft.day and draft.slot:
            start_time = datetime.datetime.combine(draft.day, draft.slot)
            end_time = start_time + datetime.timedelta(minutes=total_duration)

        return BookingSummary(
            total_duration=total_duration,
            total_amount=total_amount.quantize(CENT),
            requires_deposit=requires_deposit,
            deposit_amount=deposit_amount,
            start_time=start_time,
            end_time=end_time,
        )

    def select_services(self, draft: BookingDraft, service_ids: Iterable[str]) -> BookingDraft:
        self._require_step(draft, BookingStep.SELECTING_SERVICES)

        chosen = []
        for sid in service_ids or []:
            if sid not in chosen:
                chosen.append(sid)

        if not chosen:
            raise ValidationError(
                "Validation failed", {"service_ids": "Select at least one service"}
            )

        unknown = [
            sid
            for sid in chosen
            if sid not in self.services or not self.services[sid].is_active
        ]
        if unknown:
            raise ValidationError(
                "Validation failed",
                {"service_ids": f"Unknown or inactive services: {', '.join(unknown)}"},
            )

        return replace(
            draft,
            service_ids=tuple(chosen),
            day=None,
            slot=None,
            step=BookingStep.SELECTING_STYLIST,
        )

    def choose_stylist(self, draft: BookingDraft, stylist_id: Optional[str] = None) -> BookingDraft:
        """``stylist_id=None`` is the "no preference" choice."""
        self._require_step(draft, BookingStep.SELECTING_STYLIST)

        if stylist_id and self.stylist_ids is not None and stylist_id not in self.stylist_ids:
            raise ValidationError(
                "Validation failed", {"stylist_id": "Unknown or inactive stylist"}
            )

        return replace(
            draft,
            stylist_id=stylist_id or None,
            day=None,
            slot=None,
            step=BookingStep.SELECTING_DATETIME,
        )

    def available_slots(self, draft: BookingDraft, day: datetime.date) -> List[datetime.time]:
        total_duration = self.summary(draft).total_duration
        if total_duration <= 0:
            return []
        return list(self.slot_source(day, total_duration, draft.stylist_id))

    def choose_slot(
        self,
        draft: BookingDraft,
        day: Optional[datetime.date],
        slot: Optional[datetime.time],
    ) -> BookingDraft:
        self._require_step(draft, BookingStep.SELECTING_DATETIME)

        errors = {}
        if day is None:
            errors["date"] = "Select a date"
        if slot is None:
            errors["time_slot"] = "Select a time slot"
        if errors:
            raise ValidationError("Validation failed", errors)

        if slot not in self.available_slots(draft, day):
            raise ValidationError(
                "Validation failed", {"time_slot": "This time slot is not available"}
            )

        return replace(draft, day=day, slot=slot, step=BookingStep.ENTERING_CONTACT_INFO)

    def _check_draft(self, draft: BookingDraft):
        """Re-check a client-held draft against the catalog and the slot grid."""
        selected = self._selected(draft)
        active = [service for service in selected if service.is_active]
        if not draft.service_ids or len(active) != len(draft.service_ids):
            raise ValidationError(
                "Validation failed", {"service_ids": "Select at least one available service"}
            )
        stylist_id = draft.stylist_id
        if stylist_id and self.stylist_ids is not None and stylist_id not in self.stylist_ids:
            raise ValidationError(
                "Validation failed", {"stylist_id": "Unknown or inactive stylist"}
            )
        if draft.day is None or draft.slot is None:
            raise ValidationError("Validation failed", {"time_slot": "Select a time slot"})
        if draft.slot not in self.available_slots(draft, draft.day):
            raise ValidationError(
                "Validation failed", {"time_slot": "This time slot is not available"}
            )

    def submit(self, draft: BookingDraft, contact: ContactInfo) -> BookingDraft:
        """
        Validate the contact details, create the appointment and, when a
        deposit is due, request the payment intent.

        Collaborator failures raise SubmissionError; the caller still holds
        the unchanged draft and may submit it again. The draft's submission
        token makes a repeated submission return the same appointment.
        """
        self._require_step(draft, BookingStep.ENTERING_CONTACT_INFO)

        errors = contact.errors()
        if errors:
            raise ValidationError("Validation failed", errors)

        self._check_draft(draft)

        summary = self.summary(draft)
        payload = {
            "salon_id": draft.salon_id,
            "stylist_id": draft.stylist_id,
            "service_ids": list(draft.service_ids),
            "start_time": summary.start_time,
            "end_time": summary.end_time,
            "total_amount": summary.total_amount,
            "deposit_amount": summary.deposit_amount,
            "notes": contact.notes,
            "channel": "form",
            "submission_token": draft.submission_token,
            "client": {
                "first_name": contact.first_name,
                "last_name": contact.last_name,
                "phone": contact.phone,
                "email": contact.email,
            },
        }

        try:
            appointment = self.submit_appointment(payload)
        except BookingError:
            raise
        except Exception as e:
            logger.error(f"Booking submission failed for salon {draft.salon_id}: {e}")
            raise SubmissionError(
                "Could not create the appointment. Please try again."
            ) from e

        submitted = replace(draft, contact=contact, appointment_id=appointment["id"])

        if not summary.requires_deposit:
            return replace(submitted, step=BookingStep.SUBMITTED)

        client_secret = None
        if self.request_payment is not None:
            try:
                client_secret = self.request_payment(
                    summary.deposit_amount, appointment["id"]
                )
            except Exception as e:
                logger.error(
                    f"Deposit request failed for appointment {appointment['id']}: {e}"
                )
                raise SubmissionError(
                    "The payment could not be started. Please try again."
                ) from e

        return replace(
            submitted, client_secret=client_secret, step=BookingStep.AWAITING_PAYMENT
        )

    def confirm_payment(self, draft: BookingDraft) -> BookingDraft:
        self._require_step(draft, BookingStep.AWAITING_PAYMENT)
        return replace(draft, step=BookingStep.SUBMITTED)

    def back(self, draft: BookingDraft) -> BookingDraft:
        if draft.step not in FORM_STEPS or draft.step == BookingStep.SELECTING_SERVICES:
            raise InvalidTransitionError(
                f"Cannot go back from step '{draft.step.value}'"
            )
        previous = FORM_STEPS[FORM_STEPS.index(draft.step) - 1]
        return replace(draft, step=previous)

    def reset(self, draft: BookingDraft) -> BookingDraft:
        return BookingDraft(salon_id=draft.salon_id)
