"""
Appointment lifecycle: creation, status transitions, cancellation and
payment bookkeeping.

Allowed status moves::

    pending   -> confirmed | cancelled
    confirmed -> completed | cancelled | no_show

completed, cancelled and no_show are terminal. Nothing here changes a status
on a timer; every transition is an explicit call.
"""

import datetime
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..errors import (
    InvalidTransitionError,
    NotFoundError,
    SlotConflictError,
    ValidationError,
)
from ..extensions import db
from ..models import BOOKING_CHANNELS, PAYMENT_STATUSES, Appointment
from ..utils.dates import parse_datetime, parse_decimal, utcnow
from .catalog import find_or_build_client, get_client, get_salon, get_stylist, services_by_id

logger = logging.getLogger(__name__)

TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled", "no_show"},
    "completed": set(),
    "cancelled": set(),
    "no_show": set(),
}

CREATE_STATUSES = ("pending", "confirmed")
INACTIVE_STATUSES = ("cancelled", "no_show")
DEFAULT_CANCELLATION_REASON = "Cancelled by client"
CENT = Decimal("0.01")


def check_transition(current: str, new: str):
    if new not in TRANSITIONS:
        raise ValidationError("Validation failed", {"status": f"Unknown status '{new}'"})
    if new not in TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Cannot change appointment status from '{current}' to '{new}'"
        )


def _parse_range(fields: Dict, errors: Dict):
    start = end = None
    for key in ("start_time", "end_time"):
        try:
            value = parse_datetime(fields.get(key), key)
        except ValueError as e:
            errors[key] = str(e)
            continue
        if key == "start_time":
            start = value
        else:
            end = value

    if start and end and end <= start:
        errors["end_time"] = "end_time must be after start_time"
    return start, end


def _parse_amount(value, field_name: str, errors: Dict) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        amount = parse_decimal(value, field_name)
    except ValueError as e:
        errors[field_name] = str(e)
        return None
    if not amount.is_finite():
        errors[field_name] = f"{field_name} must be a valid number"
        return None
    if amount < 0:
        errors[field_name] = f"{field_name} cannot be negative"
        return None
    return amount


def check_stylist_overlap(
    stylist_id: Optional[str],
    start: datetime.datetime,
    end: datetime.datetime,
    exclude_id: Optional[str] = None,
):
    """Raise SlotConflictError if the stylist already has a live booking in [start, end)."""
    if not stylist_id:
        return

    query = select(Appointment.id).where(
        Appointment.stylist_id == stylist_id,
        Appointment.status.not_in(INACTIVE_STATUSES),
        Appointment.start_time < end,
        Appointment.end_time > start,
    )
    if exclude_id:
        query = query.where(Appointment.id != exclude_id)

    if db.session.scalars(query).first():
        raise SlotConflictError("The stylist is already booked at that time")


def _overlap_enforced() -> bool:
    return current_app.config.get("ENFORCE_STYLIST_OVERLAP", True)


def find_by_submission_token(token: Optional[str]) -> Optional[Appointment]:
    if not token:
        return None
    return db.session.scalars(
        select(Appointment).where(Appointment.submission_token == token)
    ).first()


def create_appointment(salon_id: str, fields: Dict, status: str = "pending") -> Appointment:
    """
    Persist a new appointment for ``salon_id``.

    ``fields`` carries start_time, end_time, service_ids and either a
    client_id or a ``client`` dict (first_name, last_name, phone, email) used
    to find or create the client by phone. Optional: stylist_id,
    total_amount, deposit_amount, notes, channel and submission_token.
    The total is always the sum of the service prices; a supplied
    total_amount must match it and a deposit_amount may not exceed it. A
    repeated submission_token returns the appointment created the first time.
    """
    if status not in CREATE_STATUSES:
        raise ValidationError(
            "Validation failed",
            {"status": "New appointments must be pending or confirmed"},
        )

    get_salon(salon_id)

    token = fields.get("submission_token") or None
    existing = find_by_submission_token(token)
    if existing:
        if existing.salon_id != salon_id:
            raise ValidationError(
                "Validation failed", {"submission_token": "Token already used"}
            )
        logger.info(f"Duplicate submission {token}, returning appointment {existing.id}")
        return existing

    errors = {}
    start, end = _parse_range(fields, errors)

    service_ids = fields.get("service_ids")
    services = {}
    if not isinstance(service_ids, list) or not service_ids:
        errors["service_ids"] = "At least one service is required"
    else:
        service_ids = [str(sid) for sid in service_ids]
        services = services_by_id(salon_id, service_ids)
        missing = [sid for sid in service_ids if sid not in services]
        if missing:
            errors["service_ids"] = f"Unknown services: {', '.join(missing)}"

    channel = fields.get("channel") or "form"
    if channel not in BOOKING_CHANNELS:
        errors["channel"] = f"channel must be one of {', '.join(BOOKING_CHANNELS)}"

    total_amount = _parse_amount(fields.get("total_amount"), "total_amount", errors)
    deposit_amount = _parse_amount(fields.get("deposit_amount"), "deposit_amount", errors)

    if services and "service_ids" not in errors:
        price_sum = sum(
            (Decimal(services[sid].price) for sid in service_ids), Decimal("0")
        ).quantize(CENT)
        if total_amount is not None and total_amount != price_sum:
            errors["total_amount"] = f"total_amount must equal the service total {price_sum}"
        if deposit_amount is not None and deposit_amount > price_sum:
            errors["deposit_amount"] = "deposit_amount cannot exceed the total amount"
        total_amount = price_sum

    client_data = fields.get("client")
    if not fields.get("client_id") and not isinstance(client_data, dict):
        errors["client"] = "client_id or client details are required"

    if errors:
        raise ValidationError("Validation failed", errors)

    stylist_id = fields.get("stylist_id") or None
    if stylist_id:
        get_stylist(salon_id, stylist_id)

    if _overlap_enforced():
        check_stylist_overlap(stylist_id, start, end)

    if fields.get("client_id"):
        client = get_client(salon_id, fields["client_id"])
    else:
        client = find_or_build_client(salon_id, client_data)

    appointment = Appointment(
        salon_id=salon_id,
        client_id=client.id,
        stylist_id=stylist_id,
        service_ids=service_ids,
        service_snapshot=[
            {
                "id": sid,
                "name": services[sid].name,
                "price": float(services[sid].price),
                "duration_minutes": services[sid].duration_minutes,
            }
            for sid in service_ids
        ],
        start_time=start,
        end_time=end,
        status=status,
        channel=channel,
        total_amount=total_amount,
        deposit_amount=deposit_amount,
        payment_status="pending",
        notes=fields.get("notes"),
        submission_token=token,
    )
    db.session.add(appointment)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        # Lost a race with the same submission
        existing = find_by_submission_token(token)
        if existing:
            return existing
        raise

    logger.info(f"Created appointment {appointment.id} for salon {salon_id}")
    return appointment


def get_appointment(appointment_id: str, salon_id: Optional[str] = None) -> Appointment:
    appointment = db.session.get(Appointment, appointment_id) if appointment_id else None
    if not appointment or (salon_id and appointment.salon_id != salon_id):
        raise NotFoundError("Appointment not found")
    return appointment


def list_appointments(
    salon_id: str,
    start: Optional[datetime.datetime] = None,
    end: Optional[datetime.datetime] = None,
    status: Optional[str] = None,
) -> List[Appointment]:
    """
    Appointments starting in [start, end). Filtering by status orders the
    newest bookings first; otherwise appointments come in start-time order.
    """
    query = select(Appointment).where(Appointment.salon_id == salon_id)
    if start:
        query = query.where(Appointment.start_time >= start)
    if end:
        query = query.where(Appointment.start_time < end)

    if status:
        if status not in TRANSITIONS:
            raise ValidationError("Validation failed", {"status": f"Unknown status '{status}'"})
        query = query.where(Appointment.status == status).order_by(
            Appointment.created_at.desc()
        )
    else:
        query = query.order_by(Appointment.start_time)

    return list(db.session.scalars(query))


def _record_visit(appointment: Appointment):
    client = appointment.client
    client.total_visits = (client.total_visits or 0) + 1
    client.total_spent = Decimal(str(client.total_spent or 0)) + Decimal(
        str(appointment.total_amount)
    )
    if client.last_visit is None or appointment.start_time > client.last_visit:
        client.last_visit = appointment.start_time


def _apply_cancellation(appointment: Appointment, reason: Optional[str]):
    appointment.status = "cancelled"
    appointment.cancelled_at = utcnow()
    appointment.cancellation_reason = reason or DEFAULT_CANCELLATION_REASON


def update_appointment(salon_id: str, appointment_id: str, fields: Dict) -> Appointment:
    """
    Merge the allowed fields (status, stylist_id, start_time, end_time,
    notes, payment_status) into the appointment. Status changes go through
    the transition table; completing an appointment updates the client's
    visit totals.
    """
    appointment = get_appointment(appointment_id, salon_id)

    allowed = ("status", "stylist_id", "start_time", "end_time", "notes", "payment_status")
    changes = {key: fields[key] for key in allowed if key in fields}
    if not changes:
        raise ValidationError("No valid fields to update")

    errors = {}

    if "payment_status" in changes and changes["payment_status"] not in PAYMENT_STATUSES:
        errors["payment_status"] = (
            f"payment_status must be one of {', '.join(PAYMENT_STATUSES)}"
        )

    rescheduling = any(key in changes for key in ("start_time", "end_time", "stylist_id"))
    start, end = appointment.start_time, appointment.end_time
    if "start_time" in changes or "end_time" in changes:
        start, end = _parse_range(
            {
                "start_time": changes.get("start_time", appointment.start_time),
                "end_time": changes.get("end_time", appointment.end_time),
            },
            errors,
        )

    if errors:
        raise ValidationError("Validation failed", errors)

    new_status = changes.get("status")
    if new_status and new_status != appointment.status:
        check_transition(appointment.status, new_status)

    stylist_id = appointment.stylist_id
    if "stylist_id" in changes:
        stylist_id = changes["stylist_id"] or None
        if stylist_id:
            get_stylist(salon_id, stylist_id)

    if rescheduling and _overlap_enforced():
        check_stylist_overlap(stylist_id, start, end, exclude_id=appointment.id)

    appointment.stylist_id = stylist_id
    appointment.start_time = start
    appointment.end_time = end
    if "notes" in changes:
        appointment.notes = changes["notes"]
    if "payment_status" in changes:
        appointment.payment_status = changes["payment_status"]

    if new_status and new_status != appointment.status:
        if new_status == "cancelled":
            _apply_cancellation(appointment, fields.get("cancellation_reason"))
        else:
            appointment.status = new_status
        if new_status == "completed":
            _record_visit(appointment)

    appointment.updated_at = utcnow()
    db.session.commit()

    logger.info(f"Updated appointment {appointment.id}: {sorted(changes)}")
    return appointment


def cancel_appointment(
    appointment_id: str, reason: Optional[str] = None, salon_id: Optional[str] = None
) -> Appointment:
    """Cancelling twice is a no-op; the first cancellation time and reason stand."""
    appointment = get_appointment(appointment_id, salon_id)

    if appointment.status == "cancelled":
        return appointment
    check_transition(appointment.status, "cancelled")

    _apply_cancellation(appointment, reason)
    appointment.updated_at = utcnow()
    db.session.commit()

    logger.info(f"Cancelled appointment {appointment.id}")
    return appointment


def mark_paid(appointment_id: str, payment_reference: Optional[str]) -> Appointment:
    appointment = get_appointment(appointment_id)

    appointment.payment_status = "paid"
    if payment_reference:
        appointment.stripe_payment_intent_id = payment_reference
    appointment.updated_at = utcnow()
    db.session.commit()

    logger.info(f"Appointment {appointment.id} marked paid ({payment_reference})")
    return appointment
