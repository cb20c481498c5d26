# Public booking page: catalog, free slots and the booking form workflow
import datetime

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ...errors import BookingError, ValidationError
from ...extensions import db
from ...models import Service
from ...serializers import public_stylist_to_dict, service_to_dict
from ...services.appointments import create_appointment
from ...services.booking_workflow import (
    BookingDraft,
    BookingWorkflow,
    ContactInfo,
    ServiceOption,
    resolve_deposit_percentage,
)
from ...services.catalog import active_services, active_stylists, get_salon
from ...services.payments import PaymentService
from ...services.slots import generator_for_salon
from ...utils.dates import parse_date, parse_time

public_bp = Blueprint("public", __name__, url_prefix="/api/public/salon")


def _now():
    return datetime.datetime.now(datetime.timezone.utc)


@public_bp.route("/<salon_id>", methods=["GET"])
def get_public_salon(salon_id):
    """
    Public salon profile for the booking page
    ---
    tags:
      - Public Booking
    parameters:
      - name: salon_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Name, contact details, hours, policies and branding
      404:
        description: Salon not found
    """
    try:
        salon = get_salon(salon_id)
    except BookingError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        current_app.logger.error(f"Failed to fetch salon {salon_id}: {e}")
        return jsonify({"error": "Failed to fetch salon"}), 500

    return (
        jsonify(
            {
                "id": salon.id,
                "name": salon.name,
                "address": salon.address,
                "phone": salon.phone,
                "email": salon.email,
                "hours": salon.hours,
                "socials": salon.socials,
                "policies": salon.policies,
                "branding": salon.branding,
            }
        ),
        200,
    )


@public_bp.route("/<salon_id>/services", methods=["GET"])
def get_public_services(salon_id):
    """
    Active services of a salon
    ---
    tags:
      - Public Booking
    parameters:
      - name: salon_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Active services ordered by name
      404:
        description: Salon not found
    """
    try:
        salon = get_salon(salon_id)
        services = active_services(salon.id)
    except BookingError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        current_app.logger.error(f"Failed to fetch services for salon {salon_id}: {e}")
        return jsonify({"error": "Failed to fetch services"}), 500

    return jsonify({"services": [service_to_dict(s) for s in services]}), 200


@public_bp.route("/<salon_id>/stylists", methods=["GET"])
def get_public_stylists(salon_id):
    """
    Active stylists of a salon
    ---
    tags:
      - Public Booking
    parameters:
      - name: salon_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Active stylists without contact details
      404:
        description: Salon not found
    """
    try:
        salon = get_salon(salon_id)
        stylists = active_stylists(salon.id)
    except BookingError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        current_app.logger.error(f"Failed to fetch stylists for salon {salon_id}: {e}")
        return jsonify({"error": "Failed to fetch stylists"}), 500

    return (
        jsonify({"stylists": [public_stylist_to_dict(s) for s in stylists]}),
        200,
    )


@public_bp.route("/<salon_id>/slots", methods=["GET"])
def get_available_slots(salon_id):
    """
    Bookable start times for a date
    ---
    tags:
      - Public Booking
    parameters:
      - name: salon_id
        in: path
        type: string
        required: true
      - name: date
        in: query
        type: string
        format: date
        required: true
        description: YYYY-MM-DD
      - name: duration
        in: query
        type: integer
        required: false
        description: Total duration in minutes
      - name: service_ids
        in: query
        type: string
        required: false
        description: Comma-separated service ids, used when duration is not given
    responses:
      200:
        description: Start times as HH:MM
        schema:
          type: object
          properties:
            date:
              type: string
            duration_minutes:
              type: integer
            slots:
              type: array
              items:
                type: string
      400:
        description: Missing or invalid date/duration
      404:
        description: Salon not found
    """
    date_str = request.args.get("date")
    if not date_str:
        return jsonify({"error": "Missing required query parameter: 'date' (YYYY-MM-DD)"}), 400

    try:
        salon = get_salon(salon_id)
        day = parse_date(date_str, "date")

        if request.args.get("duration"):
            try:
                duration = int(request.args["duration"])
            except ValueError:
                raise ValidationError(
                    "Validation failed", {"duration": "duration must be an integer"}
                ) from None
        elif request.args.get("service_ids"):
            ids = [sid for sid in request.args["service_ids"].split(",") if sid]
            services = db.session.scalars(
                select(Service).where(
                    Service.salon_id == salon.id,
                    Service.id.in_(ids),
                    Service.is_active.is_(True),
                )
            ).all()
            found = {s.id: s for s in services}
            missing = [sid for sid in ids if sid not in found]
            if missing:
                raise ValidationError(
                    "Validation failed",
                    {"service_ids": f"Unknown or inactive services: {', '.join(missing)}"},
                )
            duration = sum(found[sid].duration_minutes for sid in ids)
        else:
            raise ValidationError(
                "Validation failed", {"duration": "duration or service_ids is required"}
            )

        generator = generator_for_salon(salon.hours, day, duration, _now(), current_app.config)
    except ValueError as e:
        return jsonify({"error": "Validation failed", "fields": {"date": str(e)}}), 400
    except BookingError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        current_app.logger.error(f"Failed to compute slots for salon {salon_id}: {e}")
        return jsonify({"error": "Failed to fetch available slots"}), 500

    return (
        jsonify(
            {
                "date": day.isoformat(),
                "duration_minutes": duration,
                "slots": generator.labels(),
            }
        ),
        200,
    )


def build_workflow(salon):
    """Wire a BookingWorkflow to this salon's catalog, the slot generator and Stripe."""
    config = current_app.config
    now = _now()
    services = db.session.scalars(select(Service).where(Service.salon_id == salon.id)).all()
    payments = PaymentService.from_config(config)

    def slot_source(day, duration, stylist_id):
        return generator_for_salon(salon.hours, day, duration, now, config)

    def submit_appointment(payload):
        try:
            appointment = create_appointment(salon.id, payload)
        except SQLAlchemyError:
            db.session.rollback()
            raise
        return {"id": appointment.id}

    return BookingWorkflow(
        services=[ServiceOption.from_model(s) for s in services],
        slot_source=slot_source,
        submit_appointment=submit_appointment,
        request_payment=payments.create_payment_intent,
        deposit_percentage=resolve_deposit_percentage(
            salon.policies, config.get("BOOKING_DEFAULT_DEPOSIT_PERCENTAGE", "20")
        ),
        stylist_ids=[s.id for s in active_stylists(salon.id)],
    )


def _optional_date(data, field):
    return parse_date(data[field], field) if data.get(field) else None


def _optional_time(data, field):
    return parse_time(data[field], field) if data.get(field) else None


@public_bp.route("/<salon_id>/booking", methods=["POST"])
def booking_step(salon_id):
    """
    Run one step of the booking form
    ---
    tags:
      - Public Booking
    description: >
      The client keeps the returned draft and sends it back with the next
      action. Actions: start, select_services {service_ids}, choose_stylist
      {stylist_id}, available_slots {date}, choose_slot {date, time_slot},
      submit {first_name, last_name, phone, email, notes, accept_terms},
      confirm_payment, back, reset.
    parameters:
      - name: salon_id
        in: path
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - action
          properties:
            action:
              type: string
            draft:
              type: object
            data:
              type: object
    responses:
      200:
        description: Updated draft and derived summary
      400:
        description: Validation failed
      404:
        description: Salon not found
      409:
        description: Action not allowed at the current step, or stylist already booked
      502:
        description: Submission failed; the same draft may be submitted again
    """
    body = request.get_json(silent=True) or {}
    action = body.get("action")
    data = body.get("data") or {}

    try:
        salon = get_salon(salon_id)
        workflow = build_workflow(salon)

        if action == "start" or not body.get("draft"):
            draft = BookingWorkflow.start(salon.id)
        else:
            draft = BookingDraft.from_dict(body["draft"], salon.id)

        response = {}
        if action == "start":
            pass
        elif action == "select_services":
            draft = workflow.select_services(draft, data.get("service_ids") or [])
        elif action == "choose_stylist":
            draft = workflow.choose_stylist(draft, data.get("stylist_id"))
        elif action == "available_slots":
            day = _optional_date(data, "date")
            if day is None:
                raise ValidationError("Validation failed", {"date": "Select a date"})
            response["available_slots"] = [
                slot.strftime("%H:%M") for slot in workflow.available_slots(draft, day)
            ]
        elif action == "choose_slot":
            draft = workflow.choose_slot(
                draft, _optional_date(data, "date"), _optional_time(data, "time_slot")
            )
        elif action == "submit":
            draft = workflow.submit(draft, ContactInfo.from_dict(data))
        elif action == "confirm_payment":
            draft = workflow.confirm_payment(draft)
        elif action == "back":
            draft = workflow.back(draft)
        elif action == "reset":
            draft = workflow.reset(draft)
        else:
            raise ValidationError("Validation failed", {"action": f"Unknown action '{action}'"})
    except ValueError as e:
        return jsonify({"error": "Validation failed", "fields": {"data": str(e)}}), 400
    except BookingError as e:
        if e.status_code >= 500:
            current_app.logger.error(f"Booking step '{action}' failed: {e.message}")
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to run booking step '{action}': {e}")
        return jsonify({"error": "Failed to process booking"}), 500

    response["draft"] = draft.to_dict()
    response["summary"] = workflow.summary(draft).to_dict()
    if draft.appointment_id:
        response["appointment_id"] = draft.appointment_id
    if draft.client_secret:
        response["client_secret"] = draft.client_secret
    return jsonify(response), 200
