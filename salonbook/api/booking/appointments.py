# Book, update and cancel appointments
from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ...auth import login_required, optional_user_id
from ...errors import BookingError
from ...extensions import db
from ...serializers import appointment_to_dict
from ...services.appointments import (
    cancel_appointment,
    create_appointment,
    get_appointment,
    list_appointments,
    update_appointment,
)
from ...services.catalog import get_owned_salon
from ...utils.dates import parse_datetime

appointments_bp = Blueprint("appointments", __name__, url_prefix="/api/appointments")


@appointments_bp.route("", methods=["GET"])
@login_required
def get_appointments():
    """
    List the salon's appointments
    ---
    tags:
      - Appointments
    security:
      - Bearer: []
    parameters:
      - name: start_date
        in: query
        type: string
        required: false
        description: ISO date or datetime, inclusive
      - name: end_date
        in: query
        type: string
        required: false
        description: ISO date or datetime, exclusive
      - name: status
        in: query
        type: string
        enum: [pending, confirmed, completed, cancelled, no_show]
        required: false
    responses:
      200:
        description: Appointments in start-time order (newest first when filtered by status)
      400:
        description: Invalid filter
      404:
        description: The user has no salon
    """
    salon = get_owned_salon(g.user_id)
    if not salon:
        return jsonify({"error": "Salon not found"}), 404

    try:
        start = (
            parse_datetime(request.args["start_date"], "start_date")
            if request.args.get("start_date")
            else None
        )
        end = (
            parse_datetime(request.args["end_date"], "end_date")
            if request.args.get("end_date")
            else None
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    try:
        appointments = list_appointments(
            salon.id, start, end, request.args.get("status") or None
        )
    except BookingError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        current_app.logger.error(f"Failed to fetch appointments: {e}")
        return jsonify({"error": "Failed to fetch appointments"}), 500

    return jsonify({"appointments": [appointment_to_dict(a) for a in appointments]}), 200


@appointments_bp.route("/<appointment_id>", methods=["GET"])
@login_required
def get_single_appointment(appointment_id):
    """
    Get one appointment
    ---
    tags:
      - Appointments
    security:
      - Bearer: []
    parameters:
      - name: appointment_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Appointment
      404:
        description: Appointment not found
    """
    salon = get_owned_salon(g.user_id)
    if not salon:
        return jsonify({"error": "Salon not found"}), 404

    try:
        appointment = get_appointment(appointment_id, salon.id)
    except BookingError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify(appointment_to_dict(appointment)), 200


@appointments_bp.route("", methods=["POST"])
def book_appointment():
    """
    Create an appointment
    ---
    tags:
      - Appointments
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - salon_id
            - service_ids
            - start_time
            - end_time
          properties:
            salon_id:
              type: string
            service_ids:
              type: array
              items:
                type: string
            stylist_id:
              type: string
            start_time:
              type: string
              format: date-time
            end_time:
              type: string
              format: date-time
            client_id:
              type: string
            client:
              type: object
              properties:
                first_name:
                  type: string
                last_name:
                  type: string
                phone:
                  type: string
                email:
                  type: string
            total_amount:
              type: number
            deposit_amount:
              type: number
            channel:
              type: string
              enum: [form, voice, phone, walk_in]
            notes:
              type: string
            status:
              type: string
              enum: [pending, confirmed]
              description: confirmed requires the salon owner's bearer token
            submission_token:
              type: string
              description: Repeating a token returns the appointment already created with it
    responses:
      201:
        description: Appointment created (or the existing one for a repeated token)
      400:
        description: Validation failed
      403:
        description: Only the salon owner can create a confirmed appointment
      404:
        description: Salon, stylist or client not found
      409:
        description: The stylist is already booked at that time
    """
    data = request.get_json(silent=True) or {}
    status = data.get("status") or "pending"

    try:
        if status != "pending":
            user_id = optional_user_id()
            owned = get_owned_salon(user_id) if user_id else None
            if not owned or owned.id != data.get("salon_id"):
                return jsonify({"error": "Only the salon owner can confirm a booking"}), 403

        appointment = create_appointment(data.get("salon_id"), data, status=status)
    except BookingError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create appointment: {e}")
        return jsonify({"error": "Failed to create appointment"}), 500

    return jsonify(appointment_to_dict(appointment)), 201


@appointments_bp.route("/<appointment_id>", methods=["PATCH"])
@login_required
def patch_appointment(appointment_id):
    """
    Update an appointment or move it through its lifecycle
    ---
    tags:
      - Appointments
    security:
      - Bearer: []
    parameters:
      - name: appointment_id
        in: path
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            status:
              type: string
              enum: [confirmed, completed, cancelled, no_show]
            stylist_id:
              type: string
            start_time:
              type: string
              format: date-time
            end_time:
              type: string
              format: date-time
            notes:
              type: string
            payment_status:
              type: string
            cancellation_reason:
              type: string
    responses:
      200:
        description: Updated appointment
      400:
        description: Validation failed
      404:
        description: Appointment not found
      409:
        description: Status change not allowed or stylist already booked
    """
    salon = get_owned_salon(g.user_id)
    if not salon:
        return jsonify({"error": "Salon not found"}), 404

    data = request.get_json(silent=True) or {}

    try:
        appointment = update_appointment(salon.id, appointment_id, data)
    except BookingError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update appointment {appointment_id}: {e}")
        return jsonify({"error": "Failed to update appointment"}), 500

    return jsonify(appointment_to_dict(appointment)), 200


@appointments_bp.route("/<appointment_id>/cancel", methods=["POST"])
def cancel(appointment_id):
    """
    Cancel an appointment
    ---
    tags:
      - Appointments
    parameters:
      - name: appointment_id
        in: path
        type: string
        required: true
      - in: body
        name: body
        required: false
        schema:
          type: object
          properties:
            reason:
              type: string
    responses:
      200:
        description: Cancelled appointment (unchanged if it was already cancelled)
      404:
        description: Appointment not found
      409:
        description: Completed and no-show appointments cannot be cancelled
    """
    data = request.get_json(silent=True) or {}

    try:
        appointment = cancel_appointment(appointment_id, data.get("reason"))
    except BookingError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to cancel appointment {appointment_id}: {e}")
        return jsonify({"error": "Failed to cancel appointment"}), 500

    return jsonify(appointment_to_dict(appointment)), 200
