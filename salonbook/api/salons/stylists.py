# Stylist management for the owner's salon
from typing import List

from flask import Blueprint, current_app, g, jsonify, request
from pydantic import TypeAdapter
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ...auth import login_required
from ...errors import BookingError, ValidationError
from ...extensions import db
from ...models import Stylist
from ...schemas import StylistSchedule, Vacation, dump_model, parse_model
from ...serializers import stylist_to_dict
from ...services.catalog import get_owned_salon
from ...utils.validators import clean_str, is_valid_email, normalize_phone

stylists_bp = Blueprint("stylists", __name__, url_prefix="/api/stylists")

VACATIONS = TypeAdapter(List[Vacation])


def parse_vacations(value):
    if not isinstance(value, list):
        raise ValidationError("Invalid vacations", {"vacations": "Must be a list"})
    vacations = [parse_model(Vacation, item, f"vacations.{i}") for i, item in enumerate(value)]
    return VACATIONS.dump_python(vacations, mode="json", exclude_none=True)


def apply_stylist_fields(stylist, data, creating=False):
    errors = {}

    for field, label in (("first_name", "First name"), ("last_name", "Last name")):
        if creating or field in data:
            value = clean_str(data.get(field))
            if not value:
                errors[field] = f"{label} is required"
            else:
                setattr(stylist, field, value)

    if "email" in data:
        email = clean_str(data.get("email")) or None
        if email and not is_valid_email(email):
            errors["email"] = "Invalid email"
        else:
            stylist.email = email

    if "phone" in data:
        stylist.phone = normalize_phone(clean_str(data.get("phone"))) or None

    if "photo_url" in data:
        stylist.photo_url = clean_str(data.get("photo_url")) or None

    if "specialties" in data:
        specialties = data.get("specialties") or []
        if not isinstance(specialties, list) or not all(
            isinstance(s, str) for s in specialties
        ):
            errors["specialties"] = "specialties must be a list of strings"
        else:
            stylist.specialties = specialties

    if "schedule" in data:
        try:
            stylist.schedule = (
                dump_model(parse_model(StylistSchedule, data["schedule"], "schedule"))
                if data["schedule"] is not None
                else None
            )
        except ValidationError as e:
            errors.update(e.fields)

    if "vacations" in data:
        try:
            stylist.vacations = parse_vacations(data.get("vacations") or [])
        except ValidationError as e:
            errors.update(e.fields)

    if "is_active" in data:
        if not isinstance(data["is_active"], bool):
            errors["is_active"] = "is_active must be a boolean"
        else:
            stylist.is_active = data["is_active"]

    if errors:
        raise ValidationError("Validation failed", errors)


def _owned_stylist(stylist_id):
    salon = get_owned_salon(g.user_id)
    if not salon:
        return None
    stylist = db.session.get(Stylist, stylist_id)
    if not stylist or stylist.salon_id != salon.id:
        return None
    return stylist


@stylists_bp.route("", methods=["GET"])
@login_required
def list_stylists():
    """
    List the salon's stylists
    ---
    tags:
      - Stylists
    security:
      - Bearer: []
    parameters:
      - name: include_inactive
        in: query
        type: boolean
        required: false
    responses:
      200:
        description: Stylists ordered by name
      404:
        description: The user has no salon
    """
    salon = get_owned_salon(g.user_id)
    if not salon:
        return jsonify({"error": "Salon not found"}), 404

    query = select(Stylist).where(Stylist.salon_id == salon.id)
    if request.args.get("include_inactive", "").lower() != "true":
        query = query.where(Stylist.is_active.is_(True))
    stylists = db.session.scalars(
        query.order_by(Stylist.first_name, Stylist.last_name)
    ).all()

    return jsonify({"stylists": [stylist_to_dict(s) for s in stylists]}), 200


@stylists_bp.route("", methods=["POST"])
@login_required
def create_stylist():
    """
    Add a stylist
    ---
    tags:
      - Stylists
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - first_name
            - last_name
          properties:
            first_name:
              type: string
            last_name:
              type: string
            email:
              type: string
            phone:
              type: string
            specialties:
              type: array
              items:
                type: string
            schedule:
              type: object
              description: Per-weekday {start, end, breaks}
            vacations:
              type: array
              items:
                type: object
    responses:
      201:
        description: Stylist created
      400:
        description: Validation failed
    """
    salon = get_owned_salon(g.user_id)
    if not salon:
        return jsonify({"error": "Salon not found"}), 404

    data = request.get_json(silent=True) or {}

    try:
        stylist = Stylist(salon_id=salon.id)
        apply_stylist_fields(stylist, data, creating=True)
        db.session.add(stylist)
        db.session.commit()
    except BookingError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create stylist: {e}")
        return jsonify({"error": "Failed to create stylist"}), 500

    return jsonify(stylist_to_dict(stylist)), 201


@stylists_bp.route("/<stylist_id>", methods=["PATCH"])
@login_required
def update_stylist(stylist_id):
    """
    Update a stylist, including schedule and vacations
    ---
    tags:
      - Stylists
    security:
      - Bearer: []
    parameters:
      - name: stylist_id
        in: path
        type: string
        required: true
      - in: body
        name: body
        schema:
          type: object
    responses:
      200:
        description: Updated stylist
      400:
        description: Validation failed
      404:
        description: Stylist not found
    """
    stylist = _owned_stylist(stylist_id)
    if not stylist:
        return jsonify({"error": "Stylist not found"}), 404

    data = request.get_json(silent=True) or {}

    try:
        apply_stylist_fields(stylist, data)
        db.session.commit()
    except BookingError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update stylist {stylist_id}: {e}")
        return jsonify({"error": "Failed to update stylist"}), 500

    return jsonify(stylist_to_dict(stylist)), 200


@stylists_bp.route("/<stylist_id>", methods=["DELETE"])
@login_required
def delete_stylist(stylist_id):
    """
    Deactivate a stylist (soft delete)
    ---
    tags:
      - Stylists
    security:
      - Bearer: []
    parameters:
      - name: stylist_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Stylist deactivated
      404:
        description: Stylist not found
    """
    stylist = _owned_stylist(stylist_id)
    if not stylist:
        return jsonify({"error": "Stylist not found"}), 404

    try:
        stylist.is_active = False
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete stylist {stylist_id}: {e}")
        return jsonify({"error": "Failed to delete stylist"}), 500

    return jsonify({"message": "Stylist deactivated", "id": stylist.id}), 200
