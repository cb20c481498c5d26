# Salon profile for the signed-in owner
from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ...auth import login_required
from ...errors import BookingError, ValidationError
from ...extensions import db
from ...models import Salon
from ...schemas import Branding, OperatingHours, SalonPolicies, Socials, dump_model, parse_model
from ...serializers import salon_to_dict
from ...services.catalog import get_owned_salon
from ...utils.dates import utcnow
from ...utils.validators import clean_str, is_valid_email

salon_bp = Blueprint("salon", __name__, url_prefix="/api/salon")

JSON_FIELDS = {
    "hours": OperatingHours,
    "socials": Socials,
    "policies": SalonPolicies,
    "branding": Branding,
}


def apply_salon_fields(salon, data, creating=False):
    """Validate ``data`` and copy it onto ``salon``. Raises ValidationError."""
    errors = {}

    if creating or "name" in data:
        name = clean_str(data.get("name"))
        if not name:
            errors["name"] = "Salon name is required"
        else:
            salon.name = name

    if "email" in data:
        email = clean_str(data.get("email")) or None
        if email and not is_valid_email(email):
            errors["email"] = "Invalid email"
        else:
            salon.email = email

    for field in ("address", "phone"):
        if field in data:
            setattr(salon, field, clean_str(data.get(field)) or None)

    for field, model in JSON_FIELDS.items():
        if field not in data:
            continue
        if data[field] is None:
            setattr(salon, field, None)
            continue
        try:
            setattr(salon, field, dump_model(parse_model(model, data[field], field)))
        except ValidationError as e:
            errors.update(e.fields)

    if errors:
        raise ValidationError("Validation failed", errors)


@salon_bp.route("", methods=["GET"])
@login_required
def get_salon():
    """
    Get the salon owned by the signed-in user
    ---
    tags:
      - Salons
    security:
      - Bearer: []
    responses:
      200:
        description: Salon profile
      404:
        description: The user has no salon yet
    """
    salon = get_owned_salon(g.user_id)
    if not salon:
        return jsonify({"error": "Salon not found"}), 404
    return jsonify(salon_to_dict(salon)), 200


@salon_bp.route("", methods=["POST"])
@login_required
def create_salon():
    """
    Create the signed-in owner's salon
    ---
    tags:
      - Salons
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - name
          properties:
            name:
              type: string
            address:
              type: string
            phone:
              type: string
            email:
              type: string
            hours:
              type: object
              description: Per-weekday {open, close, closed}
            policies:
              type: object
              properties:
                cancellation_hours:
                  type: integer
                deposit_required:
                  type: boolean
                deposit_percentage:
                  type: number
                no_show_policy:
                  type: string
    responses:
      201:
        description: Salon created
      400:
        description: Validation failed
      409:
        description: The owner already has a salon
    """
    data = request.get_json(silent=True) or {}

    if get_owned_salon(g.user_id):
        return jsonify({"error": "Salon already exists for this user"}), 409

    try:
        salon = Salon(owner_id=g.user_id)
        apply_salon_fields(salon, data, creating=True)
        db.session.add(salon)
        g.user.salon_name = salon.name
        db.session.commit()
    except BookingError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create salon: {e}")
        return jsonify({"error": "Failed to create salon"}), 500

    current_app.logger.info(f"Salon {salon.id} created by {g.user_id}")
    return jsonify(salon_to_dict(salon)), 201


@salon_bp.route("/<salon_id>", methods=["PATCH"])
@login_required
def update_salon(salon_id):
    """
    Update salon details, hours and policies
    ---
    tags:
      - Salons
    security:
      - Bearer: []
    parameters:
      - name: salon_id
        in: path
        type: string
        required: true
      - in: body
        name: body
        schema:
          type: object
    responses:
      200:
        description: Updated salon
      400:
        description: Validation failed
      403:
        description: Not the owner of this salon
      404:
        description: Salon not found
    """
    salon = db.session.get(Salon, salon_id)
    if not salon:
        return jsonify({"error": "Salon not found"}), 404
    if salon.owner_id != g.user_id:
        return jsonify({"error": "You do not own this salon"}), 403

    data = request.get_json(silent=True) or {}

    try:
        apply_salon_fields(salon, data)
        salon.updated_at = utcnow()
        db.session.commit()
    except BookingError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update salon {salon_id}: {e}")
        return jsonify({"error": "Failed to update salon"}), 500

    return jsonify(salon_to_dict(salon)), 200
