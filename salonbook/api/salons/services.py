# Service catalog management for the owner's salon
from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ...auth import login_required
from ...errors import BookingError, ValidationError
from ...extensions import db
from ...models import Service
from ...serializers import service_to_dict
from ...services.catalog import get_owned_salon
from ...utils.dates import parse_decimal
from ...utils.validators import clean_str

services_bp = Blueprint("services", __name__, url_prefix="/api/services")

MINUTE_FIELDS = ("buffer_before", "buffer_after", "processing_time")


def _int_field(data, field, errors, minimum):
    value = data.get(field)
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        errors[field] = f"{field} must be an integer >= {minimum}"
        return None
    return value


def apply_service_fields(service, data, creating=False):
    errors = {}

    if creating or "name" in data:
        name = clean_str(data.get("name"))
        if not name:
            errors["name"] = "Service name is required"
        else:
            service.name = name

    if creating or "duration_minutes" in data:
        duration = _int_field(data, "duration_minutes", errors, 1)
        if duration is not None:
            service.duration_minutes = duration

    if creating or "price" in data:
        try:
            price = parse_decimal(data.get("price"), "price")
            if price < 0:
                errors["price"] = "price cannot be negative"
            else:
                service.price = price
        except ValueError as e:
            errors["price"] = str(e)

    for field in MINUTE_FIELDS:
        if field in data:
            value = _int_field(data, field, errors, 0)
            if value is not None:
                setattr(service, field, value)

    if "tags" in data:
        tags = data.get("tags") or []
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            errors["tags"] = "tags must be a list of strings"
        else:
            service.tags = tags

    if "description" in data:
        service.description = clean_str(data.get("description")) or None

    for field in ("requires_deposit", "is_active"):
        if field in data:
            if not isinstance(data[field], bool):
                errors[field] = f"{field} must be a boolean"
            else:
                setattr(service, field, data[field])

    if errors:
        raise ValidationError("Validation failed", errors)


def _owned_service(service_id):
    salon = get_owned_salon(g.user_id)
    if not salon:
        return None
    service = db.session.get(Service, service_id)
    if not service or service.salon_id != salon.id:
        return None
    return service


@services_bp.route("", methods=["GET"])
@login_required
def list_services():
    """
    List the salon's services
    ---
    tags:
      - Services
    security:
      - Bearer: []
    parameters:
      - name: include_inactive
        in: query
        type: boolean
        required: false
        description: Also return deactivated services
    responses:
      200:
        description: Services ordered by name
      404:
        description: The user has no salon
    """
    salon = get_owned_salon(g.user_id)
    if not salon:
        return jsonify({"error": "Salon not found"}), 404

    query = select(Service).where(Service.salon_id == salon.id)
    if request.args.get("include_inactive", "").lower() != "true":
        query = query.where(Service.is_active.is_(True))
    services = db.session.scalars(query.order_by(Service.name)).all()

    return jsonify({"services": [service_to_dict(s) for s in services]}), 200


@services_bp.route("", methods=["POST"])
@login_required
def create_service():
    """
    Add a service to the catalog
    ---
    tags:
      - Services
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
            - duration_minutes
            - price
          properties:
            name:
              type: string
            description:
              type: string
            duration_minutes:
              type: integer
            price:
              type: number
            tags:
              type: array
              items:
                type: string
            requires_deposit:
              type: boolean
    responses:
      201:
        description: Service created
      400:
        description: Validation failed
      404:
        description: The user has no salon
    """
    salon = get_owned_salon(g.user_id)
    if not salon:
        return jsonify({"error": "Salon not found"}), 404

    data = request.get_json(silent=True) or {}

    try:
        service = Service(salon_id=salon.id)
        apply_service_fields(service, data, creating=True)
        db.session.add(service)
        db.session.commit()
    except BookingError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create service: {e}")
        return jsonify({"error": "Failed to create service"}), 500

    return jsonify(service_to_dict(service)), 201


@services_bp.route("/<service_id>", methods=["PATCH"])
@login_required
def update_service(service_id):
    """
    Update a service
    ---
    tags:
      - Services
    security:
      - Bearer: []
    parameters:
      - name: service_id
        in: path
        type: string
        required: true
      - in: body
        name: body
        schema:
          type: object
    responses:
      200:
        description: Updated service
      400:
        description: Validation failed
      404:
        description: Service not found
    """
    service = _owned_service(service_id)
    if not service:
        return jsonify({"error": "Service not found"}), 404

    data = request.get_json(silent=True) or {}

    try:
        apply_service_fields(service, data)
        db.session.commit()
    except BookingError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update service {service_id}: {e}")
        return jsonify({"error": "Failed to update service"}), 500

    return jsonify(service_to_dict(service)), 200


@services_bp.route("/<service_id>", methods=["DELETE"])
@login_required
def delete_service(service_id):
    """
    Deactivate a service (soft delete)
    ---
    tags:
      - Services
    security:
      - Bearer: []
    parameters:
      - name: service_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Service deactivated
      404:
        description: Service not found
    """
    service = _owned_service(service_id)
    if not service:
        return jsonify({"error": "Service not found"}), 404

    try:
        service.is_active = False
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete service {service_id}: {e}")
        return jsonify({"error": "Failed to delete service"}), 500

    return jsonify({"message": "Service deactivated", "id": service.id}), 200
