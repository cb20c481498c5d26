# Client directory for the owner's salon
from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ...auth import login_required
from ...errors import BookingError, ValidationError
from ...extensions import db
from ...models import Client
from ...serializers import client_to_dict
from ...services.catalog import build_client, find_client_by_phone, get_client, get_owned_salon
from ...utils.validators import clean_str, is_valid_email, normalize_phone

clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.route("", methods=["GET"])
@login_required
def list_clients():
    """
    List clients, or look one up by phone
    ---
    tags:
      - Clients
    security:
      - Bearer: []
    parameters:
      - name: phone
        in: query
        type: string
        required: false
        description: Return only the client with this phone number
    responses:
      200:
        description: Clients ordered by last name
      404:
        description: The user has no salon
    """
    salon = get_owned_salon(g.user_id)
    if not salon:
        return jsonify({"error": "Salon not found"}), 404

    phone = request.args.get("phone")
    if phone:
        client = find_client_by_phone(salon.id, phone)
        clients = [client] if client else []
    else:
        clients = db.session.scalars(
            select(Client)
            .where(Client.salon_id == salon.id)
            .order_by(Client.last_name, Client.first_name)
        ).all()

    return jsonify({"clients": [client_to_dict(c) for c in clients]}), 200


@clients_bp.route("", methods=["POST"])
@login_required
def create_client():
    """
    Add a client
    ---
    tags:
      - Clients
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
            - phone
          properties:
            first_name:
              type: string
            last_name:
              type: string
            phone:
              type: string
            email:
              type: string
            notes:
              type: string
            preferences:
              type: object
    responses:
      201:
        description: Client created
      400:
        description: Validation failed
    """
    salon = get_owned_salon(g.user_id)
    if not salon:
        return jsonify({"error": "Salon not found"}), 404

    data = request.get_json(silent=True) or {}

    try:
        client = build_client(salon.id, data)
        db.session.add(client)
        db.session.commit()
    except BookingError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create client: {e}")
        return jsonify({"error": "Failed to create client"}), 500

    return jsonify(client_to_dict(client)), 201


@clients_bp.route("/<client_id>", methods=["PATCH"])
@login_required
def update_client(client_id):
    """
    Update a client's contact details, notes or preferences
    ---
    tags:
      - Clients
    security:
      - Bearer: []
    parameters:
      - name: client_id
        in: path
        type: string
        required: true
      - in: body
        name: body
        schema:
          type: object
    responses:
      200:
        description: Updated client
      400:
        description: Validation failed
      404:
        description: Client not found
    """
    salon = get_owned_salon(g.user_id)
    if not salon:
        return jsonify({"error": "Salon not found"}), 404

    data = request.get_json(silent=True) or {}

    try:
        client = get_client(salon.id, client_id)

        errors = {}
        for field in ("first_name", "last_name"):
            if field in data:
                value = clean_str(data.get(field))
                if not value:
                    errors[field] = f"{field} cannot be empty"
                else:
                    setattr(client, field, value)

        if "phone" in data:
            phone = normalize_phone(clean_str(data.get("phone")))
            if not phone:
                errors["phone"] = "Phone is required"
            else:
                client.phone = phone

        if "email" in data:
            email = clean_str(data.get("email")) or None
            if email and not is_valid_email(email):
                errors["email"] = "Invalid email"
            else:
                client.email = email

        if "notes" in data:
            client.notes = clean_str(data.get("notes")) or None
        if "preferences" in data:
            client.preferences = data.get("preferences")

        if errors:
            raise ValidationError("Validation failed", errors)

        db.session.commit()
    except BookingError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update client {client_id}: {e}")
        return jsonify({"error": "Failed to update client"}), 500

    return jsonify(client_to_dict(client)), 200
