from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ...auth import login_required
from ...errors import BookingError, ValidationError
from ...extensions import db
from ...models import Appointment, Review
from ...serializers import review_to_dict
from ...services.catalog import get_client, get_owned_salon, get_salon, get_stylist
from ...utils.validators import clean_str

reviews_bp = Blueprint("reviews", __name__, url_prefix="/api/reviews")

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


@reviews_bp.route("", methods=["GET"])
@login_required
def list_reviews():
    """
    Latest reviews for the owner's salon
    ---
    tags:
      - Reviews
    security:
      - Bearer: []
    parameters:
      - name: limit
        in: query
        type: integer
        required: false
        default: 10
    responses:
      200:
        description: Reviews, newest first
      400:
        description: Invalid limit
      404:
        description: The user has no salon
    """
    salon = get_owned_salon(g.user_id)
    if not salon:
        return jsonify({"error": "Salon not found"}), 404

    try:
        limit = int(request.args.get("limit", DEFAULT_LIMIT))
    except ValueError:
        return jsonify({"error": "limit must be an integer"}), 400
    limit = max(1, min(limit, MAX_LIMIT))

    reviews = db.session.scalars(
        select(Review)
        .where(Review.salon_id == salon.id)
        .order_by(Review.created_at.desc())
        .limit(limit)
    ).all()

    return jsonify({"reviews": [review_to_dict(r) for r in reviews]}), 200


@reviews_bp.route("", methods=["POST"])
def create_review():
    """
    Leave a review for a salon
    ---
    tags:
      - Reviews
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - salon_id
            - client_id
            - rating
          properties:
            salon_id:
              type: string
            client_id:
              type: string
            appointment_id:
              type: string
            stylist_id:
              type: string
            rating:
              type: integer
              minimum: 1
              maximum: 5
            comment:
              type: string
    responses:
      201:
        description: Review created
      400:
        description: Validation failed
      404:
        description: Salon, client, stylist or appointment not found
    """
    data = request.get_json(silent=True) or {}

    rating = data.get("rating")
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        return (
            jsonify(
                {
                    "error": "Validation failed",
                    "fields": {"rating": "Rating must be an integer between 1 and 5"},
                }
            ),
            400,
        )

    try:
        salon = get_salon(data.get("salon_id"))
        if not data.get("client_id"):
            raise ValidationError("Validation failed", {"client_id": "client_id is required"})
        client = get_client(salon.id, data["client_id"])

        stylist_id = data.get("stylist_id") or None
        if stylist_id:
            get_stylist(salon.id, stylist_id)

        appointment_id = data.get("appointment_id") or None
        if appointment_id:
            appointment = db.session.get(Appointment, appointment_id)
            if not appointment or appointment.salon_id != salon.id:
                return jsonify({"error": "Appointment not found"}), 404

        review = Review(
            salon_id=salon.id,
            client_id=client.id,
            appointment_id=appointment_id,
            stylist_id=stylist_id,
            rating=rating,
            comment=clean_str(data.get("comment")) or None,
        )
        db.session.add(review)
        db.session.commit()
    except BookingError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create review: {e}")
        return jsonify({"error": "Failed to create review"}), 500

    return jsonify(review_to_dict(review)), 201
