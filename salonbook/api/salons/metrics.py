from datetime import timedelta

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ...auth import login_required
from ...services.catalog import get_owned_salon
from ...services.metrics import get_salon_metrics
from ...utils.dates import utcnow

metrics_bp = Blueprint("metrics", __name__, url_prefix="/api/metrics")

PERIODS = (7, 30, 90)


@metrics_bp.route("", methods=["GET"])
@login_required
def get_metrics():
    """
    Dashboard metrics for the owner's salon over the last N days
    ---
    tags:
      - Metrics
    security:
      - Bearer: []
    parameters:
      - name: period
        in: query
        type: integer
        enum: [7, 30, 90]
        default: 30
        required: false
    responses:
      200:
        description: Aggregated metrics
        schema:
          type: object
          properties:
            total_appointments:
              type: integer
            total_revenue:
              type: number
              format: float
            no_shows:
              type: integer
            completed_appointments:
              type: integer
            average_rating:
              type: number
              format: float
            top_services:
              type: array
              items:
                type: object
                properties:
                  service_name:
                    type: string
                  count:
                    type: integer
      400:
        description: Unsupported period
      404:
        description: The user has no salon
    """
    salon = get_owned_salon(g.user_id)
    if not salon:
        return jsonify({"error": "Salon not found"}), 404

    period = request.args.get("period", "30")
    if not period.isdigit() or int(period) not in PERIODS:
        return jsonify({"error": "period must be one of 7, 30 or 90"}), 400

    end = utcnow()
    start = end - timedelta(days=int(period))

    try:
        metrics = get_salon_metrics(
            salon.id,
            start,
            end,
            rating_scope=current_app.config.get("METRICS_RATING_SCOPE", "lifetime"),
        )
    except SQLAlchemyError as e:
        current_app.logger.error(f"Failed to fetch metrics for salon {salon.id}: {e}")
        return jsonify({"error": "Failed to fetch metrics"}), 500

    metrics["period"] = int(period)
    return jsonify(metrics), 200
