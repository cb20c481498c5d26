# Voice receptionist and dashboard assistant
import datetime

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ...auth import login_required
from ...errors import BookingError
from ...extensions import db
from ...models import VoiceCall
from ...schemas import dump_model
from ...services.catalog import (
    active_services,
    active_stylists,
    find_client_by_phone,
    get_owned_salon,
    get_salon,
)
from ...services.metrics import get_salon_metrics
from ...services.slots import generator_for_salon
from ...services.voice import CONTEXT_SLOT_LIMIT, VoiceAssistant
from ...utils.dates import to_local_naive, utcnow
from ...utils.validators import clean_str

voice_bp = Blueprint("voice", __name__, url_prefix="/api")

SLOT_LOOKAHEAD_DAYS = 7
DEFAULT_SLOT_DURATION = 30


def next_available_slots(salon, services, now):
    """First few free start times over the coming week, for the shortest service."""
    duration = min((s.duration_minutes for s in services), default=DEFAULT_SLOT_DURATION)
    tz_name = current_app.config.get("BOOKING_TIMEZONE", "UTC")
    local_today = to_local_naive(now, tz_name).date()
    slots = []

    for offset in range(SLOT_LOOKAHEAD_DAYS):
        day = local_today + datetime.timedelta(days=offset)
        generator = generator_for_salon(salon.hours, day, duration, now, current_app.config)
        for slot in generator:
            start = datetime.datetime.combine(day, slot)
            end = start + datetime.timedelta(minutes=duration)
            slots.append({"start": start.isoformat(), "end": end.isoformat()})
            if len(slots) >= CONTEXT_SLOT_LIMIT:
                return slots
    return slots


def salon_context(salon):
    services = active_services(salon.id)
    stylists = active_stylists(salon.id)
    now = datetime.datetime.now(datetime.timezone.utc)
    return {
        "services": [
            {
                "id": s.id,
                "name": s.name,
                "duration_minutes": s.duration_minutes,
                "price": float(s.price),
            }
            for s in services
        ],
        "stylists": [
            {"id": s.id, "name": s.full_name, "specialties": s.specialties or []}
            for s in stylists
        ],
        "available_slots": next_available_slots(salon, services, now),
    }


@voice_bp.route("/voice/process", methods=["POST"])
def process_voice():
    """
    Interpret a phone caller's transcript
    ---
    tags:
      - Voice
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - salon_id
            - transcript
          properties:
            salon_id:
              type: string
            transcript:
              type: string
            client_phone:
              type: string
              description: Caller id, used to link the call to a known client
            client_temp_id:
              type: string
            duration:
              type: integer
              description: Call length in seconds
    responses:
      200:
        description: Detected intent and the reply to speak
        schema:
          type: object
          properties:
            intent:
              type: string
              enum: [book, reschedule, cancel, inquiry, unknown]
            entities:
              type: object
            response:
              type: string
            confidence:
              type: number
            call_id:
              type: string
      400:
        description: Missing transcript
      404:
        description: Salon not found
    """
    data = request.get_json(silent=True) or {}
    transcript = clean_str(data.get("transcript"))
    if not transcript:
        return (
            jsonify(
                {"error": "Validation failed", "fields": {"transcript": "Transcript is required"}}
            ),
            400,
        )

    try:
        salon = get_salon(data.get("salon_id"))
        context = salon_context(salon)
    except BookingError as e:
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        current_app.logger.error(f"Failed to load voice context: {e}")
        return jsonify({"error": "Failed to process voice input"}), 500

    assistant = VoiceAssistant.from_config(current_app.config)
    result = assistant.process(transcript, context)

    phone = data.get("client_phone") or result.entities.get("client_phone")

    try:
        client = find_client_by_phone(salon.id, phone) if isinstance(phone, str) else None
        call = VoiceCall(
            salon_id=salon.id,
            client_id=client.id if client else None,
            client_temp_id=data.get("client_temp_id"),
            transcript=transcript,
            intent=result.intent,
            entities=result.entities,
            result={"type": "response", "message": result.response},
            duration=data.get("duration") if isinstance(data.get("duration"), int) else None,
        )
        db.session.add(call)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to save voice call: {e}")
        return jsonify({"error": "Failed to process voice input"}), 500

    response = dump_model(result)
    response["call_id"] = call.id
    return jsonify(response), 200


@voice_bp.route("/ai/analyze", methods=["POST"])
@login_required
def analyze():
    """
    Ask the assistant a question about the last 30 days
    ---
    tags:
      - Voice
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - question
          properties:
            question:
              type: string
    responses:
      200:
        description: Answer with insights and recommendations
        schema:
          type: object
          properties:
            answer:
              type: string
            insights:
              type: array
              items:
                type: string
            recommendations:
              type: array
              items:
                type: string
      400:
        description: Missing question
      404:
        description: The user has no salon
    """
    salon = get_owned_salon(g.user_id)
    if not salon:
        return jsonify({"error": "Salon not found"}), 404

    data = request.get_json(silent=True) or {}
    question = clean_str(data.get("question"))
    if not question:
        return (
            jsonify(
                {"error": "Validation failed", "fields": {"question": "Question is required"}}
            ),
            400,
        )

    end = utcnow()
    start = end - datetime.timedelta(days=30)
    try:
        metrics = get_salon_metrics(
            salon.id,
            start,
            end,
            rating_scope=current_app.config.get("METRICS_RATING_SCOPE", "lifetime"),
        )
    except SQLAlchemyError as e:
        current_app.logger.error(f"Failed to fetch metrics for analysis: {e}")
        return jsonify({"error": "Failed to analyze data"}), 500

    context = {"salon": salon.name, "metrics": metrics, "period": "last 30 days"}
    analysis = VoiceAssistant.from_config(current_app.config).analyze_business_data(
        question, context
    )
    return jsonify(analysis.model_dump()), 200
