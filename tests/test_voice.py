import json
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import SQLAlchemyError

from salonbook.api.voice import assistant
from salonbook.models import VoiceCall
from salonbook.services import voice
from salonbook.services.voice import (
    FALLBACK_ANALYSIS_REPLY,
    FALLBACK_VOICE_REPLY,
    VoiceAssistant,
    describe_context,
)


class FakeOpenAI:
    """Stands in for openai.OpenAI; replies with ``FakeOpenAI.reply``."""

    reply = "{}"
    error = None
    requests = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        FakeOpenAI.requests.append(kwargs)
        if FakeOpenAI.error is not None:
            raise FakeOpenAI.error
        message = SimpleNamespace(content=FakeOpenAI.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def fake_openai(app, monkeypatch):
    FakeOpenAI.reply = "{}"
    FakeOpenAI.error = None
    FakeOpenAI.requests = []
    monkeypatch.setattr(voice, "OpenAI", FakeOpenAI)
    monkeypatch.setitem(app.config, "OPENAI_API_KEY", "sk-test")
    return FakeOpenAI


BOOK_REPLY = json.dumps(
    {
        "intent": "book",
        "entities": {"service": "Haircut", "date": "tomorrow", "stylist": ""},
        "response": "Of course, I can book a haircut for tomorrow.",
        "confidence": 0.92,
    }
)

CONTEXT = {
    "services": [{"name": "Haircut", "duration_minutes": 30, "price": 25.0}],
    "stylists": [{"name": "Alex Martin", "specialties": ["color"]}],
    "available_slots": [
        {"start": f"2025-01-16T{h:02d}:00:00", "end": f"2025-01-16T{h:02d}:30:00"}
        for h in range(9, 17)
    ],
}


@pytest.mark.voice
class TestVoiceAssistant:
    def test_no_api_key_falls_back(self):
        result = VoiceAssistant(None).process("I need a haircut", CONTEXT)

        assert result.intent == "unknown"
        assert result.confidence == 0.1
        assert result.response == FALLBACK_VOICE_REPLY

    def test_parses_model_reply(self, fake_openai):
        fake_openai.reply = BOOK_REPLY

        result = VoiceAssistant("sk-test", model="gpt-test").process("I need a haircut", CONTEXT)

        assert result.intent == "book"
        assert result.entities == {"service": "Haircut", "date": "tomorrow"}
        assert result.confidence == 0.92
        request = fake_openai.requests[0]
        assert request["model"] == "gpt-test"
        assert request["response_format"] == {"type": "json_object"}
        assert "Alex Martin" in request["messages"][0]["content"]
        assert request["messages"][1] == {"role": "user", "content": "I need a haircut"}

    def test_invalid_json_falls_back(self, fake_openai):
        fake_openai.reply = "Sure, booking you in!"

        result = VoiceAssistant("sk-test").process("Book me", CONTEXT)

        assert result.intent == "unknown"
        assert result.confidence == 0.1

    def test_api_error_falls_back(self, fake_openai):
        fake_openai.error = TimeoutError("request timed out")

        result = VoiceAssistant("sk-test").process("Book me", CONTEXT)

        assert result.response == FALLBACK_VOICE_REPLY

    def test_context_lists_at_most_five_slots(self):
        described = describe_context(CONTEXT)

        assert described["slots"].count(" - ") == 5
        assert described["services"] == "Haircut (30min, 25.0)"

    def test_empty_context(self):
        assert describe_context({}) == {"services": "none", "stylists": "none", "slots": "none"}

    def test_analysis(self, fake_openai):
        fake_openai.reply = json.dumps(
            {
                "answer": "Tuesdays are your quietest day.",
                "insights": ["Few bookings on Tuesdays"],
                "recommendations": ["Run a Tuesday promotion"],
            }
        )

        analysis = VoiceAssistant("sk-test").analyze_business_data("When is it quiet?", {})

        assert analysis.answer == "Tuesdays are your quietest day."
        assert analysis.recommendations == ["Run a Tuesday promotion"]

    def test_analysis_fallback(self, fake_openai):
        fake_openai.reply = "[]"

        analysis = VoiceAssistant("sk-test").analyze_business_data("When is it quiet?", {})

        assert analysis.answer == FALLBACK_ANALYSIS_REPLY
        assert analysis.insights == []


@pytest.mark.voice
class TestVoiceEndpoint:
    def test_records_call_and_links_client(
        self, client, db_session, salon, haircut, sample_client, fake_openai
    ):
        fake_openai.reply = BOOK_REPLY

        response = client.post(
            "/api/voice/process",
            json={
                "salon_id": salon.id,
                "transcript": "Hi, I'd like a haircut tomorrow",
                "client_phone": "06.11.22.33.44",
                "client_temp_id": "call-42",
                "duration": 37,
            },
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["intent"] == "book"
        assert data["confidence"] == 0.92

        call = db_session.get(VoiceCall, data["call_id"])
        assert call.client_id == sample_client.id
        assert call.client_temp_id == "call-42"
        assert call.intent == "book"
        assert call.duration == 37
        assert call.result == {"type": "response", "message": data["response"]}

    def test_context_includes_catalog(self, client, salon, haircut, stylist, fake_openai):
        fake_openai.reply = BOOK_REPLY

        client.post(
            "/api/voice/process", json={"salon_id": salon.id, "transcript": "Hello"}
        )

        prompt = fake_openai.requests[0]["messages"][0]["content"]
        assert "Haircut (30min, 25.0)" in prompt
        assert "Alex Martin" in prompt

    def test_fallback_without_api_key(self, client, db_session, salon):
        response = client.post(
            "/api/voice/process", json={"salon_id": salon.id, "transcript": "Hello?"}
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["intent"] == "unknown"
        assert data["confidence"] == 0.1
        call = db_session.get(VoiceCall, data["call_id"])
        assert call.client_id is None

    def test_transcript_required(self, client, salon):
        response = client.post("/api/voice/process", json={"salon_id": salon.id})

        assert response.status_code == 400

    def test_unknown_salon(self, client, db_session):
        response = client.post(
            "/api/voice/process", json={"salon_id": "missing", "transcript": "Hi"}
        )

        assert response.status_code == 404

    def test_context_database_failure(self, client, db_session, salon, monkeypatch):
        def fail(salon):
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(assistant, "salon_context", fail)

        response = client.post(
            "/api/voice/process", json={"salon_id": salon.id, "transcript": "Hi"}
        )

        assert response.status_code == 500
        assert json.loads(response.data) == {"error": "Failed to process voice input"}
        assert db_session.query(VoiceCall).count() == 0


@pytest.mark.voice
class TestAnalyzeEndpoint:
    def test_requires_auth(self, client, salon):
        response = client.post("/api/ai/analyze", json={"question": "How is business?"})

        assert response.status_code == 401

    def test_question_required(self, client, salon, auth_headers):
        response = client.post("/api/ai/analyze", json={}, headers=auth_headers)

        assert response.status_code == 400

    def test_answer(self, client, salon, auth_headers, fake_openai):
        fake_openai.reply = json.dumps({"answer": "Business is steady.", "insights": ["Stable"]})

        response = client.post(
            "/api/ai/analyze", json={"question": "How is business?"}, headers=auth_headers
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data == {
            "answer": "Business is steady.",
            "insights": ["Stable"],
            "recommendations": [],
        }
        assert "Test Salon" in fake_openai.requests[0]["messages"][1]["content"]
