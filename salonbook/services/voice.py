"""
Phone receptionist and dashboard assistant backed by an OpenAI chat model.

Both entry points always return a usable result: if the model is not
configured, times out, or answers with something that is not the expected
JSON, the caller gets a fixed fallback instead of an exception.
"""

import json
import logging
from typing import Dict, List, Mapping, Optional

from openai import OpenAI

from ..schemas import AnalysisResult, VoiceIntentResult

logger = logging.getLogger(__name__)

FALLBACK_VOICE_REPLY = "Sorry, I didn't quite catch that. Could you repeat your request?"
FALLBACK_ANALYSIS_REPLY = "Something went wrong while analysing your data."
CONTEXT_SLOT_LIMIT = 5

VOICE_SYSTEM_PROMPT = """You are a professional AI receptionist for a hair salon. Work out what the caller wants and answer naturally and politely.

Salon context:
Available services: {services}
Stylists: {stylists}
Next available slots: {slots}

Reply in JSON with:
{{
  "intent": "book|reschedule|cancel|inquiry",
  "entities": {{
    "service": "requested service name",
    "stylist": "requested stylist name",
    "date": "requested date",
    "time": "requested time",
    "client_name": "caller name",
    "client_phone": "caller phone"
  }},
  "response": "natural reply to say to the caller",
  "confidence": 0.85
}}"""

ANALYSIS_SYSTEM_PROMPT = """You are an AI assistant that analyses business data for hair salons.
Study the data provided and answer the question clearly, with actionable advice.

Reply in JSON with:
{
  "answer": "direct answer to the question",
  "insights": ["insight 1", "insight 2", "insight 3"],
  "recommendations": ["recommendation 1", "recommendation 2"]
}"""


def fallback_intent() -> VoiceIntentResult:
    return VoiceIntentResult(
        intent="unknown", entities={}, response=FALLBACK_VOICE_REPLY, confidence=0.1
    )


def describe_context(context: Dict) -> Dict[str, str]:
    """Flatten the salon context into the strings the prompt expects."""
    services = ", ".join(
        f"{s['name']} ({s['duration_minutes']}min, {s['price']})"
        for s in context.get("services", [])
    )
    stylists = ", ".join(
        f"{s['name']} (specialties: {', '.join(s.get('specialties') or []) or 'none'})"
        for s in context.get("stylists", [])
    )
    slots = ", ".join(
        f"{slot['start']} - {slot['end']}"
        for slot in context.get("available_slots", [])[:CONTEXT_SLOT_LIMIT]
    )
    return {
        "services": services or "none",
        "stylists": stylists or "none",
        "slots": slots or "none",
    }


class VoiceAssistant:
    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        timeout_seconds: float = 30,
    ):
        self.model = model
        self.client = None
        if api_key:
            self.client = OpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=0)

    @classmethod
    def from_config(cls, config: Mapping) -> "VoiceAssistant":
        return cls(
            api_key=config.get("OPENAI_API_KEY"),
            model=config.get("OPENAI_MODEL", "gpt-4o-mini"),
            timeout_seconds=config.get("OPENAI_TIMEOUT_SECONDS", 30),
        )

    def _complete_json(self, messages: List[Dict]) -> Dict:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content or "{}"
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError("model reply is not a JSON object")
        return data

    def process(self, transcript: str, context: Dict) -> VoiceIntentResult:
        """
        Classify a caller's transcript.

        ``context`` holds ``services`` (name, duration_minutes, price),
        ``stylists`` (name, specialties) and ``available_slots`` (start, end).
        """
        if self.client is None:
            logger.warning("OpenAI API key not configured, using fallback reply")
            return fallback_intent()

        messages = [
            {
                "role": "system",
                "content": VOICE_SYSTEM_PROMPT.format(**describe_context(context)),
            },
            {"role": "user", "content": transcript},
        ]

        try:
            data = self._complete_json(messages)
            result = VoiceIntentResult.model_validate(data)
        except Exception as e:
            logger.error(f"Error processing voice input: {e}", exc_info=True)
            return fallback_intent()

        logger.info(f"Voice intent '{result.intent}' ({result.confidence:.2f})")
        return result

    def analyze_business_data(self, question: str, context: Dict) -> AnalysisResult:
        if self.client is None:
            logger.warning("OpenAI API key not configured, using fallback analysis")
            return AnalysisResult(answer=FALLBACK_ANALYSIS_REPLY)

        messages = [
            {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": (
                    f"Question: {question}\n\n"
                    f"Context data: {json.dumps(context, indent=2, default=str)}"
                ),
            },
        ]

        try:
            data = self._complete_json(messages)
            return AnalysisResult.model_validate(
                {key: value for key, value in data.items() if value is not None}
            )
        except Exception as e:
            logger.error(f"Error analyzing business data: {e}", exc_info=True)
            return AnalysisResult(answer=FALLBACK_ANALYSIS_REPLY)
