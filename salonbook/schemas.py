"""
Structured shapes for the JSON columns (operating hours, stylist schedules,
salon policies) and for the language-model replies.

Stored JSON is always written from one of these models, and anything coming
in over the API is parsed through them first, so a malformed shape is
rejected at the boundary instead of being trusted later.
"""

from datetime import date, time
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
    model_validator,
)

from .errors import ValidationError

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

VOICE_INTENTS = ("book", "reschedule", "cancel", "inquiry", "unknown")

ModelT = TypeVar("ModelT", bound=BaseModel)


class DayHours(BaseModel):
    model_config = ConfigDict(extra="forbid")

    open: Optional[time] = None
    close: Optional[time] = None
    closed: bool = False

    @model_validator(mode="after")
    def check_window(self):
        if self.closed:
            return self
        if self.open is None or self.close is None:
            raise ValueError("open and close are required unless the day is closed")
        if self.open >= self.close:
            raise ValueError("open must be before close")
        return self


class OperatingHours(BaseModel):
    model_config = ConfigDict(extra="forbid")

    monday: Optional[DayHours] = None
    tuesday: Optional[DayHours] = None
    wednesday: Optional[DayHours] = None
    thursday: Optional[DayHours] = None
    friday: Optional[DayHours] = None
    saturday: Optional[DayHours] = None
    sunday: Optional[DayHours] = None

    def for_weekday(self, weekday: int) -> Optional[DayHours]:
        """Hours for ``date.weekday()`` (0 = Monday), None when not configured."""
        return getattr(self, WEEKDAYS[weekday])


class BreakInterval(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start: time
    end: time

    @model_validator(mode="after")
    def check_order(self):
        if self.start >= self.end:
            raise ValueError("break start must be before break end")
        return self


class StylistDay(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start: time
    end: time
    breaks: List[BreakInterval] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_breaks(self):
        if self.start >= self.end:
            raise ValueError("start must be before end")

        ordered = sorted(self.breaks, key=lambda b: b.start)
        previous_end = None
        for interval in ordered:
            if interval.start < self.start or interval.end > self.end:
                raise ValueError("breaks must fall inside the working day")
            if previous_end is not None and interval.start < previous_end:
                raise ValueError("breaks must not overlap")
            previous_end = interval.end
        self.breaks = ordered
        return self


class StylistSchedule(BaseModel):
    model_config = ConfigDict(extra="forbid")

    monday: Optional[StylistDay] = None
    tuesday: Optional[StylistDay] = None
    wednesday: Optional[StylistDay] = None
    thursday: Optional[StylistDay] = None
    friday: Optional[StylistDay] = None
    saturday: Optional[StylistDay] = None
    sunday: Optional[StylistDay] = None


class Vacation(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start: date
    end: date
    reason: Optional[str] = None

    @model_validator(mode="after")
    def check_range(self):
        if self.start > self.end:
            raise ValueError("vacation start must not be after its end")
        return self


class SalonPolicies(BaseModel):
    model_config = ConfigDict(extra="forbid")

    cancellation_hours: int = Field(24, ge=0)
    deposit_required: bool = False
    # None means the booking default applies
    deposit_percentage: Optional[float] = Field(None, ge=0, le=100)
    no_show_policy: str = ""


class Socials(BaseModel):
    model_config = ConfigDict(extra="forbid")

    instagram: Optional[str] = None
    facebook: Optional[str] = None
    website: Optional[str] = None


class Branding(BaseModel):
    model_config = ConfigDict(extra="forbid")

    logo: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None


class VoiceIntentResult(BaseModel):
    intent: str = "unknown"
    entities: Dict[str, Any] = Field(default_factory=dict)
    response: str
    confidence: float = Field(0.0, ge=0.0, le=1.0)

    @field_validator("intent", mode="before")
    @classmethod
    def normalise_intent(cls, value):
        value = str(value or "").strip().lower()
        return value if value in VOICE_INTENTS else "unknown"

    @field_validator("entities", mode="before")
    @classmethod
    def drop_empty_entities(cls, value):
        if not isinstance(value, dict):
            return {}
        return {k: v for k, v in value.items() if v not in (None, "")}


class AnalysisResult(BaseModel):
    answer: str = "I could not analyse this data."
    insights: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


def parse_model(model: Type[ModelT], data: Any, field_name: str) -> ModelT:
    """
    Validate ``data`` against ``model``.

    Raises ValidationError with one message per offending path, prefixed by
    ``field_name`` so API clients can surface them inline.
    """
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        fields = {}
        for err in e.errors():
            path = ".".join(str(part) for part in (field_name, *err["loc"]))
            fields[path] = err["msg"]
        raise ValidationError(f"Invalid {field_name}", fields) from e


def dump_model(instance: Optional[BaseModel]) -> Optional[Dict]:
    """JSON-safe dict for a JSON column."""
    if instance is None:
        return None
    return instance.model_dump(mode="json", exclude_none=True)
