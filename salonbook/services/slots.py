"""
Candidate appointment start times for a single day.

The scan is a fixed grid over the salon's opening window: a start time is
offered when the whole booking fits before closing and it is at least the
minimum lead time away from "now". Stylist schedules, vacations and existing
bookings are not consulted here; the overlap check happens when the
appointment is created.
"""

import datetime
from typing import Iterator, List, Mapping, Optional, Tuple

from ..schemas import OperatingHours, parse_model
from ..utils.dates import parse_time, to_local_naive

Window = Tuple[datetime.time, datetime.time]

DEFAULT_WINDOW: Window = (datetime.time(9, 0), datetime.time(18, 0))
SLOT_INTERVAL_MINUTES = 30
LEAD_MINUTES = 120


class SlotGenerator:
    """
    Restartable, finite sequence of start times for ``day``.

    Every ``iter()`` starts a fresh scan, so the same generator can be
    consumed more than once. A ``window`` of None means the salon is closed
    that day and the sequence is empty, as it is for a non-positive duration.
    """

    def __init__(
        self,
        day: datetime.date,
        duration_minutes: int,
        window: Optional[Window] = DEFAULT_WINDOW,
        interval_minutes: int = SLOT_INTERVAL_MINUTES,
        lead_minutes: int = LEAD_MINUTES,
        now: Optional[datetime.datetime] = None,
        tz_name: str = "UTC",
    ):
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        self.day = day
        self.duration_minutes = duration_minutes
        self.window = window
        self.interval_minutes = interval_minutes
        self.lead_minutes = lead_minutes
        self.now = now
        self.tz_name = tz_name

    def __iter__(self) -> Iterator[datetime.time]:
        if self.window is None or self.duration_minutes <= 0:
            return

        open_time, close_time = self.window
        current = datetime.datetime.combine(self.day, open_time)
        closing = datetime.datetime.combine(self.day, close_time)
        duration = datetime.timedelta(minutes=self.duration_minutes)
        step = datetime.timedelta(minutes=self.interval_minutes)

        earliest = None
        if self.now is not None:
            earliest = to_local_naive(self.now, self.tz_name) + datetime.timedelta(
                minutes=self.lead_minutes
            )

        while current + duration <= closing:
            if earliest is None or current >= earliest:
                yield current.time()
            current += step

    def __contains__(self, slot: datetime.time) -> bool:
        return any(candidate == slot for candidate in self)

    def first(self) -> Optional[datetime.time]:
        return next(iter(self), None)

    def labels(self) -> List[str]:
        return [slot.strftime("%H:%M") for slot in self]


def window_for_day(
    hours: Optional[OperatingHours],
    day: datetime.date,
    default: Window = DEFAULT_WINDOW,
) -> Optional[Window]:
    """Opening window for ``day``; None when the salon marks the day closed."""
    if hours is None:
        return default

    day_hours = hours.for_weekday(day.weekday())
    if day_hours is None:
        return default
    if day_hours.closed:
        return None
    return (day_hours.open, day_hours.close)


def generator_for_salon(
    salon_hours,
    day: datetime.date,
    duration_minutes: int,
    now: Optional[datetime.datetime],
    config: Mapping,
) -> SlotGenerator:
    """
    Build a generator from a salon's stored ``hours`` JSON and the booking
    settings in ``config`` (a Flask config mapping).
    """
    hours = parse_model(OperatingHours, salon_hours, "hours") if salon_hours else None
    default = (
        parse_time(config.get("BOOKING_DEFAULT_OPEN", "09:00"), "BOOKING_DEFAULT_OPEN"),
        parse_time(
            config.get("BOOKING_DEFAULT_CLOSE", "18:00"), "BOOKING_DEFAULT_CLOSE"
        ),
    )
    return SlotGenerator(
        day,
        duration_minutes,
        window=window_for_day(hours, day, default),
        interval_minutes=config.get("BOOKING_SLOT_INTERVAL_MINUTES", SLOT_INTERVAL_MINUTES),
        lead_minutes=config.get("BOOKING_LEAD_MINUTES", LEAD_MINUTES),
        now=now,
        tz_name=config.get("BOOKING_TIMEZONE", "UTC"),
    )
