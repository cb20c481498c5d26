import datetime
import json

import pytest

from salonbook.schemas import OperatingHours
from salonbook.services.slots import DEFAULT_WINDOW, SlotGenerator, window_for_day

DAY = datetime.date(2025, 1, 16)  # a Thursday


def utc(*args):
    return datetime.datetime(*args, tzinfo=datetime.timezone.utc)


@pytest.mark.booking
class TestSlotGenerator:
    """Unit tests for the slot generator."""

    @pytest.mark.parametrize("duration", [15, 30, 60, 90, 240])
    def test_every_slot_fits_inside_the_window(self, duration):
        open_time, close_time = DEFAULT_WINDOW
        for slot in SlotGenerator(DAY, duration):
            start = datetime.datetime.combine(DAY, slot)
            assert slot >= open_time
            assert start + datetime.timedelta(minutes=duration) <= datetime.datetime.combine(
                DAY, close_time
            )

    def test_full_day_grid(self):
        slots = SlotGenerator(DAY, 60).labels()

        assert slots[0] == "09:00"
        assert slots[-1] == "17:00"
        assert len(slots) == 17

    def test_lead_time_excludes_early_slots(self):
        now = utc(2025, 1, 16, 10, 15)
        slots = list(SlotGenerator(DAY, 30, now=now))

        earliest = datetime.datetime(2025, 1, 16, 12, 15)
        assert slots
        assert all(datetime.datetime.combine(DAY, s) >= earliest for s in slots)
        assert slots[0] == datetime.time(12, 30)

    def test_lead_time_exactly_at_opening(self):
        generator = SlotGenerator(DAY, 60, now=utc(2025, 1, 16, 7, 0))

        assert generator.first() == datetime.time(9, 0)

    def test_lead_time_converts_to_booking_timezone(self):
        # 07:00 UTC is 08:00 in Paris in winter, so the first slot is 10:00
        generator = SlotGenerator(
            DAY, 60, now=utc(2025, 1, 16, 7, 0), tz_name="Europe/Paris"
        )

        assert generator.first() == datetime.time(10, 0)

    def test_zero_duration_yields_nothing(self):
        assert list(SlotGenerator(DAY, 0)) == []

    def test_closed_day_yields_nothing(self):
        assert list(SlotGenerator(DAY, 30, window=None)) == []

    def test_duration_longer_than_window(self):
        assert list(SlotGenerator(DAY, 10 * 60)) == []

    def test_generator_is_restartable(self):
        generator = SlotGenerator(DAY, 45)

        assert list(generator) == list(generator)
        assert datetime.time(9, 30) in generator
        assert datetime.time(9, 15) not in generator

    def test_past_day_yields_nothing(self):
        generator = SlotGenerator(DAY, 30, now=utc(2025, 1, 17, 8, 0))

        assert generator.first() is None

    def test_custom_interval(self):
        slots = SlotGenerator(
            DAY, 60, window=(datetime.time(9), datetime.time(11)), interval_minutes=15
        ).labels()

        assert slots == ["09:00", "09:15", "09:30", "09:45", "10:00"]


@pytest.mark.booking
class TestWindowForDay:
    def test_missing_hours_fall_back_to_default(self):
        assert window_for_day(None, DAY) == DEFAULT_WINDOW

    def test_unconfigured_weekday_falls_back_to_default(self):
        hours = OperatingHours.model_validate({"monday": {"open": "10:00", "close": "16:00"}})

        assert window_for_day(hours, DAY) == DEFAULT_WINDOW

    def test_configured_weekday(self):
        hours = OperatingHours.model_validate({"thursday": {"open": "10:00", "close": "20:00"}})

        assert window_for_day(hours, DAY) == (datetime.time(10), datetime.time(20))

    def test_closed_weekday(self):
        hours = OperatingHours.model_validate({"thursday": {"closed": True}})

        assert window_for_day(hours, DAY) is None


@pytest.mark.booking
class TestSlotsEndpoint:
    def test_slots_by_duration(self, client, salon, tomorrow):
        response = client.get(
            f"/api/public/salon/{salon.id}/slots?date={tomorrow.isoformat()}&duration=60"
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["date"] == tomorrow.isoformat()
        assert data["duration_minutes"] == 60
        assert data["slots"][0] == "09:00"
        assert data["slots"][-1] == "17:00"

    def test_slots_by_service_ids(self, client, salon, haircut, coloring, tomorrow):
        response = client.get(
            f"/api/public/salon/{salon.id}/slots?date={tomorrow.isoformat()}"
            f"&service_ids={haircut.id},{coloring.id}"
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["duration_minutes"] == 120
        assert data["slots"][-1] == "16:00"

    def test_closed_day_returns_no_slots(self, client, db_session, salon, tomorrow):
        weekday = tomorrow.strftime("%A").lower()
        salon.hours = {weekday: {"closed": True}}
        db_session.commit()

        response = client.get(
            f"/api/public/salon/{salon.id}/slots?date={tomorrow.isoformat()}&duration=30"
        )

        assert response.status_code == 200
        assert json.loads(response.data)["slots"] == []

    def test_missing_date(self, client, salon):
        response = client.get(f"/api/public/salon/{salon.id}/slots?duration=30")

        assert response.status_code == 400

    def test_invalid_date(self, client, salon):
        response = client.get(f"/api/public/salon/{salon.id}/slots?date=16-01-2025&duration=30")

        assert response.status_code == 400

    def test_missing_duration(self, client, salon, tomorrow):
        response = client.get(f"/api/public/salon/{salon.id}/slots?date={tomorrow.isoformat()}")

        assert response.status_code == 400
        assert "duration" in json.loads(response.data)["fields"]

    def test_unknown_salon(self, client, db_session, tomorrow):
        response = client.get(
            f"/api/public/salon/does-not-exist/slots?date={tomorrow.isoformat()}&duration=30"
        )

        assert response.status_code == 404
