import datetime
import json
from decimal import Decimal
from types import SimpleNamespace

import pytest

from salonbook.models import Appointment, Review
from salonbook.services.metrics import compute_metrics, get_salon_metrics
from salonbook.utils.dates import utcnow


def appt(status, amount, service_ids=()):
    return SimpleNamespace(
        status=status, total_amount=Decimal(str(amount)), service_ids=list(service_ids)
    )


def review(rating):
    return SimpleNamespace(rating=rating)


@pytest.mark.metrics
class TestComputeMetrics:
    def test_empty_range(self):
        metrics = compute_metrics([], [], {})

        assert metrics == {
            "total_appointments": 0,
            "total_revenue": 0,
            "no_shows": 0,
            "completed_appointments": 0,
            "average_rating": 0,
            "top_services": [],
        }

    def test_revenue_counts_completed_only(self):
        appointments = [
            appt("completed", 50),
            appt("completed", 30),
            appt("completed", 20),
            appt("cancelled", 40),
            appt("cancelled", 40),
        ]

        metrics = compute_metrics(appointments, [], {})

        assert metrics["total_revenue"] == 100
        assert metrics["total_appointments"] == 5
        assert metrics["completed_appointments"] == 3

    def test_no_shows_counted(self):
        metrics = compute_metrics(
            [appt("no_show", 25), appt("confirmed", 25), appt("no_show", 10)], [], {}
        )

        assert metrics["no_shows"] == 2
        assert metrics["total_revenue"] == 0

    def test_top_services_ranked_by_count(self):
        names = {"a": "Haircut", "b": "Coloring"}
        appointments = [
            appt("completed", 10, ["b"]),
            appt("pending", 10, ["a"]),
            appt("completed", 10, ["a"]),
            appt("cancelled", 10, ["a"]),
        ]

        metrics = compute_metrics(appointments, [], names)

        assert metrics["top_services"] == [
            {"service_name": "Haircut", "count": 3},
            {"service_name": "Coloring", "count": 1},
        ]

    def test_top_services_limited_to_five_with_stable_ties(self):
        names = {sid: sid.upper() for sid in "abcdefg"}
        appointments = [appt("completed", 1, [sid]) for sid in "abcdefg"]
        appointments.append(appt("completed", 1, ["g"]))

        top = compute_metrics(appointments, [], names)["top_services"]

        assert [s["service_name"] for s in top] == ["G", "A", "B", "C", "D"]

    def test_unknown_service_ids(self):
        metrics = compute_metrics([appt("completed", 10, ["gone", "gone2"])], [], {})

        assert metrics["top_services"] == [{"service_name": "Unknown Service", "count": 2}]

    def test_average_rating(self):
        metrics = compute_metrics([], [review(5), review(4), review(3)], {})

        assert metrics["average_rating"] == 4


@pytest.mark.metrics
class TestSalonMetrics:
    def _appointment(self, db_session, salon, client, service, start, status, amount):
        appointment = Appointment(
            salon_id=salon.id,
            client_id=client.id,
            service_ids=[service.id],
            start_time=start,
            end_time=start + datetime.timedelta(minutes=30),
            status=status,
            total_amount=Decimal(amount),
        )
        db_session.add(appointment)
        return appointment

    def test_range_and_rating_scope(self, db_session, salon, sample_client, haircut):
        now = utcnow()
        recent = now - datetime.timedelta(days=2)
        old = now - datetime.timedelta(days=60)

        self._appointment(db_session, salon, sample_client, haircut, recent, "completed", "25.00")
        self._appointment(db_session, salon, sample_client, haircut, recent, "no_show", "25.00")
        self._appointment(db_session, salon, sample_client, haircut, old, "completed", "25.00")
        db_session.add(
            Review(salon_id=salon.id, client_id=sample_client.id, rating=5, created_at=recent)
        )
        db_session.add(
            Review(salon_id=salon.id, client_id=sample_client.id, rating=1, created_at=old)
        )
        db_session.commit()

        start = now - datetime.timedelta(days=7)
        lifetime = get_salon_metrics(salon.id, start, now)
        in_range = get_salon_metrics(salon.id, start, now, rating_scope="range")

        assert lifetime["total_appointments"] == 2
        assert lifetime["total_revenue"] == 25
        assert lifetime["no_shows"] == 1
        assert lifetime["top_services"] == [{"service_name": "Haircut", "count": 2}]
        assert lifetime["average_rating"] == 3
        assert in_range["average_rating"] == 5

    def test_invalid_rating_scope(self, db_session, salon):
        with pytest.raises(ValueError):
            get_salon_metrics(salon.id, utcnow(), utcnow(), rating_scope="weekly")


@pytest.mark.metrics
class TestMetricsEndpoint:
    def test_metrics_for_empty_salon(self, client, salon, auth_headers):
        response = client.get("/api/metrics?period=7", headers=auth_headers)

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["total_appointments"] == 0
        assert data["total_revenue"] == 0
        assert data["average_rating"] == 0
        assert data["top_services"] == []
        assert data["period"] == 7

    def test_invalid_period(self, client, salon, auth_headers):
        response = client.get("/api/metrics?period=14", headers=auth_headers)

        assert response.status_code == 400

    def test_requires_auth(self, client, salon):
        response = client.get("/api/metrics")

        assert response.status_code == 401

    def test_owner_without_salon(self, client, owner, auth_headers):
        response = client.get("/api/metrics", headers=auth_headers)

        assert response.status_code == 404
