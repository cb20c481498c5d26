"""
Dashboard figures for one salon over a date range.
"""

import datetime
from collections import Counter
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional

from sqlalchemy import select

from ..extensions import db
from ..models import Appointment, Review, Service

TOP_SERVICES_LIMIT = 5
UNKNOWN_SERVICE = "Unknown Service"
RATING_SCOPES = ("lifetime", "range")


def compute_metrics(
    appointments: Iterable, reviews: Iterable, service_names: Mapping[str, str]
) -> Dict:
    """
    Reduce appointments and reviews to the dashboard figures.

    Revenue counts completed appointments only. Services are ranked by how
    often they were booked (every status counts); ties keep the order in
    which the services were first seen.
    """
    total_appointments = 0
    completed = 0
    no_shows = 0
    revenue = Decimal("0")
    service_counts = Counter()

    for appointment in appointments:
        total_appointments += 1
        if appointment.status == "completed":
            completed += 1
            revenue += Decimal(str(appointment.total_amount or 0))
        elif appointment.status == "no_show":
            no_shows += 1

        for service_id in appointment.service_ids or []:
            service_counts[service_names.get(service_id, UNKNOWN_SERVICE)] += 1

    ratings = [review.rating for review in reviews]
    average_rating = sum(ratings) / len(ratings) if ratings else 0

    # Counter preserves insertion order and sorted() is stable
    top_services = sorted(service_counts.items(), key=lambda item: item[1], reverse=True)

    return {
        "total_appointments": total_appointments,
        "total_revenue": float(revenue),
        "no_shows": no_shows,
        "completed_appointments": completed,
        "average_rating": average_rating,
        "top_services": [
            {"service_name": name, "count": count}
            for name, count in top_services[:TOP_SERVICES_LIMIT]
        ],
    }


def get_salon_metrics(
    salon_id: str,
    start: datetime.datetime,
    end: datetime.datetime,
    rating_scope: Optional[str] = "lifetime",
) -> Dict:
    """
    Metrics for appointments starting in [start, end]. With
    ``rating_scope="range"`` only reviews created in the same window count
    towards the average rating; otherwise every review of the salon does.
    """
    if rating_scope not in RATING_SCOPES:
        raise ValueError(f"rating_scope must be one of {', '.join(RATING_SCOPES)}")

    appointments = db.session.scalars(
        select(Appointment)
        .where(
            Appointment.salon_id == salon_id,
            Appointment.start_time >= start,
            Appointment.start_time <= end,
        )
        .order_by(Appointment.start_time)
    ).all()

    review_query = select(Review).where(Review.salon_id == salon_id)
    if rating_scope == "range":
        review_query = review_query.where(
            Review.created_at >= start, Review.created_at <= end
        )
    reviews = db.session.scalars(review_query).all()

    service_names = dict(
        db.session.execute(
            select(Service.id, Service.name).where(Service.salon_id == salon_id)
        ).all()
    )

    return compute_metrics(appointments, reviews, service_names)
