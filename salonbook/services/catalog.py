"""
Salon-scoped lookups shared by the owner API, the public booking API and the
voice endpoint.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Client, Salon, Service, Stylist
from ..utils.validators import clean_str, is_valid_email, normalize_phone

logger = logging.getLogger(__name__)


def get_salon(salon_id: str) -> Salon:
    salon = db.session.get(Salon, salon_id) if salon_id else None
    if not salon:
        raise NotFoundError("Salon not found")
    return salon


def get_owned_salon(owner_id: str) -> Optional[Salon]:
    """The first salon owned by ``owner_id`` (one salon per owner)."""
    return db.session.scalars(
        select(Salon).where(Salon.owner_id == owner_id).order_by(Salon.created_at)
    ).first()


def active_services(salon_id: str) -> List[Service]:
    return list(
        db.session.scalars(
            select(Service)
            .where(Service.salon_id == salon_id, Service.is_active.is_(True))
            .order_by(Service.name)
        )
    )


def active_stylists(salon_id: str) -> List[Stylist]:
    return list(
        db.session.scalars(
            select(Stylist)
            .where(Stylist.salon_id == salon_id, Stylist.is_active.is_(True))
            .order_by(Stylist.first_name, Stylist.last_name)
        )
    )


def services_by_id(salon_id: str, service_ids: Iterable[str]) -> Dict[str, Service]:
    ids = list(service_ids)
    if not ids:
        return {}
    rows = db.session.scalars(
        select(Service).where(Service.salon_id == salon_id, Service.id.in_(ids))
    )
    return {service.id: service for service in rows}


def get_stylist(salon_id: str, stylist_id: str) -> Stylist:
    stylist = db.session.get(Stylist, stylist_id) if stylist_id else None
    if not stylist or stylist.salon_id != salon_id:
        raise NotFoundError("Stylist not found")
    return stylist


def get_client(salon_id: str, client_id: str) -> Client:
    client = db.session.get(Client, client_id) if client_id else None
    if not client or client.salon_id != salon_id:
        raise NotFoundError("Client not found")
    return client


def find_client_by_phone(salon_id: str, phone: Optional[str]) -> Optional[Client]:
    """
    Phone numbers are compared after stripping separators. Phone is not
    unique per salon, so the oldest matching client wins.
    """
    phone = normalize_phone(phone)
    if not phone:
        return None
    return db.session.scalars(
        select(Client)
        .where(Client.salon_id == salon_id, Client.phone == phone)
        .order_by(Client.created_at)
    ).first()


def build_client(salon_id: str, data: Dict) -> Client:
    """Validate contact details and return an unsaved Client."""
    errors = {}
    first_name = clean_str(data.get("first_name"))
    last_name = clean_str(data.get("last_name"))
    phone = normalize_phone(clean_str(data.get("phone")))
    email = clean_str(data.get("email")) or None

    if not first_name:
        errors["first_name"] = "First name is required"
    if not last_name:
        errors["last_name"] = "Last name is required"
    if not phone:
        errors["phone"] = "Phone is required"
    if email and not is_valid_email(email):
        errors["email"] = "Invalid email"
    if errors:
        raise ValidationError("Validation failed", errors)

    return Client(
        salon_id=salon_id,
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        email=email,
        notes=clean_str(data.get("notes")) or None,
        preferences=data.get("preferences"),
    )


def find_or_build_client(salon_id: str, data: Dict) -> Client:
    """
    Existing client with the same phone, or a new one added to the session
    (not committed).
    """
    existing = find_client_by_phone(salon_id, data.get("phone"))
    if existing:
        return existing

    client = build_client(salon_id, data)
    db.session.add(client)
    db.session.flush()
    logger.info(f"Created client {client.id} for salon {salon_id}")
    return client
