from .utils.dates import isoformat_or_none, money


def salon_to_dict(salon):
    return {
        "id": salon.id,
        "owner_id": salon.owner_id,
        "name": salon.name,
        "address": salon.address,
        "phone": salon.phone,
        "email": salon.email,
        "hours": salon.hours,
        "socials": salon.socials,
        "policies": salon.policies,
        "branding": salon.branding,
        "created_at": isoformat_or_none(salon.created_at),
        "updated_at": isoformat_or_none(salon.updated_at),
    }


def service_to_dict(service):
    return {
        "id": service.id,
        "salon_id": service.salon_id,
        "name": service.name,
        "description": service.description,
        "duration_minutes": service.duration_minutes,
        "price": money(service.price),
        "tags": service.tags or [],
        "requires_deposit": service.requires_deposit,
        "buffer_before": service.buffer_before,
        "buffer_after": service.buffer_after,
        "processing_time": service.processing_time,
        "is_active": service.is_active,
        "created_at": isoformat_or_none(service.created_at),
    }


def stylist_to_dict(stylist):
    return {
        "id": stylist.id,
        "salon_id": stylist.salon_id,
        "first_name": stylist.first_name,
        "last_name": stylist.last_name,
        "email": stylist.email,
        "phone": stylist.phone,
        "photo_url": stylist.photo_url,
        "specialties": stylist.specialties or [],
        "schedule": stylist.schedule,
        "vacations": stylist.vacations or [],
        "is_active": stylist.is_active,
        "created_at": isoformat_or_none(stylist.created_at),
    }


def public_stylist_to_dict(stylist):
    # No contact details on the public booking page
    return {
        "id": stylist.id,
        "first_name": stylist.first_name,
        "last_name": stylist.last_name,
        "photo_url": stylist.photo_url,
        "specialties": stylist.specialties or [],
    }


def client_to_dict(client):
    return {
        "id": client.id,
        "salon_id": client.salon_id,
        "first_name": client.first_name,
        "last_name": client.last_name,
        "email": client.email,
        "phone": client.phone,
        "preferences": client.preferences,
        "notes": client.notes,
        "total_visits": client.total_visits,
        "total_spent": money(client.total_spent),
        "last_visit": isoformat_or_none(client.last_visit),
        "created_at": isoformat_or_none(client.created_at),
    }


def appointment_to_dict(appointment):
    return {
        "id": appointment.id,
        "salon_id": appointment.salon_id,
        "client_id": appointment.client_id,
        "stylist_id": appointment.stylist_id,
        "service_ids": appointment.service_ids or [],
        "service_snapshot": appointment.service_snapshot or [],
        "start_time": isoformat_or_none(appointment.start_time),
        "end_time": isoformat_or_none(appointment.end_time),
        "status": appointment.status,
        "channel": appointment.channel,
        "total_amount": money(appointment.total_amount),
        "deposit_amount": money(appointment.deposit_amount),
        "payment_status": appointment.payment_status,
        "stripe_payment_intent_id": appointment.stripe_payment_intent_id,
        "notes": appointment.notes,
        "cancelled_at": isoformat_or_none(appointment.cancelled_at),
        "cancellation_reason": appointment.cancellation_reason,
        "created_at": isoformat_or_none(appointment.created_at),
        "updated_at": isoformat_or_none(appointment.updated_at),
        "client": (
            {
                "id": appointment.client.id,
                "first_name": appointment.client.first_name,
                "last_name": appointment.client.last_name,
                "phone": appointment.client.phone,
                "email": appointment.client.email,
            }
            if appointment.client
            else None
        ),
        "stylist": (
            {
                "id": appointment.stylist.id,
                "first_name": appointment.stylist.first_name,
                "last_name": appointment.stylist.last_name,
            }
            if appointment.stylist
            else None
        ),
    }


def review_to_dict(review):
    return {
        "id": review.id,
        "salon_id": review.salon_id,
        "client_id": review.client_id,
        "appointment_id": review.appointment_id,
        "stylist_id": review.stylist_id,
        "rating": review.rating,
        "comment": review.comment,
        "is_public": review.is_public,
        "response": review.response,
        "created_at": isoformat_or_none(review.created_at),
        "client_name": (
            f"{review.client.first_name} {review.client.last_name}"
            if review.client
            else None
        ),
    }


def user_to_dict(user):
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "profile_image_url": user.profile_image_url,
        "salon_name": user.salon_name,
        "role": user.role,
        "created_at": isoformat_or_none(user.created_at),
    }
