"""
Swagger/OpenAPI configuration for the Salon Booking API
"""

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec",
            "route": "/apispec.json",
            "rule_filter": lambda rule: True,
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/api/docs",
}

SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Salon Booking API",
        "description": "Booking, catalog, payments and AI receptionist API for hair salons",
        "version": "1.0.0",
    },
    "host": "",
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": 'JWT issued by the identity provider. Example: "Authorization: Bearer {token}"',
        }
    },
    "tags": [
        {"name": "Authentication", "description": "Signed-in user"},
        {"name": "Salons", "description": "Salon profile, hours and policies"},
        {"name": "Services", "description": "Service catalog management"},
        {"name": "Stylists", "description": "Stylist management"},
        {"name": "Clients", "description": "Client directory"},
        {"name": "Reviews", "description": "Client reviews"},
        {"name": "Metrics", "description": "Dashboard metrics"},
        {"name": "Public Booking", "description": "Unauthenticated booking page"},
        {"name": "Appointments", "description": "Appointment lifecycle"},
        {"name": "Payments", "description": "Stripe deposits and webhooks"},
        {"name": "Voice", "description": "AI receptionist and assistant"},
    ],
    "definitions": {
        "Error": {
            "type": "object",
            "properties": {
                "error": {"type": "string"},
                "fields": {
                    "type": "object",
                    "additionalProperties": {"type": "string"},
                },
                "retry": {"type": "boolean"},
            },
        },
        "Service": {
            "type": "object",
            "properties": {
                "id": {"type": "string"},
                "salon_id": {"type": "string"},
                "name": {"type": "string"},
                "description": {"type": "string"},
                "duration_minutes": {"type": "integer"},
                "price": {"type": "number", "format": "float"},
                "tags": {"type": "array", "items": {"type": "string"}},
                "requires_deposit": {"type": "boolean"},
                "is_active": {"type": "boolean"},
            },
        },
        "Appointment": {
            "type": "object",
            "properties": {
                "id": {"type": "string"},
                "salon_id": {"type": "string"},
                "client_id": {"type": "string"},
                "stylist_id": {"type": "string"},
                "service_ids": {"type": "array", "items": {"type": "string"}},
                "start_time": {"type": "string", "format": "date-time"},
                "end_time": {"type": "string", "format": "date-time"},
                "status": {
                    "type": "string",
                    "enum": ["pending", "confirmed", "completed", "cancelled", "no_show"],
                },
                "channel": {
                    "type": "string",
                    "enum": ["form", "voice", "phone", "walk_in"],
                },
                "total_amount": {"type": "number", "format": "float"},
                "deposit_amount": {"type": "number", "format": "float"},
                "payment_status": {
                    "type": "string",
                    "enum": ["pending", "paid", "partial", "refunded"],
                },
                "cancelled_at": {"type": "string", "format": "date-time"},
                "cancellation_reason": {"type": "string"},
            },
        },
        "BookingDraft": {
            "type": "object",
            "properties": {
                "salon_id": {"type": "string"},
                "step": {
                    "type": "string",
                    "enum": [
                        "selecting_services",
                        "selecting_stylist",
                        "selecting_datetime",
                        "entering_contact_info",
                        "awaiting_payment",
                        "submitted",
                    ],
                },
                "service_ids": {"type": "array", "items": {"type": "string"}},
                "stylist_id": {"type": "string"},
                "date": {"type": "string", "format": "date"},
                "time_slot": {"type": "string", "example": "14:30"},
                "submission_token": {"type": "string"},
            },
        },
    },
}
