"""
Exceptions raised by the booking services and mapped to HTTP responses at the
request boundary.
"""

from typing import Dict, Optional


class BookingError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict:
        return {"error": self.message}


class ValidationError(BookingError):
    status_code = 400

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.fields = fields or {}

    def to_dict(self) -> Dict:
        body = {"error": self.message}
        if self.fields:
            body["fields"] = self.fields
        return body


class NotFoundError(BookingError):
    status_code = 404


class InvalidTransitionError(BookingError):
    status_code = 409


class SlotConflictError(BookingError):
    status_code = 409


class PaymentError(BookingError):
    status_code = 502


class SubmissionError(BookingError):
    """The create request failed; the caller may resubmit the same draft."""

    status_code = 502

    def to_dict(self) -> Dict:
        return {"error": self.message, "retry": True}
