import re
from typing import Optional

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def is_valid_email(email: Optional[str]) -> bool:
    if not email:
        return False
    return bool(EMAIL_PATTERN.match(email.strip()))


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Strip spaces, dots and dashes so lookups by phone match."""
    if phone is None:
        return None
    return re.sub(r"[\s.\-()]", "", phone.strip())


def clean_str(value) -> str:
    return value.strip() if isinstance(value, str) else ""
