import html
import re

_TAG_RE = re.compile(r"<[^>]*>")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^[0-9\-\+\s\(\)]+$")

NAME_MAX = 100
VEHICLE_MAX = 50
NOTES_MAX = 500
ADDRESS_MIN = 5
ADDRESS_MAX = 200


def sanitize_input(value, max_length: int = NAME_MAX) -> str:
    """Cap the length, drop HTML tags and escape what is left."""
    if not value or not isinstance(value, str):
        return ""
    cleaned = _TAG_RE.sub("", value[:max_length])
    return html.escape(cleaned.strip(), quote=True).replace("/", "&#x2F;")


def is_valid_email(email) -> bool:
    return bool(email) and bool(_EMAIL_RE.match(email))


def is_valid_phone(phone) -> bool:
    if not phone or not _PHONE_RE.match(phone):
        return False
    return len(re.sub(r"\D", "", phone)) >= 10


def is_valid_address(address) -> bool:
    return bool(address) and ADDRESS_MIN <= len(address) <= ADDRESS_MAX
