import uuid

import phonenumbers

from .exceptions import NotFound


def parse_uuid(value: str | uuid.UUID, label: str = "Record") -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFound(f"{label} not found")


def normalize_phone(value: str, region: str | None = None) -> str:
    try:
        parsed = phonenumbers.parse(value.strip(), region)
    except phonenumbers.NumberParseException:
        raise ValueError("Invalid phone number format. Use e.g. +2348012345678")
    if not phonenumbers.is_possible_number(parsed):
        raise ValueError("Invalid phone number. Use full international format.")
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
