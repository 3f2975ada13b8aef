"""Phone number validation functions."""

import re

from src.config.settings import settings

E164_PATTERN = re.compile(r"^\+?[1-9]\d{6,14}$")


def is_valid_phone(phone: str | None, min_length: int | None = None) -> bool:
    """Check that a phone number is present and long enough to be dialled.

    This is the check the OTP and login flows apply before any state change:
    a blank number or one shorter than ``min_length`` (``settings.phone_min_length``
    by default) is rejected.

    Examples:
        >>> is_valid_phone("+911234567890")
        True
        >>> is_valid_phone("12345")
        False

    """
    if phone is None or not phone.strip():
        return False
    if min_length is None:
        min_length = settings.phone_min_length
    return len(phone) >= min_length


def validate_phone_number(phone: str) -> str:
    """Validate an E.164 formatted phone number for request schemas.

    Args:
        phone: Phone number to validate

    Returns:
        The phone number with surrounding whitespace removed

    Raises:
        ValueError: If the phone number is not E.164 formatted

    """
    phone = phone.strip()
    if not E164_PATTERN.match(phone):
        raise ValueError("Phone number must be in E.164 format, e.g. +911234567890")
    return phone
