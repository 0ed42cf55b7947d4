"""Field validators shared by request schemas."""

import re

from pydantic import AnyHttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_url_adapter = TypeAdapter(AnyHttpUrl)


def blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def optional_email(value: str | None) -> str | None:
    """Empty strings mean "no email"; anything else must look like an address."""
    value = blank_to_none(value)
    if value is not None and not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email address")
    return value


def optional_url(value: str | None) -> str | None:
    value = blank_to_none(value)
    if value is None:
        return None
    try:
        _url_adapter.validate_python(value)
    except PydanticValidationError as e:
        raise ValueError("Invalid URL") from e
    return value


def required_text(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Field is required")
    return value
