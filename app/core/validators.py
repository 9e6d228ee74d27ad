"""Input checks shared by the services."""

from datetime import datetime
from enum import Enum
from typing import TypeVar

import pytz

from app.core.exceptions import ValidationError

E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: type[E], value: E | str, field: str) -> E:
    """
    Coerce a raw value into a member of ``enum_cls``.

    Raises:
        ValidationError: If the value is not a member
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(str(member.value) for member in enum_cls)
        raise ValidationError(
            f"Invalid {field} {value!r}; expected one of: {allowed}",
            field=field,
            value=value,
        ) from None


def require_range(value: int, low: int, high: int, field: str) -> int:
    """Check ``low <= value <= high``."""
    if not low <= value <= high:
        raise ValidationError(
            f"{field} must be between {low} and {high}, got {value}",
            field=field,
            value=value,
        )
    return value


def get_timezone(name: str, field: str = "timezone") -> pytz.BaseTzInfo:
    """
    Look up an IANA timezone by name.

    Raises:
        ValidationError: If the name is unknown
    """
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise ValidationError(f"Unknown timezone {name!r}", field=field, value=name) from None


def to_wall_clock(value: datetime, tz_name: str, field: str) -> datetime:
    """
    Express a datetime as naive wall-clock time in ``tz_name``.

    Naive values are taken to be wall-clock time already and pass through.
    """
    if value.tzinfo is None or value.utcoffset() is None:
        return value
    return value.astimezone(get_timezone(tz_name, field)).replace(tzinfo=None)
