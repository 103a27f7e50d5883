"""
Common validation utilities for the clinic domain entities.

This module provides the RUT check-digit validator and the small set of
field rules every entity constructor is built from. Each rule raises the
matching error from ``fivet.core.exceptions`` on the first violation.
"""

import logging
import re
from datetime import date, datetime
from numbers import Real
from typing import Any, Iterable, Optional, Pattern, Tuple

from fivet.core.config import APP_TZ, get_strict_vital_ranges
from fivet.core.exceptions import InvalidFormatError, MissingFieldError, OutOfRangeError

logger = logging.getLogger(__name__)

# One or more digits followed by exactly one digit or k/K.
RUT_PATTERN = re.compile(r"[0-9]+[0-9kK]")

# Weights cycle 2..7 starting from the least significant digit.
_RUT_WEIGHTS = (2, 3, 4, 5, 6, 7)


def compute_rut_check_digit(body: str) -> str:
    """Return the modulo-11 check digit ('0'-'9' or 'k') for the RUT body."""
    total = 0
    for index, digit in enumerate(reversed(body)):
        total += int(digit) * _RUT_WEIGHTS[index % len(_RUT_WEIGHTS)]

    check = 11 - (total % 11)
    if check == 11:
        return "0"
    if check == 10:
        return "k"
    return str(check)


def is_valid_rut(rut: Optional[str]) -> bool:
    """Validate a national identity number against its trailing check digit.

    Args:
        rut: Digits with the check digit appended, no separators
            (e.g. '152532873', '21195194k').

    Returns:
        True only if the shape matches and the declared check digit equals
        the recomputed one (case-insensitively).
    """
    if rut is None or not isinstance(rut, str):
        return False

    if not RUT_PATTERN.fullmatch(rut):
        return False

    declared = rut[-1].lower()
    return declared == compute_rut_check_digit(rut[:-1])


def require_fields(fields: Iterable[Tuple[str, Any]]) -> None:
    """Raise MissingFieldError for the first field whose value is None."""
    for name, value in fields:
        if value is None:
            raise MissingFieldError(f"{name} is required", name)


def require_min_length(value: str, field_name: str, min_length: int) -> str:
    """Check a text field is a string of at least ``min_length`` characters."""
    if not isinstance(value, str):
        raise InvalidFormatError(f"{field_name} must be text", field_name)
    if len(value) < min_length:
        raise OutOfRangeError(
            f"{field_name} must have at least {min_length} characters", field_name
        )
    return value


def require_pattern(value: Any, field_name: str, pattern: Pattern[str]) -> str:
    """Check the textual form of ``value`` fully matches ``pattern``.

    Integers are accepted and converted, so phone numbers may be given
    either as ``55221234`` or ``"55221234"``.
    """
    if isinstance(value, bool):
        raise InvalidFormatError(f"{field_name} has an invalid format", field_name)
    if isinstance(value, int):
        value = str(value)
    if not isinstance(value, str) or not pattern.fullmatch(value):
        raise InvalidFormatError(f"{field_name} has an invalid format", field_name)
    return value


def require_rut(value: Any, field_name: str = "rut") -> str:
    if not is_valid_rut(value):
        raise InvalidFormatError(f"{field_name} has an invalid check digit", field_name)
    return value


def require_number(value: Any, field_name: str) -> float:
    """Check a measurement is a real number and return it as float."""
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidFormatError(f"{field_name} must be a number", field_name)
    return float(value)


def check_range(
    value: float, field_name: str, minimum: float, maximum: float
) -> float:
    """Apply the vital-sign range policy to ``value``.

    The permissive policy accepts values outside ``[minimum, maximum]``
    and only logs a warning. With FIVET_STRICT_VITAL_RANGES enabled the
    value is rejected with OutOfRangeError.
    """
    if minimum <= value <= maximum:
        return value

    if get_strict_vital_ranges():
        raise OutOfRangeError(
            f"{field_name} must be between {minimum} and {maximum}", field_name
        )

    logger.warning(
        f"{field_name} outside declared range accepted",
        extra={
            "context": {
                "field": field_name,
                "value": value,
                "minimum": minimum,
                "maximum": maximum,
            }
        },
    )
    return value


def require_enum(value: Any, field_name: str, enum_cls):
    """Coerce ``value`` into ``enum_cls`` by member or by value."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidFormatError(
            f"{field_name} must be one of {[m.value for m in enum_cls]}", field_name
        )


def require_date(value: Any, field_name: str) -> date:
    """Check a calendar date; datetimes are reduced to their date part."""
    if isinstance(value, datetime):
        return value.date()
    if not isinstance(value, date):
        raise InvalidFormatError(f"{field_name} must be a date", field_name)
    return value


def require_datetime(value: Any, field_name: str) -> datetime:
    """Check a datetime and make it timezone-aware.

    Naive values are interpreted in the application timezone.
    """
    if not isinstance(value, datetime):
        raise InvalidFormatError(f"{field_name} must be a datetime", field_name)
    if value.tzinfo is None:
        return value.replace(tzinfo=APP_TZ)
    return value
