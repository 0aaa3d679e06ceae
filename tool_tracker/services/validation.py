from __future__ import annotations

import re

from services.errors import ValidationError


_INTEGER_PATTERN = re.compile(r"-?[0-9]+")


def parse_int(raw_value: int | float | str | None, field: str, minimum: int) -> int:
    """Coerce JSON or form input to an int no smaller than ``minimum``.

    Accepts ints, integral floats and ASCII digit strings with an optional
    leading minus; anything else is a ValidationError.
    """
    if isinstance(raw_value, bool):
        raise ValidationError(f"{field} must be an integer.", details={field: raw_value})
    if isinstance(raw_value, int):
        value = raw_value
    elif isinstance(raw_value, float) and raw_value.is_integer():
        value = int(raw_value)
    else:
        raw = str(raw_value if raw_value is not None else "").strip()
        if not _INTEGER_PATTERN.fullmatch(raw):
            raise ValidationError(f"{field} must be an integer.", details={field: raw_value})
        value = int(raw)
    if value < minimum:
        qualifier = "positive" if minimum > 0 else "non-negative"
        raise ValidationError(f"{field} must be a {qualifier} integer.", details={field: raw_value})
    return value


def parse_id(raw_value: int | str | None, field: str) -> int:
    if isinstance(raw_value, float):
        raise ValidationError(f"{field} must be a numeric id.", details={field: raw_value})
    return parse_int(raw_value, field, 1)
