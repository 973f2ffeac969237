"""Field value coercion for template and expression resolution."""

from __future__ import annotations

import json
import math
import re
from datetime import date, datetime, timezone
from typing import Any

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}(T|\s)\d{2}:\d{2}:\d{2}(Z|[+-]\d{2}:\d{2})?$")


def is_date_string(value: Any) -> bool:
    return isinstance(value, str) and bool(_DATE_RE.match(value))


def parse_date(value: str) -> datetime:
    text = value.replace(" ", "T", 1)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def coerce_value(value: Any) -> Any:
    """Turn timestamp-looking strings into datetimes; everything else passes through."""
    if value is None:
        return None
    if isinstance(value, str) and is_date_string(value):
        try:
            return parse_date(value)
        except ValueError:
            return value
    return value


def _format_number(value: int | float) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)


def format_date(value: date) -> str:
    if not isinstance(value, datetime):
        return value.isoformat()
    if value.tzinfo is not None and value.utcoffset() == timezone.utc.utcoffset(None):
        return value.replace(tzinfo=None).isoformat(timespec="milliseconds") + "Z"
    return value.isoformat(timespec="milliseconds")


def stringify(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _format_number(value)
    if isinstance(value, str):
        return value
    if isinstance(value, date):
        return format_date(value)
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=stringify)
    return str(value)
