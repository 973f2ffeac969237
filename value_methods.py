"""Allow-listed methods callable on resolved field values.

Templates and visibility expressions may call a method on a resolved value,
e.g. ``{createdon}.toLocaleDateString()`` or ``{name}.toUpperCase()``. Only
the pure functions registered below are reachable; an unknown name yields
``NO_METHOD`` instead of touching the underlying Python object.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Callable, Dict

from value_coerce import format_date, stringify


class _NoMethod:
    def __repr__(self) -> str:  # pragma: no cover - debug aid
        return "NO_METHOD"


NO_METHOD: Any = _NoMethod()

Method = Callable[..., Any]


def _substring(value: str, start: int = 0, end: int | None = None) -> str:
    size = len(value)
    end = size if end is None else end
    start = min(max(int(start), 0), size)
    end = min(max(int(end), 0), size)
    if start > end:
        start, end = end, start
    return value[start:end]


def _slice(value: str, start: int = 0, end: int | None = None) -> str:
    return value[int(start) :] if end is None else value[int(start) : int(end)]


def _char_at(value: str, index: int = 0) -> str:
    index = int(index)
    return value[index] if 0 <= index < len(value) else ""


def _split(value: str, sep: str | None = None) -> list:
    if sep is None:
        return [value]
    if sep == "":
        return list(value)
    return value.split(sep)


def _pad(value: str, length: int, fill: str, at_start: bool) -> str:
    missing = int(length) - len(value)
    if missing <= 0 or not fill:
        return value
    pad = (fill * missing)[:missing]
    return pad + value if at_start else value + pad


_STRING_METHODS: Dict[str, Method] = {
    "toUpperCase": lambda v: v.upper(),
    "toLowerCase": lambda v: v.lower(),
    "trim": lambda v: v.strip(),
    "trimStart": lambda v: v.lstrip(),
    "trimEnd": lambda v: v.rstrip(),
    "substring": _substring,
    "slice": _slice,
    "charAt": _char_at,
    "indexOf": lambda v, s: v.find(str(s)),
    "includes": lambda v, s: str(s) in v,
    "startsWith": lambda v, s: v.startswith(str(s)),
    "endsWith": lambda v, s: v.endswith(str(s)),
    "replace": lambda v, a, b="": v.replace(str(a), stringify(b), 1),
    "replaceAll": lambda v, a, b="": v.replace(str(a), stringify(b)),
    "split": _split,
    "padStart": lambda v, n, fill=" ": _pad(v, n, str(fill), True),
    "padEnd": lambda v, n, fill=" ": _pad(v, n, str(fill), False),
    "repeat": lambda v, n: v * int(n),
    "length": lambda v: len(v),
    "toString": lambda v: v,
    "valueOf": lambda v: v,
}


def _to_fixed(value: float, digits: int = 0) -> str:
    return f"{value:.{int(digits)}f}"


def _to_precision(value: float, digits: int | None = None) -> str:
    if digits is None:
        return stringify(value)
    text = f"{value:#.{int(digits)}g}"
    return text[:-1] if text.endswith(".") else text


_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_string(value: float, radix: int = 10) -> str:
    radix = int(radix)
    if radix == 10 or not float(value).is_integer():
        return stringify(value)
    if not 2 <= radix <= 36:
        raise ValueError("radix must be between 2 and 36")
    number = int(value)
    sign = "-" if number < 0 else ""
    number = abs(number)
    out = ""
    while True:
        number, rem = divmod(number, radix)
        out = _DIGITS[rem] + out
        if number == 0:
            break
    return sign + out


def _to_locale_number(value: float, locale: str | None = None, options: Any = None) -> str:
    if isinstance(value, int) or float(value).is_integer():
        return f"{int(value):,}"
    text = f"{value:,.3f}".rstrip("0")
    return text.rstrip(".")


_NUMBER_METHODS: Dict[str, Method] = {
    "toFixed": _to_fixed,
    "toPrecision": _to_precision,
    "toString": _to_string,
    "toLocaleString": _to_locale_number,
    "valueOf": lambda v: v,
}


_LOCALE_DATES: Dict[str, Callable[[date], str]] = {
    "en-us": lambda d: f"{d.month}/{d.day}/{d.year}",
    "en-gb": lambda d: f"{d.day:02d}/{d.month:02d}/{d.year}",
    "fr-fr": lambda d: f"{d.day:02d}/{d.month:02d}/{d.year}",
    "de-de": lambda d: f"{d.day}.{d.month}.{d.year}",
    "sv-se": lambda d: f"{d.year}-{d.month:02d}-{d.day:02d}",
    "iso": lambda d: f"{d.year}-{d.month:02d}-{d.day:02d}",
}


def _locale_key(locale: Any) -> str:
    key = str(locale).lower() if isinstance(locale, str) else "en-us"
    return key if key in _LOCALE_DATES else "en-us"


def _as_datetime(value: date) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def _locale_date(value: date, locale: Any = None, options: Any = None) -> str:
    return _LOCALE_DATES[_locale_key(locale)](value)


def _locale_time(value: date, locale: Any = None, options: Any = None) -> str:
    dt = _as_datetime(value)
    if _locale_key(locale) == "en-us":
        hour = dt.hour % 12 or 12
        suffix = "AM" if dt.hour < 12 else "PM"
        return f"{hour}:{dt.minute:02d}:{dt.second:02d} {suffix}"
    return f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}"


def _locale_datetime(value: date, locale: Any = None, options: Any = None) -> str:
    return f"{_locale_date(value, locale)}, {_locale_time(value, locale)}"


def _epoch_ms(value: date) -> int:
    dt = _as_datetime(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def _iso_string(value: date) -> str:
    dt = _as_datetime(value)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    else:
        dt = dt.replace(tzinfo=timezone.utc)
    return format_date(dt)


def _date_string(value: date) -> str:
    return _as_datetime(value).strftime("%a %b %d %Y")


def _date_to_string(value: date) -> str:
    dt = _as_datetime(value)
    offset = dt.strftime("%z") or "+0000"
    return f"{_date_string(dt)} {dt.strftime('%H:%M:%S')} GMT{offset}"


_DATE_METHODS: Dict[str, Method] = {
    "getFullYear": lambda v: v.year,
    "getMonth": lambda v: v.month - 1,
    "getDate": lambda v: v.day,
    "getDay": lambda v: (v.weekday() + 1) % 7,
    "getHours": lambda v: _as_datetime(v).hour,
    "getMinutes": lambda v: _as_datetime(v).minute,
    "getSeconds": lambda v: _as_datetime(v).second,
    "getMilliseconds": lambda v: _as_datetime(v).microsecond // 1000,
    "getTime": _epoch_ms,
    "toISOString": _iso_string,
    "toDateString": _date_string,
    "toLocaleDateString": _locale_date,
    "toLocaleTimeString": _locale_time,
    "toLocaleString": _locale_datetime,
    "toString": _date_to_string,
    "valueOf": _epoch_ms,
}

_BOOL_METHODS: Dict[str, Method] = {
    "toString": stringify,
    "valueOf": lambda v: v,
}

_LIST_METHODS: Dict[str, Method] = {
    "length": lambda v: len(v),
    "join": lambda v, sep=",": str(sep).join(stringify(item) if item is not None else "" for item in v),
    "includes": lambda v, item: item in v,
}

_ALL_NAMES = (
    set(_STRING_METHODS)
    | set(_NUMBER_METHODS)
    | set(_DATE_METHODS)
    | set(_BOOL_METHODS)
    | set(_LIST_METHODS)
)


def _table_for(value: Any) -> Dict[str, Method]:
    if isinstance(value, bool):
        return _BOOL_METHODS
    if isinstance(value, (int, float)):
        return _NUMBER_METHODS
    if isinstance(value, str):
        return _STRING_METHODS
    if isinstance(value, date):
        return _DATE_METHODS
    if isinstance(value, (list, tuple)):
        return _LIST_METHODS
    return {}


def is_known_method(name: str) -> bool:
    return name in _ALL_NAMES


def has_method(value: Any, name: str) -> bool:
    return name in _table_for(value)


def call_method(value: Any, name: str, args: list | tuple = ()) -> Any:
    method = _table_for(value).get(name)
    if method is None:
        return NO_METHOD
    return method(value, *args)
