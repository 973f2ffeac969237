"""Stable JSON text and hashes for button configuration lists."""

from __future__ import annotations

import dataclasses
import hashlib
import json
from typing import Any, Iterable


class CanonicalJsonTypeError(TypeError):
    """Raised when a value has no JSON form."""


def _encode(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise CanonicalJsonTypeError(f"Unsupported type: {type(value).__name__}")


def canonical_dumps(obj: Any) -> str:
    """Sorted keys, no whitespace, non-ASCII kept; NaN and Infinity are rejected."""
    return json.dumps(
        obj,
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
        allow_nan=False,
        default=_encode,
    )


def config_hash(configs: Iterable[Any]) -> str:
    """Order-sensitive SHA-256 of a button configuration list."""
    digest = hashlib.sha256(canonical_dumps(list(configs)).encode("utf-8")).hexdigest()
    return f"sha256:{digest}"
