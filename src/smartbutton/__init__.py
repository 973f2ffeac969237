"""Smart button kernel utilities."""

from .canonical import CanonicalJsonTypeError, canonical_dumps, config_hash

__all__ = [
    "CanonicalJsonTypeError",
    "canonical_dumps",
    "config_hash",
]
