"""Lookup (foreign key) chain traversal through the record cache."""

from __future__ import annotations

import logging
from typing import Any, Dict, Sequence

from record_cache import CacheScope

logger = logging.getLogger("smartbutton.lookup")

Record = Dict[str, Any]

LOOKUP_TYPE_ANNOTATION = "@Microsoft.Dynamics.CRM.lookuplogicalname"


def lookup_id_attr(name: str) -> str:
    return f"_{name}_value"


def lookup_type_attr(name: str) -> str:
    return f"{lookup_id_attr(name)}{LOOKUP_TYPE_ANNOTATION}"


def lookup_id(record: Record | None, name: str) -> str | None:
    """Return the raw foreign-key id stored on ``record`` for lookup ``name``."""
    if not isinstance(record, dict):
        return None
    value = record.get(lookup_id_attr(name))
    return value if isinstance(value, str) and value else None


def lookup_target(record: Record | None, name: str) -> tuple[str, str] | None:
    if not isinstance(record, dict):
        return None
    record_id = record.get(lookup_id_attr(name))
    entity = record.get(lookup_type_attr(name))
    if not (isinstance(record_id, str) and record_id and isinstance(entity, str) and entity):
        return None
    return entity, record_id


async def resolve_chain(record: Record | None, lookups: Sequence[str], scope: CacheScope) -> Record | None:
    """Follow ``lookups`` hop by hop from ``record``.

    Returns the record reached after the last hop, or None when any hop has
    no usable reference or its fetch fails.
    """
    if not lookups:
        raise ValueError("lookup chain must not be empty")
    current = record
    for hop, name in enumerate(lookups):
        target = lookup_target(current, name)
        if target is None:
            logger.debug("lookup_unresolved chain=%s hop=%s", ".".join(lookups), hop)
            return None
        entity, record_id = target
        try:
            current = await scope.fetch(entity, record_id)
        except Exception as exc:
            logger.warning(
                "lookup_fetch_failed chain=%s entity=%s id=%s error=%s",
                ".".join(lookups),
                entity,
                record_id,
                exc,
            )
            return None
        if not isinstance(current, dict):
            return None
    return current
