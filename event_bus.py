"""In-process bus for host lifecycle events (record saved, control destroyed)."""

from __future__ import annotations

import inspect
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Tuple

from smartbutton.canonical import canonical_dumps

logger = logging.getLogger("smartbutton.events")

Event = Dict[str, Any]
Handler = Callable[[Event], Any]

RECORD_SAVED = "record.saved"
CONTROL_DESTROYED = "control.destroyed"

SCHEMA_VERSION = "1"

# event name -> payload keys that must hold strings
PAYLOAD_FIELDS: Dict[str, Tuple[str, ...]] = {
    RECORD_SAVED: ("entity", "record_id"),
    CONTROL_DESTROYED: ("control_id",),
}


@dataclass
class EventError(Exception):
    message: str

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return self.message


@dataclass
class EventValidationError(EventError):
    code: str
    path: str | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        if self.path:
            return f"{self.code}: {self.message} (path={self.path})"
        return f"{self.code}: {self.message}"


def _fail(code: str, message: str, path: str | None = None) -> None:
    raise EventValidationError(message=message, code=code, path=path)


def _is_utc_stamp(value: Any) -> bool:
    if not isinstance(value, str) or not value.endswith("Z"):
        return False
    try:
        datetime.fromisoformat(value[:-1] + "+00:00")
    except ValueError:
        return False
    return True


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _check_payload(name: str, payload: Any) -> None:
    if not isinstance(payload, dict):
        _fail("PAYLOAD_INVALID", "payload must be an object", "payload")
    try:
        canonical_dumps(payload)
    except (TypeError, ValueError) as exc:
        _fail("PAYLOAD_INVALID", str(exc), "payload")
    for key in PAYLOAD_FIELDS.get(name, ()):
        if not isinstance(payload.get(key), str):
            _fail("PAYLOAD_FIELD_INVALID", f"{key} must be string", f"payload.{key}")


def _check_meta(meta: Any) -> None:
    if not isinstance(meta, dict):
        _fail("META_INVALID", "meta must be object", "meta")
    if not isinstance(meta.get("event_id"), str):
        _fail("META_EVENT_ID_INVALID", "event_id must be string", "meta.event_id")
    if not _is_utc_stamp(meta.get("occurred_at")):
        _fail("META_OCCURRED_AT_INVALID", "occurred_at must be an ISO8601 UTC stamp ending in 'Z'", "meta.occurred_at")
    source = meta.get("source")
    if source is not None and not isinstance(source, str):
        _fail("META_SOURCE_INVALID", "source must be string or null", "meta.source")
    if meta.get("schema_version") != SCHEMA_VERSION:
        _fail("META_SCHEMA_VERSION_INVALID", f"schema_version must be '{SCHEMA_VERSION}'", "meta.schema_version")


def validate_event(event: Any) -> None:
    if not isinstance(event, dict):
        _fail("EVENT_INVALID", "event must be object")
    name = event.get("name")
    if not name or not isinstance(name, str):
        _fail("EVENT_NAME_INVALID", "name must be non-empty string", "name")
    _check_payload(name, event.get("payload"))
    _check_meta(event.get("meta"))


def make_event(name: str, payload: dict, meta: dict | None = None) -> Event:
    """Build and validate an event envelope, filling id, timestamp and version."""
    if meta is not None and not isinstance(meta, dict):
        _fail("META_INVALID", "meta must be object", "meta")
    envelope = {
        "event_id": str(uuid.uuid4()),
        "occurred_at": _utc_now(),
        "source": None,
        "schema_version": SCHEMA_VERSION,
    }
    envelope.update(meta or {})
    event = {"name": name, "payload": dict(payload) if isinstance(payload, dict) else payload, "meta": envelope}
    validate_event(event)
    return event


class EventBus:
    """Delivers events to subscribers in subscription order.

    Coroutine handlers are awaited before the next handler runs. A handler
    that raises is logged and skipped.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        self._handlers.setdefault(name, []).append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> bool:
        handlers = self._handlers.get(name, [])
        if handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            self._handlers.pop(name, None)
        return True

    def handler_count(self, name: str) -> int:
        return len(self._handlers.get(name, ()))

    async def publish(self, event: Event) -> None:
        validate_event(event)
        name = event["name"]
        for handler in tuple(self._handlers.get(name, ())):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.warning("event_handler_failed event=%s error=%s", name, exc)
