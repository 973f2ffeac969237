"""HTML rendering of the resolved button bar in a locked Jinja sandbox."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Sequence

from jinja2 import StrictUndefined
from jinja2.sandbox import ImmutableSandboxedEnvironment
from markupsafe import Markup

logger = logging.getLogger("smartbutton.render")

_ALLOWED_FILTERS = {
    "default",
    "lower",
    "upper",
    "trim",
    "replace",
    "length",
    "escape",
    "e",
}

_ALLOWED_TESTS = {
    "defined",
    "undefined",
    "none",
}

BUTTON_TEMPLATE = (
    '{% if button["show_as_link"] %}'
    '<a class="smart-button-link" href="{{ button["url"] }}" target="_blank" rel="noopener noreferrer"'
    '{% if button["tooltip"] %} title="{{ button["tooltip"] }}"{% endif %}>{{ button["label"] }}</a>'
    "{% else %}"
    '<button type="button" class="smart-button" data-index="{{ index }}"'
    '{% if button["tooltip"] %} title="{{ button["tooltip"] }}"{% endif %}>'
    '{% if button["icon"] %}<i class="smart-button-icon ms-Icon ms-Icon--{{ button["icon"] }}" aria-hidden="true"></i>{% endif %}'
    '<span>{{ button["label"] }}</span></button>'
    "{% endif %}"
)

BAR_TEMPLATE = '<div class="smart-button-bar">{% for item in items %}{{ item }}{% endfor %}</div>'

MESSAGE_TEMPLATE = '<div class="message-bar message-bar--{{ kind }}" role="{{ role }}">{{ text }}</div>'

BUTTON_ERROR_TEXT = "An error occurred while rendering this button."
LOADING_TEXT = "Loading buttons..."


class _LockedSandbox(ImmutableSandboxedEnvironment):
    def is_safe_attribute(self, obj, attr, value) -> bool:
        return False

    def is_safe_callable(self, obj) -> bool:
        return False


def _env() -> _LockedSandbox:
    env = _LockedSandbox(autoescape=True, undefined=StrictUndefined)
    env.globals = {}
    env.filters = {key: val for key, val in env.filters.items() if key in _ALLOWED_FILTERS}
    env.tests = {key: val for key, val in env.tests.items() if key in _ALLOWED_TESTS}
    return env


_ENV = _env()


def _sanitize_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool, Markup)):
        return value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _sanitize_value(dataclasses.asdict(value))
    if isinstance(value, dict):
        return {str(key): _sanitize_value(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(val) for val in value]
    return str(value)


def render_template(text: str, context: dict[str, Any]) -> Markup:
    tmpl = _ENV.from_string(text or "")
    return Markup(tmpl.render(_sanitize_value(context or {})))


def render_message(text: str, kind: str = "error") -> str:
    role = "alert" if kind == "error" else "status"
    return str(render_template(MESSAGE_TEMPLATE, {"text": text, "kind": kind, "role": role}))


def render_button(button: Any, index: int, template: str | None = None) -> Markup:
    return render_template(template or BUTTON_TEMPLATE, {"button": button, "index": index})


def render_button_bar(buttons: Sequence[Any], template: str | None = None) -> str:
    """Render every button in its own boundary; a failing button becomes an inline notice."""
    items = []
    for index, button in enumerate(buttons):
        try:
            items.append(render_button(button, index, template))
        except Exception as exc:
            logger.warning("render_button_failed index=%s error=%s", index, exc)
            items.append(Markup(render_message(BUTTON_ERROR_TEXT)))
    return str(render_template(BAR_TEMPLATE, {"items": items}))
