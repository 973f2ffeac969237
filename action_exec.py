"""Action script execution and button click dispatch."""

from __future__ import annotations

import inspect
import logging
import textwrap
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

logger = logging.getLogger("smartbutton.actions")

Issue = Dict[str, Any]

ALERT_TITLE = "Error in Action Script"
_ENTRYPOINT = "__action__"


@dataclass
class ActionScriptError(Exception):
    code: str
    message: str
    path: str | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        base = f"{self.code}: {self.message}"
        return f"{base} (path={self.path})" if self.path else base


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Issue:
    return {"code": code, "message": message, "path": path, "detail": detail}


def _navigation(context: Any) -> Any:
    if isinstance(context, dict):
        return context.get("navigation")
    return getattr(context, "navigation", None)


def _capability(context: Any, name: str) -> Callable | None:
    navigation = _navigation(context)
    if navigation is None:
        return None
    if isinstance(navigation, dict):
        func = navigation.get(name)
    else:
        func = getattr(navigation, name, None)
    return func if callable(func) else None


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def compile_action_script(script: str) -> Callable:
    body = textwrap.indent(textwrap.dedent(script or "").strip("\n") or "pass", "    ")
    source = f"async def {_ENTRYPOINT}(record, context):\n{body}\n"
    namespace: Dict[str, Any] = {}
    exec(compile(source, "<action-script>", "exec"), namespace)
    return namespace[_ENTRYPOINT]


async def _surface(exc: BaseException, context: Any, fallback_alert: Callable | None) -> None:
    message = str(exc) or exc.__class__.__name__
    alert = _capability(context, "open_alert_dialog")
    try:
        if alert is not None:
            await _maybe_await(alert({"text": message, "title": ALERT_TITLE}))
            return
        logger.error("action_script_error error=%s", message)
        if fallback_alert is not None:
            await _maybe_await(fallback_alert(message))
    except Exception as alert_exc:
        logger.error("action_script_alert_failed error=%s", alert_exc)


async def run_action_script(
    script: str,
    record: dict | None,
    context: Any = None,
    fallback_alert: Callable[[str], Any] | None = None,
) -> None:
    """Run ``script`` as the body of ``async def (record, context)``.

    Failures are shown through the host alert dialog (or ``fallback_alert``)
    and re-raised as ActionScriptError.
    """
    try:
        action = compile_action_script(script)
        await action(record if record is not None else {}, context)
    except Exception as exc:
        await _surface(exc, context, fallback_alert)
        raise ActionScriptError("ACTION_SCRIPT_ERROR", str(exc) or exc.__class__.__name__) from exc


async def dispatch_click(
    button: Any,
    record: dict | None,
    context: Any = None,
    fallback_alert: Callable[[str], Any] | None = None,
) -> dict:
    """Run a clicked button's action script, or navigate to its URL."""
    errors: List[Issue] = []
    script = getattr(button, "action_script", None)
    url = getattr(button, "url", None)

    if script:
        try:
            await run_action_script(script, record, context, fallback_alert)
        except ActionScriptError as exc:
            logger.warning("click_script_failed label=%s error=%s", getattr(button, "label", None), exc.message)
            errors.append(_issue(exc.code, exc.message, "action_script"))
            return {"ok": False, "kind": "script", "errors": errors}
        return {"ok": True, "kind": "script", "errors": errors}

    if url:
        open_url = _capability(context, "open_url")
        if open_url is None:
            errors.append(_issue("CLICK_NAVIGATION_UNAVAILABLE", "host cannot open URLs", "url", {"url": url}))
            return {"ok": False, "kind": "navigate", "errors": errors}
        try:
            await _maybe_await(open_url(url))
        except Exception as exc:
            logger.warning("click_navigate_failed url=%s error=%s", url, exc)
            errors.append(_issue("CLICK_NAVIGATION_FAILED", str(exc), "url", {"url": url}))
            return {"ok": False, "kind": "navigate", "errors": errors}
        return {"ok": True, "kind": "navigate", "errors": errors}

    return {"ok": True, "kind": "none", "errors": errors}
