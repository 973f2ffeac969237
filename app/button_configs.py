"""Loading button configuration records from the data store."""

from __future__ import annotations

import logging
from typing import Any, List, Tuple

from app.config import DEFAULT_CONFIG_ENTITY
from button_pipeline import ButtonConfig

logger = logging.getLogger("smartbutton.configs")

CONFIG_ATTRIBUTES = (
    ("theia_buttonlabel", "label"),
    ("theia_url", "url"),
    ("theia_buttonposition", "position"),
    ("theia_buttontooltip", "tooltip"),
    ("theia_tablename", "table_name"),
    ("theia_buttonicon", "icon"),
    ("theia_visibilityexpression", "visibility_expression"),
    ("theia_showaslink", "show_as_link"),
    ("theia_actionscript", "action_script"),
)


def build_config_query(entity_name: str, button_filter: str = "") -> str:
    escaped = entity_name.replace("'", "''")
    filter_text = f"theia_tablename eq '{escaped}' and statecode eq 0"
    if button_filter:
        filter_text += f" and {button_filter}"
    select = ",".join(attr for attr, _ in CONFIG_ATTRIBUTES)
    return f"?$select={select}&$filter={filter_text}&$orderby=theia_buttonposition asc"


def _position(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return 0
    return 0


def config_from_record(raw: dict) -> ButtonConfig:
    values = {field: raw.get(attr) for attr, field in CONFIG_ATTRIBUTES}
    return ButtonConfig(
        label=values["label"] or "",
        url=values["url"] or "",
        position=_position(values["position"]),
        table_name=values["table_name"] or "",
        show_as_link=bool(values["show_as_link"]),
        tooltip=values["tooltip"] or None,
        icon=values["icon"] or None,
        visibility_expression=values["visibility_expression"] or None,
        action_script=values["action_script"] or None,
    )


async def fetch_button_configs(
    store: Any,
    entity_name: str,
    button_filter: str = "",
    config_entity: str = DEFAULT_CONFIG_ENTITY,
) -> Tuple[List[ButtonConfig], str | None]:
    """Return ``(configs, error)``; a failed fetch yields an empty list and a message."""
    query = build_config_query(entity_name, button_filter)
    try:
        result = await store.retrieve_multiple_records(config_entity, query)
    except Exception as exc:
        logger.warning("configs_fetch_failed entity=%s error=%s", entity_name, exc)
        return [], str(exc) or "Failed to fetch button configurations"
    configs = [config_from_record(item) for item in result.get("entities") or [] if isinstance(item, dict)]
    logger.info("configs_loaded entity=%s count=%s", entity_name, len(configs))
    return configs, None
