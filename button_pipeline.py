"""Button pipeline: load record, resolve configs, filter by visibility."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Sequence

from action_exec import dispatch_click
from event_bus import RECORD_SAVED, EventBus
from expression_eval import ExpressionEvaluator
from record_cache import CacheScope, RecordCache
from smartbutton.canonical import config_hash
from template_resolve import TemplateResolver

logger = logging.getLogger("smartbutton.pipeline")

Record = Dict[str, Any]

EMPTY_GUID = "00000000-0000-0000-0000-000000000000"
RESOLVE_FAILED_MESSAGE = "Failed to process button configurations"


@dataclass(frozen=True)
class ButtonConfig:
    label: str
    url: str = ""
    position: int = 0
    table_name: str = ""
    show_as_link: bool = False
    tooltip: str | None = None
    icon: str | None = None
    visibility_expression: str | None = None
    action_script: str | None = None


@dataclass(frozen=True)
class ResolvedButtonConfig(ButtonConfig):
    is_visible: bool = True


class PipelineState(str, Enum):
    IDLE = "idle"
    LOADING_RECORD = "loading_record"
    ERROR = "error"
    READY = "ready"
    RESOLVING_CONFIGS = "resolving_configs"
    RESOLVED = "resolved"


_CYCLE_START_STATES = (PipelineState.READY, PipelineState.RESOLVED, PipelineState.ERROR)


def sort_configs(configs: Sequence[ButtonConfig]) -> List[ButtonConfig]:
    return sorted(configs, key=lambda config: config.position)


def is_new_record(record_id: str | None) -> bool:
    return not record_id or record_id == EMPTY_GUID


class ButtonPipeline:
    """Per-control render cycle.

    ``run`` moves Idle -> LoadingRecord -> Ready -> ResolvingConfigs ->
    Resolved, or to Error when the base record or the resolution fails.
    Every cache key fetched during a cycle belongs to this pipeline's scope
    and is dropped on save and on teardown.
    """

    def __init__(
        self,
        store: Any,
        cache: RecordCache,
        entity_name: str,
        record_id: str | None,
        configs: Sequence[ButtonConfig] = (),
        context: Any = None,
        bus: EventBus | None = None,
        fallback_alert: Callable[[str], Any] | None = None,
    ) -> None:
        self.store = store
        self.entity_name = entity_name
        self.record_id = record_id
        self.context = context
        self.bus = bus
        self.fallback_alert = fallback_alert
        self.scope = CacheScope(cache, store.retrieve_record)
        self.resolver = TemplateResolver(self.scope)
        self.configs: List[ButtonConfig] = list(configs)
        self.state = PipelineState.IDLE
        self.error: str | None = None
        self.record: Record | None = None
        self.evaluator: ExpressionEvaluator | None = None
        self.buttons: List[ResolvedButtonConfig] = []
        self.record_loaded = False
        self._cycle_hash: str | None = None
        if bus is not None:
            bus.subscribe(RECORD_SAVED, self._on_record_saved)

    async def load_record(self) -> bool:
        self.state = PipelineState.LOADING_RECORD
        self.error = None
        try:
            if is_new_record(self.record_id):
                record: Record = {}
            else:
                record = await self.scope.fetch(self.entity_name, self.record_id)
        except Exception as exc:
            logger.warning(
                "pipeline_record_failed entity=%s id=%s error=%s", self.entity_name, self.record_id, exc
            )
            self.error = str(exc) or "Unknown error occurred"
            self.record = {}
            self.record_loaded = False
            self.evaluator = ExpressionEvaluator({}, self.context, self.resolver)
            self.buttons = []
            self.state = PipelineState.ERROR
            return False
        self.record = record
        self.record_loaded = True
        self.evaluator = ExpressionEvaluator(record, self.context, self.resolver)
        self._cycle_hash = None
        self.state = PipelineState.READY
        return True

    async def _resolve_one(self, config: ButtonConfig) -> ResolvedButtonConfig | None:
        label, tooltip, url, action_script = await self.resolver.resolve_many(
            [config.label, config.tooltip, config.url, config.action_script], self.record
        )
        visible = await self.evaluator.evaluate_async(config.visibility_expression)
        if not visible:
            return None
        fields = dataclasses.asdict(config)
        fields.update(label=label, tooltip=tooltip, url=url, action_script=action_script)
        return ResolvedButtonConfig(**fields, is_visible=True)

    async def resolve_configs(self) -> List[ResolvedButtonConfig]:
        """Run one resolution cycle over the current configs.

        A failed cycle leaves the pipeline in ERROR; the next cycle may start
        from there as long as the base record is loaded.
        """
        if not self.record_loaded or self.state not in _CYCLE_START_STATES:
            return self.buttons
        self.state = PipelineState.RESOLVING_CONFIGS
        self.error = None
        self._cycle_hash = config_hash(self.configs)
        try:
            resolved: List[ResolvedButtonConfig] = []
            for config in sort_configs(self.configs):
                button = await self._resolve_one(config)
                if button is not None:
                    resolved.append(button)
        except Exception as exc:
            logger.warning("pipeline_resolve_failed entity=%s error=%s", self.entity_name, exc)
            self.error = RESOLVE_FAILED_MESSAGE
            self.buttons = []
            self.state = PipelineState.ERROR
            return self.buttons
        self.buttons = resolved
        self.state = PipelineState.RESOLVED
        logger.info(
            "pipeline_resolved entity=%s configs=%s visible=%s", self.entity_name, len(self.configs), len(resolved)
        )
        return self.buttons

    async def run(self) -> List[ResolvedButtonConfig]:
        if not await self.load_record():
            return self.buttons
        return await self.resolve_configs()

    async def set_configs(self, configs: Sequence[ButtonConfig]) -> List[ResolvedButtonConfig]:
        configs = list(configs)
        if self.state in (PipelineState.RESOLVED, PipelineState.ERROR) and config_hash(configs) == self._cycle_hash:
            return self.buttons
        self.configs = configs
        return await self.resolve_configs()

    async def reload(self) -> List[ResolvedButtonConfig]:
        removed = self.scope.invalidate()
        logger.info("pipeline_reload entity=%s id=%s invalidated=%s", self.entity_name, self.record_id, removed)
        return await self.run()

    async def _on_record_saved(self, event: dict) -> None:
        payload = event.get("payload") or {}
        if payload.get("entity") != self.entity_name or payload.get("record_id") != self.record_id:
            return
        await self.reload()

    async def click(self, index: int) -> dict:
        if not 0 <= index < len(self.buttons):
            logger.warning("pipeline_click_out_of_range index=%s buttons=%s", index, len(self.buttons))
            issue = {"code": "CLICK_INDEX_INVALID", "message": "no button at index", "path": "index", "detail": {"index": index}}
            return {"ok": False, "kind": "none", "errors": [issue]}
        button = self.buttons[index]
        return await dispatch_click(button, self.record, self.context, self.fallback_alert)

    def teardown(self) -> None:
        removed = self.scope.invalidate()
        if self.bus is not None:
            self.bus.unsubscribe(RECORD_SAVED, self._on_record_saved)
        self.record_loaded = False
        self.state = PipelineState.IDLE
        logger.info("pipeline_teardown entity=%s invalidated=%s", self.entity_name, removed)
