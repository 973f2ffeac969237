"""Host-facing smart button control."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, List

from app.button_configs import fetch_button_configs
from app.config import Settings, configure_logging, load_settings
from app.stores import InMemoryDataStore
from app.template_render import LOADING_TEXT, render_button_bar, render_message
from app.webapi import WebApiClient
from button_pipeline import ButtonConfig, ButtonPipeline, PipelineState
from event_bus import CONTROL_DESTROYED, RECORD_SAVED, EventBus, make_event
from record_cache import RecordCache

logger = logging.getLogger("smartbutton.control")

_shared: dict = {}


class SmartButtonControl:
    """Wires configuration loading, the pipeline and rendering for one form."""

    def __init__(
        self,
        store: Any,
        cache: RecordCache,
        bus: EventBus,
        context: Any = None,
        settings: Settings | None = None,
        fallback_alert: Callable[[str], Any] | None = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.bus = bus
        self.context = context
        self.settings = settings or Settings()
        self.fallback_alert = fallback_alert
        self.control_id = str(uuid.uuid4())
        self.entity_name = ""
        self.record_id = ""
        self.button_filter = ""
        self.configs: List[ButtonConfig] = []
        self.config_error: str | None = None
        self.pipeline: ButtonPipeline | None = None
        self._loaded_filter: str | None = None

    def init(self, entity_name: str, record_id: str | None, button_filter: str | None = None) -> None:
        self.entity_name = entity_name or ""
        self.record_id = record_id or ""
        self.button_filter = button_filter or ""
        self.pipeline = ButtonPipeline(
            self.store,
            self.cache,
            self.entity_name,
            self.record_id,
            context=self.context,
            bus=self.bus,
            fallback_alert=self.fallback_alert,
        )

    async def _load_configs(self) -> None:
        self.configs, self.config_error = await fetch_button_configs(
            self.store, self.entity_name, self.button_filter, self.settings.config_entity
        )
        self._loaded_filter = self.button_filter

    async def update_view(self, button_filter: str | None = None) -> str:
        if self.pipeline is None:
            raise RuntimeError("control is not initialised")
        if button_filter is not None:
            self.button_filter = button_filter
        if self._loaded_filter != self.button_filter:
            await self._load_configs()
        if self.config_error:
            return render_message(f"Error: {self.config_error}")

        pipeline = self.pipeline
        if pipeline.state == PipelineState.IDLE:
            pipeline.configs = list(self.configs)
            await pipeline.run()
        elif pipeline.state in (PipelineState.READY, PipelineState.RESOLVED, PipelineState.ERROR):
            await pipeline.set_configs(self.configs)

        if pipeline.state == PipelineState.ERROR:
            return render_message(pipeline.error or "Unknown error occurred")
        if pipeline.state != PipelineState.RESOLVED:
            return render_message(LOADING_TEXT, kind="info")
        return render_button_bar(pipeline.buttons)

    async def handle_click(self, index: int) -> dict:
        if self.pipeline is None:
            raise RuntimeError("control is not initialised")
        outcome = await self.pipeline.click(index)
        if not outcome["ok"]:
            logger.warning("control_click_failed index=%s errors=%s", index, outcome["errors"])
        return outcome

    async def notify_saved(self) -> None:
        event = make_event(
            RECORD_SAVED,
            {"entity": self.entity_name, "record_id": self.record_id},
            {"source": self.control_id},
        )
        await self.bus.publish(event)

    async def destroy(self) -> None:
        if self.pipeline is not None:
            self.pipeline.teardown()
        await self.bus.publish(make_event(CONTROL_DESTROYED, {"control_id": self.control_id}, {"source": self.control_id}))
        logger.info("control_destroyed entity=%s id=%s", self.entity_name, self.record_id)


def shared_cache(settings: Settings) -> RecordCache:
    cache = _shared.get("cache")
    if cache is None:
        cache = _shared["cache"] = RecordCache(settings.cache_attempts, settings.cache_retry_delay)
    return cache


def shared_bus() -> EventBus:
    bus = _shared.get("bus")
    if bus is None:
        bus = _shared["bus"] = EventBus()
    return bus


def build_control(
    settings: Settings | None = None,
    context: Any = None,
    fallback_alert: Callable[[str], Any] | None = None,
    store: Any = None,
) -> SmartButtonControl:
    """Control wired to the process-wide cache and bus.

    Without an explicit store, a configured Web API URL selects the HTTP
    store and anything else falls back to the in-memory one.
    """
    settings = settings or load_settings()
    configure_logging(settings)
    if store is None:
        if settings.webapi_url:
            store = WebApiClient.from_settings(settings)
        else:
            logger.warning("control_store_in_memory reason=no_webapi_url")
            store = InMemoryDataStore()
    return SmartButtonControl(store, shared_cache(settings), shared_bus(), context, settings, fallback_alert)
