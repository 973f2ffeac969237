"""In-memory data store for local runs and tests."""

from __future__ import annotations

import asyncio
import copy
from typing import Any, Dict, List, Tuple

from app.webapi import DataStoreError


class InMemoryDataStore:
    def __init__(self, latency: float = 0.0) -> None:
        self._records: Dict[str, Dict[str, dict]] = {}
        self.latency = latency
        self.calls: List[Tuple[str, str]] = []

    def add_record(self, entity: str, record_id: str, values: dict) -> dict:
        record = copy.deepcopy(values)
        self._records.setdefault(entity, {})[record_id] = record
        return copy.deepcopy(record)

    def update_record(self, entity: str, record_id: str, changes: dict) -> None:
        entity_records = self._records.get(entity, {})
        if record_id not in entity_records:
            raise DataStoreError("DATASTORE_NOT_FOUND", f"{entity} {record_id} not found", 404)
        entity_records[record_id].update(copy.deepcopy(changes))

    def fetch_count(self, entity: str | None = None, record_id: str | None = None) -> int:
        return sum(
            1
            for call_entity, call_id in self.calls
            if (entity is None or call_entity == entity) and (record_id is None or call_id == record_id)
        )

    async def retrieve_record(self, entity: str, record_id: str) -> dict:
        self.calls.append((entity, record_id))
        if self.latency:
            await asyncio.sleep(self.latency)
        rec = self._records.get(entity, {}).get(record_id)
        if rec is None:
            raise DataStoreError("DATASTORE_NOT_FOUND", f"{entity} {record_id} not found", 404)
        return copy.deepcopy(rec)

    async def retrieve_multiple_records(self, entity: str, query: str = "") -> dict:
        self.calls.append((entity, query))
        if self.latency:
            await asyncio.sleep(self.latency)
        return {"entities": [copy.deepcopy(v) for v in self._records.get(entity, {}).values()]}
