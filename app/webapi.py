"""OData Web API data store backed by httpx."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

import httpx

from app.config import Settings

logger = logging.getLogger("smartbutton.webapi")

Record = Dict[str, Any]

_HEADERS = {
    "Accept": "application/json",
    "OData-Version": "4.0",
    "OData-MaxVersion": "4.0",
    "Prefer": 'odata.include-annotations="*"',
}


@dataclass
class DataStoreError(Exception):
    code: str
    message: str
    status: int | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return f"{self.code}: {self.message}" if self.status is None else f"{self.code}: {self.message} (status={self.status})"


def entity_set_name(entity: str, overrides: Dict[str, str] | None = None) -> str:
    """Plural collection name for a logical entity name (``account`` -> ``accounts``)."""
    if overrides and entity in overrides:
        return overrides[entity]
    if entity.endswith("y") and len(entity) > 1 and entity[-2] not in "aeiou":
        return entity[:-1] + "ies"
    if entity.endswith(("s", "x", "z", "ch", "sh")):
        return entity + "es"
    return entity + "s"


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return str(body["error"].get("message") or resp.reason_phrase)
    return resp.reason_phrase


class WebApiClient:
    """Implements ``retrieve_record`` / ``retrieve_multiple_records``."""

    def __init__(
        self,
        base_url: str,
        access_token: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        entity_sets: Dict[str, str] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.entity_sets = dict(entity_sets or {})
        headers = dict(_HEADERS)
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = headers

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient | None = None) -> "WebApiClient":
        return cls(settings.webapi_url, settings.access_token, settings.http_timeout, client=client)

    async def _get(self, url: str) -> Any:
        try:
            resp = await self._client.get(url, headers=self._headers)
        except httpx.HTTPError as exc:
            logger.warning("webapi_transport_error url=%s error=%s", url, exc)
            raise DataStoreError("DATASTORE_UNAVAILABLE", str(exc) or exc.__class__.__name__) from exc
        if resp.status_code == 404:
            raise DataStoreError("DATASTORE_NOT_FOUND", _error_message(resp), resp.status_code)
        if resp.status_code >= 400:
            logger.warning("webapi_http_error url=%s status=%s", url, resp.status_code)
            raise DataStoreError("DATASTORE_HTTP_ERROR", _error_message(resp), resp.status_code)
        return resp.json()

    async def retrieve_record(self, entity: str, record_id: str) -> Record:
        record_id = record_id.strip("{}")
        url = f"{self.base_url}/{entity_set_name(entity, self.entity_sets)}({record_id})"
        body = await self._get(url)
        if not isinstance(body, dict):
            raise DataStoreError("DATASTORE_BAD_RESPONSE", "record body must be object")
        return body

    async def retrieve_multiple_records(self, entity: str, query: str = "") -> dict:
        if query and not query.startswith("?"):
            query = "?" + query
        url = f"{self.base_url}/{entity_set_name(entity, self.entity_sets)}{query}"
        body = await self._get(url)
        entities = body.get("value") if isinstance(body, dict) else None
        if not isinstance(entities, list):
            raise DataStoreError("DATASTORE_BAD_RESPONSE", "collection body must contain value list")
        return {"entities": entities, "next_link": body.get("@odata.nextLink")}

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
