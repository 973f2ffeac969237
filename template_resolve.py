"""Token substitution for button label, tooltip, URL and action script text."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from lookup_resolve import lookup_id, resolve_chain
from record_cache import CacheScope
from token_parse import Token, extract_tokens, is_id_reference, parse_args, split_path
from value_coerce import coerce_value, is_date_string, stringify
from value_methods import NO_METHOD, call_method, is_known_method

logger = logging.getLogger("smartbutton.template")

Record = Dict[str, Any]

_DATE_METHOD_PREFIXES = ("get", "toLocale")


class TemplateResolver:
    def __init__(self, scope: CacheScope) -> None:
        self.scope = scope

    async def resolve_value(self, field_path: str, record: Record | None) -> Any:
        """Raw value for ``field_path``; None when the attribute or chain is missing."""
        if not isinstance(record, dict):
            return None
        if "." not in field_path:
            return record.get(field_path)
        lookups, final = split_path(field_path)
        if is_id_reference(field_path):
            # raw foreign key of the first hop, read off the base record
            return lookup_id(record, lookups[0])
        related = await resolve_chain(record, lookups, self.scope)
        if related is None:
            return None
        return related.get(final)

    def _apply_method(self, token: Token, value: Any) -> str:
        name = token.method_name or ""
        if not is_known_method(name):
            return stringify(value) + token.suffix
        if is_date_string(value) and name.startswith(_DATE_METHOD_PREFIXES):
            value = coerce_value(value)
        try:
            result = call_method(value, name, parse_args(token.method_args))
        except Exception as exc:
            logger.warning("template_method_failed token=%s error=%s", token.full_match, exc)
            return stringify(value)
        if result is NO_METHOD:
            return stringify(value)
        return stringify(result)

    async def resolve_text(self, text: str | None, record: Record | None) -> str | None:
        tokens = extract_tokens(text)
        if not tokens:
            return text
        values: Dict[str, Any] = {}
        result = text or ""
        for token in tokens:
            if token.field_path not in values:
                values[token.field_path] = await self.resolve_value(token.field_path, record)
            value = values[token.field_path]
            if value is None:
                continue
            if token.method_name:
                replacement = self._apply_method(token, value)
            else:
                replacement = stringify(value)
            result = result.replace(token.full_match, replacement)
        return result

    async def resolve_many(self, texts: Iterable[str | None], record: Record | None) -> List[str | None]:
        out: List[str | None] = []
        for text in texts:
            out.append(await self.resolve_text(text, record))
        return out
