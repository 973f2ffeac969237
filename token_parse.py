"""Token extraction for ``{path}`` and ``{path}.method(args)`` references."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, List

TOKEN_RE = re.compile(
    r"\{(?P<path>[^}]+)\}"
    r"(?P<suffix>\.(?P<method>[A-Za-z_$][A-Za-z0-9_$]*)(?:\((?P<args>[^()]*)\))?)?"
)


@dataclass(frozen=True)
class Token:
    full_match: str
    field_path: str
    method_name: str | None = None
    method_args: str | None = None
    suffix: str = ""

    @property
    def method_call(self) -> str | None:
        return self.suffix[1:] if self.suffix else None

    @property
    def is_chain(self) -> bool:
        return "." in self.field_path


def extract_tokens(text: str | None) -> List[Token]:
    """Return tokens in order of appearance; repeated references are kept."""
    if not text:
        return []
    tokens: List[Token] = []
    for match in TOKEN_RE.finditer(text):
        tokens.append(
            Token(
                full_match=match.group(0),
                field_path=match.group("path"),
                method_name=match.group("method"),
                method_args=match.group("args"),
                suffix=match.group("suffix") or "",
            )
        )
    return tokens


def split_path(field_path: str) -> tuple[list[str], str]:
    """Split ``a.b.field`` into the lookup chain ``[a, b]`` and ``field``."""
    parts = field_path.split(".")
    return parts[:-1], parts[-1]


def is_id_reference(field_path: str) -> bool:
    lookups, final = split_path(field_path)
    return bool(lookups) and final.lower() == "id"


def _split_args(text: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    quote: str | None = None
    escaped = False
    current = ""
    for char in text:
        if quote:
            current += char
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue
        if char in "\"'":
            quote = char
        elif char in "[{":
            depth += 1
        elif char in "]}":
            depth -= 1
        elif char == "," and depth == 0:
            parts.append(current)
            current = ""
            continue
        current += char
    parts.append(current)
    return parts


def _parse_arg(raw: str) -> Any:
    text = raw.strip()
    try:
        return json.loads(text)
    except ValueError:
        pass
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return text[1:-1]
    return text


def parse_args(text: str | None) -> list:
    """Parse a method argument list: JSON literals, else quote-stripped strings."""
    if text is None or not text.strip():
        return []
    return [_parse_arg(part) for part in _split_args(text)]
