# src/core/parsing.py - v1
"""Tagged-result JSON extraction from free-text model output.

Models often wrap JSON in a markdown fence or surround it with prose.
extract_json_object() tries a ```json fence first, then the first
balanced top-level {...} object, and reports failure as ParsedErr
instead of raising.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedOk(Generic[T]):
    value: T


@dataclass(frozen=True)
class ParsedErr:
    reason: str


ParseResult = Union[ParsedOk[T], ParsedErr]


def extract_json_object(raw: str) -> ParseResult[dict[str, Any]]:
    """Locate and decode the JSON object in *raw*."""
    if not raw or not raw.strip():
        return ParsedErr("empty response")

    fenced = _FENCED_JSON.search(raw)
    if fenced:
        try:
            value = json.loads(fenced.group(1))
        except json.JSONDecodeError as e:
            return ParsedErr(f"fenced JSON block is malformed: {e.msg}")
    else:
        start = raw.find("{")
        if start < 0:
            return ParsedErr("no JSON object found")
        try:
            value, _ = json.JSONDecoder().raw_decode(raw, start)
        except json.JSONDecodeError as e:
            return ParsedErr(f"JSON object is malformed: {e.msg}")

    if not isinstance(value, dict):
        return ParsedErr(f"expected a JSON object, got {type(value).__name__}")
    return ParsedOk(value)
