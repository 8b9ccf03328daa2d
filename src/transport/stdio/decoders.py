# src/transport/stdio/decoders.py — v1
"""Heuristic decoders for human-readable tool responses.

Tool servers often confirm an action with prose ("Created sticky note
3458764... on board ...") instead of JSON. Each decoder recovers one result
shape from such text. Decoders never raise: unrecognised text degrades to a
neutral empty value.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import Any


class BaseResponseDecoder(ABC):
    """Turn the text of a tool response into a structured value."""

    @abstractmethod
    def decode(self, text: str) -> Any:
        """Decode ``text``. Must not raise."""


class CreatedIdDecoder(BaseResponseDecoder):
    """Recover the id of a created item: ``{"id": "..."}`` or ``{}``.

    Confirmations may echo the item content, so an explicit ``id`` label wins,
    then any long digit run, then the bare token right after "Created <noun>".
    """

    def __init__(self, noun: str) -> None:
        self._patterns = [
            re.compile(r"\bid\b\s*[:= ]\s*['\"]?(\d{6,})", re.IGNORECASE),
            re.compile(r"(?<![\w-])(\d{6,})(?![\w-])"),
            re.compile(rf"Created {re.escape(noun)}\s+([\w-]*\d[\w-]*)", re.IGNORECASE),
        ]

    def decode(self, text: str) -> dict[str, Any]:
        for pattern in self._patterns:
            match = pattern.search(text or "")
            if match:
                return {"id": match.group(1)}
        return {}


class ListDecoder(BaseResponseDecoder):
    """Recover a list of objects embedded in prose, else ``[]``."""

    def decode(self, text: str) -> list[Any]:
        start = (text or "").find("[")
        end = (text or "").rfind("]")
        if start < 0 or end <= start:
            return []
        try:
            parsed = json.loads(text[start : end + 1])
        except ValueError:
            return []
        return parsed if isinstance(parsed, list) else []


class TextDecoder(BaseResponseDecoder):
    """Fallback: wrap the text unchanged."""

    def decode(self, text: str) -> dict[str, Any]:
        return {"result": text}


DEFAULT_DECODER = TextDecoder()

# Keyed by logical operation (see capabilities.OPERATION_PATTERNS).
OPERATION_DECODERS: dict[str, BaseResponseDecoder] = {
    "create_item": CreatedIdDecoder("sticky note"),
    "create_container": CreatedIdDecoder("shape"),
    "list_containers": ListDecoder(),
    "items_in_container": ListDecoder(),
}


def decoder_for(operation: str | None) -> BaseResponseDecoder:
    if operation is None:
        return DEFAULT_DECODER
    return OPERATION_DECODERS.get(operation, DEFAULT_DECODER)
