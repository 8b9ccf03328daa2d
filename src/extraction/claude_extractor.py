# src/extraction/claude_extractor.py — v1
"""Insight/risk extraction with Claude.

The model is asked for a bare JSON object; the answer is parsed and
validated in full. Nothing partial is accepted: any parse or shape error
raises ExtractionValidationError.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from boardsync.extraction.base_extractor import (
    BaseExtractor,
    ExtractedItems,
    ExtractionValidationError,
)
from boardsync.llm.base_client import BaseLLMClient
from boardsync.llm.models import Message

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an assistant that extracts concise, actionable bullets. "
    "Return ONLY valid JSON matching this schema:\n"
    "{{\n"
    '  "insights": string[] (max {max_items} items, short bullets),\n'
    '  "risks": string[] (max {max_items} items, short bullets)\n'
    "}}"
)

USER_PROMPT = (
    'Transcript:\n"""\n{source}\n"""\n\n'
    "Return JSON with keys: insights, risks. No commentary."
)


class ClaudeExtractor(BaseExtractor):
    """Extract bullets from a transcript through an LLM client."""

    def __init__(
        self,
        llm: BaseLLMClient,
        max_items: int = 12,
        max_tokens: int = 800,
    ) -> None:
        self._llm = llm
        self._max_items = max_items
        self._max_tokens = max_tokens

    async def extract(self, source_text: str) -> ExtractedItems:
        response = await self._llm.complete(
            messages=[Message(role="user", content=USER_PROMPT.format(source=source_text))],
            system=SYSTEM_PROMPT.format(max_items=self._max_items),
            max_tokens=self._max_tokens,
            temperature=0.0,
        )
        items = parse_extraction(response.content).capped(self._max_items)
        logger.info(
            "Extracted %d insights, %d risks (%d output tokens)",
            len(items.insights), len(items.risks), response.output_tokens,
        )
        return items


def parse_extraction(content: str) -> ExtractedItems:
    """Parse and validate a model answer.

    Raises:
        ExtractionValidationError: Non-JSON content or wrong shape.
    """
    payload = _strip_fences(content)
    try:
        data: Any = json.loads(payload)
    except ValueError as e:
        raise ExtractionValidationError("Extraction returned non-JSON content") from e
    if not isinstance(data, dict) or "insights" not in data or "risks" not in data:
        raise ExtractionValidationError(
            "Extraction JSON failed validation (expected {insights: string[], risks: string[]})"
        )
    try:
        return ExtractedItems.model_validate(
            {"insights": data["insights"], "risks": data["risks"]}
        )
    except ValidationError as e:
        raise ExtractionValidationError(f"Extraction JSON failed validation: {e}") from e


def _strip_fences(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        lines = [ln for ln in text.split("\n") if not ln.strip().startswith("```")]
        text = "\n".join(lines)
    return text
