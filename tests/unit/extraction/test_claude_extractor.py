# tests/unit/extraction/test_claude_extractor.py — v1
"""Tests for extraction/claude_extractor.py — prompt, parsing and validation."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from boardsync.extraction.base_extractor import ExtractedItems, ExtractionValidationError
from boardsync.extraction.claude_extractor import ClaudeExtractor, parse_extraction
from boardsync.llm.models import LLMResponse


def _response(content: str) -> LLMResponse:
    return LLMResponse(content=content, model="claude-test", provider="anthropic", output_tokens=42)


def _make_llm(content: str) -> AsyncMock:
    llm = AsyncMock()
    llm.complete = AsyncMock(return_value=_response(content))
    return llm


class TestParseExtraction:
    def test_valid(self):
        items = parse_extraction('{"insights": ["a", " b "], "risks": []}')
        assert items.insights == ["a", "b"]
        assert items.risks == []

    def test_code_fences(self):
        items = parse_extraction('```json\n{"insights": ["a"], "risks": ["r"]}\n```')
        assert items.risks == ["r"]

    def test_non_json(self):
        with pytest.raises(ExtractionValidationError, match="non-JSON"):
            parse_extraction("Here are your bullets: ...")

    def test_missing_key(self):
        with pytest.raises(ExtractionValidationError, match="validation"):
            parse_extraction('{"insights": ["a"]}')

    def test_not_an_object(self):
        with pytest.raises(ExtractionValidationError):
            parse_extraction('["a", "b"]')

    def test_non_string_item(self):
        with pytest.raises(ExtractionValidationError):
            parse_extraction('{"insights": ["a", 3], "risks": []}')

    def test_empty_string_item(self):
        with pytest.raises(ExtractionValidationError):
            parse_extraction('{"insights": ["  "], "risks": []}')

    def test_list_required(self):
        with pytest.raises(ExtractionValidationError):
            parse_extraction('{"insights": "a", "risks": []}')


class TestExtractedItems:
    def test_capped_independently(self):
        items = ExtractedItems(insights=["1", "2", "3"], risks=["r"])
        capped = items.capped(2)
        assert capped.insights == ["1", "2"]
        assert capped.risks == ["r"]


class TestClaudeExtractor:
    @pytest.mark.asyncio
    async def test_extract(self):
        llm = _make_llm(json.dumps({"insights": ["i1", "i2", "i3"], "risks": ["r1"]}))
        extractor = ClaudeExtractor(llm, max_items=2, max_tokens=500)
        items = await extractor.extract("the transcript")

        assert items.insights == ["i1", "i2"]
        assert items.risks == ["r1"]
        llm.complete.assert_awaited_once()
        kwargs = llm.complete.await_args.kwargs
        assert kwargs["temperature"] == 0.0
        assert kwargs["max_tokens"] == 500
        assert "max 2 items" in kwargs["system"]
        assert "the transcript" in kwargs["messages"][0].content

    @pytest.mark.asyncio
    async def test_invalid_output_raises(self):
        extractor = ClaudeExtractor(_make_llm("sorry, I can't"))
        with pytest.raises(ExtractionValidationError):
            await extractor.extract("the transcript")
