# src/extraction/base_extractor.py — v1
"""Extraction collaborator interface and its validated output model."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field, field_validator


class ExtractionValidationError(Exception):
    """Extraction output is missing or violates the expected shape.

    Always fatal, and always raised before any board mutation.
    """


class ExtractedItems(BaseModel):
    """Ordered insight and risk bullets, each non-empty after trimming."""

    insights: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)

    @field_validator("insights", "risks", mode="before")
    @classmethod
    def validate_bullets(cls, v: object, info) -> list[str]:  # noqa: N805
        if not isinstance(v, list):
            raise ValueError(f"{info.field_name} must be a list of strings")
        for item in v:
            if not isinstance(item, str) or not item.strip():
                raise ValueError(f"{info.field_name} must contain only non-empty strings")
        return [item.strip() for item in v]

    def capped(self, max_items: int) -> ExtractedItems:
        """Truncate each list independently."""
        return ExtractedItems(insights=self.insights[:max_items], risks=self.risks[:max_items])


class BaseExtractor(ABC):
    """Turns raw source text into insight and risk bullets."""

    @abstractmethod
    async def extract(self, source_text: str) -> ExtractedItems:
        """Extract bullets.

        Raises:
            ExtractionValidationError: On malformed or schema-violating output.
        """
