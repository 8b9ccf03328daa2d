# tests/unit/core/test_models.py — v1
"""Tests for core/models.py — board domain models."""

from __future__ import annotations

from boardsync.core.models import BatchResult, Container, StickyNote, VerifyResult
from boardsync.transport.errors import BoardApiError


class TestContainer:
    def test_edges(self, container):
        assert container.left == -700.0
        assert container.top == -450.0

    def test_from_payload_uses_reported_geometry(self):
        raw = {
            "id": 3458764,
            "position": {"x": 10, "y": 20},
            "geometry": {"width": 500, "height": 300},
        }
        c = Container.from_payload(raw, "Risks", 0, 0, 1400, 900)
        assert c.id == "3458764"
        assert (c.x, c.y, c.width, c.height) == (10, 20, 500, 300)

    def test_from_payload_falls_back_to_requested(self):
        c = Container.from_payload({"id": "f1"}, "Risks", 900, 0, 1400, 900)
        assert (c.x, c.y, c.width, c.height) == (900, 0, 1400, 900)


class TestStickyNote:
    def test_relative_position(self):
        note = StickyNote(content="x", x=-660, y=-410, container_left=-700, container_top=-450)
        assert note.relative_position() == (40, 40)

    def test_relative_position_without_container(self):
        note = StickyNote(content="x", x=5, y=6)
        assert note.relative_position() == (5, 6)


class TestBatchResult:
    def test_counts(self):
        result = BatchResult()
        note = StickyNote(content="x", x=0, y=0)
        result.record_success("1")
        result.record_success(None)
        result.record_failure(note, BoardApiError("POST", "/p", 500, "boom"))
        assert result.ok == 2
        assert result.created == ["1"]
        assert result.attempted == 3
        assert result.failed[0].status == 500
        assert result.failed[0].body == "boom"

    def test_failure_without_status(self):
        result = BatchResult()
        result.record_failure(StickyNote(content="x", x=0, y=0), RuntimeError())
        assert result.failed[0].status is None
        assert result.failed[0].error == "RuntimeError"


class TestVerifyResult:
    def test_consistent(self):
        v = VerifyResult(
            insights_with_run_id=2, risks_with_run_id=1, expected_insights=2, expected_risks=1
        )
        assert v.consistent
        assert v.model_dump()["consistent"] is True

    def test_mismatch(self):
        v = VerifyResult(
            insights_with_run_id=1, risks_with_run_id=1, expected_insights=2, expected_risks=1
        )
        assert not v.consistent
