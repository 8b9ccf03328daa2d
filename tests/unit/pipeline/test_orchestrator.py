# tests/unit/pipeline/test_orchestrator.py — v1
"""Tests for pipeline/orchestrator.py — the reconciliation state machine."""

from __future__ import annotations

import pytest

from boardsync.core.fingerprint import compute_run_id, decorate
from boardsync.core.models import BoardItem, Container
from boardsync.extraction.base_extractor import ExtractedItems, ExtractionValidationError
from boardsync.pipeline.orchestrator import (
    ReconcileOrchestrator,
    compute_delta,
    count_marked,
    load_source,
)

SOURCE = "Alice: churn went down.\nBob: the vendor contract renews in March."
RUN_ID = compute_run_id(SOURCE)


def _item(content: str, item_id: str = "1") -> BoardItem:
    return BoardItem(id=item_id, content=content, parent_id="f1")


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

class TestComputeDelta:
    def test_skips_same_run_same_content(self):
        decorated = [decorate("a", RUN_ID), decorate("b", RUN_ID)]
        todo, skipped = compute_delta(decorated, [_item(decorate("a", RUN_ID))], RUN_ID)
        assert todo == [decorate("b", RUN_ID)]
        assert skipped == [decorate("a", RUN_ID)]

    def test_other_run_never_matches(self):
        decorated = [decorate("a", RUN_ID)]
        todo, skipped = compute_delta(decorated, [_item(decorate("a", "0000000000"))], RUN_ID)
        assert todo == decorated
        assert skipped == []

    def test_html_echo_matches(self):
        decorated = [decorate("Churn & retention", RUN_ID)]
        echoed = f"<p>Churn &amp; retention</p><p>[runId:{RUN_ID}]</p>"
        todo, skipped = compute_delta(decorated, [_item(echoed)], RUN_ID)
        assert todo == []
        assert skipped == decorated

    def test_angle_brackets_match_escaped_echo(self):
        decorated = [decorate("Latency < 200ms and p99 > 1s", RUN_ID)]
        echoed = f"<p>Latency &lt; 200ms and p99 &gt; 1s</p><p>[runId:{RUN_ID}]</p>"
        todo, skipped = compute_delta(decorated, [_item(echoed)], RUN_ID)
        assert todo == []
        assert skipped == decorated

    def test_angle_brackets_match_plain_echo(self):
        decorated = [decorate("Latency < 200ms and p99 > 1s", RUN_ID)]
        todo, skipped = compute_delta(decorated, [_item(decorated[0])], RUN_ID)
        assert todo == []
        assert skipped == decorated

    def test_count_marked(self):
        items = [_item(decorate("a", RUN_ID)), _item(decorate("b", "0000000000")), _item("plain")]
        assert count_marked(items, RUN_ID) == 1


class TestLoadSource:
    def test_strips(self, tmp_path):
        path = tmp_path / "t.txt"
        path.write_text("\n  hello  \n", encoding="utf-8")
        assert load_source(path) == "hello"

    def test_empty(self, tmp_path):
        path = tmp_path / "t.txt"
        path.write_text("   \n", encoding="utf-8")
        with pytest.raises(ValueError, match="empty"):
            load_source(path)


# ---------------------------------------------------------------------------
# Full runs
# ---------------------------------------------------------------------------

class TestRun:
    @pytest.mark.asyncio
    async def test_execute_creates_everything(self, run_config, fake_transport, make_extractor, sample_items):
        orchestrator = ReconcileOrchestrator(run_config, fake_transport, make_extractor(sample_items))
        report = await orchestrator.run(SOURCE)

        assert report.mode == "execute"
        assert report.run_id == RUN_ID
        assert report.created == 3
        assert report.failed == 0
        assert len(report.created_ids) == 3
        assert report.verify is not None and report.verify.consistent
        assert report.preview.total_to_create == 3
        titles = [c.title for c in report.preview.containers]
        assert titles == ["Insights", "Risks"]

    @pytest.mark.asyncio
    async def test_second_run_is_idempotent(self, run_config, fake_transport, make_extractor, sample_items):
        extractor = make_extractor(sample_items)
        await ReconcileOrchestrator(run_config, fake_transport, extractor).run(SOURCE)
        report = await ReconcileOrchestrator(run_config, fake_transport, extractor).run(SOURCE)

        assert report.created == 0
        assert report.preview.total_to_create == 0
        assert [c.skipped for c in report.preview.containers] == [2, 1]
        assert [c.existing_with_run_id for c in report.preview.containers] == [2, 1]
        assert report.verify.consistent
        assert sum(len(v) for v in fake_transport.items.values()) == 3
        assert len(fake_transport.containers) == 2

    @pytest.mark.asyncio
    async def test_idempotent_with_html_echo(self, run_config, fake_transport, make_extractor, sample_items):
        fake_transport.echo_html = True
        extractor = make_extractor(sample_items)
        await ReconcileOrchestrator(run_config, fake_transport, extractor).run(SOURCE)
        report = await ReconcileOrchestrator(run_config, fake_transport, extractor).run(SOURCE)
        assert report.created == 0

    @pytest.mark.asyncio
    async def test_idempotent_with_angle_brackets(self, run_config, fake_transport, make_extractor):
        fake_transport.echo_html = True
        extractor = make_extractor(ExtractedItems(insights=["Latency < 200ms and p99 > 1s"], risks=[]))
        first = await ReconcileOrchestrator(run_config, fake_transport, extractor).run(SOURCE)
        second = await ReconcileOrchestrator(run_config, fake_transport, extractor).run(SOURCE)
        assert first.created == 1
        assert second.created == 0

    @pytest.mark.asyncio
    async def test_preview_makes_no_writes(self, run_config, fake_transport, make_extractor, sample_items):
        fake_transport.containers["Insights"] = _existing_container("f1", "Insights", -900)
        fake_transport.containers["Risks"] = _existing_container("f2", "Risks", 900)
        config = run_config.model_copy(update={"execute": False})

        report = await ReconcileOrchestrator(config, fake_transport, make_extractor(sample_items)).run(SOURCE)

        assert report.mode == "preview"
        assert report.verify is None
        assert report.created == 0
        assert report.preview.total_to_create == 3
        assert report.preview.sample["insight"].content == decorate(sample_items.insights[0], RUN_ID)
        assert fake_transport.writes == []

    @pytest.mark.asyncio
    async def test_prior_run_marker_does_not_dedupe(self, run_config, fake_transport, make_extractor, sample_items):
        extractor = make_extractor(sample_items)
        await ReconcileOrchestrator(run_config, fake_transport, extractor).run("an older transcript")
        report = await ReconcileOrchestrator(run_config, fake_transport, extractor).run(SOURCE)

        assert report.created == 3
        assert report.preview.containers[0].existing_with_run_id == 0
        assert sum(len(v) for v in fake_transport.items.values()) == 6

    @pytest.mark.asyncio
    async def test_partial_failure_reported(self, run_config, fake_transport, make_extractor, sample_items):
        fake_transport.fail_contents = {"Support load"}
        report = await ReconcileOrchestrator(
            run_config, fake_transport, make_extractor(sample_items)
        ).run(SOURCE)

        assert report.created == 2
        assert report.failed == 1
        assert report.failures[0].content.startswith("Support load is flat")
        assert "500" in report.failures[0].error
        assert not report.verify.consistent
        assert report.verify.insights_with_run_id == 1
        assert report.verify.expected_insights == 2

    @pytest.mark.asyncio
    async def test_failures_truncated(self, run_config, fake_transport, make_extractor):
        long_text = "x" * 500
        fake_transport.fail_contents = {"xxxx"}
        report = await ReconcileOrchestrator(
            run_config, fake_transport, make_extractor(ExtractedItems(insights=[long_text]))
        ).run(SOURCE)
        assert len(report.failures[0].content) == 200

    @pytest.mark.asyncio
    async def test_verify_mismatch_when_listing_loses_items(
        self, run_config, fake_transport, make_extractor, sample_items
    ):
        orchestrator = ReconcileOrchestrator(run_config, fake_transport, make_extractor(sample_items))
        original = fake_transport.batch_create

        async def create_then_hide(board_id, notes, chunk_size=20):
            result = await original(board_id, notes, chunk_size)
            fake_transport.drop_on_list = True
            return result

        fake_transport.batch_create = create_then_hide  # type: ignore[method-assign]
        report = await orchestrator.run(SOURCE)

        assert report.created == 3
        assert report.verify.insights_with_run_id == 0
        assert not report.verify.consistent

    @pytest.mark.asyncio
    async def test_extraction_failure_before_any_board_call(self, run_config, fake_transport, make_extractor):
        extractor = make_extractor(error=ExtractionValidationError("Extraction returned non-JSON content"))
        with pytest.raises(ExtractionValidationError):
            await ReconcileOrchestrator(run_config, fake_transport, extractor).run(SOURCE)
        assert fake_transport.calls == []

    @pytest.mark.asyncio
    async def test_containers_before_listing_before_writes(
        self, run_config, fake_transport, make_extractor, sample_items
    ):
        await ReconcileOrchestrator(run_config, fake_transport, make_extractor(sample_items)).run(SOURCE)
        kinds = [c.split(":")[0] for c in fake_transport.calls]
        first_list = kinds.index("list")
        first_batch = kinds.index("batch_create")
        assert all(k in ("ensure_container", "create_container") for k in kinds[:first_list])
        assert first_list < first_batch
        assert kinds[first_batch:first_batch + 2] == ["batch_create", "batch_create"]
        assert kinds[first_batch + 2:] == ["list", "list"]

    @pytest.mark.asyncio
    async def test_extractor_called_once(self, run_config, fake_transport, make_extractor, sample_items):
        extractor = make_extractor(sample_items)
        await ReconcileOrchestrator(run_config, fake_transport, extractor).run(SOURCE)
        assert extractor.calls == 1


def _existing_container(container_id: str, title: str, x: float) -> Container:
    return Container(id=container_id, title=title, x=x, y=0, width=1400, height=900)
