# src/pipeline/orchestrator.py — v1
"""Reconciliation orchestrator.

Linear state machine, no back-edges:

  init → ensure_containers → list_existing → compute_delta → layout
       → [stop in preview mode] → batch_create → verify → report

Extraction runs once during init, before anything touches the board, so an
unreliable extraction never mutates it. After writing starts, per-item
failures are collected and reported instead of aborting the run.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from boardsync.config.settings import RunConfig
from boardsync.core.fingerprint import (
    compute_run_id,
    content_keys,
    decorate,
    has_marker,
    normalize_text,
)
from boardsync.core.models import (
    BatchResult,
    BoardItem,
    Container,
    ContainerPlan,
    FailureReport,
    SyncPreview,
    SyncReport,
    VerifyResult,
)
from boardsync.extraction.base_extractor import BaseExtractor
from boardsync.layout.grid import LayoutConfig, grid_layout
from boardsync.logging.context import set_run_context, set_step
from boardsync.transport.base_transport import BaseBoardTransport

logger = logging.getLogger(__name__)

DIAGNOSTIC_LIMIT = 200


def load_source(path: Path) -> str:
    """Read and trim the source document.

    Raises:
        ValueError: If the document is empty.
    """
    text = Path(path).read_text(encoding="utf-8").strip()
    if not text:
        raise ValueError(f"Source is empty: {path}")
    return text


def compute_delta(
    decorated: list[str], existing: list[BoardItem], run_id: str
) -> tuple[list[str], list[str]]:
    """Split decorated texts into (to_create, skipped).

    A text is skipped iff an existing item carries this run's marker and has
    the same content. Items marked by any other run never match.
    """
    already: set[str] = set()
    for item in existing:
        if has_marker(item.content, run_id):
            already |= content_keys(item.content)
    to_create: list[str] = []
    skipped: list[str] = []
    for text in decorated:
        (skipped if normalize_text(text) in already else to_create).append(text)
    return to_create, skipped


def count_marked(items: list[BoardItem], run_id: str) -> int:
    return sum(1 for item in items if has_marker(item.content, run_id))


class ReconcileOrchestrator:
    """Drive one reconciliation run through a board transport.

    Args:
        config: Frozen run configuration.
        transport: Connected board transport (REST or stdio).
        extractor: Extraction collaborator, called exactly once.
    """

    def __init__(
        self,
        config: RunConfig,
        transport: BaseBoardTransport,
        extractor: BaseExtractor,
    ) -> None:
        self._config = config
        self._transport = transport
        self._extractor = extractor
        settings = config.settings
        self._layout = LayoutConfig(
            columns=settings.layout_columns,
            gap=settings.layout_gap,
            padding=settings.layout_padding,
            item_width=settings.note_width,
            item_height=settings.note_height,
        )

    async def run(self, source_text: str) -> SyncReport:
        """Execute the run and return its report.

        Raises:
            ExtractionValidationError: Extraction output was malformed.
            TransportError: Container or listing calls failed after retries.
        """
        config = self._config
        settings = config.settings
        board_id = config.board_id

        # --- init ---
        run_id = compute_run_id(source_text)
        set_run_context(run_id, board_id, self._transport.name)
        self._enter("init")
        logger.info(
            "Running in %s mode with %s transport",
            "EXECUTE" if config.execute else "PREVIEW", self._transport.name,
        )
        extracted = await self._extractor.extract(source_text)
        logger.info(
            "Extracted counts: insights=%d risks=%d run_id=%s",
            len(extracted.insights), len(extracted.risks), run_id,
        )
        insights = [decorate(text, run_id) for text in extracted.insights]
        risks = [decorate(text, run_id) for text in extracted.risks]

        # --- ensure_containers ---
        self._enter("ensure_containers")
        insights_frame = await self._transport.ensure_container(
            board_id, settings.insights_frame_title,
            settings.insights_frame_x, settings.frame_y,
            settings.frame_width, settings.frame_height,
        )
        risks_frame = await self._transport.ensure_container(
            board_id, settings.risks_frame_title,
            settings.risks_frame_x, settings.frame_y,
            settings.frame_width, settings.frame_height,
        )

        # --- list_existing ---
        self._enter("list_existing")
        existing_insights, existing_risks = await self._list_both(
            insights_frame, risks_frame
        )

        # --- compute_delta ---
        self._enter("compute_delta")
        insights_todo, insights_skipped = compute_delta(insights, existing_insights, run_id)
        risks_todo, risks_skipped = compute_delta(risks, existing_risks, run_id)
        logger.info(
            "Delta: insights %d new / %d skipped, risks %d new / %d skipped",
            len(insights_todo), len(insights_skipped),
            len(risks_todo), len(risks_skipped),
        )

        # --- layout ---
        self._enter("layout")
        insight_notes = grid_layout(insights_frame, insights_todo, self._layout)
        risk_notes = grid_layout(risks_frame, risks_todo, self._layout)

        preview = SyncPreview(
            board_id=board_id,
            run_id=run_id,
            containers=[
                ContainerPlan(
                    id=insights_frame.id,
                    title=insights_frame.title,
                    existing_with_run_id=count_marked(existing_insights, run_id),
                    to_create=len(insight_notes),
                    skipped=len(insights_skipped),
                ),
                ContainerPlan(
                    id=risks_frame.id,
                    title=risks_frame.title,
                    existing_with_run_id=count_marked(existing_risks, run_id),
                    to_create=len(risk_notes),
                    skipped=len(risks_skipped),
                ),
            ],
            total_to_create=len(insight_notes) + len(risk_notes),
            sample={
                "insight": insight_notes[0] if insight_notes else None,
                "risk": risk_notes[0] if risk_notes else None,
            },
        )

        if not config.execute:
            set_step(None)
            logger.info("Preview complete; pass --execute to create items on the board")
            return SyncReport(mode="preview", board_id=board_id, run_id=run_id, preview=preview)

        # --- batch_create ---
        self._enter("batch_create")
        chunk = settings.batch_chunk_size
        created_insights = await self._transport.batch_create(board_id, insight_notes, chunk)
        created_risks = await self._transport.batch_create(board_id, risk_notes, chunk)

        # --- verify ---
        self._enter("verify")
        post_insights, post_risks = await self._list_both(insights_frame, risks_frame)
        verify = VerifyResult(
            insights_with_run_id=count_marked(post_insights, run_id),
            risks_with_run_id=count_marked(post_risks, run_id),
            expected_insights=len(insights),
            expected_risks=len(risks),
        )
        if not verify.consistent:
            logger.warning(
                "Verification mismatch: insights %d/%d, risks %d/%d carry run marker",
                verify.insights_with_run_id, verify.expected_insights,
                verify.risks_with_run_id, verify.expected_risks,
            )

        # --- report ---
        self._enter("report")
        report = _build_report(board_id, run_id, preview, verify, [created_insights, created_risks])
        logger.info("Run complete: created=%d failed=%d", report.created, report.failed)
        set_step(None)
        return report

    async def _list_both(
        self, first: Container, second: Container
    ) -> tuple[list[BoardItem], list[BoardItem]]:
        """List both containers concurrently; both finish before anything else runs."""
        board_id = self._config.board_id
        first_items, second_items = await asyncio.gather(
            self._transport.list_items_in_container(board_id, first.id),
            self._transport.list_items_in_container(board_id, second.id),
        )
        return first_items, second_items

    @staticmethod
    def _enter(step: str) -> None:
        set_step(step)
        logger.debug("Entering step %s", step)


def _build_report(
    board_id: str,
    run_id: str,
    preview: SyncPreview,
    verify: VerifyResult,
    results: list[BatchResult],
) -> SyncReport:
    failures = [
        FailureReport(
            content=failure.note.content[:DIAGNOSTIC_LIMIT],
            error=failure.error[:DIAGNOSTIC_LIMIT],
            status=failure.status,
            body=failure.body[:DIAGNOSTIC_LIMIT] if failure.body else None,
        )
        for result in results
        for failure in result.failed
    ]
    return SyncReport(
        mode="execute",
        board_id=board_id,
        run_id=run_id,
        preview=preview,
        created=sum(r.ok for r in results),
        failed=sum(len(r.failed) for r in results),
        created_ids=[item_id for r in results for item_id in r.created],
        verify=verify,
        failures=failures,
    )
