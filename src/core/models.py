# src/core/models.py — v1
"""Board domain models: Container, BoardItem, StickyNote, BatchResult, reports."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field


class Container(BaseModel):
    """Named rectangular region on the board (a frame).

    Coordinates are the centre of the region, as the board service reports them.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_payload(
        cls,
        raw: dict[str, Any],
        title: str,
        x: float,
        y: float,
        width: float,
        height: float,
    ) -> Container:
        """Map a board payload (``position``/``geometry``) onto a Container.

        Requested values fill in whatever the payload omits.
        """
        position = raw.get("position") or {}
        geometry = raw.get("geometry") or {}
        return cls(
            id=str(raw["id"]),
            title=title,
            x=position.get("x", x),
            y=position.get("y", y),
            width=geometry.get("width", width),
            height=geometry.get("height", height),
        )

    @property
    def left(self) -> float:
        return self.x - self.width / 2

    @property
    def top(self) -> float:
        return self.y - self.height / 2


class BoardItem(BaseModel):
    """An item already present on the board, as returned by a listing."""

    id: str | None = None
    content: str = ""
    parent_id: str | None = None
    item_type: str = "sticky_note"


class StickyNote(BaseModel):
    """A decorated item with its computed board position (absolute coordinates)."""

    content: str
    x: float
    y: float
    width: float | None = None
    height: float | None = None
    item_id: str | None = None
    container_id: str | None = None
    container_left: float | None = None
    container_top: float | None = None

    def relative_position(self) -> tuple[float, float]:
        """Position relative to the container's top-left corner.

        Falls back to absolute coordinates when no container origin is known.
        """
        if self.container_left is None or self.container_top is None:
            return self.x, self.y
        return self.x - self.container_left, self.y - self.container_top


class BatchFailure(BaseModel):
    """One item that could not be created, with the captured error."""

    note: StickyNote
    error: str
    status: int | None = None
    body: str | None = None


class BatchResult(BaseModel):
    """Outcome of a batch write. ``ok + len(failed)`` equals the items attempted."""

    ok: int = 0
    created: list[str] = Field(default_factory=list)
    failed: list[BatchFailure] = Field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.ok + len(self.failed)

    def record_success(self, item_id: str | None) -> None:
        self.ok += 1
        if item_id:
            self.created.append(item_id)

    def record_failure(self, note: StickyNote, error: Exception) -> None:
        body = getattr(error, "body", None)
        self.failed.append(
            BatchFailure(
                note=note,
                error=str(error) or type(error).__name__,
                status=getattr(error, "status", None),
                body=body if isinstance(body, str) else None,
            )
        )


class ContainerPlan(BaseModel):
    """Per-container preview of what a run would write."""

    id: str
    title: str
    existing_with_run_id: int
    to_create: int
    skipped: int


class SyncPreview(BaseModel):
    """Read-only summary produced before any write (always built, printed in preview mode)."""

    board_id: str
    run_id: str
    containers: list[ContainerPlan]
    total_to_create: int
    sample: dict[str, StickyNote | None] = Field(default_factory=dict)


class VerifyResult(BaseModel):
    """Post-write count of items carrying the current run marker."""

    insights_with_run_id: int
    risks_with_run_id: int
    expected_insights: int
    expected_risks: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def consistent(self) -> bool:
        return (
            self.insights_with_run_id == self.expected_insights
            and self.risks_with_run_id == self.expected_risks
        )


class FailureReport(BaseModel):
    """Truncated diagnostic for a failed item."""

    content: str
    error: str
    status: int | None = None
    body: str | None = None


class SyncReport(BaseModel):
    """Final outcome of a reconciliation run."""

    mode: Literal["preview", "execute"]
    board_id: str
    run_id: str
    preview: SyncPreview
    created: int = 0
    failed: int = 0
    created_ids: list[str] = Field(default_factory=list)
    verify: VerifyResult | None = None
    failures: list[FailureReport] = Field(default_factory=list)
