# src/layout/grid.py — v1
"""Deterministic grid placement of notes inside a container.

Pure function of its inputs: no I/O, no clock, no randomness. Calling it
again with the same arguments yields identical coordinates.
"""

from __future__ import annotations

from dataclasses import dataclass

from boardsync.core.models import Container, StickyNote


@dataclass(frozen=True)
class LayoutConfig:
    """Grid parameters, in board units."""

    columns: int = 3
    gap: float = 20.0
    padding: float = 40.0
    item_width: float = 180.0
    item_height: float = 120.0

    def __post_init__(self) -> None:
        if self.columns < 1:
            raise ValueError("columns must be >= 1")


def grid_position(
    container: Container, index: int, config: LayoutConfig
) -> tuple[float, float]:
    """Absolute (x, y) of the ``index``-th cell, filling rows left to right."""
    anchor_x = container.left + config.padding
    anchor_y = container.top + config.padding
    col = index % config.columns
    row = index // config.columns
    return (
        anchor_x + col * (config.item_width + config.gap),
        anchor_y + row * (config.item_height + config.gap),
    )


def grid_layout(
    container: Container,
    texts: list[str],
    config: LayoutConfig | None = None,
) -> list[StickyNote]:
    """Place ``texts`` in order on a grid anchored at the container's top-left.

    Args:
        container: Target container (centre coordinates + size).
        texts: Decorated item texts, in display order.
        config: Grid parameters. Defaults to 3 columns of 180x120 notes.

    Returns:
        One StickyNote per text, parented to the container.
    """
    config = config or LayoutConfig()
    notes: list[StickyNote] = []
    for index, text in enumerate(texts):
        x, y = grid_position(container, index, config)
        notes.append(
            StickyNote(
                content=text,
                x=x,
                y=y,
                width=config.item_width,
                container_id=container.id,
                container_left=container.left,
                container_top=container.top,
            )
        )
    return notes
