# src/logging/context.py — v1
"""Contextual logging support: attach run_id, board_id, transport and step to records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_board_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "board_id", default=None
)
_transport: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "transport", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    board_id: str | None = None
    transport: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        board_id=_board_id.get(),
        transport=_transport.get(),
        step=_step.get(),
    )


def set_run_context(run_id: str, board_id: str, transport: str | None = None) -> None:
    """Set run-level context (called once per reconciliation run)."""
    _run_id.set(run_id)
    _board_id.set(board_id)
    _transport.set(transport)


def set_step(step: str | None) -> None:
    """Record the orchestrator state currently executing."""
    _step.set(step)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _board_id.set(None)
    _transport.set(None)
    _step.set(None)
