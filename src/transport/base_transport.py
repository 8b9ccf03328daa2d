# src/transport/base_transport.py — v1
"""Abstract board transport: the capability contract the orchestrator drives.

Implementations: RestTransport (direct HTTP) and StdioBoardTransport
(JSON-RPC tool server over a child process's pipes).
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from boardsync.core.models import BatchResult, BoardItem, Container, StickyNote


class BaseBoardTransport(ABC):
    """Unified interface for board write paths.

    ``ensure_container`` and ``list_items_in_container`` raise on failure.
    ``batch_create`` never raises for an individual item: failures are
    captured in the returned BatchResult.
    """

    async def connect(self) -> None:
        """Open the underlying connection. No-op by default."""

    async def close(self) -> None:
        """Release the underlying connection. No-op by default."""

    async def __aenter__(self) -> BaseBoardTransport:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    @abstractmethod
    def name(self) -> str:
        """Transport identifier (rest, stdio)."""

    @abstractmethod
    async def ensure_container(
        self,
        board_id: str,
        title: str,
        x: float,
        y: float,
        width: float,
        height: float,
    ) -> Container:
        """Return the container whose trimmed title matches, creating it if absent."""

    @abstractmethod
    async def list_items_in_container(
        self, board_id: str, container_id: str
    ) -> list[BoardItem]:
        """List items parented to a container. Order is irrelevant."""

    @abstractmethod
    async def batch_create(
        self, board_id: str, notes: list[StickyNote], chunk_size: int = 20
    ) -> BatchResult:
        """Create every note independently; one failure never aborts the rest."""
