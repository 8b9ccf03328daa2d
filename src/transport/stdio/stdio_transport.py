# src/transport/stdio/stdio_transport.py — v1
"""Board transport backed by a stdio JSON-RPC tool server.

Maps the three contract operations onto the server's tools through the
capability table. Containers are created as rectangle shapes (the server
models frames as generic shapes); notes are created one call at a time with
a short pause between calls to stay under the server's own rate limits.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from boardsync.core.models import BatchResult, BoardItem, Container, StickyNote
from boardsync.transport.base_transport import BaseBoardTransport
from boardsync.transport.errors import NotConnectedError
from boardsync.transport.stdio.capabilities import (
    REQUIRED_OPERATIONS,
    Capability,
    CapabilityTable,
)
from boardsync.transport.stdio.client import StdioRpcClient
from boardsync.transport.stdio.decoders import decoder_for

logger = logging.getLogger(__name__)

NOTE_COLOR = "yellow"


class StdioBoardTransport(BaseBoardTransport):
    """Adapt the transport contract onto ``tools/call`` invocations."""

    def __init__(
        self,
        client: StdioRpcClient,
        capabilities: CapabilityTable | None = None,
        inter_call_delay_s: float = 0.1,
        discover_tools: bool = False,
    ) -> None:
        self._client = client
        self._capabilities = capabilities or CapabilityTable()
        self._inter_call_delay_s = inter_call_delay_s
        self._discover_tools = discover_tools

    @property
    def name(self) -> str:
        return "stdio"

    @property
    def capabilities(self) -> CapabilityTable:
        return self._capabilities

    async def connect(self) -> None:
        """Connect, optionally replace the catalog via discovery, then validate it.

        Raises:
            MissingCapabilityError: A required operation has no tool.
        """
        await self._client.connect()
        try:
            if self._discover_tools:
                tools = await self._client.list_tools()
                if tools:
                    self._capabilities = CapabilityTable.from_tool_list(tools)
            self._capabilities.validate(REQUIRED_OPERATIONS)
        except BaseException:
            await self._client.close()
            raise
        logger.info("Tool catalog: %s", ", ".join(self._capabilities.names))

    async def close(self) -> None:
        await self._client.close()

    # --- Contract ---

    async def ensure_container(
        self,
        board_id: str,
        title: str,
        x: float,
        y: float,
        width: float,
        height: float,
    ) -> Container:
        self._require_connected()
        wanted = title.strip()
        frames_tool = self._capabilities.resolve("list_containers")
        if frames_tool is not None:
            frames = await self._call(frames_tool, "list_containers", {"boardId": board_id})
            for frame in _as_list(frames):
                frame_title = ((frame or {}).get("data") or {}).get("title")
                if isinstance(frame_title, str) and frame_title.strip() == wanted:
                    logger.info("Reusing container '%s' (%s)", wanted, frame.get("id"))
                    return Container.from_payload(frame, title, x, y, width, height)

        create_tool = self._capabilities.require("create_container")
        created = await self._call(
            create_tool,
            "create_container",
            {
                "boardId": board_id,
                "shape": "rectangle",
                "content": title,
                "style": {
                    "fillColor": "transparent",
                    "borderColor": "#333333",
                    "borderWidth": 2,
                },
                "position": {"x": x, "y": y},
                "geometry": {"width": width, "height": height},
            },
        )
        if not isinstance(created, dict):
            created = {}
        if not created.get("id"):
            created = {**created, "id": f"shape_{int(time.time() * 1000)}"}
            logger.warning("Server returned no id for '%s'; using %s", wanted, created["id"])
        logger.info("Created container '%s' (%s)", wanted, created["id"])
        return Container.from_payload(created, title, x, y, width, height)

    async def list_items_in_container(
        self, board_id: str, container_id: str
    ) -> list[BoardItem]:
        self._require_connected()
        tool = self._capabilities.resolve("items_in_container")
        if tool is None:
            # Dedupe degrades: without this tool existing notes are invisible.
            logger.warning("No items-in-container tool; assuming container %s is empty", container_id)
            return []
        result = await self._call(
            tool, "items_in_container", {"boardId": board_id, "frameId": container_id}
        )
        items: list[BoardItem] = []
        for raw in _as_list(result):
            if not isinstance(raw, dict) or raw.get("type") != "sticky_note":
                continue
            data = raw.get("data") or {}
            content = data.get("content")
            items.append(
                BoardItem(
                    id=str(raw["id"]) if raw.get("id") is not None else None,
                    content=content if isinstance(content, str) else "",
                    parent_id=container_id,
                    item_type="sticky_note",
                )
            )
        return items

    async def batch_create(
        self, board_id: str, notes: list[StickyNote], chunk_size: int = 20
    ) -> BatchResult:
        self._require_connected()
        tool = self._capabilities.require("create_item")
        result = BatchResult()
        chunk_size = max(1, chunk_size)

        for index, note in enumerate(notes, start=1):
            try:
                created = await self._call(
                    tool,
                    "create_item",
                    {
                        "boardId": board_id,
                        "content": note.content,
                        "x": note.x,
                        "y": note.y,
                        "color": NOTE_COLOR,
                    },
                )
            except Exception as exc:
                logger.warning("Failed to create note %r: %s", note.content[:30], exc)
                result.record_failure(note, exc)
            else:
                result.record_success(_created_id(created))

            if index % chunk_size == 0 or index == len(notes):
                logger.info(
                    "Batch progress: %d/%d (ok=%d, failed=%d)",
                    index, len(notes), result.ok, len(result.failed),
                )
            if index < len(notes) and self._inter_call_delay_s > 0:
                await asyncio.sleep(self._inter_call_delay_s)

        return result

    # --- Internal helpers ---

    def _require_connected(self) -> None:
        if not self._client.connected:
            raise NotConnectedError("Tool server transport not connected")

    async def _call(self, tool: Capability, operation: str, arguments: dict[str, Any]) -> Any:
        return await self._client.call_tool(tool.name, arguments, decoder=decoder_for(operation))


def _as_list(result: Any) -> list[Any]:
    """Listings come back as a bare list or wrapped in ``data``/``items``."""
    if isinstance(result, list):
        return result
    if isinstance(result, dict):
        for key in ("data", "items"):
            if isinstance(result.get(key), list):
                return result[key]
    return []


def _created_id(created: Any) -> str | None:
    if not isinstance(created, dict):
        return None
    item_id = created.get("id")
    if item_id is not None:
        return str(item_id)
    text = created.get("result")
    if isinstance(text, str):
        return decoder_for("create_item").decode(text).get("id")
    return None
