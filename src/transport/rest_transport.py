# src/transport/rest_transport.py — v1
"""Board transport over the Miro v2 REST API.

Every request runs inside ``with_backoff``: a non-2xx response raises
BoardApiError within the retried call, so 429/5xx are retried and 401/403
fail fast. The service has no bulk-write endpoint and no server-side parent
filter, so notes are created one request at a time and listings are
filtered client-side.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from boardsync.core.models import BatchResult, BoardItem, Container, StickyNote
from boardsync.core.retry import BackoffPolicy, with_backoff
from boardsync.transport.base_transport import BaseBoardTransport
from boardsync.transport.errors import BoardApiError, NotConnectedError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.miro.com/v2"


class RestTransport(BaseBoardTransport):
    """Direct HTTP transport with bearer authentication."""

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        page_limit: int = 50,
        timeout_s: float = 30.0,
        policy: BackoffPolicy | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize REST transport.

        Args:
            token: Bearer access token.
            base_url: API root (e.g. https://api.miro.com/v2).
            page_limit: Upper bound on items per listing request.
            timeout_s: Per-request timeout.
            policy: Retry schedule applied to every request.
            client: Pre-built client (tests inject one with a MockTransport).
        """
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._page_limit = page_limit
        self._timeout_s = timeout_s
        self._policy = policy
        self._client = client
        self._owns_client = client is None

    @property
    def name(self) -> str:
        return "rest"

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={"Authorization": f"Bearer {self._token}"},
                timeout=self._timeout_s,
            )
            self._owns_client = True

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

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
        frames = await self._get(
            f"/boards/{board_id}/items",
            params={"type": "frame", "limit": self._page_limit},
        )
        wanted = title.strip()
        for frame in frames.get("data") or []:
            frame_title = ((frame or {}).get("data") or {}).get("title")
            if isinstance(frame_title, str) and frame_title.strip() == wanted:
                logger.info("Reusing container '%s' (%s)", wanted, frame.get("id"))
                return Container.from_payload(frame, title, x, y, width, height)

        created = await self._post(
            f"/boards/{board_id}/frames",
            {
                "data": {"title": title},
                "position": {"x": x, "y": y},
                "geometry": {"width": width, "height": height},
                "style": {"fillColor": "transparent"},
            },
        )
        logger.info("Created container '%s' (%s)", wanted, created.get("id"))
        return Container.from_payload(created, title, x, y, width, height)

    async def list_items_in_container(
        self, board_id: str, container_id: str
    ) -> list[BoardItem]:
        notes = await self._get(
            f"/boards/{board_id}/items",
            params={"type": "sticky_note", "limit": self._page_limit},
        )
        items: list[BoardItem] = []
        for raw in notes.get("data") or []:
            parent = (raw or {}).get("parent") or {}
            if str(parent.get("id")) != container_id:
                continue
            items.append(_to_board_item(raw))
        return items

    async def batch_create(
        self, board_id: str, notes: list[StickyNote], chunk_size: int = 20
    ) -> BatchResult:
        result = BatchResult()
        chunk_size = max(1, chunk_size)
        for start in range(0, len(notes), chunk_size):
            chunk = notes[start : start + chunk_size]
            for note in chunk:
                try:
                    created = await self._create_sticky(board_id, note)
                except Exception as exc:
                    logger.warning(
                        "Failed to create note %r: %s", note.content[:30], exc
                    )
                    result.record_failure(note, exc)
                    continue
                result.record_success(created.get("id"))
            logger.info(
                "Batch progress: %d/%d (ok=%d, failed=%d)",
                min(start + chunk_size, len(notes)), len(notes),
                result.ok, len(result.failed),
            )
        return result

    # --- Internal helpers ---

    async def _create_sticky(self, board_id: str, note: StickyNote) -> dict[str, Any]:
        body: dict[str, Any] = {"data": {"content": note.content}}
        if note.container_id:
            # Child coordinates are relative to the parent's top-left corner.
            rel_x, rel_y = note.relative_position()
            body["position"] = {"x": rel_x, "y": rel_y}
            body["parent"] = {"id": note.container_id}
        else:
            body["position"] = {"x": note.x, "y": note.y}
        if note.width:
            body["geometry"] = {"width": note.width}
        return await self._post(f"/boards/{board_id}/sticky_notes", body)

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        self._require_client()
        return await with_backoff(
            self._request, "GET", path, params=params,
            label=f"GET {path}", policy=self._policy,
        )

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        self._require_client()
        return await with_backoff(
            self._request, "POST", path, json=body,
            label=f"POST {path}", policy=self._policy,
        )

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise NotConnectedError("REST transport not connected")
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        client = self._require_client()
        response = await client.request(method, path, params=params, json=json)
        if response.is_error:
            raise BoardApiError(method, path, response.status_code, response.text)
        if not response.content:
            return {}
        return response.json()


def _to_board_item(raw: dict[str, Any]) -> BoardItem:
    data = raw.get("data") or {}
    parent = raw.get("parent") or {}
    content = data.get("content")
    return BoardItem(
        id=str(raw["id"]) if raw.get("id") is not None else None,
        content=content if isinstance(content, str) else "",
        parent_id=str(parent["id"]) if parent.get("id") is not None else None,
        item_type=raw.get("type", "sticky_note"),
    )
