# src/transport/stdio/protocol.py — v1
"""JSON-RPC framing primitives for newline-delimited stdio streams.

``LineBuffer`` turns an unaligned byte stream into complete lines.
``PendingRequests`` correlates responses to outstanding requests by id.
Both are used from a single event loop and need no locking.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"


class LineBuffer:
    """Accumulate stream chunks and release only newline-terminated lines.

    Bytes are split before decoding, so a multi-byte character cut in half
    by a chunk boundary is reassembled intact.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> list[str]:
        """Append a chunk and return every line completed by it (blank lines dropped)."""
        self._buffer.extend(chunk)
        lines: list[str] = []
        while True:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                break
            raw = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            line = raw.decode("utf-8", errors="replace").strip()
            if line:
                lines.append(line)
        return lines

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet forming a complete line."""
        return len(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()


class PendingRequests:
    """Outstanding request table: id -> future.

    Every entry leaves the table exactly once, through ``resolve`` (a matching
    response arrived) or ``discard`` (the caller gave up).
    """

    def __init__(self) -> None:
        self._futures: dict[int, asyncio.Future[dict[str, Any]]] = {}

    def register(self, request_id: int, future: asyncio.Future[dict[str, Any]]) -> None:
        if request_id in self._futures:
            raise ValueError(f"Request id {request_id} already pending")
        self._futures[request_id] = future

    def resolve(self, request_id: int, message: dict[str, Any]) -> bool:
        """Hand ``message`` to the waiter for ``request_id``. Unknown ids are ignored."""
        future = self._futures.pop(request_id, None)
        if future is None:
            return False
        if not future.done():
            future.set_result(message)
        return True

    def discard(self, request_id: int) -> None:
        self._futures.pop(request_id, None)

    def fail_all(self, error: BaseException) -> None:
        """Fail and drop every outstanding request (process exit, close)."""
        futures = list(self._futures.values())
        self._futures.clear()
        for future in futures:
            if not future.done():
                future.set_exception(error)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._futures

    def __len__(self) -> int:
        return len(self._futures)


def encode_request(request_id: int, method: str, params: dict[str, Any] | None = None) -> bytes:
    """Serialize a request as one newline-terminated JSON record."""
    message: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return (json.dumps(message, separators=(",", ":")) + "\n").encode("utf-8")


def encode_notification(method: str, params: dict[str, Any] | None = None) -> bytes:
    """Serialize a notification (no id, no response expected)."""
    message: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        message["params"] = params
    return (json.dumps(message, separators=(",", ":")) + "\n").encode("utf-8")


def parse_response(line: str) -> tuple[int, dict[str, Any]] | None:
    """Parse a line into (id, message) if it is a JSON object with an integer id.

    Anything else (log noise, notifications, string ids) yields None.
    """
    try:
        message = json.loads(line)
    except ValueError:
        logger.debug("Ignoring non-JSON line from tool server: %.120s", line)
        return None
    if not isinstance(message, dict):
        return None
    request_id = message.get("id")
    if isinstance(request_id, bool) or not isinstance(request_id, int):
        return None
    return request_id, message


def extract_text(result: dict[str, Any]) -> str | None:
    """Join the text blocks of a tool result, or None when it has no content list."""
    content = result.get("content")
    if not isinstance(content, list):
        return None
    return "\n".join(
        block["text"]
        for block in content
        if isinstance(block, dict)
        and block.get("type") == "text"
        and isinstance(block.get("text"), str)
    )
