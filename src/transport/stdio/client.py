# src/transport/stdio/client.py — v1
"""JSON-RPC client for a tool server spawned as a child process.

Requests are newline-delimited JSON records written to the child's stdin.
A reader task reassembles stdout into lines and resolves pending requests
by id. stderr is logged as diagnostics and never parsed.

Lifecycle::

    client = StdioRpcClient("node", ["./server.js", "--token", token])
    await client.connect()          # initialize handshake, 5 s bound
    result = await client.call_tool("create_sticky_note", {...})  # 10 s bound
    await client.close()
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
import os
from typing import Any, Callable

from boardsync.transport.errors import (
    NotConnectedError,
    ProtocolTimeoutError,
    ToolCallError,
    TransportError,
)
from boardsync.transport.stdio.decoders import BaseResponseDecoder
from boardsync.transport.stdio.protocol import (
    LineBuffer,
    PendingRequests,
    encode_notification,
    encode_request,
    extract_text,
    parse_response,
)

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
CLIENT_INFO = {"name": "boardsync", "version": "0.1.0"}
_READ_CHUNK = 65536


class StdioRpcClient:
    """Speak JSON-RPC to a child process over its standard pipes."""

    def __init__(
        self,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        connect_timeout_s: float = 5.0,
        call_timeout_s: float = 10.0,
    ) -> None:
        self._command = command
        self._args = list(args or [])
        self._env = dict(env or {})
        self._connect_timeout_s = connect_timeout_s
        self._call_timeout_s = call_timeout_s

        self._process: asyncio.subprocess.Process | None = None
        self._ids = itertools.count(1)
        self._pending = PendingRequests()
        self._buffer = LineBuffer()
        self._reader_task: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._ready = False
        self.server_info: dict[str, Any] = {}

    @property
    def connected(self) -> bool:
        return self._ready and self._process is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # --- Lifecycle ---

    async def connect(self) -> None:
        """Spawn the server and complete the initialize handshake.

        Raises:
            ProtocolTimeoutError: No initialize response within the bound.
            ToolCallError: The server rejected initialize.
        """
        logger.info("Starting tool server: %s %s", self._command, " ".join(self._redacted_args()))
        self._process = await asyncio.create_subprocess_exec(
            self._command,
            *self._args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env={**os.environ, **self._env},
        )
        self._reader_task = asyncio.create_task(self._read_stdout())
        self._stderr_task = asyncio.create_task(self._read_stderr())

        try:
            response = await self._request(
                "initialize",
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": CLIENT_INFO,
                },
                timeout_s=self._connect_timeout_s,
                timeout_message="Connection timeout",
            )
            if "error" in response:
                raise ToolCallError("initialize", _error_message(response["error"]))
        except BaseException:
            await self.close()
            raise

        result = response.get("result")
        self.server_info = result if isinstance(result, dict) else {}
        self._ready = True
        await self._write(encode_notification("notifications/initialized"))
        logger.info(
            "Connected to tool server %s",
            (self.server_info.get("serverInfo") or {}).get("name", self._command),
        )

    async def close(self) -> None:
        """Terminate the child and fail anything still waiting."""
        self._ready = False
        process, self._process = self._process, None

        if process is not None and process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=2.0)
            except asyncio.TimeoutError:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        for task in (self._reader_task, self._stderr_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._reader_task = self._stderr_task = None

        self._pending.fail_all(NotConnectedError("Tool server connection closed"))
        self._buffer.clear()
        if process is not None:
            logger.info("Disconnected from tool server")

    # --- Calls ---

    async def list_tools(self) -> list[dict[str, Any]]:
        """Ask the server for its tool catalog (``tools/list``)."""
        self._require_ready()
        response = await self._request("tools/list", {}, timeout_s=self._call_timeout_s)
        if "error" in response:
            raise ToolCallError("tools/list", _error_message(response["error"]))
        tools = (response.get("result") or {}).get("tools")
        return tools if isinstance(tools, list) else []

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any],
        decoder: BaseResponseDecoder | Callable[[str], Any] | None = None,
    ) -> Any:
        """Invoke a tool and decode its result.

        Text content blocks are joined and parsed as JSON; if that fails the
        ``decoder`` (if any) interprets the text. Results without a content
        list are returned as-is.

        Raises:
            NotConnectedError: Before connect() succeeded or after close().
            ProtocolTimeoutError: No response within the call bound.
            ToolCallError: JSON-RPC error, or a result flagged ``isError``.
        """
        self._require_ready()
        logger.debug("Calling tool %s with %s", name, json.dumps(arguments, default=str)[:500])
        response = await self._request(
            "tools/call",
            {"name": name, "arguments": arguments},
            timeout_s=self._call_timeout_s,
            timeout_message=f"Tool call timeout: {name}",
        )
        if "error" in response:
            error = response["error"]
            raise ToolCallError(
                name,
                _error_message(error),
                code=error.get("code") if isinstance(error, dict) else None,
            )

        result = response.get("result")
        if not isinstance(result, dict):
            return result

        text = extract_text(result)
        if text is None:
            return result
        if result.get("isError"):
            raise ToolCallError(name, text or "tool reported an error")

        try:
            return json.loads(text)
        except ValueError:
            pass
        if decoder is None:
            return {"result": text}
        if isinstance(decoder, BaseResponseDecoder):
            return decoder.decode(text)
        return decoder(text)

    # --- Internal helpers ---

    def _require_ready(self) -> None:
        if not self.connected:
            raise NotConnectedError("Tool server transport not connected")

    async def _request(
        self,
        method: str,
        params: dict[str, Any],
        timeout_s: float,
        timeout_message: str | None = None,
    ) -> dict[str, Any]:
        """Register, send, and await the response with the same id."""
        if self._process is None:
            raise NotConnectedError("Tool server transport not connected")

        request_id = next(self._ids)
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending.register(request_id, future)
        try:
            await self._write(encode_request(request_id, method, params))
            return await asyncio.wait_for(future, timeout=timeout_s)
        except asyncio.TimeoutError:
            raise ProtocolTimeoutError(
                timeout_message or f"Request timeout: {method}"
            ) from None
        finally:
            self._pending.discard(request_id)

    async def _write(self, payload: bytes) -> None:
        process = self._process
        if process is None or process.stdin is None:
            raise NotConnectedError("Tool server transport not connected")
        try:
            process.stdin.write(payload)
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise TransportError(f"Tool server stdin closed: {exc}") from exc

    def _on_chunk(self, chunk: bytes) -> None:
        """Feed a stdout chunk; resolve requests for every complete line."""
        for line in self._buffer.feed(chunk):
            parsed = parse_response(line)
            if parsed is None:
                continue
            request_id, message = parsed
            if not self._pending.resolve(request_id, message):
                logger.debug("Ignoring response for unknown request id %s", request_id)

    async def _read_stdout(self) -> None:
        process = self._process
        if process is None or process.stdout is None:
            return
        while True:
            chunk = await process.stdout.read(_READ_CHUNK)
            if not chunk:
                break
            self._on_chunk(chunk)
        logger.warning("Tool server closed stdout (exit code %s)", process.returncode)
        self._ready = False
        self._pending.fail_all(TransportError("Tool server exited"))

    async def _read_stderr(self) -> None:
        process = self._process
        if process is None or process.stderr is None:
            return
        while True:
            line = await process.stderr.readline()
            if not line:
                break
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                logger.debug("tool server stderr: %s", text)

    def _redacted_args(self) -> list[str]:
        """Args for logging, with the value following a --token flag hidden."""
        redacted: list[str] = []
        hide_next = False
        for arg in self._args:
            redacted.append("***" if hide_next else arg)
            hide_next = arg.lower() in ("--token", "--api-key")
        return redacted


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)
