# src/transport/errors.py — v1
"""Transport error hierarchy.

Errors carry an optional HTTP-style ``status`` so the retry layer can tell
auth failures (fail fast) from transient ones.
"""

from __future__ import annotations


class TransportError(Exception):
    """Base class for board transport failures."""

    def __init__(self, message: str, status: int | None = None, body: str | None = None):
        self.status = status
        self.body = body
        super().__init__(message)


class BoardApiError(TransportError):
    """Non-2xx response from the board REST service."""

    def __init__(self, method: str, path: str, status: int, body: str = ""):
        self.method = method
        self.path = path
        super().__init__(f"Board {method} {path} -> {status}", status=status, body=body)


class NotConnectedError(TransportError):
    """Call issued before the transport became ready, or after it was closed."""


class ProtocolTimeoutError(TransportError):
    """A stdio request went unanswered within its bound."""


class ToolCallError(TransportError):
    """The tool server answered with a JSON-RPC error or an error result."""

    def __init__(self, tool: str, message: str, code: int | None = None):
        self.tool = tool
        self.code = code
        super().__init__(f"Tool '{tool}' failed: {message}", body=message)


class MissingCapabilityError(TransportError):
    """The tool catalog has no capability for a required operation."""

    def __init__(self, operations: list[str], available: list[str]):
        self.operations = operations
        self.available = available
        super().__init__(
            f"Missing capability for: {', '.join(operations)}. "
            f"Available tools: {', '.join(available) or '(none)'}"
        )
