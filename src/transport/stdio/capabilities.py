# src/transport/stdio/capabilities.py — v1
"""Capability table: map logical board operations onto tool names.

The tool server's catalog is asserted, not negotiated: unless discovery is
enabled, the table holds the tools the board server is known to expose.
Operations resolve by testing ordered, case-insensitive name patterns
against the catalog; the first match wins. Required operations are checked
once at connect time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable

from boardsync.transport.errors import MissingCapabilityError


@dataclass(frozen=True)
class Capability:
    """A named remote operation reachable through ``tools/call``."""

    name: str
    description: str = ""


DEFAULT_CATALOG: tuple[Capability, ...] = (
    Capability("get_board_info", "Get information about a Miro board"),
    Capability("list_boards", "List available Miro boards"),
    Capability("create_sticky_note", "Create a sticky note on a board"),
    Capability("bulk_create_items", "Create multiple items at once"),
    Capability("create_shape", "Create a shape on a board"),
    Capability("get_frames", "Get all frames from a board"),
    Capability("get_items_in_frame", "Get items in a specific frame"),
)

OPERATION_PATTERNS: dict[str, tuple[str, ...]] = {
    "list_containers": (r"get_?frames",),
    "create_container": (r"create_?shape",),
    "items_in_container": (r"get_?items_?in_?frame",),
    "create_item": (r"create_?sticky", r"create_?sticky_?note"),
}

REQUIRED_OPERATIONS: tuple[str, ...] = ("create_container", "create_item")


class CapabilityTable:
    """Resolve operations to capabilities over a fixed catalog."""

    def __init__(self, catalog: Iterable[Capability] = DEFAULT_CATALOG) -> None:
        self._catalog = list(catalog)
        self._compiled = {
            op: [re.compile(p, re.IGNORECASE) for p in patterns]
            for op, patterns in OPERATION_PATTERNS.items()
        }

    @classmethod
    def from_tool_list(cls, tools: Iterable[dict[str, Any]]) -> CapabilityTable:
        """Build a table from a ``tools/list`` answer."""
        return cls(
            Capability(name=t["name"], description=t.get("description") or "")
            for t in tools
            if isinstance(t, dict) and isinstance(t.get("name"), str)
        )

    @property
    def names(self) -> list[str]:
        return [c.name for c in self._catalog]

    def resolve(self, operation: str) -> Capability | None:
        """First catalog entry matching the operation's patterns, in pattern order."""
        for pattern in self._compiled.get(operation, []):
            for capability in self._catalog:
                if pattern.search(capability.name):
                    return capability
        return None

    def require(self, operation: str) -> Capability:
        capability = self.resolve(operation)
        if capability is None:
            raise MissingCapabilityError([operation], self.names)
        return capability

    def validate(self, required: Iterable[str] = REQUIRED_OPERATIONS) -> None:
        """Fail fast, naming every required operation with no capability."""
        missing = [op for op in required if self.resolve(op) is None]
        if missing:
            raise MissingCapabilityError(missing, self.names)
