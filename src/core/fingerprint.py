# src/core/fingerprint.py — v1
"""Run identifiers and run-marker decoration.

A run id is a short, deterministic fingerprint of the source content. It is
embedded in every produced item so a later run can recognise its own output.
Recognition is an exact, case-sensitive substring test on the marker.
"""

from __future__ import annotations

import hashlib
import html
import re

RUN_ID_LENGTH = 10

_TAG_RE = re.compile(r"<[^>]+>")
_BREAK_RE = re.compile(r"<br\s*/?>|</p>\s*<p>", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")


def compute_run_id(content: str | bytes) -> str:
    """First 10 hex chars of SHA-256 over the content. No salt, no clock."""
    raw = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(raw).hexdigest()[:RUN_ID_LENGTH]


def run_marker(run_id: str) -> str:
    return f"[runId:{run_id}]"


def decorate(text: str, run_id: str) -> str:
    """Append the run marker after a blank line."""
    return f"{text}\n\n{run_marker(run_id)}"


def has_marker(content: str | None, run_id: str) -> bool:
    """True iff ``content`` carries this exact run's marker.

    Content is HTML-unescaped first because board services echo text back
    with entities; the comparison itself is case-sensitive.
    """
    if not isinstance(content, str):
        return False
    return run_marker(run_id) in html.unescape(content)


def normalize_text(text: str) -> str:
    """Collapse whitespace in plain text. Angle brackets are kept as written."""
    return _WS_RE.sub(" ", text).strip()


def normalize_content(content: str) -> str:
    """Reduce board-echoed HTML content to comparable plain text.

    Drops markup, unescapes entities and collapses whitespace, so
    ``"<p>Foo</p><p>[runId:x]</p>"`` and ``"Foo\\n\\n[runId:x]"`` compare equal.
    Only meant for markup: on plain text a literal ``a < b > c`` loses its
    bracketed span.
    """
    text = _BREAK_RE.sub(" ", content)
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text)
    return normalize_text(text)


def content_keys(content: str) -> set[str]:
    """Comparison keys for board content, which may come back as HTML or as plain text.

    Local decorated text is matched against these keys with ``normalize_text``.
    """
    return {normalize_content(content), normalize_text(content)}
