# tests/conftest.py — v1
"""Shared test fixtures for all unit tests.

Provides settings, a run configuration, an in-memory board transport and a
scripted extractor. No network and no LLM: all I/O is faked.
"""

from __future__ import annotations

import html
import logging
from pathlib import Path

import pytest

from boardsync.config.settings import RunConfig, Settings
from boardsync.core.models import BatchResult, BoardItem, Container, StickyNote
from boardsync.extraction.base_extractor import BaseExtractor, ExtractedItems
from boardsync.logging.context import clear_context
from boardsync.transport.base_transport import BaseBoardTransport


# === FAKES ===


class FakeBoardTransport(BaseBoardTransport):
    """In-memory board: containers by title, notes by container id.

    Records every call in ``calls`` so tests can assert ordering and absence
    of writes. ``fail_contents`` makes batch_create fail for matching notes.
    ``echo_html`` stores content escaped and wrapped in paragraphs, the way
    the REST API echoes it.
    """

    def __init__(self, echo_html: bool = False) -> None:
        self.containers: dict[str, Container] = {}
        self.items: dict[str, list[BoardItem]] = {}
        self.calls: list[str] = []
        self.fail_contents: set[str] = set()
        self.drop_on_list: bool = False
        self.echo_html = echo_html
        self._next_id = 1

    @property
    def name(self) -> str:
        return "fake"

    @property
    def writes(self) -> list[str]:
        return [c for c in self.calls if c.startswith(("create_container", "batch_create"))]

    def _new_id(self) -> str:
        item_id = str(3458764500000000 + self._next_id)
        self._next_id += 1
        return item_id

    async def ensure_container(self, board_id, title, x, y, width, height) -> Container:
        self.calls.append(f"ensure_container:{title}")
        wanted = title.strip()
        if wanted in self.containers:
            return self.containers[wanted]
        self.calls.append(f"create_container:{title}")
        container = Container(id=self._new_id(), title=title, x=x, y=y, width=width, height=height)
        self.containers[wanted] = container
        self.items[container.id] = []
        return container

    async def list_items_in_container(self, board_id, container_id) -> list[BoardItem]:
        self.calls.append(f"list:{container_id}")
        if self.drop_on_list:
            return []
        return list(self.items.get(container_id, []))

    async def batch_create(self, board_id, notes: list[StickyNote], chunk_size=20) -> BatchResult:
        self.calls.append(f"batch_create:{len(notes)}")
        result = BatchResult()
        for note in notes:
            if any(text in note.content for text in self.fail_contents):
                result.record_failure(note, RuntimeError("Board POST -> 500"))
                continue
            item_id = self._new_id()
            content = note.content
            if self.echo_html:
                content = "<p>" + html.escape(content, quote=False).replace("\n\n", "</p><p>") + "</p>"
            self.items.setdefault(note.container_id or "", []).append(
                BoardItem(id=item_id, content=content, parent_id=note.container_id)
            )
            result.record_success(item_id)
        return result


class FakeExtractor(BaseExtractor):
    """Return fixed bullets, or raise a fixed error, and count calls."""

    def __init__(self, items: ExtractedItems | None = None, error: Exception | None = None):
        self.items = items or ExtractedItems()
        self.error = error
        self.calls = 0

    async def extract(self, source_text: str) -> ExtractedItems:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.items


# === FIXTURES ===


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Drop handlers installed by setup_logging so they never outlive a captured stream."""
    yield
    root = logging.getLogger("boardsync")
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.setLevel(logging.NOTSET)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any .env file, with credentials present."""
    return Settings(
        _env_file=None,
        miro_token="test-token",
        anthropic_api_key="test-key",
        miro_board_id="uXjVTestBoard=",
    )


@pytest.fixture
def source_file(tmp_path: Path) -> Path:
    path = tmp_path / "transcript.txt"
    path.write_text(
        "Alice: churn went down after onboarding changes.\n"
        "Bob: the vendor contract renews in March.\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def run_config(settings: Settings, source_file: Path) -> RunConfig:
    return RunConfig(
        board_id=settings.miro_board_id,
        source_path=source_file,
        execute=True,
        transport="rest",
        model=settings.llm_model,
        settings=settings,
    )


@pytest.fixture
def sample_items() -> ExtractedItems:
    return ExtractedItems(
        insights=["Churn dropped after onboarding changes", "Support load is flat"],
        risks=["Vendor contract renews in March"],
    )


@pytest.fixture
def fake_transport() -> FakeBoardTransport:
    return FakeBoardTransport()


@pytest.fixture
def container() -> Container:
    return Container(id="frame-1", title="Insights", x=0.0, y=0.0, width=1400.0, height=900.0)


@pytest.fixture
def make_extractor():
    """Factory for scripted extractors."""

    def _make(items: ExtractedItems | None = None, error: Exception | None = None) -> FakeExtractor:
        return FakeExtractor(items=items, error=error)

    return _make
