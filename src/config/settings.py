# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

``Settings`` is the single source of truth for deployment-specific values
(credentials, endpoints, geometry, timeouts). ``RunConfig`` is the frozen
per-invocation value built once at startup and passed explicitly to the
orchestrator and the transports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is missing or internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Credentials ===
    miro_token: str = ""
    anthropic_api_key: str = ""

    # === Board ===
    miro_board_id: str = ""
    board_transport: Literal["rest", "stdio"] = "rest"

    # === REST transport ===
    miro_api_base_url: str = "https://api.miro.com/v2"
    rest_page_limit: int = 50
    rest_timeout_s: float = 30.0

    # === Stdio transport ===
    stdio_command: str = "node"
    stdio_args: str = ""
    stdio_connect_timeout_s: float = 5.0
    stdio_call_timeout_s: float = 10.0
    stdio_inter_call_delay_s: float = 0.1
    stdio_discover_tools: bool = False

    # === Extraction ===
    llm_model: str = "claude-3-5-sonnet-latest"
    llm_max_tokens: int = 800
    extraction_max_items: int = 12

    # === Containers ===
    insights_frame_title: str = "Insights"
    risks_frame_title: str = "Risks"
    insights_frame_x: float = -900.0
    risks_frame_x: float = 900.0
    frame_y: float = 0.0
    frame_width: float = 1400.0
    frame_height: float = 900.0

    # === Layout ===
    layout_columns: int = 3
    layout_gap: float = 20.0
    layout_padding: float = 40.0
    note_width: float = 180.0
    note_height: float = 120.0
    batch_chunk_size: int = 20

    # === Retry ===
    retry_max_attempts: int = 5
    retry_base_delay_s: float = 0.5
    retry_max_delay_s: float = 8.0

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("layout_columns", "batch_chunk_size", "rest_page_limit", "retry_max_attempts")
    @classmethod
    def validate_positive(cls, v: int, info) -> int:  # noqa: N805
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_frames(self) -> Settings:
        """Both containers share geometry and must sit side by side."""
        errors: list[str] = []

        if self.insights_frame_title.strip() == self.risks_frame_title.strip():
            errors.append("Container titles must differ")

        if abs(self.insights_frame_x - self.risks_frame_x) < self.frame_width:
            errors.append(
                "INSIGHTS_FRAME_X and RISKS_FRAME_X overlap for FRAME_WIDTH="
                f"{self.frame_width:g}"
            )

        if self.frame_width <= 0 or self.frame_height <= 0:
            errors.append("Frame geometry must be positive")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def stdio_args_list(self) -> list[str]:
        """Split whitespace-separated stdio server arguments."""
        return [a for a in self.stdio_args.split() if a]


class RunConfig(BaseModel):
    """Immutable configuration of a single reconciliation run."""

    model_config = ConfigDict(frozen=True)

    board_id: str
    source_path: Path
    execute: bool = False
    transport: Literal["rest", "stdio"] = "rest"
    model: str
    settings: Settings


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]


def build_run_config(
    settings: Settings,
    board_id: str | None = None,
    source_path: Path | str | None = None,
    execute: bool = False,
    transport: str | None = None,
    model: str | None = None,
) -> RunConfig:
    """Resolve CLI values against settings into a frozen RunConfig.

    Every check here runs before any network activity.

    Raises:
        ConfigurationError: On a missing board id, source path or credential.
    """
    resolved_board = board_id or settings.miro_board_id
    resolved_transport = transport or settings.board_transport

    missing: list[str] = []
    if not resolved_board:
        missing.append("--board <boardId> or MIRO_BOARD_ID")
    if not source_path:
        missing.append("--source <path>")
    if not settings.miro_token:
        missing.append("MIRO_TOKEN")
    if not settings.anthropic_api_key:
        missing.append("ANTHROPIC_API_KEY")
    if resolved_transport == "stdio" and not settings.stdio_args_list:
        missing.append("--stdio-args or STDIO_ARGS (server script and flags)")
    if missing:
        raise ConfigurationError("Missing required configuration: " + ", ".join(missing))

    if resolved_transport not in ("rest", "stdio"):
        raise ConfigurationError(f"Unsupported transport: {resolved_transport!r}")

    return RunConfig(
        board_id=resolved_board,
        source_path=Path(source_path),  # type: ignore[arg-type]
        execute=execute,
        transport=resolved_transport,  # type: ignore[arg-type]
        model=model or settings.llm_model,
        settings=settings,
    )
