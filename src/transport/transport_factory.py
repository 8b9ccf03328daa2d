# src/transport/transport_factory.py — v1
"""Factory: instantiate the board transport selected by the run configuration."""

from __future__ import annotations

import logging

from boardsync.config.settings import RunConfig, Settings
from boardsync.core.retry import BackoffPolicy
from boardsync.transport.base_transport import BaseBoardTransport

logger = logging.getLogger(__name__)


def backoff_policy(settings: Settings) -> BackoffPolicy:
    return BackoffPolicy(
        max_attempts=settings.retry_max_attempts,
        base_delay_s=settings.retry_base_delay_s,
        max_delay_s=settings.retry_max_delay_s,
    )


def create_transport(config: RunConfig) -> BaseBoardTransport:
    """Create the configured transport (not yet connected).

    Raises:
        ValueError: If the transport kind is not supported.
    """
    settings = config.settings

    if config.transport == "rest":
        from boardsync.transport.rest_transport import RestTransport

        return RestTransport(
            token=settings.miro_token,
            base_url=settings.miro_api_base_url,
            page_limit=settings.rest_page_limit,
            timeout_s=settings.rest_timeout_s,
            policy=backoff_policy(settings),
        )

    if config.transport == "stdio":
        from boardsync.transport.stdio.client import StdioRpcClient
        from boardsync.transport.stdio.stdio_transport import StdioBoardTransport

        client = StdioRpcClient(
            command=settings.stdio_command,
            args=settings.stdio_args_list,
            env={"MIRO_TOKEN": settings.miro_token},
            connect_timeout_s=settings.stdio_connect_timeout_s,
            call_timeout_s=settings.stdio_call_timeout_s,
        )
        return StdioBoardTransport(
            client,
            inter_call_delay_s=settings.stdio_inter_call_delay_s,
            discover_tools=settings.stdio_discover_tools,
        )

    raise ValueError(f"Unsupported transport: {config.transport!r}")
