"""Observability module for Terminus.

Provides structured logging with rich console output and a JSONL event log.
"""

from terminus.observability.logging import (
    bind_player,
    clear_player,
    close_file_logging,
    configure_logging,
    get_event_log,
    get_logger,
)

__all__ = [
    "bind_player",
    "clear_player",
    "close_file_logging",
    "configure_logging",
    "get_event_log",
    "get_logger",
]
