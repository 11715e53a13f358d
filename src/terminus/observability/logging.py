"""Structured logging for the Terminus engine.

Console events go to stderr through rich; ``-v`` raises the level. With
``--log`` every event is also appended to ``events.jsonl`` in a ``logs``
directory next to the save file, so a player's log travels with their save.

While a session is open its player id is bound to the logging context and
appears on every event, including those emitted by persistence and content
loading.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003 - Used at runtime for path operations
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from structlog.typing import Processor

EVENT_LOG_NAME = "events.jsonl"


def event_log_dir(save_path: Path) -> Path:
    """Return the directory that holds the event log for *save_path*."""
    return save_path.parent / "logs"


class EventLogHandler(logging.FileHandler):
    """Append each engine event to a JSONL file, one object per line."""

    def __init__(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(str(path), mode="a", encoding="utf-8")
        self.setLevel(logging.DEBUG)

    @staticmethod
    def to_entry(record: logging.LogRecord) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        # wrap_for_formatter hands the event dict over as record.msg
        if isinstance(record.msg, dict):
            fields = {k: v for k, v in record.msg.items() if k not in ("level", "timestamp")}
            entry["event"] = fields.pop("event", "")
            entry.update(fields)
        else:
            entry["event"] = record.getMessage()
        return entry

    def emit(self, record: logging.LogRecord) -> None:
        try:
            if self.stream is None:
                self.stream = self._open()
            self.stream.write(json.dumps(self.to_entry(record), default=str) + "\n")
            self.flush()
        except Exception:
            self.handleError(record)


_configured = False
_event_handler: EventLogHandler | None = None
_event_log: Path | None = None


def configure_logging(verbosity: int = 0, save_path: Path | None = None) -> None:
    """Configure console logging, and the event log when *save_path* is given.

    Args:
        verbosity: 0=WARNING (default), 1=INFO, 2+=DEBUG on the console.
        save_path: Save file location. When set, every event at DEBUG and
            above is appended to ``logs/events.jsonl`` beside it.
    """
    global _configured, _event_handler, _event_log

    close_file_logging()

    console_level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)
    handlers: list[logging.Handler] = [
        RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            tracebacks_show_locals=verbosity >= 2,
            show_time=verbosity >= 1,
            show_path=verbosity >= 2,
            markup=False,
            level=console_level,
        )
    ]

    if save_path is not None:
        _event_log = event_log_dir(save_path) / EVENT_LOG_NAME
        _event_handler = EventLogHandler(_event_log)
        handlers.append(_event_handler)

    root_level = logging.DEBUG if (verbosity > 0 or save_path is not None) else logging.WARNING
    logging.basicConfig(level=root_level, format="%(message)s", handlers=handlers, force=True)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        cache_logger_on_first_use=False,
    )
    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Return a structured logger, configuring console logging on first use."""
    if not _configured:
        configure_logging()

    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


def bind_player(player_id: str) -> None:
    """Tag every following event with *player_id*."""
    structlog.contextvars.bind_contextvars(player_id=player_id)


def clear_player() -> None:
    structlog.contextvars.unbind_contextvars("player_id")


def get_event_log() -> Path | None:
    """Return the event log path, or None when file logging is off."""
    return _event_log


def close_file_logging() -> None:
    """Close the event log. Console logging is left as it is."""
    global _event_handler, _event_log
    if _event_handler is not None:
        logging.getLogger().removeHandler(_event_handler)
        _event_handler.close()
        _event_handler = None
    _event_log = None
