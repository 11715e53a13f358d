"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from terminus.observability import (
    bind_player,
    clear_player,
    close_file_logging,
    configure_logging,
    get_event_log,
    get_logger,
)

if TYPE_CHECKING:
    from pathlib import Path


def _read_events(path: Path) -> list[dict[str, Any]]:
    with path.open(encoding="utf-8") as f:
        return [json.loads(line) for line in f]


def test_configure_logging_sets_level_warning() -> None:
    """Default verbosity (0) sets WARNING level."""
    configure_logging(verbosity=0)

    assert logging.getLogger().level == logging.WARNING


def test_configure_logging_verbose_sets_debug_root() -> None:
    """verbosity=1 opens the root logger; the console handler filters to INFO."""
    configure_logging(verbosity=1)

    root_logger = logging.getLogger()
    assert root_logger.level == logging.DEBUG
    assert root_logger.handlers[0].level == logging.INFO


def test_get_logger_auto_configures() -> None:
    """get_logger configures logging if not already done."""
    import terminus.observability.logging as log_module

    log_module._configured = False

    logger = get_logger("test")

    assert log_module._configured is True
    assert hasattr(logger, "warning")


def test_event_log_beside_save(tmp_path: Path) -> None:
    """The event log lives in a logs directory next to the save file."""
    configure_logging(save_path=tmp_path / "saves" / "slot.json")

    assert get_event_log() == tmp_path / "saves" / "logs" / "events.jsonl"
    assert (tmp_path / "saves" / "logs").is_dir()
    close_file_logging()


def test_no_event_log_without_save_path(tmp_path: Path) -> None:
    """Console-only logging creates no files."""
    configure_logging(verbosity=2)

    assert get_event_log() is None
    assert not any(tmp_path.iterdir())


def test_reconfiguration_closes_event_log(tmp_path: Path) -> None:
    """Reconfiguring closes the previous event log handler."""
    import terminus.observability.logging as log_module

    configure_logging(save_path=tmp_path / "slot.json")
    first_handler = log_module._event_handler
    assert first_handler is not None

    configure_logging(save_path=tmp_path / "slot.json")

    assert first_handler.stream is None or first_handler.stream.closed
    assert log_module._event_handler is not first_handler
    close_file_logging()
    assert get_event_log() is None


def test_event_log_writes_structlog_context(tmp_path: Path) -> None:
    """Event fields land in the JSONL entry next to the event name."""
    configure_logging(save_path=tmp_path / "slot.json")

    get_logger("test.context").info("save_loaded", key="slot", hops=2)
    close_file_logging()

    entries = _read_events(tmp_path / "logs" / "events.jsonl")
    entry = next(e for e in entries if e["event"] == "save_loaded")
    assert entry["key"] == "slot"
    assert entry["hops"] == 2
    assert entry["level"] == "INFO"
    assert entry["logger"] == "test.context"


def test_bound_player_tags_events(tmp_path: Path) -> None:
    """Events carry the bound player id until it is cleared."""
    configure_logging(save_path=tmp_path / "slot.json")
    logger = get_logger("test.player")

    bind_player("player_abc")
    logger.warning("save_failed", key="slot")
    clear_player()
    logger.warning("content_reloaded")
    close_file_logging()

    entries = {e["event"]: e for e in _read_events(tmp_path / "logs" / "events.jsonl")}
    assert entries["save_failed"]["player_id"] == "player_abc"
    assert "player_id" not in entries["content_reloaded"]
