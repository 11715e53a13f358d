"""Test CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from ruamel.yaml import YAML
from typer.testing import CliRunner

from terminus import __version__
from terminus.cli import app
from tests.fixtures.story_fixtures import make_bundle_data, make_legacy_payload

if TYPE_CHECKING:
    from pathlib import Path

    from click.testing import Result

runner = CliRunner()


def _text(result: Result) -> str:
    # Rich wraps long lines; compare on collapsed whitespace
    return " ".join(result.output.split())


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Write content.yaml and a terminus.yaml using the sqlite backend."""
    yaml = YAML()
    with (tmp_path / "content.yaml").open("w", encoding="utf-8") as f:
        yaml.dump(make_bundle_data(), f)
    path = tmp_path / "terminus.yaml"
    path.write_text(
        "content_path: content.yaml\n"
        "storage:\n"
        "  backend: sqlite\n"
        "  path: saves/terminus.db\n"
    )
    return path


def invoke(config_path: Path, *args: str) -> Result:
    return runner.invoke(app, ["--config", str(config_path), *args])


def test_version_command() -> None:
    """Test terminus version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert f"v{__version__}" in _text(result)


def test_no_args_shows_help() -> None:
    """Test that no arguments shows help."""
    result = runner.invoke(app, [])
    # no_args_is_help=True returns exit code 2 (not 0 like --help)
    assert result.exit_code == 2
    assert "Terminus" in _text(result)


# --- Game Commands ---


def test_status_without_save(config_path: Path) -> None:
    """status reports a missing save without failing."""
    result = invoke(config_path, "status")
    assert result.exit_code == 0
    assert "No save found" in _text(result)


def test_new_and_status(config_path: Path) -> None:
    """new writes a save that status can show."""
    result = invoke(config_path, "new", "--player-id", "player_cli")
    assert result.exit_code == 0
    assert "player_cli" in _text(result)
    assert (config_path.parent / "saves" / "terminus.db").exists()

    result = invoke(config_path, "status")
    assert result.exit_code == 0
    assert "samuel/samuel_introduction" in _text(result)
    assert "Patterns" in _text(result)
    assert "letterSender" in _text(result)


def test_choices_lists_current_node(config_path: Path) -> None:
    """choices shows the choices at the saved node."""
    invoke(config_path, "new", "--player-id", "player_cli")
    result = invoke(config_path, "choices")
    assert result.exit_code == 0
    assert "ask_station" in _text(result)
    assert "meet_maya" in _text(result)


def test_choose_moves_and_saves(config_path: Path) -> None:
    """choose applies the choice and the next command sees it."""
    invoke(config_path, "new", "--player-id", "player_cli")
    result = invoke(config_path, "choose", "ask_station")
    assert result.exit_code == 0
    assert "samuel/samuel_hub" in _text(result)

    result = invoke(config_path, "status")
    assert "samuel/samuel_hub" in _text(result)
    assert "met_samuel" in _text(result)


def test_choose_unavailable(config_path: Path) -> None:
    """An unknown choice fails with exit code 1."""
    invoke(config_path, "new")
    result = invoke(config_path, "choose", "ask_past")
    assert result.exit_code == 1
    assert "not available" in _text(result)


def test_choose_without_save(config_path: Path) -> None:
    """Game commands need a save."""
    result = invoke(config_path, "choose", "ask_station")
    assert result.exit_code == 1
    assert "No save found" in _text(result)


def test_status_recovers_legacy_save(config_path: Path, tmp_path: Path) -> None:
    """An imported legacy save loads through migration."""
    save = tmp_path / "legacy.json"
    save.write_text(json.dumps(make_legacy_payload()))
    result = invoke(config_path, "import", str(save))
    assert result.exit_code == 0

    result = invoke(config_path, "status")
    assert result.exit_code == 0
    assert "player_guest_42" in _text(result)
    assert "maya/maya_introduction" in _text(result)


# --- Redirects ---


def test_resolve_redirect(config_path: Path) -> None:
    """resolve follows redirects into the owning graph."""
    result = invoke(config_path, "resolve", "maya_old_node")
    assert result.exit_code == 0
    assert "maya_new_node" in _text(result)
    assert "Found in graph 'maya'" in _text(result)


def test_resolve_cycle(config_path: Path) -> None:
    """A cycle warns and fails because the node is in no graph."""
    result = invoke(config_path, "resolve", "loop_a")
    assert result.exit_code == 1
    assert "Warning" in _text(result)


# --- Save Files ---


def test_export_import_round_trip(config_path: Path, tmp_path: Path) -> None:
    """An exported save can be imported after a reset."""
    invoke(config_path, "new", "--player-id", "player_cli")
    export_path = tmp_path / "out" / "save.json"
    result = invoke(config_path, "export", str(export_path))
    assert result.exit_code == 0
    assert json.loads(export_path.read_text())["playerId"] == "player_cli"

    assert invoke(config_path, "reset", "--yes").exit_code == 0
    assert "No save found" in _text(invoke(config_path, "status"))

    result = invoke(config_path, "import", str(export_path))
    assert result.exit_code == 0
    assert "player_cli" in _text(invoke(config_path, "status"))


def test_export_without_save(config_path: Path, tmp_path: Path) -> None:
    """Nothing to export fails."""
    result = invoke(config_path, "export", str(tmp_path / "save.json"))
    assert result.exit_code == 1


def test_import_invalid(config_path: Path, tmp_path: Path) -> None:
    """Invalid save files are rejected."""
    bad = tmp_path / "bad.json"
    bad.write_text('{"saveVersion": "1.2.0"}')
    result = invoke(config_path, "import", str(bad))
    assert result.exit_code == 1
    assert "not a valid save" in _text(result)


def test_import_missing_file(config_path: Path, tmp_path: Path) -> None:
    """A missing import file fails."""
    result = invoke(config_path, "import", str(tmp_path / "missing.json"))
    assert result.exit_code == 1
    assert "File not found" in _text(result)


def test_reset_requires_yes(config_path: Path) -> None:
    """reset refuses without confirmation."""
    invoke(config_path, "new")
    result = invoke(config_path, "reset")
    assert result.exit_code == 1
    assert "--yes" in _text(result)
    assert "samuel_introduction" in _text(invoke(config_path, "status"))


# --- Configuration ---


def test_invalid_config(tmp_path: Path) -> None:
    """A broken config file fails cleanly."""
    path = tmp_path / "terminus.yaml"
    path.write_text("- not\n- a mapping\n")
    result = runner.invoke(app, ["--config", str(path), "status"])
    assert result.exit_code == 1
    assert "Error" in _text(result)


def test_missing_content(tmp_path: Path) -> None:
    """Missing content fails cleanly."""
    path = tmp_path / "terminus.yaml"
    path.write_text("content_path: nothing.yaml\n")
    result = runner.invoke(app, ["--config", str(path), "status"])
    assert result.exit_code == 1
    assert "File not found" in _text(result)


def test_log_flag_writes_jsonl(config_path: Path) -> None:
    """--log writes events.jsonl beside the save database."""
    result = runner.invoke(app, ["--log", "--config", str(config_path), "new"])
    assert result.exit_code == 0
    assert (config_path.parent / "saves" / "logs" / "events.jsonl").exists()
