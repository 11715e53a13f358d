"""Terminus CLI - typer application entry point."""

from __future__ import annotations

import atexit
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from terminus.config import CONFIG_FILENAME, ConfigError, EngineConfig, load_engine_config
from terminus.graph import ContentLoadError, GraphStore, NodeNotFoundError, load_graph_store
from terminus.narrative import ChoiceUnavailableError, NarrativeSession
from terminus.observability import close_file_logging, configure_logging, get_logger
from terminus.persistence import (
    PersistenceManager,
    StorageError,
    create_storage,
)

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="terminus",
    help="Terminus: narrative-state engine for branching dialogue.",
    no_args_is_help=True,
)
console = Console()
log = get_logger(__name__)

# Global state for logging flags (set by callback, used by commands)
_verbose: int = 0
_log_enabled: bool = False
_config_path: Path = Path(CONFIG_FILENAME)


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_to_file: Annotated[
        bool,
        typer.Option(
            "--log",
            help="Append events to logs/events.jsonl next to the save database.",
        ),
    ] = False,
    config: Annotated[
        Path,
        typer.Option(
            "--config",
            "-c",
            help="Path to terminus.yaml (default: ./terminus.yaml).",
            envvar="TERMINUS_CONFIG",
        ),
    ] = Path(CONFIG_FILENAME),
) -> None:
    """Terminus: narrative-state engine for branching dialogue."""
    global _verbose, _log_enabled, _config_path
    _verbose = verbose
    _log_enabled = log_to_file
    _config_path = config

    # Console logging only; file logging is configured once the save location is known
    configure_logging(verbosity=verbose)


@dataclass
class _Engine:
    config: EngineConfig
    graph_store: GraphStore
    persistence: PersistenceManager


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(1)


def _open_engine() -> _Engine:
    """Load config and content, and open the save storage.

    Raises:
        typer.Exit: If any of them cannot be loaded.
    """
    try:
        config = load_engine_config(_config_path)
    except ConfigError as e:
        raise _fail(str(e)) from None

    if _log_enabled:
        configure_logging(verbosity=_verbose, save_path=config.storage.path)
        atexit.register(close_file_logging)

    try:
        graph_store = load_graph_store(config.content_path)
    except ContentLoadError as e:
        raise _fail(str(e)) from None

    try:
        storage = create_storage(config.storage)
    except (ValueError, StorageError) as e:
        raise _fail(str(e)) from None

    log.debug("engine_opened", content=str(config.content_path), store=repr(graph_store))
    return _Engine(
        config=config,
        graph_store=graph_store,
        persistence=PersistenceManager.from_config(config, storage, graph_store),
    )


def _require_session(engine: _Engine) -> NarrativeSession:
    state = engine.persistence.load()
    if state is None:
        raise _fail("No save found. Run 'terminus new' first.")
    return NarrativeSession(engine.graph_store, engine.persistence, state)


@app.command()
def version() -> None:
    """Show version information."""
    from terminus import __version__

    console.print(f"Terminus v{__version__}")


@app.command()
def new(
    player_id: Annotated[
        str | None,
        typer.Option("--player-id", help="Player id for the new game (default: generated)."),
    ] = None,
) -> None:
    """Start a new game at the content's safe start.

    An existing save is kept in the backup slot.
    """
    engine = _open_engine()
    state = NarrativeSession.new_game_state(engine.graph_store, player_id)
    if not engine.persistence.save(state):
        raise _fail("Could not write the new game.")

    console.print(f"[green]✓[/green] New game for [bold]{state.player_id}[/bold]")
    console.print(f"  Starting at {state.current_character_id}/{state.current_node_id}")


@app.command()
def status() -> None:
    """Show the saved game: position, patterns and relationships."""
    engine = _open_engine()
    outcome = engine.persistence.load_with_report()
    state = outcome.state
    if state is None:
        if outcome.failures:
            console.print("[red]✗[/red] The save could not be loaded:")
            for failure in outcome.failures:
                console.print(f"  - {failure}")
            raise typer.Exit(1)
        console.print("[yellow]No save found.[/yellow] Run 'terminus new' to start.")
        return

    console.print()
    console.print(f"[bold]Player:[/bold] {state.player_id}")
    console.print(f"[bold]Position:[/bold] {state.current_character_id}/{state.current_node_id}")
    console.print(f"[bold]Loaded from:[/bold] {outcome.source} ({outcome.recovery})")
    if outcome.original_node_id and outcome.original_node_id != state.current_node_id:
        console.print(f"  [dim]Saved node was {outcome.original_node_id}[/dim]")

    patterns = Table(title="Patterns")
    patterns.add_column("Pattern", style="cyan")
    patterns.add_column("Score", justify="right")
    for name, score in state.patterns.as_dict().items():
        patterns.add_row(name, str(score))

    characters = Table(title="Characters")
    characters.add_column("Character", style="cyan")
    characters.add_column("Trust", justify="right")
    characters.add_column("Knows", style="dim")
    for character_id, char in sorted(state.characters.items()):
        characters.add_row(
            character_id, str(char.trust), ", ".join(sorted(char.knowledge_flags)) or "-"
        )

    mysteries = Table(title="Mysteries")
    mysteries.add_column("Mystery", style="cyan")
    mysteries.add_column("State")
    for name, value in sorted(state.mysteries.items()):
        mysteries.add_row(name, value)

    console.print()
    console.print(patterns)
    console.print(characters)
    console.print(mysteries)
    if state.global_flags:
        console.print(f"[bold]Flags:[/bold] {', '.join(sorted(state.global_flags))}")
    console.print()


@app.command()
def choices() -> None:
    """List the choices available at the current node."""
    engine = _open_engine()
    session = _require_session(engine)
    try:
        node = session.current_node()
        evaluated = session.visible_choices()
    except NodeNotFoundError as e:
        raise _fail(e.describe()) from None

    table = Table(title=f"{node.speaker or session.state.current_character_id}: {node.node_id}")
    table.add_column("Choice", style="cyan")
    table.add_column("Text")
    table.add_column("Status")
    for entry in evaluated:
        if entry.fallback:
            status_display = "[yellow]fallback[/yellow]"
        elif entry.enabled:
            status_display = "[green]available[/green]"
        else:
            status_display = f"[dim]{entry.reason}[/dim]"
        table.add_row(entry.choice.choice_id, entry.choice.text, status_display)

    console.print()
    console.print(table)
    console.print()


@app.command()
def choose(
    choice_id: Annotated[str, typer.Argument(help="Id of the choice to take")],
) -> None:
    """Take a choice at the current node and save."""
    engine = _open_engine()
    session = _require_session(engine)
    try:
        state = session.choose(choice_id)
    except ChoiceUnavailableError as e:
        raise _fail(str(e)) from None
    except NodeNotFoundError as e:
        raise _fail(e.describe()) from None

    if not session.save():
        raise _fail("Could not save after the choice.")
    console.print(
        f"[green]✓[/green] Now at {state.current_character_id}/{state.current_node_id}"
    )


@app.command()
def resolve(
    node_id: Annotated[str, typer.Argument(help="Node id to resolve through redirects")],
    max_hops: Annotated[
        int | None,
        typer.Option("--max-hops", help="Hop limit (default: from config)."),
    ] = None,
) -> None:
    """Show where a node id redirects to in the current content."""
    engine = _open_engine()
    hops_limit = max_hops if max_hops is not None else engine.config.redirect_max_hops
    resolution = engine.graph_store.resolve_redirect(node_id, hops_limit)

    console.print(f"[bold]{node_id}[/bold] -> [bold]{resolution.resolved_node_id}[/bold]")
    console.print(f"  Path: {' -> '.join(resolution.path)} ({resolution.hops} hop(s))")
    error = resolution.as_error()
    if error is not None:
        console.print(f"[yellow]Warning:[/yellow] {error}")

    owner = engine.graph_store.find_character_for_node(resolution.resolved_node_id)
    if owner is None:
        console.print(f"  [red]✗[/red] '{resolution.resolved_node_id}' is in no graph")
        raise typer.Exit(1)
    console.print(f"  [green]✓[/green] Found in graph '{owner}'")


@app.command("export")
def export_save(
    path: Annotated[Path, typer.Argument(help="File to write the save to")],
) -> None:
    """Export the save as JSON."""
    engine = _open_engine()
    text = engine.persistence.export_save()
    if text is None:
        raise _fail("No valid save to export.")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    console.print(f"[green]✓[/green] Exported save to {path}")


@app.command("import")
def import_save(
    path: Annotated[Path, typer.Argument(help="JSON save file to import")],
) -> None:
    """Import a JSON save, keeping the current save as backup."""
    engine = _open_engine()
    if not path.exists():
        raise _fail(f"File not found: {path}")
    if not engine.persistence.import_save(path.read_text(encoding="utf-8")):
        raise _fail(f"'{path}' is not a valid save.")
    console.print(f"[green]✓[/green] Imported save from {path}")


@app.command()
def reset(
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Confirm deleting the save and its backup."),
    ] = False,
) -> None:
    """Delete the save and its backup."""
    if not yes:
        raise _fail("Refusing to delete saves without --yes.")
    engine = _open_engine()
    try:
        engine.persistence.delete_all()
    except StorageError as e:
        raise _fail(str(e)) from None
    engine.graph_store.invalidate_index()
    console.print("[green]✓[/green] Saves deleted")


if __name__ == "__main__":
    app()
