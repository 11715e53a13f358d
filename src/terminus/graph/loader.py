"""Content bundle loading.

Reads a release's authored content (``content.yaml`` or ``content.json``),
validates it against the dialogue models and builds a GraphStore.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from ruamel.yaml import YAML

from terminus.graph.store import GraphStore
from terminus.models.dialogue import ContentBundle
from terminus.observability.logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

log = get_logger(__name__)


class ContentLoadError(Exception):
    """Raised when a content bundle cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load content at {path}: {reason}")


def _read_document(path: Path) -> Any:
    if path.suffix == ".json":
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    yaml = YAML(typ="safe")
    with path.open("r", encoding="utf-8") as f:
        return yaml.load(f)


def load_content_bundle(path: Path) -> ContentBundle:
    """Load and validate a content bundle file.

    Args:
        path: Path to a ``.yaml``, ``.yml`` or ``.json`` bundle.

    Returns:
        Validated ContentBundle.

    Raises:
        ContentLoadError: If the file is missing, unparsable or invalid.
    """
    if not path.exists():
        raise ContentLoadError(path, "File not found")

    try:
        data = _read_document(path)
    except Exception as e:
        raise ContentLoadError(path, str(e)) from e

    if data is None:
        raise ContentLoadError(path, "Empty file")
    if not isinstance(data, dict):
        raise ContentLoadError(path, "Top level must be a mapping")

    try:
        bundle = ContentBundle.model_validate(data)
    except ValidationError as e:
        raise ContentLoadError(path, f"{e.error_count()} validation error(s): {e}") from e

    log.debug(
        "content_loaded",
        path=str(path),
        version=bundle.version,
        graphs=len(bundle.graphs),
        redirects=len(bundle.redirects),
    )
    return bundle


def load_graph_store(path: Path) -> GraphStore:
    """Load a content bundle and build its GraphStore."""
    return GraphStore.from_bundle(load_content_bundle(path))
