"""Immutable store of authored dialogue graphs.

GraphStore holds one DialogueGraph per character, the redirect map and the
global safe-start node for a content release. It is pure data: nothing in
the engine mutates it after construction.

Looking a node up without knowing its character would mean scanning every
graph, so the store keeps a node-lookup index (node id -> character id). The
index is built on first use and only dropped as a whole by
``invalidate_index()`` during a full reset.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from terminus.graph.errors import NodeNotFoundError
from terminus.graph.redirects import (
    DEFAULT_MAX_HOPS,
    RedirectResolution,
    resolve_dialogue_node_redirect,
)
from terminus.models.dialogue import ContentBundle, DialogueGraph, RedirectEntry, SafeStart
from terminus.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from terminus.models.dialogue import DialogueNode

log = get_logger(__name__)


class GraphStore:
    """Per-character dialogue graphs plus redirect lineage.

    Attributes:
        version: Content release the graphs came from.
        safe_start: Node every recovery can fall back to.
    """

    def __init__(
        self,
        graphs: Iterable[DialogueGraph] | Mapping[str, DialogueGraph],
        *,
        safe_start: SafeStart,
        redirects: Mapping[str, RedirectEntry] | None = None,
        version: str = "0",
    ) -> None:
        values = graphs.values() if hasattr(graphs, "values") else graphs
        self._graphs: dict[str, DialogueGraph] = {g.character_id: g for g in values}
        self._redirects: dict[str, RedirectEntry] = dict(redirects or {})
        self.safe_start = safe_start
        self.version = version
        self._node_index: dict[str, str] | None = None

    @classmethod
    def from_bundle(cls, bundle: ContentBundle) -> GraphStore:
        """Create a store from a validated content bundle."""
        return cls(
            bundle.graphs,
            safe_start=bundle.safe_start,
            redirects=bundle.redirects,
            version=bundle.version,
        )

    # -- Graphs ----------------------------------------------------------------

    def character_ids(self) -> list[str]:
        return list(self._graphs)

    def graph_for(self, character_id: str) -> DialogueGraph | None:
        return self._graphs.get(character_id)

    def get_node(self, character_id: str, node_id: str) -> DialogueNode | None:
        graph = self._graphs.get(character_id)
        if graph is None:
            return None
        return graph.nodes.get(node_id)

    def has_node(self, character_id: str, node_id: str) -> bool:
        return self.get_node(character_id, node_id) is not None

    def require_node(self, character_id: str, node_id: str, *, context: str = "") -> DialogueNode:
        """Get a node, raising NodeNotFoundError if it does not exist.

        Raises:
            NodeNotFoundError: With the graph's node ids for suggestions.
        """
        node = self.get_node(character_id, node_id)
        if node is None:
            graph = self._graphs.get(character_id)
            raise NodeNotFoundError(
                node_id=node_id,
                character_id=character_id,
                available=list(graph.nodes) if graph else [],
                context=context,
            )
        return node

    def hub_node_for(self, character_id: str) -> str | None:
        """Return the landing node of a character's graph, if it exists."""
        graph = self._graphs.get(character_id)
        if graph is None:
            return None
        landing = graph.landing_node_id
        return landing if landing in graph.nodes else None

    def node_count(self) -> int:
        return sum(len(g.nodes) for g in self._graphs.values())

    # -- Node lookup index -----------------------------------------------------

    def find_character_for_node(self, node_id: str) -> str | None:
        """Return the character whose graph contains *node_id*.

        When several graphs share an id, the first graph in content order wins.
        """
        if self._node_index is None:
            self._node_index = self._build_index()
        return self._node_index.get(node_id)

    def _build_index(self) -> dict[str, str]:
        index: dict[str, str] = {}
        for character_id, graph in self._graphs.items():
            for node_id in graph.nodes:
                if node_id in index:
                    log.debug(
                        "duplicate_node_id",
                        node_id=node_id,
                        kept=index[node_id],
                        ignored=character_id,
                    )
                    continue
                index[node_id] = character_id
        log.debug("node_index_built", nodes=len(index))
        return index

    def invalidate_index(self) -> None:
        """Drop the node-lookup index. Only called on a full reset."""
        self._node_index = None

    # -- Redirects -------------------------------------------------------------

    @property
    def redirects(self) -> Mapping[str, RedirectEntry]:
        return self._redirects

    def get_redirect(self, node_id: str) -> RedirectEntry | None:
        return self._redirects.get(node_id)

    def resolve_redirect(
        self, node_id: str, max_hops: int = DEFAULT_MAX_HOPS
    ) -> RedirectResolution:
        """Resolve *node_id* through this release's redirect map."""
        return resolve_dialogue_node_redirect(node_id, self._redirects, max_hops=max_hops)

    def __repr__(self) -> str:
        return (
            f"GraphStore(version={self.version!r}, characters={len(self._graphs)}, "
            f"nodes={self.node_count()}, redirects={len(self._redirects)})"
        )
