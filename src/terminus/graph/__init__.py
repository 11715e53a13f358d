"""Graph package - authored dialogue graphs and redirect lineage.

The GraphStore holds immutable per-character dialogue graphs for one content
release. Redirects let a release retire or rename nodes while saves that
point at the old ids keep loading.
"""

from terminus.graph.errors import (
    GraphIntegrityError,
    NodeNotFoundError,
    RecoveryFailedError,
    RedirectCycleError,
    RedirectTruncatedError,
)
from terminus.graph.loader import ContentLoadError, load_content_bundle, load_graph_store
from terminus.graph.redirects import (
    DEFAULT_MAX_HOPS,
    RedirectResolution,
    resolve_dialogue_node_redirect,
)
from terminus.graph.store import GraphStore

__all__ = [
    "DEFAULT_MAX_HOPS",
    "ContentLoadError",
    "GraphIntegrityError",
    "GraphStore",
    "NodeNotFoundError",
    "RecoveryFailedError",
    "RedirectCycleError",
    "RedirectResolution",
    "RedirectTruncatedError",
    "load_content_bundle",
    "load_graph_store",
    "resolve_dialogue_node_redirect",
]
