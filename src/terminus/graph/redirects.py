"""Node redirect resolution.

Content releases rename, split and merge dialogue nodes. Instead of editing
saves, authors add a redirect from every retired node id to its
replacement; saves are resolved through the chain when they are loaded.
Authors must never reuse a retired id for new content, and redirects are
only ever added, never removed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from terminus.graph.errors import (
    GraphIntegrityError,
    RedirectCycleError,
    RedirectTruncatedError,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from terminus.models.dialogue import RedirectEntry

DEFAULT_MAX_HOPS = 8


@dataclass(frozen=True)
class RedirectResolution:
    """Outcome of walking a redirect chain.

    Attributes:
        node_id: Node id the walk started from.
        resolved_node_id: Where the walk stopped (best effort on cycle/truncation).
        path: Every node id visited, starting with node_id.
        hops: Number of redirects followed.
        cycle_detected: The chain revisited a node.
        truncated: The hop limit was hit while another redirect existed.
        cycle_target: The already-visited node the chain pointed back to.
        max_hops: Limit the walk ran with.
    """

    node_id: str
    resolved_node_id: str
    path: list[str] = field(default_factory=list)
    hops: int = 0
    cycle_detected: bool = False
    truncated: bool = False
    cycle_target: str | None = None
    max_hops: int = DEFAULT_MAX_HOPS

    @property
    def redirected(self) -> bool:
        return self.resolved_node_id != self.node_id

    @property
    def clean(self) -> bool:
        return not (self.cycle_detected or self.truncated)

    def as_error(self) -> GraphIntegrityError | None:
        """Describe an abnormal resolution as an error, for logging."""
        if self.cycle_detected:
            return RedirectCycleError(
                node_id=self.node_id, path=list(self.path), repeated=self.cycle_target or ""
            )
        if self.truncated:
            return RedirectTruncatedError(
                node_id=self.node_id, path=list(self.path), max_hops=self.max_hops
            )
        return None


def resolve_dialogue_node_redirect(
    node_id: str,
    redirects: Mapping[str, RedirectEntry],
    max_hops: int = DEFAULT_MAX_HOPS,
) -> RedirectResolution:
    """Follow redirects from *node_id* to the node that currently replaces it.

    The walk stops when no redirect exists for the current node, when the
    next target was already visited (cycle), or when *max_hops* redirects
    have been followed and another one still exists (truncation). It never
    raises and never runs more than *max_hops* steps.

    Args:
        node_id: Saved node id to resolve.
        redirects: Map of retired node id to its redirect entry.
        max_hops: Maximum number of redirects to follow.

    Returns:
        RedirectResolution with the resolved id and how it was reached.
    """
    max_hops = max(0, max_hops)
    current = node_id
    path = [current]
    visited = {current}
    hops = 0

    while True:
        entry = redirects.get(current)
        if entry is None:
            return RedirectResolution(
                node_id=node_id,
                resolved_node_id=current,
                path=path,
                hops=hops,
                max_hops=max_hops,
            )
        if hops >= max_hops:
            return RedirectResolution(
                node_id=node_id,
                resolved_node_id=current,
                path=path,
                hops=hops,
                truncated=True,
                max_hops=max_hops,
            )
        target = entry.to_node_id
        if target in visited:
            return RedirectResolution(
                node_id=node_id,
                resolved_node_id=current,
                path=path,
                hops=hops,
                cycle_detected=True,
                cycle_target=target,
                max_hops=max_hops,
            )
        current = target
        path.append(current)
        visited.add(current)
        hops += 1
