"""Graph integrity error types.

These errors describe saved positions that no longer line up with the
authored dialogue graphs, similar to dangling foreign keys in a database.
None of them are fatal: the persistence layer recovers from each one and
logs the error's ``describe()`` output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import get_close_matches


class GraphIntegrityError(Exception):
    """Base class for graph integrity violations.

    Subclasses implement describe() to give a multi-line, human-readable
    account for logs and the CLI.
    """

    def describe(self) -> str:
        """Format the error for operators.

        Returns:
            Human-readable text explaining what is wrong and where.
        """
        raise NotImplementedError


@dataclass
class NodeNotFoundError(GraphIntegrityError):
    """Raised when a node id does not exist in the expected graph.

    Attributes:
        node_id: The ID that was referenced but doesn't exist.
        character_id: Character whose graph was searched, if any.
        available: Valid node IDs in that graph.
        context: Description of where the reference occurred.
    """

    node_id: str
    character_id: str | None = None
    available: list[str] = field(default_factory=list)
    context: str = ""

    def __post_init__(self) -> None:
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"Node '{self.node_id}' not found"
        if self.character_id:
            msg += f" in graph '{self.character_id}'"
        if self.context:
            msg += f" ({self.context})"
        return msg

    def suggestions(self) -> list[str]:
        """Find similar IDs that might be typos."""
        return get_close_matches(self.node_id, self.available, n=3, cutoff=0.6)

    def describe(self) -> str:
        lines = [self._format_message()]
        suggestions = self.suggestions()
        if suggestions:
            lines.append("Did you mean: " + ", ".join(suggestions))
        if self.available:
            shown = sorted(self.available)[:20]
            lines.append("Valid node IDs: " + ", ".join(shown))
            if len(self.available) > 20:
                lines.append(f"... and {len(self.available) - 20} more")
        return "\n".join(lines)


@dataclass
class RedirectCycleError(GraphIntegrityError):
    """A redirect chain loops back on itself.

    Attributes:
        node_id: Node id the resolution started from.
        path: Node ids visited before the repeat was detected.
        repeated: The target that had already been visited.
    """

    node_id: str
    path: list[str] = field(default_factory=list)
    repeated: str = ""

    def __post_init__(self) -> None:
        super().__init__(
            f"Redirect cycle starting at '{self.node_id}' (revisits '{self.repeated}')"
        )

    def describe(self) -> str:
        chain = " -> ".join([*self.path, self.repeated])
        return (
            f"Redirect cycle detected for '{self.node_id}'\n"
            f"Chain: {chain}\n"
            f"Resolution stopped at '{self.path[-1] if self.path else self.node_id}'"
        )


@dataclass
class RedirectTruncatedError(GraphIntegrityError):
    """A redirect chain is longer than the hop limit.

    Attributes:
        node_id: Node id the resolution started from.
        path: Node ids visited up to the hop limit.
        max_hops: The limit that was reached.
    """

    node_id: str
    path: list[str] = field(default_factory=list)
    max_hops: int = 0

    def __post_init__(self) -> None:
        super().__init__(
            f"Redirect chain from '{self.node_id}' exceeds {self.max_hops} hop(s)"
        )

    def describe(self) -> str:
        return (
            f"Redirect chain from '{self.node_id}' truncated after {self.max_hops} hop(s)\n"
            f"Chain so far: {' -> '.join(self.path)}"
        )


@dataclass
class RecoveryFailedError(GraphIntegrityError):
    """No step of the recovery ladder produced a node that exists.

    Attributes:
        node_id: The saved (possibly redirect-resolved) node id.
        character_id: The saved character id.
        attempted: Description of each recovery step that was tried.
    """

    node_id: str
    character_id: str
    attempted: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__init__(
            f"Could not recover position '{self.node_id}' for character '{self.character_id}'"
        )

    def describe(self) -> str:
        lines = [str(self)]
        for step in self.attempted:
            lines.append(f"  - {step}")
        return "\n".join(lines)
