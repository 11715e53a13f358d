"""Tests for node redirect resolution."""

from __future__ import annotations

from terminus.graph import RedirectCycleError, RedirectTruncatedError
from terminus.graph.redirects import resolve_dialogue_node_redirect
from terminus.models import RedirectEntry


def _redirects(**pairs: str) -> dict[str, RedirectEntry]:
    return {source: RedirectEntry(to_node_id=target) for source, target in pairs.items()}


class TestResolveRedirect:
    """Test walking redirect chains."""

    def test_no_redirect(self) -> None:
        """A node without a redirect resolves to itself."""
        resolution = resolve_dialogue_node_redirect("a", {})
        assert resolution.resolved_node_id == "a"
        assert resolution.path == ["a"]
        assert resolution.hops == 0
        assert not resolution.redirected
        assert resolution.clean

    def test_single_hop(self) -> None:
        """a -> b resolves to b in one hop."""
        resolution = resolve_dialogue_node_redirect("a", _redirects(a="b"))
        assert resolution.resolved_node_id == "b"
        assert resolution.hops == 1
        assert resolution.redirected

    def test_chain(self) -> None:
        """a -> b -> c resolves to c in two hops."""
        resolution = resolve_dialogue_node_redirect("a", _redirects(a="b", b="c"))
        assert resolution.resolved_node_id == "c"
        assert resolution.path == ["a", "b", "c"]
        assert resolution.hops == 2
        assert resolution.clean

    def test_two_node_cycle(self) -> None:
        """a -> b -> a stops at b with a bounded path."""
        resolution = resolve_dialogue_node_redirect("a", _redirects(a="b", b="a"))
        assert resolution.cycle_detected
        assert not resolution.truncated
        assert resolution.resolved_node_id == "b"
        assert resolution.path == ["a", "b"]
        assert resolution.cycle_target == "a"

    def test_self_cycle(self) -> None:
        """A node redirecting to itself stops immediately."""
        resolution = resolve_dialogue_node_redirect("a", _redirects(a="a"))
        assert resolution.cycle_detected
        assert resolution.resolved_node_id == "a"
        assert resolution.hops == 0

    def test_cycle_after_prefix(self) -> None:
        """x -> a -> b -> a stops at b."""
        resolution = resolve_dialogue_node_redirect("x", _redirects(x="a", a="b", b="a"))
        assert resolution.cycle_detected
        assert resolution.resolved_node_id == "b"
        assert resolution.path == ["x", "a", "b"]

    def test_truncation(self) -> None:
        """A chain longer than max_hops stops at the hop limit."""
        chain = {f"n{i}": f"n{i + 1}" for i in range(20)}
        resolution = resolve_dialogue_node_redirect("n0", _redirects(**chain), max_hops=8)
        assert resolution.truncated
        assert not resolution.cycle_detected
        assert resolution.resolved_node_id == "n8"
        assert resolution.hops == 8
        assert len(resolution.path) == 9

    def test_chain_exactly_at_limit_is_clean(self) -> None:
        """A chain ending on the last allowed hop is not truncated."""
        chain = {f"n{i}": f"n{i + 1}" for i in range(3)}
        resolution = resolve_dialogue_node_redirect("n0", _redirects(**chain), max_hops=3)
        assert resolution.resolved_node_id == "n3"
        assert resolution.clean

    def test_zero_hops(self) -> None:
        """max_hops=0 never follows a redirect."""
        resolution = resolve_dialogue_node_redirect("a", _redirects(a="b"), max_hops=0)
        assert resolution.resolved_node_id == "a"
        assert resolution.truncated


class TestResolutionErrors:
    """Test describing abnormal resolutions."""

    def test_clean_resolution_has_no_error(self) -> None:
        """A clean walk reports no error."""
        assert resolve_dialogue_node_redirect("a", _redirects(a="b")).as_error() is None

    def test_cycle_error(self) -> None:
        """A cycle is described as RedirectCycleError."""
        error = resolve_dialogue_node_redirect("a", _redirects(a="b", b="a")).as_error()
        assert isinstance(error, RedirectCycleError)
        assert "a -> b -> a" in error.describe()

    def test_truncated_error(self) -> None:
        """Truncation is described as RedirectTruncatedError."""
        chain = {f"n{i}": f"n{i + 1}" for i in range(5)}
        error = resolve_dialogue_node_redirect("n0", _redirects(**chain), max_hops=2).as_error()
        assert isinstance(error, RedirectTruncatedError)
        assert error.max_hops == 2
        assert "truncated after 2 hop(s)" in error.describe()
