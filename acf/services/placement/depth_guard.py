"""
Depth ceiling predicate.

Used while filtering candidates and again when the child node is built,
so a stale snapshot can never produce a node below level MAX_DEPTH.
"""

from acf.config.constants import DEFAULT_MAX_CHILDREN, MAX_DEPTH, max_subtree_size
from acf.services.placement.types import NodeSnapshot
from acf.utils.exceptions import DepthLimitExceeded


class DepthGuard:
    """Pure depth checks against a fixed ceiling."""

    def __init__(self, max_depth: int = MAX_DEPTH) -> None:
        if max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {max_depth}")
        self.max_depth = max_depth

    def can_accept(self, depth: int) -> bool:
        """A node at depth may take a child iff depth < max_depth."""
        return depth < self.max_depth

    def is_open(self, node: NodeSnapshot) -> bool:
        """Capacity and depth together."""
        return (
            node.child_count < node.max_children
            and self.can_accept(node.depth)
        )

    def ensure_child_depth(self, parent: NodeSnapshot) -> int:
        """
        Depth for a new child of parent.

        Raises:
            DepthLimitExceeded: If the child would sit below the ceiling
        """
        child_depth = parent.depth + 1
        if child_depth > self.max_depth:
            raise DepthLimitExceeded(
                f"Node {parent.id} at depth {parent.depth} cannot take children",
                parent_id=parent.id,
                parent_depth=parent.depth,
                max_depth=self.max_depth,
            )
        return child_depth

    def max_subtree_size(self, fanout: int = DEFAULT_MAX_CHILDREN) -> int:
        """Derived member bound of a full subtree under this ceiling."""
        return max_subtree_size(fanout, self.max_depth)
