"""
Candidate selection.

Pure ordering of placement candidates over a TreeSnapshot.
"""

from collections import deque

from acf.config.constants import MAX_SUBTREE_SIZE
from acf.models.enums import Scope
from acf.services.placement.depth_guard import DepthGuard
from acf.services.placement.types import NodeSnapshot, TreeSnapshot
from acf.utils.exceptions import AllocationTimeout, InvalidInvitor


class CandidateSelector:
    """
    Generates and orders Open candidates for an owner.

    FILE scope looks at the owner and its own index entries only, so it can
    fail while deeper Open nodes exist. NETWORK scope walks the owner's
    whole subtree breadth-first.
    """

    def __init__(
        self,
        guard: DepthGuard | None = None,
        node_budget: int = MAX_SUBTREE_SIZE,
    ) -> None:
        self.guard = guard or DepthGuard()
        self.node_budget = node_budget

    def select(
        self, owner_id: str, scope: Scope, snapshot: TreeSnapshot
    ) -> list[NodeSnapshot]:
        """
        Ordered Open candidates, best first.

        Args:
            owner_id: Owner the search is rooted at
            scope: FILE or NETWORK
            snapshot: Consistent read of the tree

        Returns:
            Open nodes sorted by (created_at, child_count, run_number);
            empty when none is Open

        Raises:
            InvalidInvitor: If owner_id is not in the snapshot
            AllocationTimeout: If NETWORK traversal exceeds the node budget
        """
        if snapshot.get(owner_id) is None:
            raise InvalidInvitor(f"Unknown owner {owner_id}", owner_id=owner_id)

        if Scope(scope) is Scope.FILE:
            candidate_ids = self._file_scope(owner_id, snapshot)
        else:
            candidate_ids = self._network_scope(owner_id, snapshot)

        candidates = [
            snapshot.nodes[node_id]
            for node_id in candidate_ids
            if node_id in snapshot.nodes
        ]
        open_candidates = [c for c in candidates if self.guard.is_open(c)]
        return sorted(open_candidates, key=lambda c: c.sort_key)

    def _file_scope(self, owner_id: str, snapshot: TreeSnapshot) -> list[str]:
        seen = {owner_id}
        ids = [owner_id]
        for entry in snapshot.entries(owner_id):
            if entry.child_id not in seen:
                seen.add(entry.child_id)
                ids.append(entry.child_id)
        return ids

    def _network_scope(
        self, owner_id: str, snapshot: TreeSnapshot
    ) -> list[str]:
        visited = {owner_id}
        order = [owner_id]
        queue = deque([owner_id])
        while queue:
            node_id = queue.popleft()
            for entry in snapshot.entries(node_id):
                child_id = entry.child_id
                if child_id in visited:
                    continue
                visited.add(child_id)
                if len(visited) > self.node_budget:
                    raise AllocationTimeout(
                        f"Candidate search from {owner_id} exceeded "
                        f"{self.node_budget} nodes",
                        owner_id=owner_id,
                        node_budget=self.node_budget,
                    )
                order.append(child_id)
                queue.append(child_id)
        return order
