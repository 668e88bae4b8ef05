"""
Snapshot loading.

Reads the nodes and index entries a scope needs from the NodeStore into a
TreeSnapshot, bounded by a node budget and a wall-clock budget.
"""

import time
from collections import deque

from loguru import logger

from acf.config.constants import MAX_SUBTREE_SIZE
from acf.models.enums import Scope
from acf.services.placement.ports import NodeStore
from acf.services.placement.types import TreeSnapshot
from acf.utils.exceptions import AllocationTimeout, InvalidInvitor


class SnapshotLoader:
    """Builds TreeSnapshots for FILE and NETWORK scopes."""

    def __init__(
        self,
        store: NodeStore,
        node_budget: int = MAX_SUBTREE_SIZE,
        time_budget_seconds: float = 5.0,
    ) -> None:
        self.store = store
        self.node_budget = node_budget
        self.time_budget_seconds = time_budget_seconds

    async def load(self, owner_id: str, scope: Scope) -> TreeSnapshot:
        """
        Load the snapshot for owner_id under scope.

        Args:
            owner_id: Owner the search is rooted at
            scope: FILE or NETWORK

        Returns:
            Snapshot containing the owner and every node the scope can reach

        Raises:
            InvalidInvitor: If owner_id is unknown
            AllocationTimeout: If a budget is exhausted
        """
        deadline = time.monotonic() + self.time_budget_seconds
        snapshot = TreeSnapshot()

        owner = await self.store.get_node(owner_id)
        if owner is None:
            raise InvalidInvitor(f"Unknown owner {owner_id}", owner_id=owner_id)
        snapshot.nodes[owner.id] = owner

        if Scope(scope) is Scope.FILE:
            await self._load_entries(snapshot, owner.id, deadline)
        else:
            await self._load_network(snapshot, owner.id, deadline)

        logger.debug(
            "Snapshot loaded",
            extra={
                "owner_id": owner_id,
                "scope": Scope(scope).value,
                "nodes": len(snapshot),
            },
        )
        return snapshot

    async def _load_network(
        self, snapshot: TreeSnapshot, owner_id: str, deadline: float
    ) -> None:
        queue: deque[str] = deque([owner_id])
        expanded: set[str] = set()
        while queue:
            node_id = queue.popleft()
            if node_id in expanded:
                continue
            expanded.add(node_id)
            for child_id in await self._load_entries(
                snapshot, node_id, deadline
            ):
                if child_id not in expanded:
                    queue.append(child_id)

    async def _load_entries(
        self, snapshot: TreeSnapshot, owner_id: str, deadline: float
    ) -> list[str]:
        self._check_deadline(owner_id, deadline)
        entries = await self.store.get_children(owner_id)
        snapshot.index[owner_id] = entries

        loaded = []
        for entry in entries:
            if entry.child_id in snapshot.nodes:
                loaded.append(entry.child_id)
                continue
            if len(snapshot.nodes) >= self.node_budget:
                raise AllocationTimeout(
                    f"Traversal from {owner_id} exceeded {self.node_budget} nodes",
                    owner_id=owner_id,
                    node_budget=self.node_budget,
                )
            child = await self.store.get_node(entry.child_id)
            if child is None:
                logger.warning(
                    "Index entry points at missing node",
                    extra={"owner_id": owner_id, "child_id": entry.child_id},
                )
                continue
            snapshot.nodes[child.id] = child
            loaded.append(child.id)
        return loaded

    def _check_deadline(self, owner_id: str, deadline: float) -> None:
        if time.monotonic() > deadline:
            raise AllocationTimeout(
                f"Traversal from {owner_id} exceeded "
                f"{self.time_budget_seconds}s",
                owner_id=owner_id,
                time_budget_seconds=self.time_budget_seconds,
            )
