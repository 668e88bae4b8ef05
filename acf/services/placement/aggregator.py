"""
Network aggregation.

Bounded-depth subtree membership and completed-order aggregates. Read only.
"""

from collections import Counter, deque

from acf.config.constants import MAX_DEPTH
from acf.config.settings import Settings, settings as default_settings
from acf.models.enums import Scope
from acf.services.base_service import BaseService, ServiceResult
from acf.services.placement.ports import Ledger, NodeStore
from acf.services.placement.snapshot import SnapshotLoader
from acf.services.placement.types import (
    NetworkFinancials,
    SubtreeMember,
    TreeSnapshot,
)
from acf.utils.exceptions import InvalidInvitor, PlacementError


def subtree_members(
    snapshot: TreeSnapshot, root_id: str, max_depth: int = MAX_DEPTH
) -> list[SubtreeMember]:
    """
    Breadth-first members of root_id's subtree, root first.

    Only true parent edges are followed; index entries logged under an
    invitor are skipped unless the invitor is the child's parent. The
    visited set keeps malformed or cyclic data from looping.
    """
    if snapshot.get(root_id) is None:
        raise InvalidInvitor(f"Unknown node {root_id}", node_id=root_id)

    members = [SubtreeMember(id=root_id, depth=0)]
    visited = {root_id}
    queue = deque([(root_id, 0)])
    while queue:
        node_id, depth = queue.popleft()
        if depth >= max_depth:
            continue
        for entry in snapshot.entries(node_id):
            child = snapshot.get(entry.child_id)
            if child is None or child.parent_id != node_id:
                continue
            if child.id in visited:
                continue
            visited.add(child.id)
            members.append(SubtreeMember(id=child.id, depth=depth + 1))
            queue.append((child.id, depth + 1))
    return members


class NetworkAggregator(BaseService):
    """Subtree statistics over a NodeStore and a Ledger."""

    def __init__(
        self,
        store: NodeStore,
        ledger: Ledger,
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize network aggregator.

        Args:
            store: Node storage collaborator
            ledger: Completed order source
            settings: Traversal budgets (global settings by default)
        """
        super().__init__()
        self.settings = settings or default_settings
        self.store = store
        self.ledger = ledger
        self.loader = SnapshotLoader(
            store,
            node_budget=self.settings.allocation_node_budget,
            time_budget_seconds=self.settings.allocation_time_budget_seconds,
        )

    async def compute_subtree(
        self, root_id: str, max_depth: int = MAX_DEPTH
    ) -> list[SubtreeMember]:
        """
        Members of root_id's subtree with depth relative to root_id.

        Raises:
            InvalidInvitor: If root_id is unknown
            AllocationTimeout: If the traversal budget is exhausted
        """
        snapshot = await self.loader.load(root_id, Scope.NETWORK)
        return subtree_members(snapshot, root_id, max_depth)

    async def aggregate_financials(self, root_id: str) -> ServiceResult:
        """
        Membership and completed-order totals for root_id's subtree.

        Args:
            root_id: Subtree root

        Returns:
            ServiceResult with NetworkFinancials, or an error_code
        """
        try:
            members = await self.compute_subtree(root_id)
        except PlacementError as e:
            self.logger.warning(
                "Network aggregation failed",
                extra={"root_id": root_id, "error_code": e.error_code},
            )
            return ServiceResult.from_error(e)

        member_ids = {m.id for m in members}
        aggregates = await self.ledger.get_completed_order_aggregates(
            member_ids
        )
        financials = NetworkFinancials(
            root_id=root_id,
            member_count=len(members),
            seller_count=aggregates.seller_count,
            order_count=aggregates.count,
            total_sales=aggregates.total_amount,
            total_fees=aggregates.total_fee,
        )

        self.logger.debug(
            "Network aggregated",
            extra={
                "root_id": root_id,
                "member_count": financials.member_count,
                "order_count": financials.order_count,
            },
        )
        return ServiceResult.ok(financials)

    async def depth_distribution(self, root_id: str) -> dict[int, int]:
        """Member count per relative depth, e.g. {0: 1, 1: 5, 2: 12}."""
        counts = Counter(m.depth for m in await self.compute_subtree(root_id))
        return dict(sorted(counts.items()))

    async def get_upline(self, node_id: str) -> list[str]:
        """
        Parent chain of node_id, nearest first, ending at the root.

        Raises:
            InvalidInvitor: If node_id is unknown
        """
        node = await self.store.get_node(node_id)
        if node is None:
            raise InvalidInvitor(f"Unknown node {node_id}", node_id=node_id)

        chain: list[str] = []
        seen = {node.id}
        while node.parent_id is not None and node.parent_id not in seen:
            seen.add(node.parent_id)
            parent = await self.store.get_node(node.parent_id)
            if parent is None:
                self.logger.warning(
                    "Upline broken by missing parent",
                    extra={"node_id": node.id, "parent_id": node.parent_id},
                )
                break
            chain.append(parent.id)
            node = parent
        return chain
