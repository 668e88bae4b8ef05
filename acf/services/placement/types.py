"""
Placement value types.

Immutable snapshots the selector and aggregator compute over, plus the
results the engine and aggregator hand back to callers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from acf.config.constants import DISPLAY_QUANT, MAX_DEPTH
from acf.models.enums import NodeStatus


@dataclass(frozen=True)
class NodeSnapshot:
    """Point-in-time view of one node."""

    id: str
    parent_id: str | None
    invitor_id: str | None
    created_at: datetime
    child_count: int
    max_children: int
    depth: int
    run_number: int

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def status(self) -> NodeStatus:
        if self.child_count < self.max_children and self.depth < MAX_DEPTH:
            return NodeStatus.OPEN
        return NodeStatus.FULL

    @property
    def sort_key(self) -> tuple[datetime, int, int]:
        """Candidate ordering: earliest, then least loaded, then run number."""
        return (self.created_at, self.child_count, self.run_number)


@dataclass(frozen=True)
class OwnerIndexEntry:
    """One child logged under an owner."""

    child_id: str
    created_at: datetime
    child_count_at_insert: int
    run_number: int


@dataclass
class TreeSnapshot:
    """
    Consistent read of the part of the tree a selection needs.

    nodes maps id to snapshot; index maps owner id to its index entries
    in append order.
    """

    nodes: dict[str, NodeSnapshot] = field(default_factory=dict)
    index: dict[str, list[OwnerIndexEntry]] = field(default_factory=dict)

    def get(self, node_id: str) -> NodeSnapshot | None:
        return self.nodes.get(node_id)

    def entries(self, owner_id: str) -> list[OwnerIndexEntry]:
        return self.index.get(owner_id, [])

    def __len__(self) -> int:
        return len(self.nodes)


@dataclass(frozen=True)
class ParentAssignment:
    """Committed placement of a new member."""

    node_id: str
    parent_id: str
    invitor_id: str
    depth: int
    run_number: int
    created_at: datetime
    attempts: int = 1


@dataclass(frozen=True)
class SubtreeMember:
    """Member of a subtree with depth relative to the subtree root."""

    id: str
    depth: int


@dataclass(frozen=True)
class OrderAggregates:
    """Completed order figures for a set of sellers."""

    count: int = 0
    total_amount: Decimal = Decimal("0")
    total_fee: Decimal = Decimal("0")
    seller_count: int = 0


@dataclass(frozen=True)
class NetworkFinancials:
    """Membership and financial aggregates of one subtree."""

    root_id: str
    member_count: int
    seller_count: int
    order_count: int
    total_sales: Decimal
    total_fees: Decimal

    def as_display(self) -> dict:
        """Rounded view for reporting; aggregation itself stays exact."""
        quant = Decimal(DISPLAY_QUANT)
        return {
            "root_id": self.root_id,
            "member_count": self.member_count,
            "seller_count": self.seller_count,
            "order_count": self.order_count,
            "total_sales": self.total_sales.quantize(quant),
            "total_fees": self.total_fees.quantize(quant),
        }
