"""
In-process collaborators.

Dict-backed NodeStore, Ledger and RunNumberAuthority for a single event
loop. Writes made inside atomic() are staged and applied in one step with
no await in between, so other tasks never observe half a placement.
"""

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal

from loguru import logger

from acf.config.constants import (
    DEFAULT_MAX_CHILDREN,
    MAX_DEPTH,
    ROOT_MAX_CHILDREN,
)
from acf.models.enums import OrderStatus
from acf.services.placement.types import (
    NodeSnapshot,
    OrderAggregates,
    OwnerIndexEntry,
    TreeSnapshot,
)
from acf.utils.exceptions import (
    CapacityConflict,
    InvalidInvitor,
    RootAlreadyExists,
)
from acf.utils.ids import make_member_id


@dataclass
class _StagedWrites:
    increments: dict[str, int] = field(default_factory=dict)
    nodes: list[NodeSnapshot] = field(default_factory=list)
    entries: list[tuple[str, OwnerIndexEntry]] = field(default_factory=list)


class InMemoryNodeStore:
    """NodeStore over plain dicts."""

    def __init__(self) -> None:
        self._nodes: dict[str, NodeSnapshot] = {}
        self._index: dict[str, list[OwnerIndexEntry]] = {}
        self._root_id: str | None = None
        self._staged: ContextVar[_StagedWrites | None] = ContextVar(
            f"acf_staged_{id(self)}", default=None
        )

    @classmethod
    def from_snapshot(cls, snapshot: TreeSnapshot) -> "InMemoryNodeStore":
        """Load a store from an existing snapshot without validation."""
        store = cls()
        store._nodes = dict(snapshot.nodes)
        store._index = {k: list(v) for k, v in snapshot.index.items()}
        roots = [n.id for n in snapshot.nodes.values() if n.parent_id is None]
        store._root_id = roots[0] if roots else None
        return store

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_node(self, node_id: str) -> NodeSnapshot | None:
        return self._nodes.get(node_id)

    async def get_children(self, owner_id: str) -> list[OwnerIndexEntry]:
        return list(self._index.get(owner_id, ()))

    async def get_root(self) -> NodeSnapshot | None:
        if self._root_id is None:
            return None
        return self._nodes.get(self._root_id)

    async def iter_nodes(self) -> AsyncIterator[NodeSnapshot]:
        for node in sorted(self._nodes.values(), key=lambda n: n.run_number):
            yield node

    def __len__(self) -> int:
        return len(self._nodes)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        """Stage writes and apply them together on clean exit."""
        if self._staged.get() is not None:
            # Nested scope joins the outer one
            yield
            return

        staged = _StagedWrites()
        token = self._staged.set(staged)
        try:
            yield
        finally:
            self._staged.reset(token)
        self._apply(staged)

    async def create_root(
        self, run_number: int, created_at: datetime
    ) -> NodeSnapshot:
        if self._root_id is not None:
            raise RootAlreadyExists(
                "Root already exists", root_id=self._root_id
            )
        root = NodeSnapshot(
            id=make_member_id(run_number, created_at),
            parent_id=None,
            invitor_id=None,
            created_at=created_at,
            child_count=0,
            max_children=ROOT_MAX_CHILDREN,
            depth=0,
            run_number=run_number,
        )
        async with self.atomic():
            self._require_staged().nodes.append(root)
        return root

    async def create_node(
        self,
        parent_id: str,
        invitor_id: str,
        run_number: int,
        depth: int,
        created_at: datetime,
    ) -> NodeSnapshot:
        node = NodeSnapshot(
            id=make_member_id(run_number, created_at),
            parent_id=parent_id,
            invitor_id=invitor_id,
            created_at=created_at,
            child_count=0,
            max_children=DEFAULT_MAX_CHILDREN,
            depth=depth,
            run_number=run_number,
        )
        async with self.atomic():
            self._require_staged().nodes.append(node)
        return node

    async def increment_child_count(self, node_id: str) -> int:
        async with self.atomic():
            staged = self._require_staged()
            pending = staged.increments.get(node_id, 0) + 1
            new_count = self._check_capacity(node_id, pending)
            staged.increments[node_id] = pending
        return new_count

    async def append_index_entry(
        self, owner_id: str, entry: OwnerIndexEntry
    ) -> None:
        async with self.atomic():
            self._require_staged().entries.append((owner_id, entry))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_staged(self) -> _StagedWrites:
        staged = self._staged.get()
        if staged is None:
            raise RuntimeError("write outside atomic scope")
        return staged

    def _check_capacity(self, node_id: str, pending: int) -> int:
        node = self._nodes.get(node_id)
        if node is None:
            raise InvalidInvitor(f"Unknown node {node_id}", node_id=node_id)
        new_count = node.child_count + pending
        if new_count > node.max_children or node.depth >= MAX_DEPTH:
            raise CapacityConflict(
                f"Node {node_id} is full",
                node_id=node_id,
                child_count=node.child_count,
                max_children=node.max_children,
            )
        return new_count

    def _apply(self, staged: _StagedWrites) -> None:
        # Validate everything first; no await below this line
        for node_id, pending in staged.increments.items():
            self._check_capacity(node_id, pending)
        for node in staged.nodes:
            if node.id in self._nodes:
                raise CapacityConflict(
                    f"Node {node.id} already exists", node_id=node.id
                )
        roots = [n.id for n in staged.nodes if n.parent_id is None]
        if roots and (self._root_id is not None or len(roots) > 1):
            raise RootAlreadyExists("Root already exists", root_ids=roots)

        for node_id, pending in staged.increments.items():
            node = self._nodes[node_id]
            self._nodes[node_id] = replace(
                node, child_count=node.child_count + pending
            )
        for node in staged.nodes:
            self._nodes[node.id] = node
            self._index.setdefault(node.id, [])
            if node.parent_id is None:
                self._root_id = node.id
        for owner_id, entry in staged.entries:
            entries = self._index.setdefault(owner_id, [])
            if not any(e.child_id == entry.child_id for e in entries):
                entries.append(entry)

        if staged.nodes:
            logger.trace(
                "In-memory placement applied",
                extra={
                    "nodes": [n.id for n in staged.nodes],
                    "increments": dict(staged.increments),
                },
            )


@dataclass(frozen=True)
class LedgerOrder:
    """Order row held by the in-memory ledger."""

    seller_id: str
    total_amount: Decimal
    community_fee: Decimal
    status: str = OrderStatus.COMPLETED.value


class InMemoryLedger:
    """Ledger over a list of orders."""

    def __init__(self, orders: Iterable[LedgerOrder] = ()) -> None:
        self._orders: list[LedgerOrder] = list(orders)

    def record_order(
        self,
        seller_id: str,
        total_amount: Decimal | str,
        community_fee: Decimal | str,
        status: OrderStatus | str = OrderStatus.COMPLETED,
    ) -> LedgerOrder:
        order = LedgerOrder(
            seller_id=seller_id,
            total_amount=Decimal(str(total_amount)),
            community_fee=Decimal(str(community_fee)),
            status=OrderStatus(status).value,
        )
        self._orders.append(order)
        return order

    async def get_completed_order_aggregates(
        self, seller_ids: Iterable[str]
    ) -> OrderAggregates:
        wanted = set(seller_ids)
        completed = [
            o for o in self._orders
            if o.seller_id in wanted
            and o.status == OrderStatus.COMPLETED.value
        ]
        return OrderAggregates(
            count=len(completed),
            total_amount=sum(
                (o.total_amount for o in completed), Decimal("0")
            ),
            total_fee=sum(
                (o.community_fee for o in completed), Decimal("0")
            ),
            seller_count=len({o.seller_id for o in completed}),
        )


class InMemoryRunNumberAuthority:
    """Monotonic counter; safe within one event loop."""

    def __init__(self, start: int = 0) -> None:
        self._next = start

    async def next_run_number(self) -> int:
        value = self._next
        self._next += 1
        return value

    @property
    def peek(self) -> int:
        return self._next
