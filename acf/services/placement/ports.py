"""
Collaborator contracts consumed by the placement core.

Storage, ledger and sequence implementations plug in behind these
protocols; see memory_store for the in-process versions and
acf.repositories for the SQLAlchemy ones.
"""

from collections.abc import AsyncIterator, Iterable
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Protocol

from acf.services.placement.types import (
    NodeSnapshot,
    OrderAggregates,
    OwnerIndexEntry,
)


class NodeStore(Protocol):
    """Read/write access to tree nodes and per-owner child indexes."""

    async def get_node(self, node_id: str) -> NodeSnapshot | None:
        ...

    async def get_children(self, owner_id: str) -> list[OwnerIndexEntry]:
        """OwnerIndex entries of owner_id in append order."""
        ...

    async def get_root(self) -> NodeSnapshot | None:
        ...

    async def create_root(
        self, run_number: int, created_at: datetime
    ) -> NodeSnapshot:
        ...

    async def create_node(
        self,
        parent_id: str,
        invitor_id: str,
        run_number: int,
        depth: int,
        created_at: datetime,
    ) -> NodeSnapshot:
        ...

    async def increment_child_count(self, node_id: str) -> int:
        """
        Atomically add one child to node_id.

        Raises:
            CapacityConflict: If the node is no longer Open
        """
        ...

    async def append_index_entry(
        self, owner_id: str, entry: OwnerIndexEntry
    ) -> None:
        ...

    def atomic(self) -> AbstractAsyncContextManager[None]:
        """Scope in which every write lands or none does."""
        ...

    def iter_nodes(self) -> AsyncIterator[NodeSnapshot]:
        ...


class Ledger(Protocol):
    """Completed order aggregates per seller set."""

    async def get_completed_order_aggregates(
        self, seller_ids: Iterable[str]
    ) -> OrderAggregates:
        ...


class RunNumberAuthority(Protocol):
    """Single monotonic run number sequence."""

    async def next_run_number(self) -> int:
        ...
