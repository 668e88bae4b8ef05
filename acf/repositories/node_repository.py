"""
Node repository.

SQLAlchemy implementation of the NodeStore contract.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from acf.config.constants import (
    DEFAULT_MAX_CHILDREN,
    MAX_DEPTH,
    ROOT_MAX_CHILDREN,
)
from acf.models.node import Node
from acf.models.owner_index import OwnerIndexEntry as OwnerIndexRow
from acf.repositories.base import BaseRepository
from acf.services.placement.types import NodeSnapshot, OwnerIndexEntry
from acf.utils.datetime_utils import ensure_aware
from acf.utils.exceptions import CapacityConflict, RootAlreadyExists
from acf.utils.ids import make_member_id


def to_snapshot(node: Node) -> NodeSnapshot:
    """Detach a Node row into an immutable snapshot."""
    return NodeSnapshot(
        id=node.id,
        parent_id=node.parent_id,
        invitor_id=node.invitor_id,
        created_at=ensure_aware(node.created_at),
        child_count=node.child_count,
        max_children=node.max_children,
        depth=node.depth,
        run_number=node.run_number,
    )


class OwnerIndexRepository(BaseRepository[OwnerIndexRow]):
    """Owner index rows."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize owner index repository."""
        super().__init__(OwnerIndexRow, session)

    async def get_entries(self, owner_id: str) -> list[OwnerIndexEntry]:
        """
        Index entries of an owner in append order.

        Args:
            owner_id: Owner node ID

        Returns:
            List of index entries
        """
        stmt = (
            select(OwnerIndexRow)
            .where(OwnerIndexRow.owner_id == owner_id)
            .order_by(OwnerIndexRow.id)
        )
        result = await self.session.execute(stmt)
        return [
            OwnerIndexEntry(
                child_id=row.child_id,
                created_at=ensure_aware(row.created_at),
                child_count_at_insert=row.child_count_at_insert,
                run_number=row.run_number,
            )
            for row in result.scalars().all()
        ]


class NodeRepository(BaseRepository[Node]):
    """Node repository implementing NodeStore."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize node repository."""
        super().__init__(Node, session)
        self.index_repo = OwnerIndexRepository(session)

    async def get_node(self, node_id: str) -> NodeSnapshot | None:
        """
        Get node snapshot by ID.

        Args:
            node_id: Member ID

        Returns:
            Snapshot or None if not found
        """
        node = await self.get_by(id=node_id)
        return to_snapshot(node) if node else None

    async def get_children(self, owner_id: str) -> list[OwnerIndexEntry]:
        """OwnerIndex lookup."""
        return await self.index_repo.get_entries(owner_id)

    async def get_root(self) -> NodeSnapshot | None:
        """Get the single node without a parent."""
        stmt = (
            select(Node)
            .where(Node.parent_id.is_(None))
            .order_by(Node.run_number)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        node = result.scalars().first()
        return to_snapshot(node) if node else None

    async def create_root(
        self, run_number: int, created_at: datetime
    ) -> NodeSnapshot:
        """
        Create the system root.

        Raises:
            RootAlreadyExists: If a root already exists
        """
        existing = await self.get_root()
        if existing is not None:
            raise RootAlreadyExists("Root already exists", root_id=existing.id)

        node = await self.create(
            id=make_member_id(run_number, created_at),
            parent_id=None,
            invitor_id=None,
            child_count=0,
            max_children=ROOT_MAX_CHILDREN,
            depth=0,
            run_number=run_number,
            created_at=created_at,
        )
        return to_snapshot(node)

    async def create_node(
        self,
        parent_id: str,
        invitor_id: str,
        run_number: int,
        depth: int,
        created_at: datetime,
    ) -> NodeSnapshot:
        """Insert a placed member."""
        node = await self.create(
            id=make_member_id(run_number, created_at),
            parent_id=parent_id,
            invitor_id=invitor_id,
            child_count=0,
            max_children=DEFAULT_MAX_CHILDREN,
            depth=depth,
            run_number=run_number,
            created_at=created_at,
        )
        return to_snapshot(node)

    async def increment_child_count(self, node_id: str) -> int:
        """
        Conditional increment; the WHERE clause is the capacity check.

        Args:
            node_id: Parent node ID

        Returns:
            New child count

        Raises:
            CapacityConflict: If the node is Full (or gone)
        """
        stmt = (
            update(Node)
            .where(
                Node.id == node_id,
                Node.child_count < Node.max_children,
                Node.depth < MAX_DEPTH,
            )
            .values(child_count=Node.child_count + 1)
            .returning(Node.child_count)
        )
        result = await self.session.execute(stmt)
        new_count = result.scalar_one_or_none()
        if new_count is None:
            raise CapacityConflict(
                f"Node {node_id} is full", node_id=node_id
            )
        return new_count

    async def append_index_entry(
        self, owner_id: str, entry: OwnerIndexEntry
    ) -> None:
        """Append an OwnerIndex row."""
        await self.index_repo.create(
            owner_id=owner_id,
            child_id=entry.child_id,
            child_count_at_insert=entry.child_count_at_insert,
            run_number=entry.run_number,
            created_at=entry.created_at,
        )

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        """SAVEPOINT scope; rolled back on any exception."""
        async with self.session.begin_nested():
            yield

    async def iter_nodes(self) -> AsyncIterator[NodeSnapshot]:
        """Stream every node ordered by run number."""
        count = 0
        async for node in self.stream(Node.run_number):
            count += 1
            yield to_snapshot(node)
        logger.debug("Nodes streamed", extra={"count": count})
