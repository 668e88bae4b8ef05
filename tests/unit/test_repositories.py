"""
Tests for the SQLAlchemy repositories.

Tests cover:
- NodeRepository reads, inserts and the conditional child_count increment
- OwnerIndex entries
- OrderRepository ledger aggregates and chunking
- RunNumberRepository sequence access
- RegistrationService transaction boundary

All tests use a mocked AsyncSession; no database is required.
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from acf.models.node import Node
from acf.models.owner_index import OwnerIndexEntry as OwnerIndexRow
from acf.repositories import order_repository
from acf.repositories.node_repository import NodeRepository, to_snapshot
from acf.repositories.order_repository import OrderRepository
from acf.repositories.run_number_repository import RunNumberRepository
from acf.services.base_service import ServiceResult
from acf.services.registration_service import RegistrationService
from acf.utils.exceptions import (
    CapacityConflict,
    RootAlreadyExists,
)
from tests.factories import BASE_TIME, make_node, index_entry


def node_row(**overrides):
    data = dict(
        id="25AAA0001",
        parent_id="25AAA0000",
        invitor_id="25AAA0000",
        child_count=2,
        max_children=5,
        depth=1,
        run_number=1,
        created_at=BASE_TIME.replace(tzinfo=None),
    )
    data.update(overrides)
    return Node(**data)


def scalars_result(*rows):
    """Execute result whose scalars() yields rows."""
    result = MagicMock()
    result.scalars.return_value.first.return_value = rows[0] if rows else None
    result.scalars.return_value.all.return_value = list(rows)
    return result


class TestNodeRepository:
    """Test NodeRepository."""

    @pytest.mark.asyncio
    async def test_get_node(self, mock_session):
        """Rows are detached into aware snapshots."""
        mock_session.execute.return_value = scalars_result(node_row())
        repo = NodeRepository(mock_session)

        node = await repo.get_node("25AAA0001")

        assert node.id == "25AAA0001"
        assert node.child_count == 2
        assert node.created_at == BASE_TIME
        assert node.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_node_missing(self, mock_session):
        """Unknown id returns None."""
        mock_session.execute.return_value = scalars_result()
        repo = NodeRepository(mock_session)

        assert await repo.get_node("nobody") is None

    @pytest.mark.asyncio
    async def test_create_node(self, mock_session):
        """Inserted member gets a derived id and default fanout."""
        repo = NodeRepository(mock_session)

        node = await repo.create_node(
            parent_id="25AAA0001",
            invitor_id="25AAA0000",
            run_number=7,
            depth=2,
            created_at=BASE_TIME,
        )

        assert node.id == "25AAA0007"
        assert node.max_children == 5
        assert node.depth == 2
        added = mock_session.add.call_args.args[0]
        assert isinstance(added, Node)
        assert added.parent_id == "25AAA0001"
        mock_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_create_root_refuses_second_root(self, mock_session):
        """Existing root blocks a new one."""
        mock_session.execute.return_value = scalars_result(
            node_row(id="25AAA0000", parent_id=None, invitor_id=None,
                     max_children=1, depth=0, run_number=0)
        )
        repo = NodeRepository(mock_session)

        with pytest.raises(RootAlreadyExists):
            await repo.create_root(1, BASE_TIME)
        mock_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_root(self, mock_session):
        """Root takes a single slot at depth 0."""
        mock_session.execute.return_value = scalars_result()
        repo = NodeRepository(mock_session)

        root = await repo.create_root(0, BASE_TIME)

        assert root.id == "25AAA0000"
        assert root.max_children == 1
        assert root.parent_id is None

    @pytest.mark.asyncio
    async def test_increment_success(self, mock_session):
        """Conditional update returns the new count."""
        result = MagicMock()
        result.scalar_one_or_none.return_value = 3
        mock_session.execute.return_value = result
        repo = NodeRepository(mock_session)

        assert await repo.increment_child_count("25AAA0001") == 3

        stmt = str(mock_session.execute.call_args.args[0])
        assert "UPDATE acf_nodes" in stmt
        assert "acf_nodes.child_count < acf_nodes.max_children" in stmt

    @pytest.mark.asyncio
    async def test_increment_conflict(self, mock_session):
        """No updated row means the parent is Full."""
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        mock_session.execute.return_value = result
        repo = NodeRepository(mock_session)

        with pytest.raises(CapacityConflict):
            await repo.increment_child_count("25AAA0001")

    @pytest.mark.asyncio
    async def test_append_and_read_index(self, mock_session):
        """Index rows round-trip into entries."""
        repo = NodeRepository(mock_session)
        child = make_node("25AAA0002", "25AAA0001", depth=2, run_number=2)

        await repo.append_index_entry("25AAA0001", index_entry(child))

        row = mock_session.add.call_args.args[0]
        assert isinstance(row, OwnerIndexRow)
        assert row.owner_id == "25AAA0001"
        assert row.child_id == "25AAA0002"

        mock_session.execute.return_value = scalars_result(row)
        entries = await repo.get_children("25AAA0001")

        assert [e.child_id for e in entries] == ["25AAA0002"]
        assert entries[0].run_number == 2

    @pytest.mark.asyncio
    async def test_atomic_uses_savepoint(self, mock_session):
        """atomic() wraps writes in a nested transaction."""
        mock_session.begin_nested = MagicMock(return_value=AsyncMock())
        repo = NodeRepository(mock_session)

        async with repo.atomic():
            pass

        mock_session.begin_nested.assert_called_once()

    @pytest.mark.asyncio
    async def test_iter_nodes_streams_snapshots(self, mock_session):
        """Rows are streamed in run order as snapshots."""
        async def rows():
            yield node_row(id="25AAA0000", parent_id=None, invitor_id=None,
                           max_children=1, depth=0, run_number=0, child_count=1)
            yield node_row()

        mock_session.stream_scalars = AsyncMock(return_value=rows())
        repo = NodeRepository(mock_session)

        nodes = [node async for node in repo.iter_nodes()]

        assert [n.id for n in nodes] == ["25AAA0000", "25AAA0001"]
        mock_session.stream_scalars.assert_awaited_once()

    def test_to_snapshot_status(self):
        """Snapshot keeps the derived status."""
        snapshot = to_snapshot(node_row(child_count=5))

        assert snapshot.status == node_row(child_count=5).status


class TestOrderRepository:
    """Test OrderRepository."""

    @pytest.mark.asyncio
    async def test_empty_sellers_skip_query(self, mock_session):
        """No sellers, no query."""
        repo = OrderRepository(mock_session)

        aggregates = await repo.get_completed_order_aggregates([])

        assert aggregates.count == 0
        assert aggregates.total_amount == Decimal("0")
        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_single_chunk(self, mock_session):
        """Row figures become OrderAggregates."""
        result = MagicMock()
        result.one.return_value = SimpleNamespace(
            count=3,
            total_amount=Decimal("30.015"),
            total_fee=Decimal("1.5"),
            seller_count=2,
        )
        mock_session.execute.return_value = result
        repo = OrderRepository(mock_session)

        aggregates = await repo.get_completed_order_aggregates(["a", "b", "a"])

        assert aggregates.count == 3
        assert aggregates.seller_count == 2
        assert aggregates.total_amount == Decimal("30.015")
        assert aggregates.total_fee == Decimal("1.5")
        stmt = str(mock_session.execute.call_args.args[0])
        assert "orders.status" in stmt

    @pytest.mark.asyncio
    async def test_chunks_are_combined(self, mock_session, monkeypatch):
        """Large seller sets are split and summed exactly."""
        monkeypatch.setattr(order_repository, "SELLER_ID_CHUNK", 2)
        result = MagicMock()
        result.one.side_effect = [
            SimpleNamespace(count=2, total_amount=Decimal("1.10"),
                            total_fee=Decimal("0.01"), seller_count=2),
            SimpleNamespace(count=1, total_amount=Decimal("2.20"),
                            total_fee=Decimal("0.02"), seller_count=1),
        ]
        mock_session.execute.return_value = result
        repo = OrderRepository(mock_session)

        aggregates = await repo.get_completed_order_aggregates(["a", "b", "c"])

        assert mock_session.execute.await_count == 2
        assert aggregates.count == 3
        assert aggregates.seller_count == 3
        assert aggregates.total_amount == Decimal("3.30")
        assert aggregates.total_fee == Decimal("0.03")


class TestRunNumberRepository:
    """Test RunNumberRepository."""

    @pytest.mark.asyncio
    async def test_next_value(self, mock_session):
        """Returns the sequence value as int."""
        result = MagicMock()
        result.scalar_one.return_value = 12
        mock_session.execute.return_value = result

        assert await RunNumberRepository(mock_session).next_run_number() == 12


class TestRegistrationService:
    """Test the SQL transaction boundary."""

    @pytest.mark.asyncio
    async def test_success_commits(self, mock_session, test_settings):
        """Successful registration is committed."""
        service = RegistrationService(mock_session, settings=test_settings)
        service.coordinator.register = AsyncMock(
            return_value=ServiceResult(success=True, data=object())
        )

        result = await service.register("nic")

        assert result.success is True
        mock_session.commit.assert_awaited_once()
        mock_session.rollback.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_rolls_back(self, mock_session, test_settings):
        """Failed registration leaves nothing behind."""
        service = RegistrationService(mock_session, settings=test_settings)
        service.coordinator.register = AsyncMock(
            return_value=ServiceResult(success=False, error_code="NO_OPEN_PARENT")
        )

        result = await service.register("bic", "25AAA0001")

        assert result.success is False
        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_exception_rolls_back(self, mock_session, test_settings):
        """Unexpected errors roll back and propagate."""
        service = RegistrationService(mock_session, settings=test_settings)
        service.coordinator.register = AsyncMock(side_effect=RuntimeError("db down"))

        with pytest.raises(RuntimeError):
            await service.register("nic")
        mock_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_bootstrap_commits(self, mock_session, test_settings):
        """Root bootstrap runs in a committed transaction."""
        service = RegistrationService(mock_session, settings=test_settings)
        root = make_node("25AAA0000", max_children=1)
        service.coordinator.bootstrap_root = AsyncMock(return_value=root)

        assert await service.bootstrap_root() == root
        mock_session.commit.assert_awaited_once()
