"""
Tests for parent allocation.

Tests cover:
- Registration scenarios on a fresh network
- Index entries under parent and invitor
- Capacity conflicts, retries and the retry ceiling
- All-or-nothing commits
- Determinism and concurrent allocation
- Node and wall-clock traversal budgets
"""

import asyncio

import pytest

from acf.models.enums import NodeStatus, Scope
from acf.services.placement import (
    DepthGuard,
    InMemoryNodeStore,
    InMemoryRunNumberAuthority,
    PlacementEngine,
    RegistrationCoordinator,
    TreeSnapshot,
    audit_network,
)
from acf.utils.exceptions import CapacityConflict
from tests.factories import StepClock, build_full_tree, make_node


class ConflictingStore(InMemoryNodeStore):
    """Store whose parent fills up before every commit."""

    def __init__(self, conflicts: int | None = None) -> None:
        super().__init__()
        self.conflicts = conflicts
        self.increments = 0

    async def increment_child_count(self, node_id: str) -> int:
        self.increments += 1
        if self.conflicts is None or self.increments <= self.conflicts:
            raise CapacityConflict(f"Node {node_id} is full", node_id=node_id)
        return await super().increment_child_count(node_id)


class YieldingStore(InMemoryNodeStore):
    """Store that yields to the event loop before each increment."""

    async def increment_child_count(self, node_id: str) -> int:
        await asyncio.sleep(0)
        return await super().increment_child_count(node_id)


class FailingIndexStore(InMemoryNodeStore):
    """Store that fails right after staging an index entry."""

    async def append_index_entry(self, owner_id, entry):
        await super().append_index_entry(owner_id, entry)
        raise RuntimeError("index write failed")


class SlowChildrenStore(InMemoryNodeStore):
    """Store whose index reads take longer than the time budget."""

    async def get_children(self, owner_id):
        await asyncio.sleep(0.06)
        return await super().get_children(owner_id)


class AlwaysOpenGuard(DepthGuard):
    """Guard that lets any node through candidate filtering."""

    def is_open(self, node):
        return True


async def bootstrapped(store, settings, clock=None):
    """Engine and root over store."""
    clock = clock or StepClock()
    run_numbers = InMemoryRunNumberAuthority()
    coordinator = RegistrationCoordinator(
        store, run_numbers, settings=settings, clock=clock
    )
    root = await coordinator.bootstrap_root()
    return coordinator.engine, root


class TestScenarios:
    """Test placement on a fresh network."""

    @pytest.mark.asyncio
    async def test_first_member_fills_root(self, engine, store, root):
        """Root takes exactly one child and becomes Full."""
        result = await engine.allocate_parent(root.id, Scope.FILE)

        assert result.success is True
        assignment = result.data
        assert assignment.parent_id == root.id
        assert assignment.depth == 1
        assert assignment.node_id == "25AAA0001"

        updated_root = await store.get_node(root.id)
        assert updated_root.child_count == 1
        assert updated_root.status is NodeStatus.FULL

    @pytest.mark.asyncio
    async def test_second_member_goes_under_first(self, engine, store, root):
        """FILE scope of the root offers {R, A}; R is Full."""
        first = (await engine.allocate_parent(root.id, Scope.FILE)).data
        second = (await engine.allocate_parent(root.id, Scope.FILE)).data

        assert second.parent_id == first.node_id
        assert second.depth == 2

    @pytest.mark.asyncio
    async def test_placement_indexed_under_parent_and_invitor(
        self, engine, store, root
    ):
        """Two entries when parent and invitor differ, one otherwise."""
        first = (await engine.allocate_parent(root.id, Scope.FILE)).data
        second = (await engine.allocate_parent(root.id, Scope.FILE)).data

        root_children = [e.child_id for e in await store.get_children(root.id)]
        first_children = [e.child_id for e in await store.get_children(first.node_id)]

        assert root_children == [first.node_id, second.node_id]
        assert first_children == [second.node_id]

    @pytest.mark.asyncio
    async def test_sixth_invitee_attaches_to_earliest_child(
        self, engine, store, root
    ):
        """Full invitor still places via its own earliest child."""
        a = (await engine.allocate_parent(root.id, Scope.FILE)).data

        placed = []
        for _ in range(5):
            result = await engine.allocate_parent(a.node_id, Scope.FILE)
            assert result.success is True
            assert result.data.parent_id == a.node_id
            placed.append(result.data)

        a_node = await store.get_node(a.node_id)
        assert a_node.child_count == 5
        assert a_node.status is NodeStatus.FULL

        sixth = await engine.allocate_parent(a.node_id, Scope.FILE)

        assert sixth.success is True
        assert sixth.data.parent_id == placed[0].node_id
        assert sixth.data.depth == 3

    @pytest.mark.asyncio
    async def test_depth_six_owner_has_no_open_parent(self, test_settings):
        """A lone depth-6 node can never take a child."""
        bottom = make_node("bottom", "p", depth=6)
        store = InMemoryNodeStore.from_snapshot(
            TreeSnapshot(nodes={bottom.id: bottom})
        )
        engine = PlacementEngine(
            store, InMemoryRunNumberAuthority(100), settings=test_settings
        )

        for scope in (Scope.FILE, Scope.NETWORK):
            result = await engine.allocate_parent("bottom", scope)
            assert result.success is False
            assert result.error_code == "NO_OPEN_PARENT"

        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_unknown_invitor(self, engine, root):
        """Unknown owner yields INVALID_INVITOR."""
        result = await engine.allocate_parent("99ZZZ9999", Scope.FILE)

        assert result.success is False
        assert result.error_code == "INVALID_INVITOR"

    @pytest.mark.asyncio
    async def test_depth_checked_again_at_commit(self, test_settings):
        """Commit refuses a depth-6 parent even if selection let it through."""
        bottom = make_node("bottom", "p", depth=6)
        store = InMemoryNodeStore.from_snapshot(
            TreeSnapshot(nodes={bottom.id: bottom})
        )
        engine = PlacementEngine(
            store,
            InMemoryRunNumberAuthority(100),
            settings=test_settings,
            guard=AlwaysOpenGuard(),
        )

        result = await engine.allocate_parent("bottom", Scope.FILE)

        assert result.success is False
        assert result.error_code == "DEPTH_LIMIT_EXCEEDED"
        assert len(store) == 1


class TestRunNumbers:
    """Test run number assignment."""

    @pytest.mark.asyncio
    async def test_strictly_increasing(self, engine, root):
        """Each placement takes the next run number."""
        assert root.run_number == 0

        numbers = []
        for _ in range(6):
            result = await engine.allocate_parent(root.id, Scope.NETWORK)
            numbers.append(result.data.run_number)

        assert numbers == [1, 2, 3, 4, 5, 6]


class TestConflicts:
    """Test optimistic concurrency handling."""

    @pytest.mark.asyncio
    async def test_retry_after_single_conflict(self, test_settings):
        """One lost race costs one extra attempt."""
        store = ConflictingStore(conflicts=1)
        engine, root = await bootstrapped(store, test_settings)

        result = await engine.allocate_parent(root.id, Scope.FILE)

        assert result.success is True
        assert result.data.attempts == 2
        assert (await store.get_node(root.id)).child_count == 1

    @pytest.mark.asyncio
    async def test_retry_ceiling_gives_allocation_timeout(self, test_settings):
        """Endless conflicts end in ALLOCATION_TIMEOUT with nothing written."""
        store = ConflictingStore()
        engine, root = await bootstrapped(store, test_settings)

        result = await engine.allocate_parent(root.id, Scope.FILE)

        assert result.success is False
        assert result.error_code == "ALLOCATION_TIMEOUT"
        assert store.increments == test_settings.max_allocation_retries
        assert len(store) == 1
        assert (await store.get_node(root.id)).child_count == 0

    @pytest.mark.asyncio
    async def test_partial_commit_is_never_visible(self, test_settings):
        """A failure mid-commit leaves the store untouched."""
        store = FailingIndexStore()
        engine, root = await bootstrapped(store, test_settings)

        with pytest.raises(RuntimeError):
            await engine.allocate_parent(root.id, Scope.FILE)

        assert len(store) == 1
        assert (await store.get_node(root.id)).child_count == 0
        assert await store.get_children(root.id) == []

    @pytest.mark.asyncio
    async def test_racing_allocations_on_single_slot(self, test_settings):
        """Two tasks racing for the root: one wins, the other retries."""
        store = YieldingStore()
        engine, root = await bootstrapped(store, test_settings)

        results = await asyncio.gather(
            engine.allocate_parent(root.id, Scope.FILE),
            engine.allocate_parent(root.id, Scope.FILE),
        )

        assert all(r.success for r in results)
        winner, loser = sorted((r.data for r in results), key=lambda a: a.attempts)
        assert winner.attempts == 1
        assert winner.parent_id == root.id
        assert loser.attempts == 2
        assert loser.parent_id == winner.node_id
        assert (await store.get_node(root.id)).child_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_registrations_keep_invariants(self, test_settings):
        """Many concurrent placements never overfill a node."""
        settings = test_settings.model_copy(update={"max_allocation_retries": 20})
        store = YieldingStore()
        engine, root = await bootstrapped(store, settings)

        results = await asyncio.gather(
            *(engine.allocate_parent(root.id, Scope.NETWORK) for _ in range(40))
        )

        assert all(r.success for r in results)
        run_numbers = [r.data.run_number for r in results]
        assert len(set(run_numbers)) == 40

        report = await audit_network(store)
        assert report.ok, report.violations
        assert report.node_count == 41


class TestDeterminism:
    """Test reproducible placement."""

    @staticmethod
    async def placements(settings, count):
        engine, root = await bootstrapped(InMemoryNodeStore(), settings)
        result = []
        for _ in range(count):
            assignment = (await engine.allocate_parent(root.id, Scope.NETWORK)).data
            result.append((assignment.node_id, assignment.parent_id, assignment.depth))
        return result

    @pytest.mark.asyncio
    async def test_same_history_same_tree(self, test_settings):
        """Identical inputs produce identical placements."""
        first = await self.placements(test_settings, 40)
        second = await self.placements(test_settings, 40)

        assert first == second

    @pytest.mark.asyncio
    async def test_preview_matches_allocation(self, engine, root):
        """The first previewed candidate is the parent chosen next."""
        await engine.allocate_parent(root.id, Scope.FILE)
        await engine.allocate_parent(root.id, Scope.FILE)

        preview = await engine.preview_candidates(root.id, Scope.NETWORK)
        result = await engine.allocate_parent(root.id, Scope.NETWORK)

        assert result.data.parent_id == preview[0].id


class TestTraversalBudgets:
    """Test the node and wall-clock budgets of snapshot loading."""

    @staticmethod
    def engine_over(store, settings):
        return PlacementEngine(
            store,
            InMemoryRunNumberAuthority(len(store)),
            settings=settings,
            clock=StepClock(),
        )

    @pytest.mark.asyncio
    async def test_node_budget_gives_allocation_timeout(self, test_settings):
        """NETWORK scope stops once the node budget is spent."""
        tree = build_full_tree("X", 3)
        store = InMemoryNodeStore.from_snapshot(tree)
        settings = test_settings.model_copy(update={"allocation_node_budget": 5})

        result = await self.engine_over(store, settings).allocate_parent(
            "X", Scope.NETWORK
        )

        assert result.success is False
        assert result.error_code == "ALLOCATION_TIMEOUT"
        assert len(store) == len(tree)

    @pytest.mark.asyncio
    async def test_budget_large_enough_places(self, test_settings):
        """The same tree places normally under the default budget."""
        store = InMemoryNodeStore.from_snapshot(build_full_tree("X", 3))

        result = await self.engine_over(store, test_settings).allocate_parent(
            "X", Scope.NETWORK
        )

        assert result.success is True
        assert result.data.parent_id == "X.1.1"

    @pytest.mark.asyncio
    async def test_time_budget_gives_allocation_timeout(self, test_settings):
        """Slow index reads exhaust the wall-clock budget."""
        store = SlowChildrenStore.from_snapshot(build_full_tree("X", 3))
        settings = test_settings.model_copy(
            update={"allocation_time_budget_seconds": 0.05}
        )

        result = await self.engine_over(store, settings).allocate_parent(
            "X", Scope.NETWORK
        )

        assert result.success is False
        assert result.error_code == "ALLOCATION_TIMEOUT"
