"""
Placement engine.

Chooses a parent for a new member and commits the placement
all-or-nothing. Concurrency is optimistic: the parent's capacity is
re-checked at commit and a lost race re-runs candidate selection.
"""

from collections.abc import Callable
from datetime import datetime

from acf.config.settings import Settings, settings as default_settings
from acf.models.enums import Scope
from acf.services.base_service import BaseService, ServiceResult, log_operation
from acf.services.placement.candidate_selector import CandidateSelector
from acf.services.placement.depth_guard import DepthGuard
from acf.services.placement.ports import NodeStore, RunNumberAuthority
from acf.services.placement.snapshot import SnapshotLoader
from acf.services.placement.types import (
    NodeSnapshot,
    OwnerIndexEntry,
    ParentAssignment,
)
from acf.utils.datetime_utils import utc_now
from acf.utils.exceptions import (
    RETRYABLE,
    AllocationTimeout,
    NoOpenParent,
    PlacementError,
)


class PlacementEngine(BaseService):
    """Parent allocation over a NodeStore."""

    def __init__(
        self,
        store: NodeStore,
        run_numbers: RunNumberAuthority,
        settings: Settings | None = None,
        guard: DepthGuard | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize placement engine.

        Args:
            store: Node storage collaborator
            run_numbers: Global run number sequence
            settings: Budgets and retry ceiling (global settings by default)
            guard: Depth predicate
            clock: Source of created_at timestamps
        """
        super().__init__()
        self.settings = settings or default_settings
        self.store = store
        self.run_numbers = run_numbers
        self.guard = guard or DepthGuard()
        self.clock = clock
        self.loader = SnapshotLoader(
            store,
            node_budget=self.settings.allocation_node_budget,
            time_budget_seconds=self.settings.allocation_time_budget_seconds,
        )
        self.selector = CandidateSelector(
            guard=self.guard,
            node_budget=self.settings.allocation_node_budget,
        )

    async def preview_candidates(
        self, owner_id: str, scope: Scope
    ) -> list[NodeSnapshot]:
        """
        Ordered Open candidates without committing anything.

        Raises:
            InvalidInvitor: If owner_id is unknown
            AllocationTimeout: If a traversal budget is exhausted
        """
        snapshot = await self.loader.load(owner_id, scope)
        return self.selector.select(owner_id, scope, snapshot)

    @log_operation
    async def allocate_parent(
        self, invitor_id: str, scope: Scope
    ) -> ServiceResult:
        """
        Place a new member under the best Open candidate of invitor_id.

        Args:
            invitor_id: Owner the candidate search is rooted at
            scope: FILE or NETWORK; never escalated here

        Returns:
            ServiceResult with a ParentAssignment, or error_code
            NO_OPEN_PARENT / INVALID_INVITOR / DEPTH_LIMIT_EXCEEDED /
            ALLOCATION_TIMEOUT
        """
        scope = Scope(scope)
        try:
            assignment = await self._allocate(invitor_id, scope)
        except PlacementError as e:
            self.logger.warning(
                "Parent allocation failed",
                extra={
                    "invitor_id": invitor_id,
                    "scope": scope.value,
                    "error_code": e.error_code,
                    **e.context,
                },
            )
            return ServiceResult.from_error(e)

        self.logger.info(
            "Parent allocated",
            extra={
                "node_id": assignment.node_id,
                "parent_id": assignment.parent_id,
                "invitor_id": invitor_id,
                "scope": scope.value,
                "depth": assignment.depth,
                "run_number": assignment.run_number,
                "attempts": assignment.attempts,
            },
        )
        return ServiceResult.ok(assignment)

    async def _allocate(
        self, invitor_id: str, scope: Scope
    ) -> ParentAssignment:
        max_retries = self.settings.max_allocation_retries
        for attempt in range(1, max_retries + 1):
            snapshot = await self.loader.load(invitor_id, scope)
            candidates = self.selector.select(invitor_id, scope, snapshot)
            if not candidates:
                raise NoOpenParent(
                    f"No Open parent in {scope.value} scope of {invitor_id}",
                    invitor_id=invitor_id,
                    scope=scope.value,
                    scanned=len(snapshot),
                )

            parent = candidates[0]
            try:
                return await self._commit(parent, invitor_id, attempt)
            except RETRYABLE as e:
                self.logger.debug(
                    "Capacity conflict, retrying selection",
                    extra={
                        "parent_id": parent.id,
                        "attempt": attempt,
                        **e.context,
                    },
                )

        raise AllocationTimeout(
            f"Gave up after {max_retries} capacity conflicts",
            invitor_id=invitor_id,
            retries=max_retries,
        )

    async def _commit(
        self, parent: NodeSnapshot, invitor_id: str, attempt: int
    ) -> ParentAssignment:
        depth = self.guard.ensure_child_depth(parent)
        created_at = self.clock()

        async with self.store.atomic():
            await self.store.increment_child_count(parent.id)
            run_number = await self.run_numbers.next_run_number()
            node = await self.store.create_node(
                parent_id=parent.id,
                invitor_id=invitor_id,
                run_number=run_number,
                depth=depth,
                created_at=created_at,
            )
            entry = OwnerIndexEntry(
                child_id=node.id,
                created_at=created_at,
                child_count_at_insert=0,
                run_number=run_number,
            )
            await self.store.append_index_entry(parent.id, entry)
            if invitor_id != parent.id:
                await self.store.append_index_entry(invitor_id, entry)

        return ParentAssignment(
            node_id=node.id,
            parent_id=parent.id,
            invitor_id=invitor_id,
            depth=depth,
            run_number=run_number,
            created_at=created_at,
            attempts=attempt,
        )
