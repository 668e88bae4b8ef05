"""
Registration coordinator.

Entry point for the registration flow: validates mode and invitor, asks
the PlacementEngine for a parent and maps engine errors to registration
failures. Scope escalation is a policy decided here, never in the engine.
"""

from collections.abc import Callable
from datetime import datetime

from acf.config.constants import MAX_DEPTH
from acf.config.settings import Settings, settings as default_settings
from acf.models.enums import RegistrationMode, Scope
from acf.services.base_service import BaseService, ServiceResult, log_operation
from acf.services.placement.engine import PlacementEngine
from acf.services.placement.ports import NodeStore, RunNumberAuthority
from acf.services.placement.types import NodeSnapshot
from acf.utils.datetime_utils import utc_now
from acf.utils.exceptions import (
    AllocationTimeout,
    DepthLimitExceeded,
    InvalidInvitor,
    InvalidRegistration,
    NoOpenParent,
    PlacementError,
    is_user_visible,
)


REGISTRATION_MESSAGES = {
    InvalidRegistration.error_code: "Unknown registration mode or scope",
    NoOpenParent.error_code: "No open position is available for this invitor",
    InvalidInvitor.error_code: "Invitor not found",
    DepthLimitExceeded.error_code: "Network depth limit reached",
    AllocationTimeout.error_code: "Placement is busy, please try again",
}


class RegistrationCoordinator(BaseService):
    """Top-level placement of new registrants."""

    def __init__(
        self,
        store: NodeStore,
        run_numbers: RunNumberAuthority,
        engine: PlacementEngine | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize registration coordinator.

        Args:
            store: Node storage collaborator
            run_numbers: Global run number sequence
            engine: Placement engine (built from the same collaborators
                when omitted)
            settings: Placement policy (global settings by default)
            clock: Source of created_at timestamps
        """
        super().__init__()
        self.settings = settings or default_settings
        self.store = store
        self.run_numbers = run_numbers
        self.clock = clock
        self.engine = engine or PlacementEngine(
            store, run_numbers, settings=self.settings, clock=clock
        )

    async def bootstrap_root(self) -> NodeSnapshot:
        """
        Create the single system root if the network has none.

        Returns:
            Existing or newly created root
        """
        root = await self.store.get_root()
        if root is not None:
            return root

        run_number = await self.run_numbers.next_run_number()
        async with self.store.atomic():
            root = await self.store.create_root(run_number, self.clock())

        self.logger.info(
            "System root created",
            extra={"root_id": root.id, "run_number": run_number},
        )
        return root

    async def resolve_nic_target(self) -> str:
        """
        Owner NIC registrations are placed under.

        The configured ACF root wins when it exists; otherwise the
        system root.

        Raises:
            InvalidInvitor: If the network has no root yet
        """
        configured = self.settings.acf_root_id
        if configured:
            if await self.store.get_node(configured) is not None:
                return configured
            self.logger.warning(
                "Configured ACF root not found, using system root",
                extra={"acf_root_id": configured},
            )

        root = await self.store.get_root()
        if root is None:
            raise InvalidInvitor("Network has no root")
        return root.id

    async def resolve_bic_invitor(self, invitor_id: str | None) -> str:
        """
        Validate a caller supplied invitor.

        The invitor must exist and its parent chain must reach the root.

        Raises:
            InvalidInvitor: If the invitor is missing, unknown or detached
        """
        if not invitor_id:
            raise InvalidInvitor("BIC registration requires an invitor")

        node = await self.store.get_node(invitor_id)
        if node is None:
            raise InvalidInvitor(
                f"Unknown invitor {invitor_id}", invitor_id=invitor_id
            )

        # Depth is bounded, so a reachable chain has at most MAX_DEPTH hops
        current = node
        for _ in range(MAX_DEPTH + 1):
            if current.parent_id is None:
                return invitor_id
            parent = await self.store.get_node(current.parent_id)
            if parent is None:
                break
            current = parent

        raise InvalidInvitor(
            f"Invitor {invitor_id} is not reachable from the root",
            invitor_id=invitor_id,
        )

    @log_operation
    async def register(
        self,
        mode: RegistrationMode | str,
        invitor_id: str | None = None,
        scope: Scope | str | None = None,
    ) -> ServiceResult:
        """
        Register one member.

        Args:
            mode: NIC (placed under the ACF root) or BIC (under invitor_id)
            invitor_id: Required for BIC, ignored for NIC
            scope: Candidate breadth, settings.default_scope when omitted

        Returns:
            ServiceResult with the ParentAssignment, or a user-facing error
        """
        try:
            mode, scope = self._parse(mode, scope)
            if mode is RegistrationMode.NIC:
                target = await self.resolve_nic_target()
            else:
                target = await self.resolve_bic_invitor(invitor_id)
        except PlacementError as e:
            if not is_user_visible(e):
                raise
            self.logger.warning(
                "Registration rejected",
                extra={
                    "mode": mode,
                    "invitor_id": invitor_id,
                    "error_code": e.error_code,
                },
            )
            return self._failure(e.error_code)

        result = await self.engine.allocate_parent(target, scope)

        if (
            not result.success
            and result.error_code == NoOpenParent.error_code
            and scope is Scope.FILE
            and self.settings.escalate_file_scope
        ):
            self.logger.info(
                "FILE scope exhausted, escalating to NETWORK",
                extra={"target": target},
            )
            result = await self.engine.allocate_parent(target, Scope.NETWORK)

        if not result.success:
            return self._failure(result.error_code)

        assignment = result.data
        self.logger.info(
            "Member registered",
            extra={
                "node_id": assignment.node_id,
                "mode": mode.value,
                "invitor_id": assignment.invitor_id,
                "parent_id": assignment.parent_id,
                "run_number": assignment.run_number,
            },
        )
        return result

    def _parse(
        self, mode: RegistrationMode | str, scope: Scope | str | None
    ) -> tuple[RegistrationMode, Scope]:
        try:
            return (
                RegistrationMode(mode),
                Scope(scope or self.settings.default_scope),
            )
        except ValueError as e:
            raise InvalidRegistration(str(e), mode=mode, scope=scope) from e

    def _failure(self, error_code: str | None) -> ServiceResult:
        if error_code not in REGISTRATION_MESSAGES:
            # Internal codes (e.g. capacity conflicts) never reach callers
            error_code = AllocationTimeout.error_code
        return ServiceResult(
            success=False,
            error=REGISTRATION_MESSAGES[error_code],
            error_code=error_code,
        )
