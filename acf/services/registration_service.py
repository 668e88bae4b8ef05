"""
Registration service.

Wires the placement core to SQLAlchemy repositories and owns the
transaction boundary: a placement is committed as a whole or rolled back.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from acf.config.settings import Settings
from acf.models.enums import RegistrationMode, Scope
from acf.repositories.node_repository import NodeRepository
from acf.repositories.order_repository import OrderRepository
from acf.repositories.run_number_repository import RunNumberRepository
from acf.services.base_service import (
    BaseService,
    ServiceResult,
    log_operation,
    transaction,
)
from acf.services.placement.aggregator import NetworkAggregator
from acf.services.placement.audit import NetworkAuditReport, audit_network
from acf.services.placement.coordinator import RegistrationCoordinator
from acf.services.placement.types import NodeSnapshot
from acf.utils.exceptions import must_log


class RegistrationService(BaseService):
    """SQL-backed registration and network reporting."""

    def __init__(
        self, session: AsyncSession, settings: Settings | None = None
    ) -> None:
        """
        Initialize registration service.

        Args:
            session: Async database session
            settings: Placement policy (global settings by default)
        """
        super().__init__(session)
        self.node_repo = NodeRepository(session)
        self.order_repo = OrderRepository(session)
        self.run_numbers = RunNumberRepository(session)
        self.coordinator = RegistrationCoordinator(
            self.node_repo, self.run_numbers, settings=settings
        )
        self.aggregator = NetworkAggregator(
            self.node_repo, self.order_repo, settings=settings
        )

    @transaction
    async def bootstrap_root(self) -> NodeSnapshot:
        """Create the system root if missing and commit."""
        return await self.coordinator.bootstrap_root()

    @log_operation
    async def register(
        self,
        mode: RegistrationMode | str,
        invitor_id: str | None = None,
        scope: Scope | str | None = None,
    ) -> ServiceResult:
        """
        Register one member and commit, or roll back on failure.

        Args:
            mode: NIC or BIC
            invitor_id: Required for BIC
            scope: Candidate breadth

        Returns:
            Coordinator result
        """
        try:
            result = await self.coordinator.register(
                mode, invitor_id=invitor_id, scope=scope
            )
        except Exception as e:
            await self.rollback()
            if must_log(e):
                self.logger.error(
                    "Database error during registration",
                    extra={"mode": str(mode), "invitor_id": invitor_id, "error": str(e)},
                )
            raise

        return await self.finish(result)

    async def network_financials(self, root_id: str) -> ServiceResult:
        """Subtree membership and completed-order totals."""
        return await self.aggregator.aggregate_financials(root_id)

    async def audit(self) -> NetworkAuditReport:
        """Verify network limits over every stored node."""
        return await audit_network(self.node_repo)
