"""
Order repository.

SQLAlchemy implementation of the Ledger contract.
"""

from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from acf.models.enums import OrderStatus
from acf.models.order import Order
from acf.repositories.base import BaseRepository
from acf.services.placement.types import OrderAggregates

# Keeps IN lists well under driver parameter limits
SELLER_ID_CHUNK = 5000


class OrderRepository(BaseRepository[Order]):
    """Order repository with ledger aggregates."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize order repository."""
        super().__init__(Order, session)

    async def get_completed_order_aggregates(
        self, seller_ids: Iterable[str]
    ) -> OrderAggregates:
        """
        Completed order totals for a set of sellers.

        Optimized to aggregate in SQL; large sets are split into
        disjoint chunks whose sums are exact to combine.

        Args:
            seller_ids: Member IDs

        Returns:
            OrderAggregates with count, amounts, fees and distinct sellers
        """
        ids = sorted(set(seller_ids))
        count = 0
        seller_count = 0
        total_amount = Decimal("0")
        total_fee = Decimal("0")

        for start in range(0, len(ids), SELLER_ID_CHUNK):
            chunk = ids[start:start + SELLER_ID_CHUNK]
            stmt = (
                select(
                    func.count(Order.id).label("count"),
                    func.coalesce(
                        func.sum(Order.total_amount), Decimal("0")
                    ).label("total_amount"),
                    func.coalesce(
                        func.sum(Order.community_fee), Decimal("0")
                    ).label("total_fee"),
                    func.count(func.distinct(Order.seller_id)).label(
                        "seller_count"
                    ),
                )
                .where(
                    Order.seller_id.in_(chunk),
                    Order.status == OrderStatus.COMPLETED.value,
                )
            )
            result = await self.session.execute(stmt)
            row = result.one()

            count += row.count or 0
            seller_count += row.seller_count or 0
            total_amount += Decimal(str(row.total_amount or 0))
            total_fee += Decimal(str(row.total_fee or 0))

        return OrderAggregates(
            count=count,
            total_amount=total_amount,
            total_fee=total_fee,
            seller_count=seller_count,
        )
