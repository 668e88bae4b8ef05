"""
Order model.

Completed marketplace orders feed the network financial aggregates.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from acf.models.base import Base
from acf.models.enums import OrderStatus
from acf.models.types import MoneyType


class Order(Base):
    """Order model - seller-side ledger rows."""

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint(
            'total_amount >= 0', name='check_order_total_non_negative'
        ),
        CheckConstraint(
            'community_fee >= 0', name='check_order_fee_non_negative'
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    seller_id: Mapped[str] = mapped_column(
        ForeignKey("acf_nodes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    buyer_id: Mapped[str | None] = mapped_column(
        String(32), nullable=True
    )

    # Amounts in the platform base currency
    total_amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False
    )
    community_fee: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=OrderStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Order(id={self.id}, seller_id={self.seller_id}, "
            f"total={self.total_amount}, status={self.status})>"
        )
