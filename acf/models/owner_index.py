"""
Owner index model.

Append-only per-owner list of placed members, used for FILE-scope search.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from acf.models.base import Base


class OwnerIndexEntry(Base):
    """
    Owner index entry.

    Written under the chosen parent and, when different, under the
    original invitor, so an invitor's FILE scope sees grandchildren.
    """

    __tablename__ = "acf_owner_index"
    __table_args__ = (
        UniqueConstraint(
            "owner_id", "child_id", name="uq_acf_owner_index_owner_child"
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    owner_id: Mapped[str] = mapped_column(
        ForeignKey("acf_nodes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    child_id: Mapped[str] = mapped_column(
        ForeignKey("acf_nodes.id", ondelete="CASCADE"),
        nullable=False,
    )
    child_count_at_insert: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    run_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<OwnerIndexEntry(owner_id={self.owner_id}, "
            f"child_id={self.child_id}, run_number={self.run_number})>"
        )

