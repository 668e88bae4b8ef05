"""
Node model.

One registrant's position in the ACF tree.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Sequence,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from acf.config.constants import DEFAULT_MAX_CHILDREN, MAX_DEPTH
from acf.models.base import Base
from acf.models.enums import NodeStatus


# Global run number sequence; the root takes 0
RUN_NUMBER_SEQUENCE = Sequence(
    "acf_run_number_seq", start=0, minvalue=0, metadata=Base.metadata
)


class Node(Base):
    """Node model - placed members of the ACF network."""

    __tablename__ = "acf_nodes"
    __table_args__ = (
        CheckConstraint(
            'child_count >= 0 AND child_count <= max_children',
            name='check_acf_node_capacity'
        ),
        CheckConstraint(
            f'depth >= 0 AND depth <= {MAX_DEPTH}',
            name='check_acf_node_depth'
        ),
        # Exactly one root
        Index(
            "uq_acf_nodes_single_root",
            text("(parent_id IS NULL)"),
            unique=True,
            postgresql_where=text("parent_id IS NULL"),
        ),
    )

    # Primary key (YYAAANNNN member id)
    id: Mapped[str] = mapped_column(String(32), primary_key=True)

    # Placement
    parent_id: Mapped[str | None] = mapped_column(
        ForeignKey("acf_nodes.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    invitor_id: Mapped[str | None] = mapped_column(
        ForeignKey("acf_nodes.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Capacity
    child_count: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    max_children: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_MAX_CHILDREN, nullable=False
    )
    depth: Mapped[int] = mapped_column(Integer, nullable=False)

    # Global sequence, final ordering tiebreak
    run_number: Mapped[int] = mapped_column(
        BigInteger, unique=True, index=True, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )

    @property
    def status(self) -> NodeStatus:
        """Derived Open/Full status."""
        if self.child_count < self.max_children and self.depth < MAX_DEPTH:
            return NodeStatus.OPEN
        return NodeStatus.FULL

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Node(id={self.id}, parent_id={self.parent_id}, "
            f"depth={self.depth}, children={self.child_count}/"
            f"{self.max_children})>"
        )
