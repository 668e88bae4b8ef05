"""Create ACF network tables.

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create nodes, owner index, orders and the run number sequence."""

    op.execute(
        sa.schema.CreateSequence(
            sa.Sequence('acf_run_number_seq', start=0, minvalue=0)
        )
    )

    op.create_table(
        'acf_nodes',
        sa.Column('id', sa.String(32), nullable=False),
        sa.Column('parent_id', sa.String(32), nullable=True),
        sa.Column('invitor_id', sa.String(32), nullable=True),
        sa.Column('child_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_children', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('depth', sa.Integer(), nullable=False),
        sa.Column('run_number', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint('child_count >= 0 AND child_count <= max_children', name='check_acf_node_capacity'),
        sa.CheckConstraint('depth >= 0 AND depth <= 6', name='check_acf_node_depth'),
        sa.ForeignKeyConstraint(['parent_id'], ['acf_nodes.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['invitor_id'], ['acf_nodes.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('run_number'),
    )
    op.create_index('ix_acf_nodes_parent_id', 'acf_nodes', ['parent_id'])
    op.create_index('ix_acf_nodes_invitor_id', 'acf_nodes', ['invitor_id'])
    op.create_index('ix_acf_nodes_run_number', 'acf_nodes', ['run_number'])
    op.create_index('ix_acf_nodes_created_at', 'acf_nodes', ['created_at'])
    # Exactly one root
    op.create_index(
        'uq_acf_nodes_single_root',
        'acf_nodes',
        [sa.text('(parent_id IS NULL)')],
        unique=True,
        postgresql_where=sa.text('parent_id IS NULL'),
    )

    op.create_table(
        'acf_owner_index',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('owner_id', sa.String(32), nullable=False),
        sa.Column('child_id', sa.String(32), nullable=False),
        sa.Column('child_count_at_insert', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('run_number', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['owner_id'], ['acf_nodes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['child_id'], ['acf_nodes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('owner_id', 'child_id', name='uq_acf_owner_index_owner_child'),
    )
    op.create_index('ix_acf_owner_index_owner_id', 'acf_owner_index', ['owner_id'])

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('seller_id', sa.String(32), nullable=False),
        sa.Column('buyer_id', sa.String(32), nullable=True),
        sa.Column('total_amount', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('community_fee', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('total_amount >= 0', name='check_order_total_non_negative'),
        sa.CheckConstraint('community_fee >= 0', name='check_order_fee_non_negative'),
        sa.ForeignKeyConstraint(['seller_id'], ['acf_nodes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_orders_seller_id', 'orders', ['seller_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])


def downgrade() -> None:
    """Drop ACF network tables."""
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_seller_id', table_name='orders')
    op.drop_table('orders')
    op.drop_index('ix_acf_owner_index_owner_id', table_name='acf_owner_index')
    op.drop_table('acf_owner_index')
    op.drop_index('uq_acf_nodes_single_root', table_name='acf_nodes')
    op.drop_index('ix_acf_nodes_created_at', table_name='acf_nodes')
    op.drop_index('ix_acf_nodes_run_number', table_name='acf_nodes')
    op.drop_index('ix_acf_nodes_invitor_id', table_name='acf_nodes')
    op.drop_index('ix_acf_nodes_parent_id', table_name='acf_nodes')
    op.drop_table('acf_nodes')
    op.execute(sa.schema.DropSequence(sa.Sequence('acf_run_number_seq')))
