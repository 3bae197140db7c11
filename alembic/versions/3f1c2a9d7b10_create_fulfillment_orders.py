"""create_fulfillment_orders

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-02-16 10:12:31.402118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

customer_status_enum = postgresql.ENUM(
    'processing', 'shipped', 'cancelled', 'failed',
    name='fulfillment_customer_status_enum',
    create_type=False,
)
order_mode_enum = postgresql.ENUM(
    'quote', 'order',
    name='fulfillment_order_mode_enum',
    create_type=False,
)


def upgrade() -> None:
    """Upgrade schema - Add fulfillment_orders table."""
    bind = op.get_bind()
    customer_status_enum.create(bind, checkfirst=True)
    order_mode_enum.create(bind, checkfirst=True)

    op.create_table(
        'fulfillment_orders',
        sa.Column('id', sa.String(length=128), nullable=False),
        sa.Column('customer_ref', sa.String(length=255), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('line_items', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('shipping_address', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('payment_method', sa.String(length=50), nullable=True),
        sa.Column('fulfillment_status', customer_status_enum, nullable=True),
        sa.Column('upstream_mode', order_mode_enum, nullable=True),
        sa.Column('upstream_handle', sa.String(length=255), nullable=True),
        sa.Column('upstream_order_id', sa.BigInteger(), nullable=True),
        sa.Column('upstream_transaction_id', sa.String(length=100), nullable=True),
        sa.Column('upstream_status', sa.String(length=100), nullable=True),
        sa.Column('upstream_tracking_numbers', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('upstream_fulfillments', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('error_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('repair_status', sa.String(length=100), nullable=True),
        sa.Column('address_fixed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('upstream_order_id'),
    )
    op.create_index(op.f('ix_fulfillment_orders_customer_ref'), 'fulfillment_orders', ['customer_ref'], unique=False)
    op.create_index('ix_fulfillment_orders_upstream_status', 'fulfillment_orders', ['upstream_status'], unique=False)
    op.create_index('ix_fulfillment_orders_created_at', 'fulfillment_orders', ['created_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema - Remove fulfillment_orders table."""
    op.drop_index('ix_fulfillment_orders_created_at', table_name='fulfillment_orders')
    op.drop_index('ix_fulfillment_orders_upstream_status', table_name='fulfillment_orders')
    op.drop_index(op.f('ix_fulfillment_orders_customer_ref'), table_name='fulfillment_orders')
    op.drop_table('fulfillment_orders')

    bind = op.get_bind()
    order_mode_enum.drop(bind, checkfirst=True)
    customer_status_enum.drop(bind, checkfirst=True)
