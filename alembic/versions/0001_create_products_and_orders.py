"""create products and orders

Revision ID: 0001
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Databases bootstrapped by init_db() already have the tables
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = inspector.get_table_names()

    if 'products' not in existing_tables:
        op.create_table('products',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('category', sa.String(), nullable=False),
            sa.Column('image', sa.String(), nullable=True),
            sa.Column('price', sa.Float(), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_products_category'), 'products', ['category'], unique=False)

    if 'orders' not in existing_tables:
        op.create_table('orders',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('sequence', sa.Integer(), nullable=False),
            sa.Column('order_number', sa.String(), nullable=False),
            sa.Column('customer_name', sa.String(), nullable=False),
            sa.Column('customer_phone', sa.String(), nullable=False),
            sa.Column('customer_email', sa.String(), nullable=True),
            sa.Column('notification_method', sa.String(), nullable=False),
            sa.Column('items', sa.JSON(), nullable=False),
            sa.Column('subtotal', sa.Float(), nullable=False),
            sa.Column('tax', sa.Float(), nullable=False),
            sa.Column('total', sa.Float(), nullable=False),
            sa.Column('store_location', sa.String(), nullable=False),
            sa.Column('status', sa.String(), nullable=False),
            sa.Column('timeline', sa.JSON(), nullable=False),
            sa.Column('communications', sa.JSON(), nullable=False),
            sa.Column('customer_notes', sa.Text(), nullable=True),
            sa.Column('store_notes', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('version', sa.Integer(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('sequence')
        )
        op.create_index(op.f('ix_orders_order_number'), 'orders', ['order_number'], unique=True)
        op.create_index(op.f('ix_orders_customer_phone'), 'orders', ['customer_phone'], unique=False)
        op.create_index(op.f('ix_orders_store_location'), 'orders', ['store_location'], unique=False)
        op.create_index(op.f('ix_orders_status'), 'orders', ['status'], unique=False)
        op.create_index(op.f('ix_orders_created_at'), 'orders', ['created_at'], unique=False)
        op.create_index('ix_orders_status_created_at', 'orders', ['status', 'created_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_orders_status_created_at', table_name='orders')
    op.drop_index(op.f('ix_orders_created_at'), table_name='orders')
    op.drop_index(op.f('ix_orders_status'), table_name='orders')
    op.drop_index(op.f('ix_orders_store_location'), table_name='orders')
    op.drop_index(op.f('ix_orders_customer_phone'), table_name='orders')
    op.drop_index(op.f('ix_orders_order_number'), table_name='orders')
    op.drop_table('orders')
    op.drop_index(op.f('ix_products_category'), table_name='products')
    op.drop_table('products')
