"""create_settlement_tables

Revision ID: 3f9c2a71d0e4
Revises:
Create Date: 2026-01-04 09:12:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f9c2a71d0e4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


order_status_enum = postgresql.ENUM(
    'pending_payment', 'paid', 'processing', 'shipped', 'delivered',
    'cancelled', 'payment_failed',
    name='order_status_enum', create_type=False,
)
payment_method_enum = postgresql.ENUM(
    'card', 'mpesa', 'pesapal', 'bank_transfer', 'cod',
    name='payment_method_enum', create_type=False,
)
escrow_status_enum = postgresql.ENUM(
    'held', 'release_requested', 'released', 'disputed',
    name='escrow_status_enum', create_type=False,
)
dispute_status_enum = postgresql.ENUM(
    'open', 'resolved', name='dispute_status_enum', create_type=False,
)
payout_status_enum = postgresql.ENUM(
    'pending', 'processing', 'paid', 'failed',
    name='payout_status_enum', create_type=False,
)

ENUMS = (
    order_status_enum,
    payment_method_enum,
    escrow_status_enum,
    dispute_status_enum,
    payout_status_enum,
)


def upgrade() -> None:
    """Upgrade schema - Create catalog mirror, order, escrow and payout tables."""
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    # Catalog mirror
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('seller_id', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price_cents', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(length=3), server_default='KES', nullable=False),
        sa.Column('inventory', sa.Integer(), server_default='0', nullable=False),
        sa.Column('weight_grams', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('inventory >= 0', name='product_inventory_non_negative'),
        sa.CheckConstraint('price_cents >= 0', name='product_price_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_products_seller_id', 'products', ['seller_id'])

    # Cart
    op.create_table(
        'cart_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('buyer_id', sa.String(length=255), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('quantity > 0', name='cart_item_quantity_positive'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('buyer_id', 'product_id', name='uq_cart_item_buyer_product')
    )
    op.create_index('ix_cart_items_buyer_id', 'cart_items', ['buyer_id'])

    # Orders
    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_number', sa.String(length=20), nullable=False),
        sa.Column('buyer_id', sa.String(length=255), nullable=False),
        sa.Column('status', order_status_enum, server_default='pending_payment', nullable=False),
        sa.Column('subtotal_cents', sa.BigInteger(), nullable=False),
        sa.Column('shipping_cost_cents', sa.BigInteger(), nullable=False),
        sa.Column('tax_cents', sa.BigInteger(), nullable=False),
        sa.Column('total_cents', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('payment_method', payment_method_enum, nullable=False),
        sa.Column('payment_reference', sa.String(length=100), nullable=True),
        sa.Column('shipping_address', sa.JSON(), nullable=False),
        sa.Column('shipping_zone_id', sa.String(length=50), nullable=True),
        sa.Column('shipping_service_id', sa.String(length=50), nullable=True),
        sa.Column('tracking_number', sa.String(length=50), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('shipped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            'total_cents = subtotal_cents + shipping_cost_cents + tax_cents',
            name='order_total_adds_up',
        ),
        sa.CheckConstraint('subtotal_cents >= 0', name='order_subtotal_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_reference')
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_buyer_id', 'orders', ['buyer_id'])
    op.create_index('ix_orders_buyer_id_status', 'orders', ['buyer_id', 'status'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('seller_id', sa.String(length=255), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.BigInteger(), nullable=False),
        sa.Column('line_total_cents', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('quantity > 0', name='order_item_quantity_positive'),
        sa.CheckConstraint(
            'line_total_cents = unit_price_cents * quantity',
            name='order_item_line_total',
        ),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_seller_id', 'order_items', ['seller_id'])

    # Escrow
    op.create_table(
        'escrow_payments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('buyer_id', sa.String(length=255), nullable=False),
        sa.Column('amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', escrow_status_enum, server_default='held', nullable=False),
        sa.Column('held_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('release_requested_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('released_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('disputed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('amount_cents >= 0', name='escrow_amount_non_negative'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id')
    )
    op.create_index('ix_escrow_payments_buyer_id', 'escrow_payments', ['buyer_id'])

    op.create_table(
        'payment_disputes',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('raised_by', sa.String(length=255), nullable=False),
        sa.Column('status', dispute_status_enum, server_default='open', nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_payment_disputes_order_id', 'payment_disputes', ['order_id'])

    # Payouts
    op.create_table(
        'seller_payouts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('seller_id', sa.String(length=255), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('gross_cents', sa.BigInteger(), nullable=False),
        sa.Column('platform_commission_cents', sa.BigInteger(), nullable=False),
        sa.Column('payment_processing_fee_cents', sa.BigInteger(), nullable=False),
        sa.Column('net_cents', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', payout_status_enum, server_default='pending', nullable=False),
        sa.Column('payout_reference', sa.String(length=100), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            'net_cents = gross_cents - platform_commission_cents'
            ' - payment_processing_fee_cents',
            name='payout_net_adds_up',
        ),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('seller_id', 'order_id', name='uq_seller_payout_order')
    )
    op.create_index('ix_seller_payouts_seller_id', 'seller_payouts', ['seller_id'])
    op.create_index('ix_seller_payouts_order_id', 'seller_payouts', ['order_id'])


def downgrade() -> None:
    """Downgrade schema - Drop settlement tables."""
    op.drop_table('seller_payouts')
    op.drop_table('payment_disputes')
    op.drop_table('escrow_payments')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('cart_items')
    op.drop_table('products')

    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
