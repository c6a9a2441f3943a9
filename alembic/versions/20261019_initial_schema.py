"""initial_schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Creates the catalog, order, wallet/escrow and group-order tables.
Every mutable table carries a ``version`` column used for optimistic locking.

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'products',
        sa.Column('product_id', sa.Uuid(), primary_key=True),
        sa.Column('supplier_id', sa.String(128), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('unit', sa.String(20), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('available_quantity', sa.Integer(), nullable=False),
        sa.Column('min_order_quantity', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('available_quantity >= 0', name='chk_product_stock_non_negative'),
        sa.CheckConstraint('price > 0', name='chk_product_price_positive'),
        sa.CheckConstraint('min_order_quantity >= 1', name='chk_product_min_order_positive'),
    )
    op.create_index('idx_products_supplier', 'products', ['supplier_id'])
    op.create_index('idx_products_active', 'products', ['is_active'])

    op.create_table(
        'orders',
        sa.Column('order_id', sa.Uuid(), primary_key=True),
        sa.Column('buyer_id', sa.String(128), nullable=False),
        sa.Column('supplier_id', sa.String(128), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('payment_status', sa.String(20), nullable=False),
        sa.Column('escrow_id', sa.Uuid(), nullable=True),
        sa.Column('group_order_id', sa.Uuid(), nullable=True),
        sa.Column('cancel_reason', sa.Text(), nullable=True),
        sa.Column('refund_reason', sa.Text(), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('total_amount >= 0', name='chk_order_total_non_negative'),
    )
    op.create_index('idx_orders_buyer_created', 'orders', ['buyer_id', 'created_at'])
    op.create_index('idx_orders_supplier_created', 'orders', ['supplier_id', 'created_at'])
    op.create_index('idx_orders_group_order', 'orders', ['group_order_id'])
    op.create_index('idx_orders_status', 'orders', ['status'])

    op.create_table(
        'order_items',
        sa.Column('item_id', sa.Uuid(), primary_key=True),
        sa.Column(
            'order_id',
            sa.Uuid(),
            sa.ForeignKey('orders.order_id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit', sa.String(20), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint('quantity > 0', name='chk_order_item_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='chk_order_item_price_non_negative'),
    )
    op.create_index('idx_order_items_order', 'order_items', ['order_id'])

    op.create_table(
        'wallets',
        sa.Column('user_id', sa.String(128), primary_key=True),
        sa.Column('user_type', sa.String(20), nullable=False),
        sa.Column('balance', sa.Numeric(12, 2), nullable=False),
        sa.Column('escrow_balance', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_earnings', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_spent', sa.Numeric(12, 2), nullable=False),
        sa.Column('transaction_count', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('last_transaction_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('balance >= 0', name='chk_wallet_balance_non_negative'),
        sa.CheckConstraint('escrow_balance >= 0', name='chk_wallet_escrow_non_negative'),
    )

    op.create_table(
        'transactions',
        sa.Column('transaction_id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.String(128), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('balance_before', sa.Numeric(12, 2), nullable=False),
        sa.Column('balance_after', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('payment_method', sa.String(30), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('payment_reference', sa.String(64), nullable=True),
        sa.Column('escrow_id', sa.Uuid(), nullable=True),
        sa.Column('related_entity_id', sa.String(64), nullable=True),
        sa.Column('related_entity_type', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('idx_transactions_user_created', 'transactions', ['user_id', 'created_at'])
    op.create_index('idx_transactions_escrow', 'transactions', ['escrow_id'])

    op.create_table(
        'escrow_records',
        sa.Column('escrow_id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.String(128), nullable=False),
        sa.Column('order_id', sa.String(64), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('requires_delivery_confirmation', sa.Boolean(), nullable=False),
        sa.Column('auto_release_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('released_to', sa.String(128), nullable=True),
        sa.Column('refund_reason', sa.Text(), nullable=True),
        sa.Column('dispute_reason', sa.Text(), nullable=True),
        sa.Column('released_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('disputed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name='chk_escrow_amount_positive'),
    )
    op.create_index('idx_escrow_user', 'escrow_records', ['user_id'])
    op.create_index('idx_escrow_order', 'escrow_records', ['order_id'])
    op.create_index('idx_escrow_status_release', 'escrow_records', ['status', 'auto_release_at'])

    op.create_table(
        'group_orders',
        sa.Column('group_order_id', sa.Uuid(), primary_key=True),
        sa.Column('leader_id', sa.String(128), nullable=False),
        sa.Column('leader_name', sa.String(255), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('member_ids', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('deadline', sa.DateTime(timezone=True), nullable=False),
        sa.Column('min_members', sa.Integer(), nullable=False),
        sa.Column('max_members', sa.Integer(), nullable=False),
        sa.Column('total_value', sa.Numeric(14, 2), nullable=False),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('min_members >= 1', name='chk_group_order_min_members'),
        sa.CheckConstraint('max_members >= min_members', name='chk_group_order_max_members'),
    )
    op.create_index('idx_group_orders_status_deadline', 'group_orders', ['status', 'deadline'])
    op.create_index('idx_group_orders_leader', 'group_orders', ['leader_id'])

    op.create_table(
        'group_order_products',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'group_order_id',
            sa.Uuid(),
            sa.ForeignKey('group_orders.group_order_id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('supplier_id', sa.String(128), nullable=False),
        sa.Column('unit', sa.String(20), nullable=False),
        sa.Column('base_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('target_quantity', sa.Integer(), nullable=False),
        sa.Column('min_order_quantity', sa.Integer(), nullable=False),
        sa.Column('current_quantity', sa.Integer(), nullable=False),
        sa.Column('discount_tiers', sa.JSON(), nullable=False),
        sa.Column('current_discount_percent', sa.Numeric(5, 2), nullable=False),
        sa.Column('member_contributions', sa.JSON(), nullable=False),
        sa.CheckConstraint('current_quantity >= 0', name='chk_group_product_quantity_non_negative'),
    )
    op.create_index('idx_group_order_products_group', 'group_order_products', ['group_order_id'])


def downgrade() -> None:
    op.drop_table('group_order_products')
    op.drop_table('group_orders')
    op.drop_table('escrow_records')
    op.drop_table('transactions')
    op.drop_table('wallets')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('products')
