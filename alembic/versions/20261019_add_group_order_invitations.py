"""add_group_order_invitations

Revision ID: 002_add_invitations
Revises: 001_initial
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = '002_add_invitations'
down_revision: Union[str, None] = '001_initial'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'group_order_invitations',
        sa.Column('invitation_id', sa.Uuid(), primary_key=True),
        sa.Column(
            'group_order_id',
            sa.Uuid(),
            sa.ForeignKey('group_orders.group_order_id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('group_order_title', sa.String(255), nullable=False),
        sa.Column('sender_id', sa.String(128), nullable=False),
        sa.Column('sender_name', sa.String(255), nullable=False),
        sa.Column('recipient_contact', sa.String(255), nullable=False),
        sa.Column('method', sa.String(10), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('accepted_by', sa.String(128), nullable=True),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('declined_by', sa.String(128), nullable=True),
        sa.Column('declined_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_invitations_group_order', 'group_order_invitations', ['group_order_id'])
    op.create_index('idx_invitations_status', 'group_order_invitations', ['status'])


def downgrade() -> None:
    op.drop_index('idx_invitations_status', table_name='group_order_invitations')
    op.drop_index('idx_invitations_group_order', table_name='group_order_invitations')
    op.drop_table('group_order_invitations')
