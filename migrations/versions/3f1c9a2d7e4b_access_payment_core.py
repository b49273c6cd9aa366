"""access_payment_core

Revision ID: 3f1c9a2d7e4b
Revises:
Create Date: 2025-11-20 10:12:41.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a2d7e4b'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='user'),
        sa.Column('subscription_status', sa.String(length=7), nullable=False, server_default='free'),
        sa.Column('subscription_start_date', sa.DateTime(), nullable=True),
        sa.Column('subscription_end_date', sa.DateTime(), nullable=True),
        sa.CheckConstraint("subscription_status IN ('free', 'monthly', 'yearly', 'expired')", name='ck_users_subscription_status'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'admin_action_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('admin_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_admin_action_logs_id', 'admin_action_logs', ['id'])

    for table, is_free_default in (('courses', sa.true()), ('course_packs', sa.false())):
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('title', sa.String(), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('is_published', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('is_free', sa.Boolean(), nullable=False, server_default=is_free_default),
            sa.Column('monthly_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
            sa.Column('yearly_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
            sa.Column('currency', sa.String(length=3), nullable=False, server_default='TND'),
            sa.Column('created_at', sa.DateTime(), nullable=True),
        )
        op.create_index(f'ix_{table}_id', table, ['id'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('item_type', sa.String(length=6), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('plan_type', sa.String(length=7), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='TND'),
        sa.Column('receipt_reference', sa.String(), nullable=True),
        sa.Column('receipt_filename', sa.String(), nullable=True),
        sa.Column('status', sa.String(length=8), nullable=False, server_default='pending'),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('processed_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint("item_type IN ('course', 'pack')", name='ck_payments_item_type'),
        sa.CheckConstraint("plan_type IN ('monthly', 'yearly')", name='ck_payments_plan_type'),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name='ck_payments_status'),
        sa.CheckConstraint("amount > 0", name='ck_payments_amount_positive'),
    )
    op.create_index('ix_payments_id', 'payments', ['id'])
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])
    op.create_index('ix_payments_item', 'payments', ['item_type', 'item_id'])

    op.create_table(
        'access_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('item_type', sa.String(length=6), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('plan_type', sa.String(length=7), nullable=False),
        sa.Column('payment_id', sa.Integer(), sa.ForeignKey('payments.id'), nullable=True),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('payment_id', name='uq_access_records_payment_id'),
        sa.CheckConstraint("item_type IN ('course', 'pack')", name='ck_access_records_item_type'),
        sa.CheckConstraint("plan_type IN ('monthly', 'yearly')", name='ck_access_records_plan_type'),
        sa.CheckConstraint("end_date > start_date", name='ck_access_records_window'),
    )
    op.create_index('ix_access_records_id', 'access_records', ['id'])
    op.create_index('ix_access_records_user_id', 'access_records', ['user_id'])
    op.create_index('ix_access_records_end_date', 'access_records', ['end_date'])
    op.create_index('ix_access_records_lookup', 'access_records', ['user_id', 'item_type', 'item_id', 'is_active'])


def downgrade() -> None:
    op.drop_table('access_records')
    op.drop_table('payments')
    op.drop_table('course_packs')
    op.drop_table('courses')
    op.drop_table('admin_action_logs')
    op.drop_table('users')
