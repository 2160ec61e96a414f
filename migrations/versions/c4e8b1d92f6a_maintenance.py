"""Maintenance: stock, schedules, requests and their items, activity log, apartment settings

Revision ID: c4e8b1d92f6a
Revises: a1c0f3e2b7d4
Create Date: 2025-03-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'c4e8b1d92f6a'
down_revision: Union[str, None] = 'a1c0f3e2b7d4'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUMS = {
    'maintenance_category': (
        'PLUMBING', 'ELECTRICAL', 'HVAC', 'APPLIANCE', 'STRUCTURAL', 'CLEANING', 'OTHER',
    ),
    'maintenance_priority': ('LOW', 'MEDIUM', 'HIGH', 'URGENT'),
    'maintenance_urgency': ('LOW', 'MEDIUM', 'HIGH', 'EMERGENCY'),
    'maintenance_status': (
        'NOT_SUBMITTED', 'PENDING_TENANT_CONFIRMATION', 'SUBMITTED', 'WAITING_FOR_REPAIR',
        'APPROVED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED',
    ),
    'recurrence_type': ('ONE_TIME', 'DAILY', 'WEEKLY', 'MONTHLY', 'QUARTERLY', 'YEARLY'),
    'maintenance_target_type': ('ALL_UNITS', 'SPECIFIC_UNITS', 'FLOOR', 'UNIT_TYPE'),
    'maintenance_log_action': (
        'SCHEDULE_CREATED', 'SCHEDULE_UPDATED', 'SCHEDULE_DELETED', 'SCHEDULE_ACTIVATED',
        'SCHEDULE_DEACTIVATED', 'SCHEDULE_PAUSED', 'SCHEDULE_RESUMED', 'SCHEDULE_TRIGGERED',
        'REQUEST_CREATED_FROM_SCHEDULE', 'REQUEST_UPDATED', 'REQUEST_STATUS_CHANGED',
        'REQUEST_ASSIGNED', 'REQUEST_COMPLETED',
    ),
}


def _enum(name):
    # Types are created once in upgrade(); several tables share them
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        sa.Enum(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        'maintenance_stocks',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('item_name', sa.String(255), nullable=False),
        sa.Column('category', _enum('maintenance_category'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_of_measure', sa.String(50), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_maintenance_stocks_item_name', 'maintenance_stocks', ['item_name'])
    op.create_index('ix_maintenance_stocks_category', 'maintenance_stocks', ['category'])

    op.create_table(
        'maintenance_schedules',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', _enum('maintenance_category'), nullable=False),
        sa.Column('priority', _enum('maintenance_priority'), nullable=False),
        sa.Column('recurrence_type', _enum('recurrence_type'), nullable=False),
        sa.Column('recurrence_interval', sa.Integer(), nullable=False),
        sa.Column('recurrence_day_of_month', sa.Integer(), nullable=True),
        sa.Column('target_type', _enum('maintenance_target_type'), nullable=False),
        sa.Column('target_unit_ids', sa.JSON(), nullable=True),
        sa.Column('target_floor', sa.Integer(), nullable=True),
        sa.Column('target_unit_type', sa.String(50), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('next_trigger_date', sa.Date(), nullable=True),
        sa.Column('last_triggered_date', sa.Date(), nullable=True),
        sa.Column('estimated_cost', sa.Numeric(10, 2), nullable=True),
        sa.Column('assigned_to_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_paused', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_maintenance_schedules_next_trigger_date', 'maintenance_schedules', ['next_trigger_date'])
    op.create_index(
        'idx_maintenance_schedules_due', 'maintenance_schedules', ['is_active', 'is_paused', 'next_trigger_date']
    )

    op.create_table(
        'maintenance_requests',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('unit_id', sa.Integer(), sa.ForeignKey('units.id'), nullable=False),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id', ondelete='SET NULL'), nullable=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('priority', _enum('maintenance_priority'), nullable=False),
        sa.Column('category', _enum('maintenance_category'), nullable=False),
        sa.Column('urgency', _enum('maintenance_urgency'), nullable=False),
        sa.Column('status', _enum('maintenance_status'), nullable=False),
        sa.Column('preferred_time', sa.String(50), nullable=True),
        sa.Column('assigned_to_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('estimated_cost', sa.Numeric(10, 2), nullable=True),
        sa.Column('actual_cost', sa.Numeric(10, 2), nullable=True),
        sa.Column('completion_notes', sa.Text(), nullable=True),
        sa.Column('submitted_date', sa.DateTime(), nullable=True),
        sa.Column('completed_date', sa.DateTime(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column(
            'schedule_id', sa.Integer(), sa.ForeignKey('maintenance_schedules.id', ondelete='SET NULL'), nullable=True
        ),
        sa.Column('is_from_schedule', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    for column in (
        'unit_id', 'tenant_id', 'priority', 'category', 'status',
        'assigned_to_user_id', 'created_by_user_id', 'schedule_id',
    ):
        op.create_index(f'ix_maintenance_requests_{column}', 'maintenance_requests', [column])

    op.create_table(
        'maintenance_request_items',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'request_id', sa.Integer(), sa.ForeignKey('maintenance_requests.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('stock_id', sa.Integer(), sa.ForeignKey('maintenance_stocks.id'), nullable=False),
        sa.Column('quantity_used', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_maintenance_request_items_request_id', 'maintenance_request_items', ['request_id'])
    op.create_index('ix_maintenance_request_items_stock_id', 'maintenance_request_items', ['stock_id'])

    op.create_table(
        'maintenance_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('schedule_id', sa.Integer(), nullable=True),
        sa.Column('request_id', sa.Integer(), nullable=True),
        sa.Column('action_type', _enum('maintenance_log_action'), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('previous_value', sa.Text(), nullable=True),
        sa.Column('new_value', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_maintenance_logs_schedule_id', 'maintenance_logs', ['schedule_id'])
    op.create_index('ix_maintenance_logs_request_id', 'maintenance_logs', ['request_id'])
    op.create_index('ix_maintenance_logs_action_type', 'maintenance_logs', ['action_type'])

    op.create_table(
        'apartment_settings',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('setting_key', sa.String(100), nullable=False),
        sa.Column('setting_value', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('updated_by_user_id', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_apartment_settings_setting_key', 'apartment_settings', ['setting_key'], unique=True)


def downgrade() -> None:
    op.drop_table('apartment_settings')
    op.drop_table('maintenance_logs')
    op.drop_table('maintenance_request_items')
    op.drop_table('maintenance_requests')
    op.drop_table('maintenance_schedules')
    op.drop_table('maintenance_stocks')

    bind = op.get_bind()
    for name, values in reversed(list(ENUMS.items())):
        sa.Enum(*values, name=name).drop(bind, checkfirst=True)
