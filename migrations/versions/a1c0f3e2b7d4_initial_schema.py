"""Initial schema: accounts, units, tenants, leases, rental requests, ledger, audit

Revision ID: a1c0f3e2b7d4
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c0f3e2b7d4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


user_role = sa.Enum('ADMIN', 'USER', 'VILLAGER', name='user_role')
unit_status = sa.Enum('AVAILABLE', 'OCCUPIED', 'MAINTENANCE', 'RESERVED', name='unit_status')
tenant_status = sa.Enum('ACTIVE', 'INACTIVE', name='tenant_status')
lease_status = sa.Enum('PENDING', 'ACTIVE', 'EXPIRED', 'TERMINATED', name='lease_status')
billing_cycle = sa.Enum('MONTHLY', 'QUARTERLY', 'ANNUALLY', name='billing_cycle')
rental_request_status = sa.Enum('PENDING', 'APPROVED', 'REJECTED', 'COMPLETED', name='rental_request_status')
payment_type = sa.Enum(
    'RENT', 'ELECTRICITY', 'WATER', 'MAINTENANCE', 'SECURITY_DEPOSIT', 'OTHER', name='payment_type'
)
payment_status = sa.Enum('PENDING', 'PAID', 'OVERDUE', 'PARTIAL', name='payment_status')
payment_method = sa.Enum('CASH', 'BANK_TRANSFER', 'CREDIT_CARD', 'PROMPTPAY', 'OTHER', name='payment_method')
invoice_type = sa.Enum(
    'MONTHLY_RENT', 'SECURITY_DEPOSIT', 'CLEANING_FEE', 'MAINTENANCE_FEE', 'CUSTOM', name='invoice_type'
)
invoice_status = sa.Enum('PENDING', 'PAID', 'OVERDUE', 'CANCELLED', name='invoice_status')
unit_audit_action_type = sa.Enum(
    'CREATED', 'UPDATED', 'PRICE_CHANGED', 'STATUS_CHANGED', 'DELETED', name='unit_audit_action_type'
)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('username', sa.String(100), nullable=False),
        sa.Column('email', sa.String(254), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('role', user_role, nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'units',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('room_number', sa.String(20), nullable=False),
        sa.Column('floor', sa.Integer(), nullable=False),
        sa.Column('unit_type', sa.String(50), nullable=False),
        sa.Column('rent_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('size_sqm', sa.Numeric(8, 2), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', unit_status, nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_units_room_number', 'units', ['room_number'], unique=True)
    op.create_index('ix_units_floor', 'units', ['floor'])
    op.create_index('ix_units_status', 'units', ['status'])

    op.create_table(
        'tenants',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('first_name', sa.String(50), nullable=False),
        sa.Column('last_name', sa.String(50), nullable=False),
        sa.Column('email', sa.String(254), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('occupation', sa.String(100), nullable=True),
        sa.Column('emergency_contact', sa.String(255), nullable=True),
        sa.Column('emergency_phone', sa.String(20), nullable=True),
        sa.Column('status', tenant_status, nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_tenants_email', 'tenants', ['email'])
    op.create_index('ix_tenants_status', 'tenants', ['status'])

    op.create_table(
        'leases',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('unit_id', sa.Integer(), sa.ForeignKey('units.id'), nullable=False),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('rent_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('security_deposit', sa.Numeric(10, 2), nullable=True),
        sa.Column('billing_cycle', billing_cycle, nullable=False),
        sa.Column('status', lease_status, nullable=False),
        sa.Column('termination_reason', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_leases_unit_id', 'leases', ['unit_id'])
    op.create_index('ix_leases_tenant_id', 'leases', ['tenant_id'])
    op.create_index('ix_leases_status', 'leases', ['status'])
    op.create_index('idx_leases_dates', 'leases', ['start_date', 'end_date'])
    op.create_index('idx_leases_unit_status', 'leases', ['unit_id', 'status'])
    op.create_index(
        'uq_leases_one_active_per_unit',
        'leases',
        ['unit_id'],
        unique=True,
        sqlite_where=sa.text("status = 'ACTIVE'"),
        postgresql_where=sa.text("status = 'ACTIVE'"),
    )

    op.create_table(
        'rental_requests',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('unit_id', sa.Integer(), sa.ForeignKey('units.id'), nullable=False),
        sa.Column('first_name', sa.String(50), nullable=False),
        sa.Column('last_name', sa.String(50), nullable=False),
        sa.Column('email', sa.String(254), nullable=False),
        sa.Column('phone', sa.String(20), nullable=False),
        sa.Column('occupation', sa.String(100), nullable=True),
        sa.Column('emergency_contact', sa.String(255), nullable=True),
        sa.Column('emergency_phone', sa.String(20), nullable=True),
        sa.Column('lease_duration_months', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', rental_request_status, nullable=False),
        sa.Column('request_date', sa.DateTime(), nullable=False),
        sa.Column('approved_by_user_id', sa.Integer(), nullable=True),
        sa.Column('approved_date', sa.DateTime(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('rejection_acknowledged_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_rental_requests_user_id', 'rental_requests', ['user_id'])
    op.create_index('ix_rental_requests_unit_id', 'rental_requests', ['unit_id'])
    op.create_index('ix_rental_requests_email', 'rental_requests', ['email'])
    op.create_index('ix_rental_requests_status', 'rental_requests', ['status'])

    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('invoice_number', sa.String(50), nullable=False),
        sa.Column('lease_id', sa.Integer(), sa.ForeignKey('leases.id', ondelete='CASCADE'), nullable=False),
        sa.Column('invoice_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('invoice_type', invoice_type, nullable=False),
        sa.Column('status', invoice_status, nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'], unique=True)
    op.create_index('ix_invoices_lease_id', 'invoices', ['lease_id'])
    op.create_index('ix_invoices_due_date', 'invoices', ['due_date'])
    op.create_index('ix_invoices_status', 'invoices', ['status'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('lease_id', sa.Integer(), sa.ForeignKey('leases.id', ondelete='CASCADE'), nullable=False),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=True),
        sa.Column('payment_type', payment_type, nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('paid_date', sa.Date(), nullable=True),
        sa.Column('payment_method', payment_method, nullable=False),
        sa.Column('status', payment_status, nullable=False),
        sa.Column('receipt_number', sa.String(50), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_payments_lease_id', 'payments', ['lease_id'])
    op.create_index('ix_payments_invoice_id', 'payments', ['invoice_id'])
    op.create_index('ix_payments_due_date', 'payments', ['due_date'])
    op.create_index('ix_payments_status', 'payments', ['status'])

    op.create_table(
        'unit_audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('action_type', unit_audit_action_type, nullable=False),
        sa.Column('old_values', sa.Text(), nullable=True),
        sa.Column('new_values', sa.Text(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_unit_audit_logs_unit_id', 'unit_audit_logs', ['unit_id'])
    op.create_index('ix_unit_audit_logs_action_type', 'unit_audit_logs', ['action_type'])
    op.create_index('ix_unit_audit_logs_created_by_user_id', 'unit_audit_logs', ['created_by_user_id'])
    op.create_index('idx_unit_audit_unit_created', 'unit_audit_logs', ['unit_id', 'created_at'])

    op.create_table(
        'unit_price_history',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('unit_id', sa.Integer(), sa.ForeignKey('units.id', ondelete='CASCADE'), nullable=False),
        sa.Column('rent_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('effective_from', sa.DateTime(), nullable=False),
        sa.Column('effective_to', sa.DateTime(), nullable=True),
        sa.Column('change_reason', sa.String(255), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_unit_price_history_unit_id', 'unit_price_history', ['unit_id'])


def downgrade() -> None:
    op.drop_table('unit_price_history')
    op.drop_table('unit_audit_logs')
    op.drop_table('payments')
    op.drop_table('invoices')
    op.drop_table('rental_requests')
    op.drop_table('leases')
    op.drop_table('tenants')
    op.drop_table('units')
    op.drop_table('users')

    bind = op.get_bind()
    for enum in (
        unit_audit_action_type, invoice_status, invoice_type, payment_method, payment_status,
        payment_type, rental_request_status, billing_cycle, lease_status, tenant_status,
        unit_status, user_role,
    ):
        enum.drop(bind, checkfirst=True)
