"""Initial leave workflow schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


role_enum = sa.Enum('EMPLOYEE', 'MANAGER', 'HR', 'ADMIN', name='role')
leave_status_enum = sa.Enum('PENDING', 'APPROVED', 'REJECTED', 'CANCELLED', name='leavestatus')
step_status_enum = sa.Enum('PENDING', 'APPROVED', 'REJECTED', 'SKIPPED', name='approvalstepstatus')
transaction_action_enum = sa.Enum(
    'ALLOCATION', 'APPROVE_DEDUCT', 'CANCEL_RESTORE', 'MANUAL_ADJUST',
    'CARRY_FORWARD_CREDIT', 'CARRY_FORWARD_EXPIRY',
    name='leavetransactionaction',
)


def _timestamps(with_updated: bool = True):
    # SQL-standard CURRENT_TIMESTAMP works on SQLite and Postgres
    cols = [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]
    if with_updated:
        cols.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False)
        )
    return cols


def upgrade() -> None:
    # Skip if tables already exist (DB created by the app's create_all())
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if 'employees' in inspector.get_table_names():
        return

    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('emp_code', sa.String(length=50), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=150), nullable=False),
        sa.Column('department', sa.String(length=100), nullable=True),
        sa.Column('position', sa.String(length=100), nullable=True),
        sa.Column('role', role_enum, nullable=False),
        sa.Column('manager_id', sa.Integer(), nullable=True),
        sa.Column('password_hash', sa.String(), nullable=True),
        sa.Column('hire_date', sa.Date(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['manager_id'], ['employees.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_employees_id', 'employees', ['id'])
    op.create_index('ix_employees_emp_code', 'employees', ['emp_code'], unique=True)
    op.create_index('ix_employees_email', 'employees', ['email'], unique=True)
    op.create_index('ix_employees_manager_id', 'employees', ['manager_id'])

    op.create_table(
        'leave_types',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('default_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )
    op.create_index('ix_leave_types_id', 'leave_types', ['id'])

    op.create_table(
        'leave_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_type_id', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('total_days', sa.Numeric(5, 2), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('status', leave_status_enum, nullable=False),
        sa.Column('approver_id', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approver_comment', sa.String(length=500), nullable=True),
        sa.Column('cancelled_by_id', sa.Integer(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.ForeignKeyConstraint(['leave_type_id'], ['leave_types.id']),
        sa.ForeignKeyConstraint(['approver_id'], ['employees.id']),
        sa.ForeignKeyConstraint(['cancelled_by_id'], ['employees.id']),
        sa.CheckConstraint('start_date <= end_date', name='check_start_date_le_end_date'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_leave_requests_id', 'leave_requests', ['id'])
    op.create_index('ix_leave_requests_employee_id', 'leave_requests', ['employee_id'])
    op.create_index('ix_leave_requests_leave_type_id', 'leave_requests', ['leave_type_id'])
    op.create_index('ix_leave_requests_approver_id', 'leave_requests', ['approver_id'])
    op.create_index('ix_leave_requests_employee_dates', 'leave_requests', ['employee_id', 'start_date', 'end_date'])

    op.create_table(
        'approval_steps',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('leave_request_id', sa.Integer(), nullable=False),
        sa.Column('approver_id', sa.Integer(), nullable=False),
        sa.Column('step_order', sa.Integer(), nullable=False),
        sa.Column('status', step_status_enum, nullable=False),
        sa.Column('comment', sa.String(length=500), nullable=True),
        sa.Column('action_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_timestamps(with_updated=False),
        sa.ForeignKeyConstraint(['leave_request_id'], ['leave_requests.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['approver_id'], ['employees.id']),
        sa.UniqueConstraint('leave_request_id', 'step_order', name='uq_approval_steps_request_order'),
        sa.CheckConstraint('step_order >= 1', name='check_step_order_positive'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_approval_steps_id', 'approval_steps', ['id'])
    op.create_index('ix_approval_steps_leave_request_id', 'approval_steps', ['leave_request_id'])
    op.create_index('ix_approval_steps_approver_id', 'approval_steps', ['approver_id'])

    op.create_table(
        'leave_balances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_type_id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('total', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('used', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.ForeignKeyConstraint(['leave_type_id'], ['leave_types.id']),
        sa.UniqueConstraint('employee_id', 'leave_type_id', 'year', name='uq_leave_balances_employee_type_year'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_leave_balances_id', 'leave_balances', ['id'])
    op.create_index('ix_leave_balances_employee_id', 'leave_balances', ['employee_id'])
    op.create_index('ix_leave_balances_leave_type_id', 'leave_balances', ['leave_type_id'])
    op.create_index('ix_leave_balances_year', 'leave_balances', ['year'])

    op.create_table(
        'leave_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_type_id', sa.Integer(), nullable=False),
        sa.Column('leave_request_id', sa.Integer(), nullable=True),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('delta_days', sa.Numeric(6, 2), nullable=False),
        sa.Column('action', transaction_action_enum, nullable=False),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('action_by_id', sa.Integer(), nullable=True),
        sa.Column('action_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.ForeignKeyConstraint(['leave_type_id'], ['leave_types.id']),
        sa.ForeignKeyConstraint(['leave_request_id'], ['leave_requests.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['action_by_id'], ['employees.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_leave_transactions_id', 'leave_transactions', ['id'])
    op.create_index('ix_leave_transactions_employee_id', 'leave_transactions', ['employee_id'])
    op.create_index('ix_leave_transactions_leave_request_id', 'leave_transactions', ['leave_request_id'])
    op.create_index('ix_leave_transactions_year', 'leave_transactions', ['year'])

    op.create_table(
        'leave_carry_forwards',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_type_id', sa.Integer(), nullable=False),
        sa.Column('from_year', sa.Integer(), nullable=False),
        sa.Column('to_year', sa.Integer(), nullable=False),
        sa.Column('carried_days', sa.Numeric(6, 2), nullable=False),
        sa.Column('max_carry_forward_days', sa.Numeric(6, 2), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('is_expired', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(with_updated=False),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.ForeignKeyConstraint(['leave_type_id'], ['leave_types.id']),
        sa.UniqueConstraint('employee_id', 'leave_type_id', 'from_year', 'to_year', name='uq_leave_carry_forwards_key'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_leave_carry_forwards_id', 'leave_carry_forwards', ['id'])
    op.create_index('ix_leave_carry_forwards_employee_id', 'leave_carry_forwards', ['employee_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False, server_default='info'),
        sa.Column('link', sa.String(length=255), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['employees.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_id', 'notifications', ['id'])
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_is_read', 'notifications', ['is_read'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('meta_json', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['actor_id'], ['employees.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_id', 'audit_logs', ['id'])


def downgrade() -> None:
    for table in (
        'audit_logs',
        'notifications',
        'leave_carry_forwards',
        'leave_transactions',
        'leave_balances',
        'approval_steps',
        'leave_requests',
        'leave_types',
        'employees',
    ):
        op.drop_table(table)
    bind = op.get_bind()
    for enum in (transaction_action_enum, step_status_enum, leave_status_enum, role_enum):
        enum.drop(bind, checkfirst=True)
