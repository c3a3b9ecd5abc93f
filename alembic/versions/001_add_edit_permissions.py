"""Add users, business records, edit_requests and audit_logs.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

revision = '001'
down_revision = None
branch_labels = None
depends_on = None

RESOURCE_TABLES = ('flights', 'money_transfers', 'parcels', 'translations', 'other_services')


def _resource_columns():
    return [
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('status', sa.String(50), nullable=True, server_default='pending'),
        sa.Column('agent_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True, server_default=sa.func.now()),
    ]


def _money(name, scale=2):
    return sa.Column(name, sa.Numeric(12, scale), nullable=True, server_default='0')


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='client'),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column('last_login', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'flights',
        *_resource_columns(),
        sa.Column('pnr', sa.String(20), nullable=True),
        sa.Column('itinerary', sa.String(255), nullable=True),
        sa.Column('travel_date', sa.Date(), nullable=True),
        sa.Column('return_date', sa.Date(), nullable=True),
        _money('cost'),
        _money('sold_price'),
        _money('on_account'),
        _money('balance'),
        sa.Column('payment_details', sa.JSON(), nullable=True),
    )
    op.create_index('ix_flights_pnr', 'flights', ['pnr'])

    op.create_table(
        'money_transfers',
        *_resource_columns(),
        sa.Column('transfer_code', sa.String(30), nullable=True),
        sa.Column('beneficiary_name', sa.String(255), nullable=True),
        _money('amount_sent'),
        _money('amount_received'),
        _money('exchange_rate', scale=4),
        sa.Column('payment_details', sa.JSON(), nullable=True),
    )
    op.create_index('ix_money_transfers_transfer_code', 'money_transfers', ['transfer_code'])

    op.create_table(
        'parcels',
        *_resource_columns(),
        sa.Column('tracking_code', sa.String(30), nullable=True),
        sa.Column('recipient_name', sa.String(255), nullable=True),
        sa.Column('recipient_phone', sa.String(50), nullable=True),
        sa.Column('recipient_address', sa.String(255), nullable=True),
        sa.Column('origin_address', sa.String(255), nullable=True),
        sa.Column('destination_address', sa.String(255), nullable=True),
        sa.Column('package_type', sa.String(50), nullable=True),
        sa.Column('package_weight', sa.Numeric(10, 2), nullable=True, server_default='0'),
        sa.Column('package_description', sa.Text(), nullable=True),
        _money('shipping_cost'),
        sa.Column('payment_details', sa.JSON(), nullable=True),
    )
    op.create_index('ix_parcels_tracking_code', 'parcels', ['tracking_code'])

    op.create_table(
        'translations',
        *_resource_columns(),
        sa.Column('tracking_code', sa.String(30), nullable=True),
        sa.Column('document_type', sa.String(100), nullable=True),
        sa.Column('source_language', sa.String(20), nullable=True),
        sa.Column('target_language', sa.String(20), nullable=True),
        _money('total_amount'),
        _money('on_account'),
        _money('balance'),
        sa.Column('payment_details', sa.JSON(), nullable=True),
    )
    op.create_index('ix_translations_tracking_code', 'translations', ['tracking_code'])

    op.create_table(
        'other_services',
        *_resource_columns(),
        sa.Column('tracking_code', sa.String(30), nullable=True),
        sa.Column('service_description', sa.Text(), nullable=True),
        _money('total_amount'),
        _money('on_account'),
        _money('balance'),
        sa.Column('payment_details', sa.JSON(), nullable=True),
        sa.Column('expense_details', sa.JSON(), nullable=True),
    )
    op.create_index('ix_other_services_tracking_code', 'other_services', ['tracking_code'])

    op.create_table(
        'edit_requests',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('agent_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('resource_type', sa.String(50), nullable=False),
        sa.Column('resource_id', sa.String(64), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False, server_default=''),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('admin_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_edit_requests_status', 'edit_requests', ['status'])
    op.create_index('ix_edit_requests_grant_lookup', 'edit_requests',
                    ['agent_id', 'resource_type', 'resource_id', 'status'])
    # One pending request per record; the database arbitrates concurrent submits.
    op.create_index(
        'uq_edit_requests_one_pending', 'edit_requests',
        ['resource_type', 'resource_id'],
        unique=True,
        sqlite_where=sa.text("status = 'pending'"),
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('actor_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('resource_type', sa.String(50), nullable=False),
        sa.Column('resource_id', sa.String(64), nullable=False),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_actor', 'audit_logs', ['actor_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])
    op.create_index('ix_audit_logs_resource', 'audit_logs',
                    ['resource_type', 'resource_id', 'created_at'])


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('edit_requests')
    for table in reversed(RESOURCE_TABLES):
        op.drop_table(table)
    op.drop_table('users')
