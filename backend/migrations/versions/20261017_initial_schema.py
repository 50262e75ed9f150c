"""Initial schema: tenancy, accounts, catalog, appointments, audit history, tracking

Revision ID: 20261017_initial
Revises:
Create Date: 2026-10-17

This migration creates:
1. users, user_roles, session_tokens (accounts + bearer sessions)
2. companies (one per owner, UNIQUE owner_user_id) and units
3. barbers (with invite token) and services
4. appointments
5. cancellation_history and appointment_deletions (append-only snapshots,
   no foreign key to appointments)
6. page_visits and security_events
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261017_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. ACCOUNTS
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('profile_metadata', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_email'), ['email'], unique=True)

    op.create_table('user_roles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'role', name='uq_user_roles_user_role'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('user_roles', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_user_roles_user_id'), ['user_id'], unique=False)

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('session_tokens', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_session_tokens_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_session_tokens_token_hash'), ['token_hash'], unique=True)
        batch_op.create_index(batch_op.f('ix_session_tokens_expires_at'), ['expires_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_session_tokens_is_revoked'), ['is_revoked'], unique=False)
        batch_op.create_index('ix_session_tokens_user_active', ['user_id', 'is_revoked'], unique=False)

    # ==========================================================================
    # 2. TENANCY
    # ==========================================================================
    op.create_table('companies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('owner_user_id', sa.Integer(), nullable=False),
        sa.Column('plan_status', sa.String(length=16), nullable=False, server_default='trial'),
        sa.Column('monthly_price', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint("plan_status IN ('trial', 'active', 'overdue')", name='ck_companies_plan_status'),
        sa.ForeignKeyConstraint(['owner_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('companies', schema=None) as batch_op:
        # UNIQUE: at most one company per owner, across processes
        batch_op.create_index(batch_op.f('ix_companies_owner_user_id'), ['owner_user_id'], unique=True)
        batch_op.create_index(batch_op.f('ix_companies_plan_status'), ['plan_status'], unique=False)
        batch_op.create_index(batch_op.f('ix_companies_created_at'), ['created_at'], unique=False)

    op.create_table('units',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('is_headquarters', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('timezone', sa.String(length=64), nullable=False, server_default='UTC'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('units', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_units_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_units_user_id'), ['user_id'], unique=False)
        batch_op.create_index('ix_units_company_order', ['company_id', 'is_headquarters', 'created_at'], unique=False)

    # ==========================================================================
    # 3. CATALOG
    # ==========================================================================
    op.create_table('barbers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('calendar_color', sa.String(length=16), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('invite_token', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('barbers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_barbers_unit_id'), ['unit_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_barbers_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_barbers_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_barbers_invite_token'), ['invite_token'], unique=True)
        batch_op.create_index('ix_barbers_unit_active', ['unit_id', 'is_active'], unique=False)

    op.create_table('services',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('duration_minutes > 0', name='ck_services_duration_positive'),
        sa.CheckConstraint('price >= 0', name='ck_services_price_non_negative'),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('services', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_services_unit_id'), ['unit_id'], unique=False)

    # ==========================================================================
    # 4. APPOINTMENTS
    # ==========================================================================
    op.create_table('appointments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('barber_id', sa.Integer(), nullable=True),
        sa.Column('service_id', sa.Integer(), nullable=True),
        sa.Column('client_name', sa.String(length=120), nullable=False),
        sa.Column('client_phone', sa.String(length=32), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name='ck_appointments_status',
        ),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.ForeignKeyConstraint(['barber_id'], ['barbers.id'], ),
        sa.ForeignKeyConstraint(['service_id'], ['services.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('appointments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_appointments_unit_id'), ['unit_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_appointments_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_appointments_barber_id'), ['barber_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_appointments_service_id'), ['service_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_appointments_status'), ['status'], unique=False)
        batch_op.create_index('ix_appointments_unit_start', ['unit_id', 'start_time'], unique=False)
        batch_op.create_index('ix_appointments_barber_start', ['barber_id', 'start_time'], unique=False)

    # ==========================================================================
    # 5. AUDIT HISTORY (append-only, no FK to appointments)
    # ==========================================================================
    op.create_table('cancellation_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('appointment_id', sa.Integer(), nullable=True),
        sa.Column('client_name', sa.String(length=120), nullable=False),
        sa.Column('client_phone', sa.String(length=32), nullable=True),
        sa.Column('barber_name', sa.String(length=120), nullable=False),
        sa.Column('service_name', sa.String(length=120), nullable=False),
        sa.Column('scheduled_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('minutes_before', sa.Integer(), nullable=False),
        sa.Column('is_late_cancellation', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('is_no_show', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('total_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('cancellation_source', sa.String(length=32), nullable=False, server_default='manual'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('cancellation_history', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_cancellation_history_unit_id'), ['unit_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_cancellation_history_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_cancellation_history_is_late_cancellation'), ['is_late_cancellation'], unique=False)
        batch_op.create_index(batch_op.f('ix_cancellation_history_is_no_show'), ['is_no_show'], unique=False)
        batch_op.create_index('ix_cancellation_history_unit_scheduled', ['unit_id', 'scheduled_time'], unique=False)

    op.create_table('appointment_deletions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('appointment_id', sa.Integer(), nullable=False),
        sa.Column('client_name', sa.String(length=120), nullable=False),
        sa.Column('client_phone', sa.String(length=32), nullable=True),
        sa.Column('barber_name', sa.String(length=120), nullable=False),
        sa.Column('service_name', sa.String(length=120), nullable=False),
        sa.Column('scheduled_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('original_status', sa.String(length=16), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('deleted_by', sa.String(length=255), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('deletion_reason', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('appointment_deletions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_appointment_deletions_unit_id'), ['unit_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_appointment_deletions_company_id'), ['company_id'], unique=False)
        batch_op.create_index('ix_appointment_deletions_unit_deleted', ['unit_id', 'deleted_at'], unique=False)

    # ==========================================================================
    # 6. TRACKING & SECURITY
    # ==========================================================================
    op.create_table('page_visits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('page_path', sa.String(length=500), nullable=False),
        sa.Column('referrer', sa.String(length=2000), nullable=True),
        sa.Column('user_agent', sa.String(length=1000), nullable=True),
        sa.Column('session_id', sa.String(length=100), nullable=True),
        sa.Column('visited_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('page_visits', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_page_visits_visited_at'), ['visited_at'], unique=False)

    op.create_table('security_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('unit_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('resource', sa.String(length=128), nullable=True),
        sa.Column('action', sa.String(length=255), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('security_events', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_security_events_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_security_events_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_security_events_event_type'), ['event_type'], unique=False)
        batch_op.create_index(batch_op.f('ix_security_events_success'), ['success'], unique=False)
        batch_op.create_index(batch_op.f('ix_security_events_occurred_at'), ['occurred_at'], unique=False)
        batch_op.create_index('ix_security_events_user_type', ['user_id', 'event_type'], unique=False)
        batch_op.create_index('ix_security_events_company_occurred', ['company_id', 'occurred_at'], unique=False)


def downgrade():
    op.drop_table('security_events')
    op.drop_table('page_visits')
    op.drop_table('appointment_deletions')
    op.drop_table('cancellation_history')
    op.drop_table('appointments')
    op.drop_table('services')
    op.drop_table('barbers')
    op.drop_table('units')
    op.drop_table('companies')
    op.drop_table('session_tokens')
    op.drop_table('user_roles')
    op.drop_table('users')
