# alembic/versions/0001_initial.py
# initial schema for the booking core
from alembic import op
import sqlalchemy as sa

revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _enum_column(name, nullable=False):
    # enums are stored as VARCHAR(32) on every backend
    return sa.Column(name, sa.String(length=32), nullable=nullable)


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        _enum_column('role'),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table('rooms',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=32), nullable=False, unique=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
    )

    op.create_table('fee_configs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key', sa.String(length=32), nullable=True, unique=True),
        sa.Column('monthly_member_subscription', sa.Numeric(10, 2), nullable=False),
        sa.Column('member_night_rate', sa.Numeric(10, 2), nullable=False),
        sa.Column('dependent_with_member_night_rate', sa.Numeric(10, 2), nullable=False),
        sa.Column('dependent_without_member_night_rate', sa.Numeric(10, 2), nullable=False),
        sa.Column('guest_of_member_night_rate', sa.Numeric(10, 2), nullable=False),
        sa.Column('guest_of_dependent_night_rate', sa.Numeric(10, 2), nullable=False),
        sa.Column('mere_family_night_rate', sa.Numeric(10, 2), nullable=False),
        sa.Column('external_adult_night_rate', sa.Numeric(10, 2), nullable=False),
        sa.Column('external_child_night_rate', sa.Numeric(10, 2), nullable=False),
        sa.Column('external_whole_house_min_rate', sa.Numeric(10, 2), nullable=True),
        sa.Column('overdue_reminder_enabled', sa.Boolean(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('effective_from', sa.Date(), nullable=False),
        sa.Column('effective_to', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_fee_configs_is_active', 'fee_configs', ['is_active'])
    op.create_index('ix_fee_configs_effective_from', 'fee_configs', ['effective_from'])

    op.create_table('seasonal_rates',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('fee_config_id', sa.Integer(), sa.ForeignKey('fee_configs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('start_month', sa.Integer(), nullable=False),
        sa.Column('start_day', sa.Integer(), nullable=False),
        sa.Column('end_month', sa.Integer(), nullable=False),
        sa.Column('end_day', sa.Integer(), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('external_adult_night_rate', sa.Numeric(10, 2), nullable=False),
        sa.Column('external_child_night_rate', sa.Numeric(10, 2), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.CheckConstraint('start_month BETWEEN 1 AND 12', name='ck_seasonal_rates_start_month'),
        sa.CheckConstraint('end_month BETWEEN 1 AND 12', name='ck_seasonal_rates_end_month'),
        sa.CheckConstraint('start_day BETWEEN 1 AND 31', name='ck_seasonal_rates_start_day'),
        sa.CheckConstraint('end_day BETWEEN 1 AND 31', name='ck_seasonal_rates_end_day'),
    )
    op.create_index('ix_seasonal_rates_fee_config_id', 'seasonal_rates', ['fee_config_id'])

    op.create_table('bookings',
        sa.Column('id', sa.String(length=32), primary_key=True),
        _enum_column('source'),
        _enum_column('scope'),
        _enum_column('status'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('nights', sa.Integer(), nullable=False),
        sa.Column('total_guests', sa.Integer(), nullable=False),
        sa.Column('pet_count', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('guest_breakdown', sa.JSON(), nullable=True),
        sa.Column('requested_by_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('external_lead_name', sa.String(length=120), nullable=True),
        sa.Column('external_lead_email', sa.String(length=255), nullable=True),
        sa.Column('external_lead_phone', sa.String(length=50), nullable=True),
        sa.Column('approved_by_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('rejection_reason', sa.String(length=500), nullable=True),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('fee_snapshot', sa.JSON(), nullable=True),
        sa.Column('manage_token', sa.String(length=64), nullable=True, unique=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('end_date > start_date', name='ck_bookings_date_order'),
        sa.CheckConstraint('nights >= 1', name='ck_bookings_nights'),
        sa.CheckConstraint('total_guests >= 1', name='ck_bookings_total_guests'),
        sa.CheckConstraint('pet_count >= 0', name='ck_bookings_pet_count'),
    )
    op.create_index('ix_bookings_status', 'bookings', ['status'])
    op.create_index('ix_bookings_status_dates', 'bookings', ['status', 'start_date', 'end_date'])
    op.create_index('ix_bookings_requested_by_id', 'bookings', ['requested_by_id'])
    op.create_index('ix_bookings_external_lead_email', 'bookings', ['external_lead_email'])

    op.create_table('booking_guests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.String(length=32), sa.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('age', sa.Integer(), nullable=True),
        _enum_column('guest_type'),
        sa.Column('is_primary_contact', sa.Boolean(), nullable=False),
    )
    op.create_index('ix_booking_guests_booking_id', 'booking_guests', ['booking_id'])

    op.create_table('room_allocations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.String(length=32), sa.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('rooms.id'), nullable=False),
        sa.Column('guest_label', sa.String(length=120), nullable=True),
        sa.Column('guest_count', sa.Integer(), nullable=False),
        sa.CheckConstraint('guest_count > 0', name='ck_room_allocations_guest_count'),
    )
    op.create_index('ix_room_allocations_booking_id', 'room_allocations', ['booking_id'])

    op.create_table('booking_audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.String(length=32), sa.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('actor_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _enum_column('actor_role', nullable=True),
        _enum_column('action'),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_booking_audit_logs_booking_id', 'booking_audit_logs', ['booking_id'])

    if op.get_bind().dialect.name == 'postgresql':
        # Last line of defence against overlapping stays; violations surface as SQLSTATE 23P01
        op.execute(
            "ALTER TABLE bookings ADD CONSTRAINT ex_bookings_no_overlap "
            "EXCLUDE USING gist (daterange(start_date, end_date, '[)') WITH &&) "
            "WHERE (status IN ('PENDING', 'APPROVED'))"
        )


def downgrade():
    if op.get_bind().dialect.name == 'postgresql':
        op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS ex_bookings_no_overlap")
    op.drop_table('booking_audit_logs')
    op.drop_table('room_allocations')
    op.drop_table('booking_guests')
    op.drop_table('bookings')
    op.drop_table('seasonal_rates')
    op.drop_table('fee_configs')
    op.drop_table('rooms')
    op.drop_table('users')
