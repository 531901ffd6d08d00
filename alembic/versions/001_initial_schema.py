"""Initial back-office schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

Creates users, customers (tags, passports, families), trips and their
airline catalog, leads, bookings (companions, payments, commissions),
tasks, interactions and notifications.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    # Users
    op.create_table('users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.Text(), nullable=True),
        sa.Column('last_name', sa.Text(), nullable=True),
        sa.Column('phone', sa.Text(), nullable=True),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('role', sa.Enum('super_admin', 'admin', 'sales', 'staff', name='user_role'), nullable=False),
        sa.Column('commission_per_head', sa.DECIMAL(precision=12, scale=2), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    # Tags
    op.create_table('tags',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    # Customers
    op.create_table('customers',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('title', sa.Enum('mr', 'mrs', 'miss', 'master', 'other', name='customer_title_enum'), nullable=True),
        sa.Column('first_name_th', sa.String(length=255), nullable=True),
        sa.Column('last_name_th', sa.String(length=255), nullable=True),
        sa.Column('first_name_en', sa.String(length=255), nullable=False),
        sa.Column('last_name_en', sa.String(length=255), nullable=False),
        sa.Column('nickname', sa.String(length=100), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone_number', sa.String(length=50), nullable=True),
        sa.Column('line_id', sa.String(length=100), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_customers_email', 'customers', ['email'])
    op.create_index('ix_customers_phone_number', 'customers', ['phone_number'])

    op.create_table('customer_tags',
        sa.Column('customer_id', sa.BigInteger(), nullable=False),
        sa.Column('tag_id', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['tag_id'], ['tags.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('customer_id', 'tag_id')
    )

    # Families
    op.create_table('families',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone_number', sa.String(length=50), nullable=True),
        sa.Column('line_id', sa.String(length=100), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_families_name', 'families', ['name'])

    op.create_table('family_customers',
        sa.Column('family_id', sa.BigInteger(), nullable=False),
        sa.Column('customer_id', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('family_id', 'customer_id')
    )

    op.create_table('passports',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('customer_id', sa.BigInteger(), nullable=False),
        sa.Column('passport_number', sa.String(length=50), nullable=False),
        sa.Column('issuing_country', sa.String(length=100), nullable=False),
        sa.Column('issue_date', sa.Date(), nullable=True),
        sa.Column('expiry_date', sa.Date(), nullable=False),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('is_primary', sa.Boolean(), server_default='false', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_passports_customer_id', 'passports', ['customer_id'])
    op.create_index('ix_passports_expiry_date', 'passports', ['expiry_date'])

    # Trips
    op.create_table('airline_and_airports',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code')
    )

    op.create_table('trips',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('type', sa.Enum('group_tour', 'private_tour', name='trip_type_enum'), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('pax', sa.Integer(), server_default='1', nullable=False),
        sa.Column('foc', sa.Integer(), server_default='1', nullable=False),
        sa.Column('tl', sa.String(length=255), nullable=True),
        sa.Column('tg', sa.String(length=255), nullable=True),
        sa.Column('staff', sa.String(length=255), nullable=True),
        sa.Column('standard_price', sa.DECIMAL(precision=12, scale=2), server_default='0', nullable=False),
        sa.Column('extra_price_per_person', sa.DECIMAL(precision=12, scale=2), server_default='0', nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('airline_and_airport_id', sa.BigInteger(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['airline_and_airport_id'], ['airline_and_airports.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code')
    )
    op.create_index('ix_trips_name', 'trips', ['name'])
    op.create_index('ix_trips_start_date', 'trips', ['start_date'])

    # Leads
    op.create_table('leads',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('customer_id', sa.BigInteger(), nullable=False),
        sa.Column('sales_user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('source', sa.Enum('facebook', 'youtube', 'tiktok', 'friend', name='lead_source_enum'), nullable=False),
        sa.Column('status', sa.Enum('interested', 'booked', 'completed', 'cancelled', name='lead_status_enum'), nullable=False),
        sa.Column('trip_interest', sa.String(length=255), nullable=True),
        sa.Column('pax', sa.Integer(), server_default='1', nullable=False),
        sa.Column('lead_note', sa.Text(), nullable=True),
        sa.Column('source_note', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sales_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_leads_customer_id', 'leads', ['customer_id'])
    op.create_index('ix_leads_sales_user_id', 'leads', ['sales_user_id'])

    # Bookings
    op.create_table('bookings',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('customer_id', sa.BigInteger(), nullable=False),
        sa.Column('trip_id', sa.BigInteger(), nullable=False),
        sa.Column('sales_user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('passport_id', sa.BigInteger(), nullable=True),
        sa.Column('lead_id', sa.BigInteger(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('extra_price_for_single_traveller', sa.DECIMAL(precision=12, scale=2), nullable=True),
        sa.Column('room_type', sa.Enum('double_bed', 'twin_bed', name='room_type_enum'), nullable=True),
        sa.Column('extra_bed', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('extra_price_per_bed', sa.DECIMAL(precision=12, scale=2), nullable=True),
        sa.Column('room_note', sa.Text(), nullable=True),
        sa.Column('seat_type', sa.Enum('window', 'middle', 'aisle', name='seat_type_enum'), nullable=True),
        sa.Column('seat_class', sa.String(length=50), nullable=True),
        sa.Column('extra_price_per_seat', sa.DECIMAL(precision=12, scale=2), nullable=True),
        sa.Column('seat_note', sa.Text(), nullable=True),
        sa.Column('extra_price_per_bag', sa.DECIMAL(precision=12, scale=2), nullable=True),
        sa.Column('bag_note', sa.Text(), nullable=True),
        sa.Column('discount_price', sa.DECIMAL(precision=12, scale=2), nullable=True),
        sa.Column('discount_note', sa.Text(), nullable=True),
        sa.Column('base_price', sa.DECIMAL(precision=12, scale=2), server_default='0', nullable=False),
        sa.Column('total_amount', sa.DECIMAL(precision=12, scale=2), server_default='0', nullable=False),
        sa.Column('payment_status', sa.Enum('deposit_pending', 'deposit_paid', 'fully_paid', 'cancelled', name='payment_status_enum'), nullable=False),
        sa.Column('first_payment_ratio', sa.Enum('first_payment_100', 'first_payment_50', 'first_payment_30', name='first_payment_ratio_enum'), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['sales_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['passport_id'], ['passports.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('trip_id', 'customer_id', name='uq_bookings_trip_customer')
    )
    op.create_index('ix_bookings_customer_id', 'bookings', ['customer_id'])
    op.create_index('ix_bookings_trip_id', 'bookings', ['trip_id'])
    op.create_index('ix_bookings_sales_user_id', 'bookings', ['sales_user_id'])
    op.create_index('ix_bookings_lead_id', 'bookings', ['lead_id'])
    op.create_index('ix_bookings_payment_status', 'bookings', ['payment_status'])

    op.create_table('booking_companions',
        sa.Column('booking_id', sa.BigInteger(), nullable=False),
        sa.Column('customer_id', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('booking_id', 'customer_id')
    )

    op.create_table('payments',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('booking_id', sa.BigInteger(), nullable=False),
        sa.Column('installment', sa.Integer(), nullable=False),
        sa.Column('amount', sa.DECIMAL(precision=12, scale=2), nullable=False),
        sa.Column('method', sa.Enum('cash', 'bank_transfer', 'credit_card', 'other', name='payment_method_enum'), server_default='other', nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('proof_of_payment', sa.String(length=500), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id', 'installment', name='uq_payments_booking_installment'),
        sa.CheckConstraint('installment BETWEEN 1 AND 3', name='ck_payments_installment')
    )
    op.create_index('ix_payments_booking_id', 'payments', ['booking_id'])

    op.create_table('commissions',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('booking_id', sa.BigInteger(), nullable=False),
        sa.Column('agent_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('amount', sa.DECIMAL(precision=12, scale=2), nullable=False),
        sa.Column('status', sa.Enum('earned', 'void', name='commission_status_enum'), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['agent_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id')
    )
    op.create_index('ix_commissions_agent_id', 'commissions', ['agent_id'])

    # CRM
    op.create_table('tasks',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('agent_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('related_customer_id', sa.BigInteger(), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('priority', sa.Enum('low', 'medium', 'high', name='task_priority_enum'), nullable=False),
        sa.Column('is_completed', sa.Boolean(), server_default='false', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['agent_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['related_customer_id'], ['customers.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_tasks_agent_id', 'tasks', ['agent_id'])
    op.create_index('ix_tasks_related_customer_id', 'tasks', ['related_customer_id'])

    op.create_table('interactions',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('customer_id', sa.BigInteger(), nullable=False),
        sa.Column('agent_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('type', sa.Enum('call', 'line', 'email', 'meeting', 'note', name='interaction_type_enum'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['agent_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_interactions_customer_id', 'interactions', ['customer_id'])

    op.create_table('notifications',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('link', sa.String(length=500), nullable=True),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('is_read', sa.Boolean(), server_default='false', nullable=True),
        sa.Column('metadata_json', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_entity_id', 'notifications', ['entity_id'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('interactions')
    op.drop_table('tasks')
    op.drop_table('commissions')
    op.drop_table('payments')
    op.drop_table('booking_companions')
    op.drop_table('bookings')
    op.drop_table('leads')
    op.drop_table('trips')
    op.drop_table('airline_and_airports')
    op.drop_table('passports')
    op.drop_table('family_customers')
    op.drop_table('families')
    op.drop_table('customer_tags')
    op.drop_table('customers')
    op.drop_table('tags')
    op.drop_table('users')

    for enum_name in (
        'interaction_type_enum', 'task_priority_enum', 'commission_status_enum',
        'payment_method_enum', 'first_payment_ratio_enum', 'payment_status_enum', 'seat_type_enum',
        'room_type_enum', 'lead_status_enum', 'lead_source_enum',
        'trip_type_enum', 'customer_title_enum', 'user_role',
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
