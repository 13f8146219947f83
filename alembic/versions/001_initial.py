"""Initial migration

Revision ID: 001
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create users table (staff)
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255)),
        sa.Column('phone', sa.String(30)),
        sa.Column('role', sa.Enum('ADMIN', 'DISPATCHER', name='userrole'), default='DISPATCHER'),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('refresh_token', sa.String(500)),
        sa.Column('last_login', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create restaurants table
    op.create_table(
        'restaurants',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('slug', sa.String(100), unique=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_grocery', sa.Boolean(), default=False),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('commission_pct', sa.Integer(), default=30),
        sa.Column('delivery_commission_pct', sa.Integer(), default=30),
        sa.Column('min_order', sa.Integer(), default=0),
        sa.Column('payout_method', sa.String(20), default='gcash'),
        sa.Column('gcash_number', sa.String(30)),
        sa.Column('email', sa.String(255)),
        sa.Column('lat', sa.Float()),
        sa.Column('lng', sa.Float()),
        sa.Column('hashed_password', sa.String(255)),
        sa.Column('ntfy_topic', sa.String(100)),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index('ix_restaurants_slug', 'restaurants', ['slug'])

    # Create item_availability table
    op.create_table(
        'item_availability',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('restaurant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('item_name', sa.String(255), nullable=False),
        sa.Column('is_available', sa.Boolean(), default=True),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
        sa.UniqueConstraint('restaurant_id', 'item_name'),
    )

    # Create drivers table
    op.create_table(
        'drivers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(30), unique=True, nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('is_available', sa.Boolean(), default=True),
        sa.Column('last_lat', sa.Float()),
        sa.Column('last_lng', sa.Float()),
        sa.Column('last_location_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create payouts table
    op.create_table(
        'payouts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('recipient_type', sa.String(20), nullable=False),
        sa.Column('recipient_id', sa.String(100), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), default='pending'),
        sa.Column('order_ids', sa.JSON(), default=[]),
        sa.Column('paid_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )
    op.create_index('ix_payouts_recipient_id', 'payouts', ['recipient_id'])

    # Create customers table
    op.create_table(
        'customers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('phone', sa.String(30), unique=True, nullable=False),
        sa.Column('name', sa.String(255)),
        sa.Column('loyalty_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('referral_code', sa.String(12), unique=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index('ix_customers_phone', 'customers', ['phone'])

    # Create promo_codes table
    op.create_table(
        'promo_codes',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('code', sa.String(50), unique=True, nullable=False),
        sa.Column('discount_type', sa.String(20), nullable=False, server_default='fixed'),
        sa.Column('discount_value', sa.Integer(), nullable=False),
        sa.Column('min_order', sa.Integer(), default=0),
        sa.Column('max_uses', sa.Integer()),
        sa.Column('uses_count', sa.Integer(), default=0),
        sa.Column('valid_from', sa.DateTime()),
        sa.Column('valid_until', sa.DateTime()),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )
    op.create_index('ix_promo_codes_code', 'promo_codes', ['code'])

    # Create orders table
    op.create_table(
        'orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('customer_phone', sa.String(30), nullable=False),
        sa.Column('customer_email', sa.String(255)),
        sa.Column('delivery_address', sa.Text(), nullable=False, server_default='See landmark'),
        sa.Column('landmark', sa.Text(), nullable=False),
        sa.Column('room', sa.String(50)),
        sa.Column('floor', sa.String(50)),
        sa.Column('guest_name', sa.String(255)),
        sa.Column('delivery_lat', sa.Float()),
        sa.Column('delivery_lng', sa.Float()),
        sa.Column('delivery_zone_id', sa.String(50)),
        sa.Column('delivery_zone_name', sa.String(100)),
        sa.Column('delivery_distance_km', sa.Float()),
        sa.Column('items_json', sa.JSON(), nullable=False),
        sa.Column('restaurant_slug', sa.String(100)),
        sa.Column('grocery_slug', sa.String(100)),
        sa.Column('delivery_fee', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tip', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('priority', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('priority_fee', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('promo_code', sa.String(50)),
        sa.Column('promo_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('loyalty_points_redeemed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('referral_credit', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('time_window', sa.String(20), nullable=False, server_default='asap'),
        sa.Column('scheduled_at', sa.DateTime()),
        sa.Column('cancel_cutoff_at', sa.DateTime(), nullable=False),
        sa.Column('confirmed_at', sa.DateTime()),
        sa.Column('preparing_at', sa.DateTime()),
        sa.Column('ready_at', sa.DateTime()),
        sa.Column('assigned_at', sa.DateTime()),
        sa.Column('picked_at', sa.DateTime()),
        sa.Column('out_for_delivery_at', sa.DateTime()),
        sa.Column('delivered_at', sa.DateTime()),
        sa.Column('cancelled_at', sa.DateTime()),
        sa.Column('estimated_delivery_at', sa.DateTime()),
        sa.Column('status', sa.String(30), nullable=False, server_default='pending'),
        sa.Column('restaurant_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('prep_minutes', sa.Integer()),
        sa.Column('restaurant_decided_at', sa.DateTime()),
        sa.Column('cancel_reason', sa.Text()),
        sa.Column('driver_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('drivers.id')),
        sa.Column('arrived_at_hub_at', sa.DateTime()),
        sa.Column('driver_arrived_at', sa.DateTime()),
        sa.Column('driver_lat', sa.Float()),
        sa.Column('driver_lng', sa.Float()),
        sa.Column('driver_accuracy_m', sa.Float()),
        sa.Column('driver_location_updated_at', sa.DateTime()),
        sa.Column('payment_method', sa.String(20), nullable=False, server_default='cash'),
        sa.Column('payment_status', sa.String(20), nullable=False, server_default='unpaid'),
        sa.Column('payment_reference', sa.String(255)),
        sa.Column('crypto_tx_hash', sa.String(100)),
        sa.Column('notes', sa.Text()),
        sa.Column('allow_substitutions', sa.Boolean(), default=True),
        sa.Column('updated_by', sa.String(20), default='customer'),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index('ix_orders_customer_phone', 'orders', ['customer_phone'])
    op.create_index('ix_orders_restaurant_slug', 'orders', ['restaurant_slug'])
    op.create_index('ix_orders_grocery_slug', 'orders', ['grocery_slug'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_driver_id', 'orders', ['driver_id'])

    # Create referral_credits table
    op.create_table(
        'referral_credits',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('referrer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('referred_phone', sa.String(30)),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('applied_order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id')),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('applied_at', sa.DateTime()),
    )
    op.create_index('ix_referral_credits_referrer_id', 'referral_credits', ['referrer_id'])

    # Create cash_handling table
    op.create_table(
        'cash_handling',
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id'), primary_key=True),
        sa.Column('expected', sa.Integer()),
        sa.Column('received_from_customer', sa.Integer()),
        sa.Column('turned_in_at_hub', sa.Integer()),
        sa.Column('variance_reason', sa.Text()),
        sa.Column('updated_by', sa.String(20)),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create order_messages table
    op.create_table(
        'order_messages',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('sender_type', sa.String(20), nullable=False),
        sa.Column('sender_id', sa.String(100)),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_order_messages_order_id', 'order_messages', ['order_id'])

    # Create audit_logs table
    op.create_table(
        'audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('actor_type', sa.String(20), nullable=False),
        sa.Column('actor_id', sa.String(100)),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('resource_type', sa.String(50), default='order'),
        sa.Column('resource_id', postgresql.UUID(as_uuid=True)),
        sa.Column('data_json', sa.JSON()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_resource_id', 'audit_logs', ['resource_id'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('order_messages')
    op.drop_table('cash_handling')
    op.drop_table('referral_credits')
    op.drop_table('orders')
    op.drop_table('promo_codes')
    op.drop_table('customers')
    op.drop_table('payouts')
    op.drop_table('drivers')
    op.drop_table('item_availability')
    op.drop_table('restaurants')
    op.drop_table('users')
    sa.Enum(name='userrole').drop(op.get_bind(), checkfirst=True)
