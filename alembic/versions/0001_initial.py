"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _created_at(name='created_at'):
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='passenger'),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('email', name='users_email_key'),
        sa.UniqueConstraint('phone', name='users_phone_key'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=False)
    op.create_index('ix_users_role', 'users', ['role'], unique=False)

    op.create_table('companies',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('contact_phone', sa.String(length=32), nullable=True),
        _created_at(),
        sa.UniqueConstraint('name', name='companies_name_key'),
    )
    op.create_index('ix_companies_name', 'companies', ['name'], unique=False)

    # routes <-> vehicles/drivers reference each other; those FKs are added at the end
    op.create_table('routes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('route_name', sa.String(length=255), nullable=False),
        sa.Column('start_location', sa.String(length=128), nullable=False),
        sa.Column('end_location', sa.String(length=128), nullable=False),
        sa.Column('distance_km', sa.Numeric(8, 2), nullable=True),
        sa.Column('fare_base', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('map_url', sa.String(length=512), nullable=True),
        sa.Column('assigned_vehicle', sa.Integer(), nullable=True),
        sa.Column('assigned_driver', sa.Integer(), nullable=True),
        sa.Column('expected_start_time', sa.Time(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='SET NULL'),
        sa.CheckConstraint('fare_base >= 0', name='ck_routes_fare_base_non_negative'),
    )
    op.create_index('ix_routes_company_id', 'routes', ['company_id'], unique=False)
    op.create_index('ix_routes_start_location', 'routes', ['start_location'], unique=False)
    op.create_index('ix_routes_end_location', 'routes', ['end_location'], unique=False)
    op.create_index('ix_routes_assigned_vehicle', 'routes', ['assigned_vehicle'], unique=False)
    op.create_index('ix_routes_assigned_driver', 'routes', ['assigned_driver'], unique=False)

    op.create_table('route_stops',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('route_id', sa.Integer(), nullable=False),
        sa.Column('stop_name', sa.String(length=128), nullable=False),
        sa.Column('stop_order', sa.Integer(), nullable=False),
        sa.Column('distance_from_start_km', sa.Numeric(8, 2), nullable=False, server_default='0'),
        sa.Column('fare_from_start', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('latitude', sa.Numeric(9, 6), nullable=True),
        sa.Column('longitude', sa.Numeric(9, 6), nullable=True),
        sa.ForeignKeyConstraint(['route_id'], ['routes.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('route_id', 'stop_order', name='uq_route_stop_order'),
    )
    op.create_index('ix_route_stops_route_id', 'route_stops', ['route_id'], unique=False)

    op.create_table('drivers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('license_number', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='active'),
        sa.Column('assigned_line_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assigned_line_id'], ['routes.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('user_id', name='drivers_user_id_key'),
        sa.UniqueConstraint('license_number', name='drivers_license_number_key'),
    )
    op.create_index('ix_drivers_assigned_line_id', 'drivers', ['assigned_line_id'], unique=False)

    op.create_table('vehicles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), nullable=True),
        sa.Column('plate_number', sa.String(length=32), nullable=False),
        sa.Column('model', sa.String(length=128), nullable=True),
        sa.Column('capacity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='active'),
        sa.Column('assigned_driver', sa.Integer(), nullable=True),
        sa.Column('assigned_route', sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['assigned_driver'], ['drivers.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['assigned_route'], ['routes.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('plate_number', name='vehicles_plate_number_key'),
    )
    op.create_index('ix_vehicles_plate_number', 'vehicles', ['plate_number'], unique=False)
    op.create_index('ix_vehicles_company_id', 'vehicles', ['company_id'], unique=False)
    op.create_index('ix_vehicles_status', 'vehicles', ['status'], unique=False)
    op.create_index('ix_vehicles_assigned_driver', 'vehicles', ['assigned_driver'], unique=False)
    op.create_index('ix_vehicles_assigned_route', 'vehicles', ['assigned_route'], unique=False)

    op.create_foreign_key('fk_routes_assigned_vehicle', 'routes', 'vehicles', ['assigned_vehicle'], ['id'], ondelete='SET NULL')
    op.create_foreign_key('fk_routes_assigned_driver', 'routes', 'drivers', ['assigned_driver'], ['id'], ondelete='SET NULL')

    op.create_table('tickets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('buyer_id', sa.Integer(), nullable=True),
        sa.Column('passenger_id', sa.Integer(), nullable=True),
        sa.Column('passenger_name', sa.String(length=255), nullable=True),
        sa.Column('passenger_phone', sa.String(length=32), nullable=True),
        sa.Column('passenger_email', sa.String(length=255), nullable=True),
        sa.Column('route_id', sa.Integer(), nullable=False),
        sa.Column('vehicle_id', sa.Integer(), nullable=True),
        sa.Column('start_stop_id', sa.Integer(), nullable=True),
        sa.Column('end_stop_id', sa.Integer(), nullable=True),
        sa.Column('actual_start_location', sa.String(length=128), nullable=True),
        sa.Column('actual_end_location', sa.String(length=128), nullable=True),
        sa.Column('travel_date', sa.Date(), nullable=True),
        sa.Column('seat_number', sa.String(length=16), nullable=True),
        sa.Column('calculated_fare', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('amount_paid', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('distance_km', sa.Numeric(8, 2), nullable=True),
        sa.Column('payment_status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('payment_method', sa.String(length=64), nullable=True),
        sa.Column('transaction_id', sa.String(length=64), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('boarding_status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('boarding_confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('journey_status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('journey_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('qr_code', sa.String(length=64), nullable=True),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['buyer_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['passenger_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['route_id'], ['routes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['start_stop_id'], ['route_stops.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['end_stop_id'], ['route_stops.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('transaction_id', name='tickets_transaction_id_key'),
    )
    op.create_index('ix_tickets_buyer_id', 'tickets', ['buyer_id'], unique=False)
    op.create_index('ix_tickets_passenger_id', 'tickets', ['passenger_id'], unique=False)
    op.create_index('ix_tickets_passenger_phone', 'tickets', ['passenger_phone'], unique=False)
    op.create_index('ix_tickets_route_id', 'tickets', ['route_id'], unique=False)
    op.create_index('ix_tickets_vehicle_id', 'tickets', ['vehicle_id'], unique=False)
    op.create_index('ix_tickets_payment_status', 'tickets', ['payment_status'], unique=False)
    op.create_index('ix_tickets_journey_status', 'tickets', ['journey_status'], unique=False)
    op.create_index('ix_tickets_qr_code', 'tickets', ['qr_code'], unique=True)
    op.create_index('ix_tickets_vehicle_payment', 'tickets', ['vehicle_id', 'payment_status'], unique=False)

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('message', sa.String(length=1024), nullable=False),
        sa.Column('channel', sa.String(length=64), nullable=False, server_default='in_app'),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        _created_at(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'], unique=False)

    op.create_table('vehicle_tracking',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('vehicle_id', sa.Integer(), nullable=False),
        sa.Column('driver_id', sa.Integer(), nullable=True),
        sa.Column('current_location', sa.String(length=255), nullable=True),
        sa.Column('latitude', sa.Numeric(9, 6), nullable=True),
        sa.Column('longitude', sa.Numeric(9, 6), nullable=True),
        sa.Column('speed', sa.Numeric(6, 2), nullable=True),
        sa.Column('heading', sa.Numeric(5, 2), nullable=True),
        sa.Column('estimated_arrival', sa.String(length=64), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['driver_id'], ['drivers.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_vehicle_tracking_vehicle_id', 'vehicle_tracking', ['vehicle_id'], unique=False)
    op.create_index('ix_vehicle_tracking_created_at', 'vehicle_tracking', ['created_at'], unique=False)

    op.create_table('vehicle_location_live',
        sa.Column('vehicle_id', sa.Integer(), primary_key=True),
        sa.Column('driver_id', sa.Integer(), nullable=True),
        sa.Column('current_location', sa.String(length=255), nullable=True),
        sa.Column('latitude', sa.Numeric(9, 6), nullable=True),
        sa.Column('longitude', sa.Numeric(9, 6), nullable=True),
        sa.Column('speed', sa.Numeric(6, 2), nullable=True),
        sa.Column('heading', sa.Numeric(5, 2), nullable=True),
        sa.Column('estimated_arrival', sa.String(length=64), nullable=True),
        _created_at('last_updated'),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['driver_id'], ['drivers.id'], ondelete='SET NULL'),
    )

    op.create_table('loyalty_points',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('passenger_id', sa.Integer(), nullable=False),
        sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('redeemed_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('available_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tier', sa.String(length=20), nullable=False, server_default='bronze'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['passenger_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('passenger_id', name='loyalty_points_passenger_id_key'),
    )

    op.create_table('loyalty_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('passenger_id', sa.Integer(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['passenger_id'], ['users.id'], ondelete='CASCADE'),
        sa.CheckConstraint("type IN ('earned', 'redeemed')", name='ck_loyalty_transactions_type'),
    )
    op.create_index('ix_loyalty_transactions_passenger_id', 'loyalty_transactions', ['passenger_id'], unique=False)

    op.create_table('reviews',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('passenger_id', sa.Integer(), nullable=False),
        sa.Column('route_id', sa.Integer(), nullable=True),
        sa.Column('driver_id', sa.Integer(), nullable=True),
        sa.Column('vehicle_id', sa.Integer(), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['passenger_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['route_id'], ['routes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['driver_id'], ['drivers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ondelete='CASCADE'),
        sa.CheckConstraint('rating >= 1 AND rating <= 5', name='ck_reviews_rating_range'),
    )
    op.create_index('ix_reviews_passenger_id', 'reviews', ['passenger_id'], unique=False)
    op.create_index('ix_reviews_route_id', 'reviews', ['route_id'], unique=False)
    op.create_index('ix_reviews_driver_id', 'reviews', ['driver_id'], unique=False)
    op.create_index('ix_reviews_vehicle_id', 'reviews', ['vehicle_id'], unique=False)

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=255), nullable=False),
        sa.Column('object_type', sa.String(length=128), nullable=True),
        sa.Column('object_id', sa.String(length=128), nullable=True),
        sa.Column('detail', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['actor_id'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'], unique=False)


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('reviews')
    op.drop_table('loyalty_transactions')
    op.drop_table('loyalty_points')
    op.drop_table('vehicle_location_live')
    op.drop_table('vehicle_tracking')
    op.drop_table('notifications')
    op.drop_table('tickets')
    op.drop_constraint('fk_routes_assigned_driver', 'routes', type_='foreignkey')
    op.drop_constraint('fk_routes_assigned_vehicle', 'routes', type_='foreignkey')
    op.drop_table('vehicles')
    op.drop_table('drivers')
    op.drop_table('route_stops')
    op.drop_table('routes')
    op.drop_table('companies')
    op.drop_table('users')
