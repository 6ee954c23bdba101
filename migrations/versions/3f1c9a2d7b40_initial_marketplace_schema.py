"""initial marketplace schema

Revision ID: 3f1c9a2d7b40
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '3f1c9a2d7b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # -------------------------------
    # User table (identity directory)
    # -------------------------------
    op.create_table(
        'user',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('username', sa.String(80), nullable=False),
        sa.Column('phone_number', sa.String(30), nullable=True, unique=True),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('username', name='user_username_key'),
    )

    # -------------------------------
    # Service requests
    # -------------------------------
    op.create_table(
        'service_requests',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('farmer_id', sa.Integer, sa.ForeignKey('user.id'), nullable=False),
        sa.Column('service_type', sa.String(20), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('location_lat', sa.Float),
        sa.Column('location_lon', sa.Float),
        sa.Column('required_date', sa.Date, nullable=False),
        sa.Column('budget', sa.Numeric(12, 2)),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('accepted_offer_id', sa.Integer),
        sa.Column('service_provider_id', sa.Integer, sa.ForeignKey('user.id')),
        sa.Column('completed_at', sa.DateTime),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            '(accepted_offer_id IS NULL) = (service_provider_id IS NULL)',
            name='ck_service_requests_assignment_pair',
        ),
        sa.CheckConstraint(
            'location_lat IS NULL OR (location_lat BETWEEN -90 AND 90)',
            name='ck_service_requests_lat',
        ),
        sa.CheckConstraint(
            'location_lon IS NULL OR (location_lon BETWEEN -180 AND 180)',
            name='ck_service_requests_lon',
        ),
    )
    op.create_index('ix_service_requests_farmer_id', 'service_requests', ['farmer_id'])
    op.create_index('ix_service_requests_status', 'service_requests', ['status'])
    op.create_index('ix_service_requests_service_provider_id', 'service_requests', ['service_provider_id'])

    # -------------------------------
    # Offers
    # -------------------------------
    op.create_table(
        'offers',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column(
            'request_id',
            sa.Integer,
            sa.ForeignKey('service_requests.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('provider_id', sa.Integer, sa.ForeignKey('user.id'), nullable=False),
        sa.Column('offered_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('estimated_cost', sa.Numeric(12, 2), nullable=False),
        sa.Column('notes', sa.Text),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('offered_price > 0', name='ck_offers_offered_price_positive'),
        sa.CheckConstraint('estimated_cost > 0', name='ck_offers_estimated_cost_positive'),
    )
    op.create_index('ix_offers_request_id', 'offers', ['request_id'])
    op.create_index('ix_offers_provider_id', 'offers', ['provider_id'])
    op.create_index('ix_offers_status', 'offers', ['status'])
    op.create_index(
        'uq_offers_pending_per_provider',
        'offers',
        ['request_id', 'provider_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    # -------------------------------
    # Notifications
    # -------------------------------
    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(40), nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('related_entity_type', sa.String(40)),
        sa.Column('related_entity_id', sa.Integer),
        sa.Column('is_read', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_notifications_user_id', table_name='notifications')
    op.drop_table('notifications')

    op.drop_index('uq_offers_pending_per_provider', table_name='offers')
    op.drop_index('ix_offers_status', table_name='offers')
    op.drop_index('ix_offers_provider_id', table_name='offers')
    op.drop_index('ix_offers_request_id', table_name='offers')
    op.drop_table('offers')

    op.drop_index('ix_service_requests_service_provider_id', table_name='service_requests')
    op.drop_index('ix_service_requests_status', table_name='service_requests')
    op.drop_index('ix_service_requests_farmer_id', table_name='service_requests')
    op.drop_table('service_requests')

    op.drop_table('user')
