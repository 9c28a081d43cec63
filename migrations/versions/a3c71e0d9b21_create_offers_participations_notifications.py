"""Create offers, participations and notifications tables

Revision ID: a3c71e0d9b21
Revises:
Create Date: 2026-10-19 09:12:40.318204

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a3c71e0d9b21'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    offer_status = sa.Enum('active', 'inactive', name='offerstatus')
    pricing_model = sa.Enum('fixed', 'tiered', name='pricingmodel')
    participation_status = sa.Enum('pending', 'validated', 'cancelled', name='participationstatus')

    op.create_table('offers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('supplier', sa.String(length=200), nullable=True),
        sa.Column('category_id', sa.String(length=64), nullable=True),
        sa.Column('seller_id', sa.String(length=64), nullable=True),
        sa.Column('unit_of_measure', sa.String(length=50), nullable=True),
        sa.Column('status', offer_status, nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('deadline', sa.DateTime(), nullable=False),
        sa.Column('pricing_model', pricing_model, nullable=False),
        sa.Column('base_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('group_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('target_participants', sa.Integer(), nullable=True),
        sa.Column('pricing_tiers', sa.JSON(), nullable=False),
        sa.Column('current_participants', sa.Integer(), nullable=False, server_default='0'),
        # NULL marks rows created before quantities were tracked
        sa.Column('total_quantity', sa.Integer(), nullable=True),
        sa.Column('current_tier', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('next_tier_quantity', sa.Integer(), nullable=True),
        sa.Column('total_revenue', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('tier_history', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('offers', schema=None) as batch_op:
        batch_op.create_index('ix_offers_category_id', ['category_id'], unique=False)
        batch_op.create_index('ix_offers_seller_id', ['seller_id'], unique=False)
        batch_op.create_index('ix_offers_status', ['status'], unique=False)

    op.create_table('participations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('offer_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('customer_name', sa.String(length=120), nullable=False),
        sa.Column('customer_phone', sa.String(length=30), nullable=False),
        sa.Column('customer_email', sa.String(length=120), nullable=True),
        sa.Column('customer_address', sa.String(length=255), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('status', participation_status, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('validated_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['offer_id'], ['offers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('participations', schema=None) as batch_op:
        batch_op.create_index('ix_participations_offer_id', ['offer_id'], unique=False)
        batch_op.create_index('ix_participations_user_id', ['user_id'], unique=False)
        batch_op.create_index('ix_participations_status', ['status'], unique=False)

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('offer_id', sa.Integer(), nullable=True),
        sa.Column('type', sa.String(length=20), nullable=True),
        sa.Column('category', sa.String(length=50), nullable=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('link', sa.String(length=500), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['offer_id'], ['offers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('notifications', schema=None) as batch_op:
        batch_op.create_index('ix_notifications_user_id', ['user_id'], unique=False)
        batch_op.create_index('ix_notifications_offer_id', ['offer_id'], unique=False)


def downgrade():
    with op.batch_alter_table('notifications', schema=None) as batch_op:
        batch_op.drop_index('ix_notifications_offer_id')
        batch_op.drop_index('ix_notifications_user_id')

    op.drop_table('notifications')

    with op.batch_alter_table('participations', schema=None) as batch_op:
        batch_op.drop_index('ix_participations_status')
        batch_op.drop_index('ix_participations_user_id')
        batch_op.drop_index('ix_participations_offer_id')

    op.drop_table('participations')

    with op.batch_alter_table('offers', schema=None) as batch_op:
        batch_op.drop_index('ix_offers_status')
        batch_op.drop_index('ix_offers_seller_id')
        batch_op.drop_index('ix_offers_category_id')

    op.drop_table('offers')

    sa.Enum(name='participationstatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='pricingmodel').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='offerstatus').drop(op.get_bind(), checkfirst=True)
