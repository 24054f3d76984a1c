"""Create merchant, affiliate, order and outbox tables

Revision ID: affiliates_001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = 'affiliates_001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Create enums
    usertype = postgresql.ENUM('merchant', 'affiliate', name='usertype', create_type=False)
    payoutstatusdb = postgresql.ENUM('unpaid', 'paid', name='payoutstatusdb', create_type=False)
    taskstatusdb = postgresql.ENUM('pending', 'completed', 'failed', name='taskstatusdb', create_type=False)
    messagestatusdb = postgresql.ENUM('pending', 'sent', 'failed', name='messagestatusdb', create_type=False)
    for enum_type in (usertype, payoutstatusdb, taskstatusdb, messagestatusdb):
        enum_type.create(op.get_bind(), checkfirst=True)

    # Users (one role per email)
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255)),
        sa.Column('name', sa.String(255)),
        sa.Column('user_type', usertype, nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now())
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Merchants
    op.create_table(
        'merchants',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('domain', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('default_commission_rate', sa.Numeric(5, 4), nullable=False),
        sa.Column('turn_customers_into_affiliates', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now())
    )
    op.create_index('ix_merchants_domain', 'merchants', ['domain'], unique=True)

    # Affiliates, one per (user, merchant)
    op.create_table(
        'affiliates',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('merchant_id', sa.String(36), sa.ForeignKey('merchants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('commission_rate', sa.Numeric(5, 4), nullable=False),
        sa.Column('discount_code', sa.String(100)),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'merchant_id', name='uq_affiliates_user_merchant')
    )

    # Orders, keyed by the storefront's order id
    op.create_table(
        'orders',
        sa.Column('id', sa.String(100), primary_key=True),
        sa.Column('merchant_id', sa.String(36), sa.ForeignKey('merchants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('affiliate_id', sa.String(36), sa.ForeignKey('affiliates.id', ondelete='SET NULL'), nullable=True),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('commission_owed', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('payout_status', payoutstatusdb, nullable=False, server_default='unpaid'),
        sa.Column('paid_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('subtotal >= 0', name='ck_orders_subtotal_non_negative')
    )
    op.create_index('ix_orders_merchant_id', 'orders', ['merchant_id'])
    op.create_index('ix_orders_affiliate_id', 'orders', ['affiliate_id'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    # Payout outbox
    op.create_table(
        'payout_tasks',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('order_id', sa.String(100), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', taskstatusdb, nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('next_attempt_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('last_error', sa.Text()),
        sa.Column('completed_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now())
    )
    op.create_index('ix_payout_tasks_status', 'payout_tasks', ['status'])

    # Notification outbox
    op.create_table(
        'outbound_messages',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('affiliate_id', sa.String(36), sa.ForeignKey('affiliates.id', ondelete='SET NULL'), nullable=True),
        sa.Column('message_type', sa.String(50), nullable=False),
        sa.Column('recipient_email', sa.String(255), nullable=False),
        sa.Column('subject', sa.String(255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('status', messagestatusdb, nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('next_attempt_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('last_error', sa.Text()),
        sa.Column('sent_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now())
    )
    op.create_index('ix_outbound_messages_status', 'outbound_messages', ['status'])


def downgrade():
    # Drop tables in reverse order
    op.drop_table('outbound_messages')
    op.drop_table('payout_tasks')
    op.drop_table('orders')
    op.drop_table('affiliates')
    op.drop_table('merchants')
    op.drop_table('users')

    # Drop enums
    op.execute('DROP TYPE IF EXISTS messagestatusdb')
    op.execute('DROP TYPE IF EXISTS taskstatusdb')
    op.execute('DROP TYPE IF EXISTS payoutstatusdb')
    op.execute('DROP TYPE IF EXISTS usertype')
