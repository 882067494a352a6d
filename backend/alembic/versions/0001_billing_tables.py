"""Add plan catalog and subscriptions tables

Revision ID: 0001
Revises:
Create Date: 2026-10-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_billing_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create subscription_plans and subscriptions."""

    op.create_table(
        'subscription_plans',
        sa.Column('id', sa.String(50), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('tokens_per_period', sa.Integer, server_default='0', nullable=False),
        sa.Column('interval', sa.String(20), server_default='month', nullable=False),
        sa.Column('price_cents', sa.Integer, server_default='0', nullable=False),
        sa.Column('currency', sa.String(3), server_default='usd', nullable=False),
        sa.Column('stripe_price_id', sa.String(255)),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False, unique=True, index=True),

        # Plan and lifecycle
        sa.Column('plan_type', sa.String(50), server_default='free', nullable=False),
        sa.Column('status', sa.String(20), server_default='active', nullable=False),

        # Stripe IDs
        sa.Column('stripe_customer_id', sa.String(255), index=True),
        sa.Column('stripe_subscription_id', sa.String(255), unique=True, index=True),
        sa.Column('stripe_price_id', sa.String(255)),

        # Billing period dates
        sa.Column('current_period_start', sa.DateTime(timezone=True)),
        sa.Column('current_period_end', sa.DateTime(timezone=True)),

        # Token accounting
        sa.Column('tokens_limit', sa.Integer, server_default='0', nullable=False),
        sa.Column('tokens_used', sa.Integer, server_default='0', nullable=False),
        sa.Column('token_balance', sa.Integer, server_default='0', nullable=False),

        # Timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),

        sa.CheckConstraint('token_balance >= 0', name='ck_subscriptions_token_balance_nonnegative'),
    )

    op.execute('ALTER TABLE subscriptions ENABLE ROW LEVEL SECURITY')

    # RLS Policy: Users can only see their own subscription
    op.execute("""
        CREATE POLICY "Users can view own subscription"
        ON subscriptions FOR SELECT
        TO authenticated
        USING (user_id = auth.uid()::text)
    """)

    # RLS Policy: Service role can manage all subscriptions (for webhooks)
    op.execute("""
        CREATE POLICY "Service role manages subscriptions"
        ON subscriptions FOR ALL
        TO service_role
        USING (true)
        WITH CHECK (true)
    """)


def downgrade() -> None:
    """Drop subscriptions and subscription_plans."""

    op.execute('DROP POLICY IF EXISTS "Users can view own subscription" ON subscriptions')
    op.execute('DROP POLICY IF EXISTS "Service role manages subscriptions" ON subscriptions')

    op.drop_table('subscriptions')
    op.drop_table('subscription_plans')
