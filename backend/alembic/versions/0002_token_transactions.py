"""Add token_transactions audit log

Revision ID: 0002
Revises: 0001_billing_tables
Create Date: 2026-10-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0002_token_transactions'
down_revision: Union[str, None] = '0001_billing_tables'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the append-only token transaction log."""

    op.create_table(
        'token_transactions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=False, index=True),
        sa.Column('amount', sa.Integer, nullable=False),
        sa.Column('type', sa.String(10), nullable=False),
        sa.Column('reason', sa.Text, nullable=False),
        sa.Column('balance_after', sa.Integer, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # History is read newest-first per user
    op.create_index(
        'ix_token_transactions_user_created',
        'token_transactions',
        ['user_id', 'created_at'],
    )

    op.execute('ALTER TABLE token_transactions ENABLE ROW LEVEL SECURITY')

    op.execute("""
        CREATE POLICY "Users can view own token transactions"
        ON token_transactions FOR SELECT
        TO authenticated
        USING (user_id = auth.uid()::text)
    """)

    op.execute("""
        CREATE POLICY "Service role manages token transactions"
        ON token_transactions FOR ALL
        TO service_role
        USING (true)
        WITH CHECK (true)
    """)


def downgrade() -> None:
    op.execute('DROP POLICY IF EXISTS "Users can view own token transactions" ON token_transactions')
    op.execute('DROP POLICY IF EXISTS "Service role manages token transactions" ON token_transactions')

    op.drop_index('ix_token_transactions_user_created')
    op.drop_table('token_transactions')
