"""Add exchange rate history

Revision ID: 20261020_exchange_rates
Revises: 20261019_initial
Create Date: 2026-10-20

The USD to LBP rate is now set at runtime by a cashier. The configured
EXCHANGE_RATE_USD_TO_LBP stays the fallback while this table is empty.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261020_exchange_rates'
down_revision = '20261019_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('exchange_rates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('rate', sa.Integer(), nullable=False),
        sa.Column('previous_rate', sa.Integer(), nullable=True),
        sa.Column('updated_by_user_id', sa.Integer(), nullable=False),
        sa.Column('effective_from', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('rate > 0', name='ck_exchange_rates_rate_positive'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('exchange_rates', schema=None) as batch_op:
        batch_op.create_index('ix_exchange_rates_effective_from', ['effective_from'], unique=False)


def downgrade():
    with op.batch_alter_table('exchange_rates', schema=None) as batch_op:
        batch_op.drop_index('ix_exchange_rates_effective_from')
    op.drop_table('exchange_rates')
