"""Initial billing schema: PCs, catalog, customers, discounts, sales, gaming sessions

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. Categories and products (dual-currency prices, stock on hand)
2. Customers with purchase statistics
3. PCs with hourly rates
4. Percentage discounts with target scoping
5. Daily document sequences (atomic session/invoice counters)
6. Sales and sale items
7. Gaming sessions, with at most one ACTIVE session per PC
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def _money(prefix, nullable=False):
    default = None if nullable else '0'
    return [
        sa.Column(f'{prefix}_usd_cents', sa.Integer(), nullable=nullable, server_default=default),
        sa.Column(f'{prefix}_lbp', sa.Integer(), nullable=nullable, server_default=default),
    ]


def _discount_snapshot(prefix):
    return [
        sa.Column(f'{prefix}_id', sa.Integer(), nullable=True),
        sa.Column(f'{prefix}_name', sa.String(length=100), nullable=True),
        sa.Column(f'{prefix}_bps', sa.Integer(), nullable=True),
        *_money(f'{prefix}_amount', nullable=True),
    ]


def _timestamps(updated=True):
    columns = [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]
    if updated:
        columns.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False)
        )
    return columns


def upgrade():
    # ==========================================================================
    # 1. CATALOG
    # ==========================================================================
    op.create_table('categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_categories_name'),
        sqlite_autoincrement=True
    )

    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=True),
        *_money('price'),
        sa.Column('quantity_on_hand', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku', name='uq_products_sku'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_category_id'), ['category_id'], unique=False)
        batch_op.create_index('ix_products_category_active', ['category_id', 'is_active'], unique=False)

    # ==========================================================================
    # 2. CUSTOMERS
    # ==========================================================================
    op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('total_spent_usd_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_visits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_visit_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('customers', schema=None) as batch_op:
        batch_op.create_index('ix_customers_active', ['is_active'], unique=False)

    # ==========================================================================
    # 3. PCS
    # ==========================================================================
    op.create_table('pcs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pc_number', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='AVAILABLE'),
        *_money('hourly_rate'),
        sa.Column('location', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('pc_number', name='uq_pcs_pc_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('pcs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_pcs_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_pcs_is_active'), ['is_active'], unique=False)

    # ==========================================================================
    # 4. DISCOUNTS
    # ==========================================================================
    op.create_table('discounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('discount_type', sa.String(length=32), nullable=False, server_default='PERCENTAGE'),
        sa.Column('value_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('target', sa.String(length=32), nullable=False),
        sa.Column('target_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('discounts', schema=None) as batch_op:
        batch_op.create_index('ix_discounts_target', ['target', 'target_id'], unique=False)
        batch_op.create_index('ix_discounts_window', ['start_date', 'end_date'], unique=False)
        batch_op.create_index(batch_op.f('ix_discounts_is_active'), ['is_active'], unique=False)

    # ==========================================================================
    # 5. DOCUMENT SEQUENCES
    # ==========================================================================
    op.create_table('document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sequence_type', sa.String(length=32), nullable=False),
        sa.Column('sequence_date', sa.Date(), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sequence_type', 'sequence_date', name='uq_doc_sequences_type_date'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('document_sequences', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_document_sequences_sequence_type'), ['sequence_type'], unique=False)

    # ==========================================================================
    # 6. SALES
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=32), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        *_money('subtotal_before_discount'),
        *_money('total_item_discounts'),
        *_discount_snapshot('sale_discount'),
        *_money('totals'),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('payment_currency', sa.String(length=3), nullable=True),
        *_money('amount_paid'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('cashier_user_id', sa.Integer(), nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_number', name='uq_sales_invoice_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sales_customer_id'), ['customer_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_cashier_user_id'), ['cashier_user_id'], unique=False)
        batch_op.create_index('ix_sales_status_created', ['status', 'created_at'], unique=False)

    # ==========================================================================
    # 7. GAMING SESSIONS
    # ==========================================================================
    op.create_table('gaming_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_number', sa.String(length=32), nullable=False),
        sa.Column('pc_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('customer_name', sa.String(length=128), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=True),
        *_money('hourly_rate'),
        *_discount_snapshot('discount'),
        *_money('total_cost'),
        *_money('final_amount'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ACTIVE'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='UNPAID'),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('started_by_user_id', sa.Integer(), nullable=False),
        sa.Column('ended_by_user_id', sa.Integer(), nullable=True),
        sa.Column('notes', sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['pc_id'], ['pcs.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_number', name='uq_gaming_sessions_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('gaming_sessions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_gaming_sessions_pc_id'), ['pc_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_gaming_sessions_customer_id'), ['customer_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_gaming_sessions_sale_id'), ['sale_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_gaming_sessions_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_gaming_sessions_payment_status'), ['payment_status'], unique=False)
        batch_op.create_index('ix_gaming_sessions_status_start', ['status', 'start_time'], unique=False)

    # One ACTIVE session per PC
    op.create_index(
        'uq_gaming_sessions_active_pc',
        'gaming_sessions',
        ['pc_id'],
        unique=True,
        sqlite_where=sa.text("status = 'ACTIVE'"),
        postgresql_where=sa.text("status = 'ACTIVE'"),
    )

    # ==========================================================================
    # 8. SALE ITEMS
    # ==========================================================================
    op.create_table('sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('session_id', sa.Integer(), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('product_sku', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        *_money('unit_price'),
        *_discount_snapshot('discount'),
        *_money('subtotal'),
        *_money('final_amount'),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['session_id'], ['gaming_sessions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sale_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sale_items_sale_id'), ['sale_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sale_items_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sale_items_session_id'), ['session_id'], unique=False)


def downgrade():
    op.drop_table('sale_items')
    op.drop_index('uq_gaming_sessions_active_pc', table_name='gaming_sessions')
    op.drop_table('gaming_sessions')
    op.drop_table('sales')
    op.drop_table('document_sequences')
    op.drop_table('discounts')
    op.drop_table('pcs')
    op.drop_table('customers')
    op.drop_table('products')
    op.drop_table('categories')
