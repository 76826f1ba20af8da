"""initial POS schema

Revision ID: p001_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates the complete POS core schema:
- vendors / locations: tenant root and its stores
- operators / auth_tokens: operator accounts and hashed bearer tokens
- registers / register_sessions: terminals and cash-drawer sessions
- products / inventory / stock_movements: on-hand stock and its append-only ledger
- sales / sale_lines: completed POS sales

One open session per register is enforced by the partial unique index
uq_register_sessions_open_register (register_id WHERE status = 'open').
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'p001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(with_updated: bool = True):
    cols = [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]
    if with_updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                              server_default=sa.text('CURRENT_TIMESTAMP')))
    return cols


def upgrade():
    # ============================================================================
    # vendors / locations: tenancy
    # ============================================================================
    op.create_table(
        'vendors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=64), nullable=False),
        sa.Column('allow_negative_stock', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_vendors_slug', 'vendors', ['slug'], unique=True)
    op.create_index('ix_vendors_is_active', 'vendors', ['is_active'])

    op.create_table(
        'locations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(with_updated=False),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('vendor_id', 'slug', name='uq_locations_vendor_slug'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_locations_vendor_id', 'locations', ['vendor_id'])

    # ============================================================================
    # operators / auth_tokens
    # ============================================================================
    op.create_table(
        'operators',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='cashier'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(with_updated=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('vendor_id', 'username', name='uq_operators_vendor_username'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_operators_vendor_id', 'operators', ['vendor_id'])
    op.create_index('ix_operators_username', 'operators', ['username'])

    op.create_table(
        'auth_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('operator_id', sa.Integer(), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        *_timestamps(with_updated=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['operator_id'], ['operators.id'], ),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_auth_tokens_token_hash', 'auth_tokens', ['token_hash'], unique=True)
    op.create_index('ix_auth_tokens_operator_id', 'auth_tokens', ['operator_id'])
    op.create_index('ix_auth_tokens_vendor_id', 'auth_tokens', ['vendor_id'])
    op.create_index('ix_auth_tokens_is_revoked', 'auth_tokens', ['is_revoked'])

    # ============================================================================
    # registers / register_sessions
    # ============================================================================
    op.create_table(
        'registers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=False),
        sa.Column('register_number', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('location_id', 'register_number', name='uq_registers_location_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_registers_vendor_id', 'registers', ['vendor_id'])
    op.create_index('ix_registers_location_id', 'registers', ['location_id'])
    op.create_index('ix_registers_is_active', 'registers', ['is_active'])

    money = sa.Numeric(precision=12, scale=2)
    op.create_table(
        'register_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_number', sa.String(length=32), nullable=False),
        sa.Column('register_id', sa.Integer(), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('operator_id', sa.Integer(), nullable=False),
        sa.Column('closed_by_operator_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='open'),
        sa.Column('opening_cash', money, nullable=False, server_default='0'),
        sa.Column('total_sales', money, nullable=False, server_default='0'),
        sa.Column('total_transactions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cash', money, nullable=False, server_default='0'),
        sa.Column('total_card', money, nullable=False, server_default='0'),
        sa.Column('walk_in_sales', money, nullable=False, server_default='0'),
        sa.Column('pickup_orders_fulfilled', money, nullable=False, server_default='0'),
        sa.Column('total_voided', money, nullable=False, server_default='0'),
        sa.Column('voided_transactions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('voided_cash', money, nullable=False, server_default='0'),
        sa.Column('closing_cash', money, nullable=True),
        sa.Column('expected_cash', money, nullable=True),
        sa.Column('cash_variance', money, nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_transaction_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['register_id'], ['registers.id'], ),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.ForeignKeyConstraint(['operator_id'], ['operators.id'], ),
        sa.ForeignKeyConstraint(['closed_by_operator_id'], ['operators.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_register_sessions_session_number', 'register_sessions', ['session_number'])
    op.create_index('ix_register_sessions_register_id', 'register_sessions', ['register_id'])
    op.create_index('ix_register_sessions_location_id', 'register_sessions', ['location_id'])
    op.create_index('ix_register_sessions_vendor_id', 'register_sessions', ['vendor_id'])
    op.create_index('ix_register_sessions_operator_id', 'register_sessions', ['operator_id'])
    op.create_index('ix_register_sessions_status', 'register_sessions', ['status'])
    op.create_index('ix_register_sessions_opened_at', 'register_sessions', ['opened_at'])
    op.create_index('ix_register_sessions_vendor_status', 'register_sessions', ['vendor_id', 'status'])
    # At most one open session per register
    op.create_index(
        'uq_register_sessions_open_register',
        'register_sessions',
        ['register_id'],
        unique=True,
        sqlite_where=sa.text("status = 'open'"),
        postgresql_where=sa.text("status = 'open'"),
    )

    # ============================================================================
    # products / inventory / stock_movements
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('price', money, nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('vendor_id', 'sku', name='uq_products_vendor_sku'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_vendor_id', 'products', ['vendor_id'])
    op.create_index('ix_products_vendor_name', 'products', ['vendor_id', 'name'])

    quantity = sa.Numeric(precision=14, scale=3)
    cost = sa.Numeric(precision=14, scale=4)
    op.create_table(
        'inventory',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=False),
        sa.Column('quantity', quantity, nullable=False, server_default='0'),
        sa.Column('average_cost', cost, nullable=True),
        sa.Column('low_stock_threshold', quantity, nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'location_id', name='uq_inventory_product_location'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_vendor_id', 'inventory', ['vendor_id'])
    op.create_index('ix_inventory_product_id', 'inventory', ['product_id'])
    op.create_index('ix_inventory_location_id', 'inventory', ['location_id'])
    op.create_index('ix_inventory_vendor_location', 'inventory', ['vendor_id', 'location_id'])

    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('inventory_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('movement_type', sa.String(length=32), nullable=False),
        sa.Column('quantity', quantity, nullable=False),
        sa.Column('quantity_delta', quantity, nullable=False),
        sa.Column('quantity_before', quantity, nullable=False),
        sa.Column('quantity_after', quantity, nullable=False),
        sa.Column('from_location_id', sa.Integer(), nullable=True),
        sa.Column('to_location_id', sa.Integer(), nullable=True),
        sa.Column('cost_per_unit', cost, nullable=True),
        sa.Column('reference_type', sa.String(length=32), nullable=True),
        sa.Column('reference_id', sa.String(length=64), nullable=True),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('operator_id', sa.Integer(), nullable=True),
        *_timestamps(with_updated=False),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.ForeignKeyConstraint(['inventory_id'], ['inventory.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['from_location_id'], ['locations.id'], ),
        sa.ForeignKeyConstraint(['to_location_id'], ['locations.id'], ),
        sa.ForeignKeyConstraint(['operator_id'], ['operators.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_movements_vendor_id', 'stock_movements', ['vendor_id'])
    op.create_index('ix_stock_movements_inventory_id', 'stock_movements', ['inventory_id'])
    op.create_index('ix_stock_movements_product_id', 'stock_movements', ['product_id'])
    op.create_index('ix_stock_movements_movement_type', 'stock_movements', ['movement_type'])
    op.create_index('ix_stock_movements_created_at', 'stock_movements', ['created_at'])
    op.create_index('ix_stock_movements_inventory_created', 'stock_movements', ['inventory_id', 'created_at'])
    op.create_index('ix_stock_movements_reference', 'stock_movements', ['reference_type', 'reference_id'])

    # ============================================================================
    # sales / sale_lines
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_number', sa.String(length=64), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('location_id', sa.Integer(), nullable=False),
        sa.Column('register_id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('operator_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='completed'),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('subtotal', money, nullable=False),
        sa.Column('tax_amount', money, nullable=False, server_default='0'),
        sa.Column('total', money, nullable=False),
        sa.Column('cash_amount', money, nullable=False, server_default='0'),
        sa.Column('card_amount', money, nullable=False, server_default='0'),
        sa.Column('cash_tendered', money, nullable=True),
        sa.Column('change_given', money, nullable=True),
        *_timestamps(with_updated=False),
        sa.Column('voided_by_operator_id', sa.Integer(), nullable=True),
        sa.Column('voided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('void_reason', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ),
        sa.ForeignKeyConstraint(['register_id'], ['registers.id'], ),
        sa.ForeignKeyConstraint(['session_id'], ['register_sessions.id'], ),
        sa.ForeignKeyConstraint(['operator_id'], ['operators.id'], ),
        sa.ForeignKeyConstraint(['voided_by_operator_id'], ['operators.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('vendor_id', 'sale_number', name='uq_sales_vendor_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_vendor_id', 'sales', ['vendor_id'])
    op.create_index('ix_sales_location_id', 'sales', ['location_id'])
    op.create_index('ix_sales_register_id', 'sales', ['register_id'])
    op.create_index('ix_sales_session_id', 'sales', ['session_id'])
    op.create_index('ix_sales_status', 'sales', ['status'])
    op.create_index('ix_sales_session_created', 'sales', ['session_id', 'created_at'])

    op.create_table(
        'sale_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('inventory_id', sa.Integer(), nullable=False),
        sa.Column('quantity', quantity, nullable=False),
        sa.Column('unit_price', money, nullable=False),
        sa.Column('line_total', money, nullable=False),
        sa.Column('stock_movement_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['inventory_id'], ['inventory.id'], ),
        sa.ForeignKeyConstraint(['stock_movement_id'], ['stock_movements.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_lines_sale_id', 'sale_lines', ['sale_id'])
    op.create_index('ix_sale_lines_product_id', 'sale_lines', ['product_id'])


def downgrade():
    op.drop_table('sale_lines')
    op.drop_table('sales')
    op.drop_table('stock_movements')
    op.drop_table('inventory')
    op.drop_table('products')
    op.drop_index('uq_register_sessions_open_register', table_name='register_sessions')
    op.drop_table('register_sessions')
    op.drop_table('registers')
    op.drop_table('auth_tokens')
    op.drop_table('operators')
    op.drop_table('locations')
    op.drop_table('vendors')
