"""Initial schema: companies, catalog, warehouse ledger, purchase/sales lifecycles, accounting outbox

Revision ID: fs001_initial
Revises:
Create Date: 2026-10-19

This migration creates:
1. Companies and per-company document sequences
2. Products and suppliers
3. Warehouse stock, stock transfers and manual transactions
4. Purchase documents with items, GRN and vendor bill records
5. Sales documents with items, delivery notes, invoices and the sales log
6. Accounting postings (outbox) and ledger entries
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'fs001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=nullable)


def upgrade():
    # ==========================================================================
    # 1. COMPANIES / SEQUENCES
    # ==========================================================================
    op.create_table('companies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('gst_no', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('companies', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_companies_code'), ['code'], unique=True)
        batch_op.create_index(batch_op.f('ix_companies_is_active'), ['is_active'], unique=False)

    op.create_table('document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'document_type', name='uq_doc_sequences_company_type'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('document_sequences', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_document_sequences_company_id'), ['company_id'], unique=False)

    # ==========================================================================
    # 2. CATALOG
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('model_no', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('brand', sa.String(length=120), nullable=True),
        sa.Column('category', sa.String(length=120), nullable=True),
        sa.Column('unit', sa.String(length=16), nullable=False, server_default='PCS'),
        sa.Column('sales_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cost_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('gst_rate_bps', sa.Integer(), nullable=False, server_default='1800'),
        sa.Column('track_inventory', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('is_historical', sa.Boolean(), nullable=False, server_default='0'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'model_no', name='uq_products_company_model'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_company_id'), ['company_id'], unique=False)
        batch_op.create_index('ix_products_company_historical', ['company_id', 'is_historical'], unique=False)

    op.create_table('suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('gst_no', sa.String(length=32), nullable=True),
        sa.Column('opening_balance_cents', sa.Integer(), nullable=False, server_default='0'),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'name', name='uq_suppliers_company_name'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('suppliers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_suppliers_company_id'), ['company_id'], unique=False)

    # ==========================================================================
    # 3. WAREHOUSE LEDGER
    # ==========================================================================
    op.create_table('warehouse_stocks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('warehouse', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'product_id', 'warehouse', name='uq_stock_company_product_wh'),
        sa.CheckConstraint('quantity >= 0', name='ck_stock_quantity_non_negative'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('warehouse_stocks', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_warehouse_stocks_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_warehouse_stocks_product_id'), ['product_id'], unique=False)

    op.create_table('stock_transfers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('from_warehouse', sa.String(length=16), nullable=False),
        sa.Column('to_warehouse', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('reference', sa.String(length=64), nullable=True),
        sa.Column('party_name', sa.String(length=255), nullable=True),
        sa.Column('sales_person', sa.String(length=120), nullable=True),
        sa.Column('performed_by', sa.String(length=120), nullable=True),
        _timestamp('occurred_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_transfers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stock_transfers_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_transfers_occurred_at'), ['occurred_at'], unique=False)
        batch_op.create_index('ix_stock_transfers_company_product', ['company_id', 'product_id'], unique=False)

    op.create_table('manual_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('warehouse', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('reference', sa.String(length=64), nullable=True),
        sa.Column('party_name', sa.String(length=255), nullable=True),
        sa.Column('sales_person', sa.String(length=120), nullable=True),
        sa.Column('performed_by', sa.String(length=120), nullable=True),
        _timestamp('occurred_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('manual_transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_manual_transactions_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_manual_transactions_product_id'), ['product_id'], unique=False)

    # ==========================================================================
    # 4. PURCHASES
    # ==========================================================================
    op.create_table('purchase_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('purchase_no', sa.String(length=64), nullable=False),
        sa.Column('rfq_no', sa.String(length=64), nullable=True),
        sa.Column('po_no', sa.String(length=64), nullable=True),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('supplier_name', sa.String(length=255), nullable=False),
        sa.Column('warehouse', sa.String(length=16), nullable=False, server_default='GODOWN'),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('reference', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='RFQ'),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_gst_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('grand_total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('amount_paid_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='UNPAID'),
        sa.Column('is_historical', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('source', sa.String(length=16), nullable=False, server_default='live'),
        sa.Column('performed_by', sa.String(length=120), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'purchase_no', name='uq_purchases_company_no'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('purchase_transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_purchase_transactions_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_purchase_transactions_supplier_id'), ['supplier_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_purchase_transactions_status'), ['status'], unique=False)
        batch_op.create_index('ix_purchases_company_status', ['company_id', 'status'], unique=False)

    op.create_table('purchase_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('model_no', sa.String(length=64), nullable=True),
        sa.Column('ordered_qty', sa.Integer(), nullable=False),
        sa.Column('received_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('billed_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('gst_rate_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchase_transactions.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('purchase_id', 'product_id', name='uq_purchase_items_product'),
        sa.CheckConstraint('received_qty <= ordered_qty', name='ck_purchase_items_received'),
        sa.CheckConstraint('billed_qty <= received_qty', name='ck_purchase_items_billed'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('purchase_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_purchase_items_purchase_id'), ['purchase_id'], unique=False)

    for table, number_column, extra in (
        ('grn_records', 'grn_no', [
            sa.Column('reference', sa.String(length=64), nullable=True),
            sa.Column('warehouse', sa.String(length=16), nullable=False),
        ]),
        ('vendor_bill_records', 'bill_no', [
            sa.Column('amount_cents', sa.Integer(), nullable=False),
            sa.Column('tax_cents', sa.Integer(), nullable=False, server_default='0'),
        ]),
    ):
        op.create_table(table,
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('company_id', sa.Integer(), nullable=False),
            sa.Column('purchase_id', sa.Integer(), nullable=False),
            sa.Column(number_column, sa.String(length=64), nullable=False),
            sa.Column('business_date', sa.Date(), nullable=False),
            *extra,
            sa.Column('items', sa.JSON(), nullable=False),
            sa.Column('performed_by', sa.String(length=120), nullable=True),
            _timestamp('created_at'),
            sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
            sa.ForeignKeyConstraint(['purchase_id'], ['purchase_transactions.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sqlite_autoincrement=True
        )
        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.create_index(batch_op.f(f'ix_{table}_company_id'), ['company_id'], unique=False)
            batch_op.create_index(batch_op.f(f'ix_{table}_purchase_id'), ['purchase_id'], unique=False)

    # ==========================================================================
    # 5. SALES
    # ==========================================================================
    op.create_table('sales_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('order_no', sa.String(length=64), nullable=False),
        sa.Column('so_no', sa.String(length=64), nullable=True),
        sa.Column('contact_id', sa.String(length=64), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('sales_person', sa.String(length=120), nullable=True),
        sa.Column('warehouse', sa.String(length=16), nullable=False, server_default='GODOWN'),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=24), nullable=False, server_default='QUOTATION'),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_gst_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('grand_total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('amount_paid_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='UNPAID'),
        sa.Column('is_historical', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('source', sa.String(length=16), nullable=False, server_default='live'),
        sa.Column('performed_by', sa.String(length=120), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'order_no', name='uq_sales_company_order_no'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales_transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sales_transactions_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_transactions_contact_id'), ['contact_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_transactions_status'), ['status'], unique=False)
        batch_op.create_index('ix_sales_company_status', ['company_id', 'status'], unique=False)

    op.create_table('sales_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('model_no', sa.String(length=64), nullable=True),
        sa.Column('ordered_qty', sa.Integer(), nullable=False),
        sa.Column('delivered_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('invoiced_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('gst_rate_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_gst_enabled', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales_transactions.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sale_id', 'product_id', name='uq_sales_items_product'),
        sa.CheckConstraint('invoiced_qty <= ordered_qty', name='ck_sales_items_invoiced'),
        sa.CheckConstraint('delivered_qty <= ordered_qty', name='ck_sales_items_delivered'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sales_items_sale_id'), ['sale_id'], unique=False)

    op.create_table('delivery_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('delivery_no', sa.String(length=64), nullable=False),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('warehouse', sa.String(length=16), nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('performed_by', sa.String(length=120), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.ForeignKeyConstraint(['sale_id'], ['sales_transactions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('delivery_records', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_delivery_records_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_delivery_records_sale_id'), ['sale_id'], unique=False)

    op.create_table('sales_invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('invoice_no', sa.String(length=64), nullable=False),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('taxable_cents', sa.Integer(), nullable=False),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('performed_by', sa.String(length=120), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.ForeignKeyConstraint(['sale_id'], ['sales_transactions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'invoice_no', name='uq_sales_invoices_company_no'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales_invoices', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sales_invoices_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_invoices_sale_id'), ['sale_id'], unique=False)

    op.create_table('sales_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('order_no', sa.String(length=64), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('old_total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('new_total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('delta_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('performed_by', sa.String(length=120), nullable=True),
        _timestamp('occurred_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales_logs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sales_logs_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_logs_order_no'), ['order_no'], unique=False)

    # ==========================================================================
    # 6. ACCOUNTING
    # ==========================================================================
    op.create_table('accounting_postings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=48), nullable=False),
        sa.Column('document_type', sa.String(length=16), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        _timestamp('created_at'),
        _timestamp('dispatched_at', nullable=True),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('accounting_postings', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_accounting_postings_company_id'), ['company_id'], unique=False)
        batch_op.create_index('ix_postings_company_status', ['company_id', 'status'], unique=False)

    op.create_table('ledger_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('party_type', sa.String(length=16), nullable=False),
        sa.Column('party_id', sa.String(length=64), nullable=True),
        sa.Column('party_name', sa.String(length=255), nullable=True),
        sa.Column('entry_type', sa.String(length=32), nullable=False),
        sa.Column('debit_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('credit_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('account_id', sa.String(length=64), nullable=True),
        sa.Column('transaction_id', sa.String(length=64), nullable=True),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        _timestamp('occurred_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('ledger_entries', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_ledger_entries_company_id'), ['company_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_ledger_entries_transaction_id'), ['transaction_id'], unique=False)
        batch_op.create_index('ix_ledger_company_party', ['company_id', 'party_type', 'party_id'], unique=False)


def downgrade():
    for table in (
        'ledger_entries',
        'accounting_postings',
        'sales_logs',
        'sales_invoices',
        'delivery_records',
        'sales_items',
        'sales_transactions',
        'vendor_bill_records',
        'grn_records',
        'purchase_items',
        'purchase_transactions',
        'manual_transactions',
        'stock_transfers',
        'warehouse_stocks',
        'suppliers',
        'products',
        'document_sequences',
        'companies',
    ):
        op.drop_table(table)
