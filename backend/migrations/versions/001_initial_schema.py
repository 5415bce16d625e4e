"""Initial schema: master data, BOM, inventory ledger, MRP and orders

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-01-05
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _qty(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Numeric(precision=18, scale=4), nullable=nullable)


def upgrade() -> None:
    # ------------------------------------------------------------------
    # Master data
    # ------------------------------------------------------------------
    op.create_table('materials',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=20), nullable=False),
        sa.Column('lead_time_days', sa.Integer(), nullable=False),
        _qty('safety_stock'),
        _qty('min_order_qty'),
        _qty('standard_cost'),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_materials_code', 'materials', ['code'], unique=True)

    op.create_table('warehouses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code')
    )

    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('material_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_products_code', 'products', ['code'], unique=True)
    op.create_index('ix_products_status', 'products', ['status'])

    # ------------------------------------------------------------------
    # BOM
    # ------------------------------------------------------------------
    op.create_table('bom_headers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('version', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_bom_headers_product_id', 'bom_headers', ['product_id'])

    op.create_table('bom_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bom_header_id', sa.Integer(), nullable=False),
        sa.Column('parent_item_id', sa.Integer(), nullable=True),
        sa.Column('material_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        _qty('quantity'),
        sa.Column('unit', sa.String(length=20), nullable=True),
        sa.ForeignKeyConstraint(['bom_header_id'], ['bom_headers.id']),
        sa.ForeignKeyConstraint(['parent_item_id'], ['bom_items.id']),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_bom_items_bom_header_id', 'bom_items', ['bom_header_id'])

    # ------------------------------------------------------------------
    # Inventory ledger
    # ------------------------------------------------------------------
    op.create_table('inventory',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('material_id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('batch_no', sa.String(length=50), nullable=False),
        sa.Column('inventory_type', sa.String(length=20), nullable=False),
        _qty('quantity'),
        _qty('reserved_qty'),
        _qty('available_qty'),
        sa.Column('unit', sa.String(length=20), nullable=False),
        _qty('unit_cost'),
        _qty('safety_stock'),
        _qty('max_stock'),
        sa.Column('last_moved_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id']),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('material_id', 'warehouse_id', 'batch_no', name='uq_inventory_material_warehouse_batch'),
        sa.CheckConstraint('quantity >= 0', name='ck_inventory_quantity_nonneg'),
        sa.CheckConstraint('reserved_qty >= 0', name='ck_inventory_reserved_nonneg'),
        sa.CheckConstraint('available_qty >= 0', name='ck_inventory_available_nonneg')
    )
    op.create_index('ix_inventory_material_id', 'inventory', ['material_id'])
    op.create_index('ix_inventory_warehouse_id', 'inventory', ['warehouse_id'])

    op.create_table('inventory_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_code', sa.String(length=50), nullable=False),
        sa.Column('material_id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('batch_no', sa.String(length=50), nullable=False),
        sa.Column('transaction_type', sa.String(length=30), nullable=False),
        _qty('quantity'),
        sa.Column('unit', sa.String(length=20), nullable=True),
        _qty('unit_cost', nullable=True),
        sa.Column('reference_type', sa.String(length=20), nullable=True),
        sa.Column('reference_id', sa.Integer(), nullable=True),
        sa.Column('reference_code', sa.String(length=50), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('operator', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id']),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_code')
    )
    op.create_index('ix_inventory_transactions_material_warehouse', 'inventory_transactions', ['material_id', 'warehouse_id'])
    op.create_index('ix_inventory_transactions_reference', 'inventory_transactions', ['reference_type', 'reference_id'])
    op.create_index('ix_inventory_transactions_created_at', 'inventory_transactions', ['created_at'])

    # ------------------------------------------------------------------
    # MRP
    # ------------------------------------------------------------------
    op.create_table('mrp_runs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('run_code', sa.String(length=30), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('planning_horizon', sa.Integer(), nullable=False),
        sa.Column('total_items', sa.Integer(), nullable=False),
        sa.Column('prs_generated', sa.Integer(), nullable=False),
        sa.Column('wos_generated', sa.Integer(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('applied_at', sa.DateTime(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('diagnostics', sa.JSON(), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        sa.Column('applied_by', sa.String(length=100), nullable=True),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('run_code')
    )
    op.create_index('ix_mrp_runs_status', 'mrp_runs', ['status'])

    op.create_table('mrp_results',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('mrp_run_id', sa.Integer(), nullable=False),
        sa.Column('material_id', sa.Integer(), nullable=False),
        sa.Column('material_code', sa.String(length=50), nullable=True),
        sa.Column('material_name', sa.String(length=255), nullable=True),
        sa.Column('unit', sa.String(length=20), nullable=True),
        _qty('gross_requirement'),
        _qty('on_hand_stock'),
        _qty('in_transit_qty'),
        _qty('in_production_qty'),
        _qty('safety_stock'),
        _qty('net_requirement'),
        _qty('planned_order_qty'),
        sa.Column('action_type', sa.String(length=20), nullable=False),
        sa.Column('required_date', sa.Date(), nullable=True),
        sa.Column('lead_time_days', sa.Integer(), nullable=False),
        sa.Column('order_date', sa.Date(), nullable=True),
        sa.Column('applied', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['mrp_run_id'], ['mrp_runs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('mrp_run_id', 'material_id', name='uq_mrp_results_run_material')
    )
    op.create_index('ix_mrp_results_mrp_run_id', 'mrp_results', ['mrp_run_id'])

    # ------------------------------------------------------------------
    # Purchasing
    # ------------------------------------------------------------------
    op.create_table('purchase_requisitions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pr_code', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('material_id', sa.Integer(), nullable=False),
        _qty('quantity'),
        sa.Column('unit', sa.String(length=20), nullable=True),
        sa.Column('required_date', sa.Date(), nullable=True),
        sa.Column('source', sa.String(length=20), nullable=False),
        sa.Column('source_id', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('requested_by', sa.String(length=100), nullable=True),
        sa.Column('approved_by', sa.String(length=100), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_purchase_requisitions_pr_code', 'purchase_requisitions', ['pr_code'], unique=True)
    op.create_index('ix_purchase_requisitions_status', 'purchase_requisitions', ['status'])
    op.create_index('ix_purchase_requisitions_source_id', 'purchase_requisitions', ['source_id'])

    op.create_table('purchase_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('po_code', sa.String(length=50), nullable=False),
        sa.Column('supplier_name', sa.String(length=200), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        _qty('total_amount'),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('expected_date', sa.Date(), nullable=True),
        sa.Column('received_date', sa.DateTime(), nullable=True),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        sa.Column('approved_by', sa.String(length=100), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_purchase_orders_po_code', 'purchase_orders', ['po_code'], unique=True)
    op.create_index('ix_purchase_orders_status', 'purchase_orders', ['status'])

    op.create_table('purchase_order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('po_id', sa.Integer(), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('material_id', sa.Integer(), nullable=False),
        sa.Column('pr_id', sa.Integer(), nullable=True),
        _qty('quantity'),
        sa.Column('unit', sa.String(length=20), nullable=True),
        _qty('unit_price'),
        _qty('amount'),
        _qty('received_qty'),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.ForeignKeyConstraint(['po_id'], ['purchase_orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id']),
        sa.ForeignKeyConstraint(['pr_id'], ['purchase_requisitions.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('received_qty >= 0', name='ck_po_item_received_nonneg')
    )
    op.create_index('ix_purchase_order_items_po_id', 'purchase_order_items', ['po_id'])
    op.create_index('ix_purchase_order_items_material_id', 'purchase_order_items', ['material_id'])

    # ------------------------------------------------------------------
    # Production
    # ------------------------------------------------------------------
    op.create_table('work_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('wo_code', sa.String(length=50), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('material_id', sa.Integer(), nullable=False),
        sa.Column('bom_header_id', sa.Integer(), nullable=True),
        _qty('planned_qty'),
        _qty('completed_qty'),
        _qty('scrap_qty'),
        sa.Column('unit', sa.String(length=20), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=True),
        sa.Column('planned_start', sa.DateTime(), nullable=True),
        sa.Column('planned_end', sa.DateTime(), nullable=True),
        sa.Column('actual_start', sa.DateTime(), nullable=True),
        sa.Column('actual_end', sa.DateTime(), nullable=True),
        sa.Column('source_type', sa.String(length=20), nullable=False),
        sa.Column('source_id', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id']),
        sa.ForeignKeyConstraint(['bom_header_id'], ['bom_headers.id']),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_work_orders_wo_code', 'work_orders', ['wo_code'], unique=True)
    op.create_index('ix_work_orders_material_id', 'work_orders', ['material_id'])
    op.create_index('ix_work_orders_status', 'work_orders', ['status'])

    op.create_table('work_order_materials',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('work_order_id', sa.Integer(), nullable=False),
        sa.Column('material_id', sa.Integer(), nullable=False),
        sa.Column('material_code', sa.String(length=50), nullable=True),
        sa.Column('material_name', sa.String(length=255), nullable=True),
        sa.Column('unit', sa.String(length=20), nullable=True),
        _qty('required_qty'),
        _qty('issued_qty'),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_work_order_materials_work_order_id', 'work_order_materials', ['work_order_id'])

    op.create_table('work_order_reports',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('work_order_id', sa.Integer(), nullable=False),
        _qty('quantity'),
        _qty('scrap_qty'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('reported_by', sa.String(length=100), nullable=True),
        sa.Column('reported_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_work_order_reports_work_order_id', 'work_order_reports', ['work_order_id'])

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------
    op.create_table('sales_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('so_code', sa.String(length=50), nullable=False),
        sa.Column('customer_name', sa.String(length=200), nullable=False),
        sa.Column('channel', sa.String(length=30), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        _qty('total_amount'),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('tracking_no', sa.String(length=100), nullable=True),
        sa.Column('shipping_date', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_sales_orders_so_code', 'sales_orders', ['so_code'], unique=True)
    op.create_index('ix_sales_orders_status', 'sales_orders', ['status'])

    op.create_table('sales_order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sales_order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        _qty('quantity'),
        _qty('unit_price'),
        _qty('amount'),
        _qty('shipped_qty'),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.ForeignKeyConstraint(['sales_order_id'], ['sales_orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_sales_order_items_sales_order_id', 'sales_order_items', ['sales_order_id'])
    op.create_index('ix_sales_order_items_product_id', 'sales_order_items', ['product_id'])


def downgrade() -> None:
    for table in (
        'sales_order_items',
        'sales_orders',
        'work_order_reports',
        'work_order_materials',
        'work_orders',
        'purchase_order_items',
        'purchase_orders',
        'purchase_requisitions',
        'mrp_results',
        'mrp_runs',
        'inventory_transactions',
        'inventory',
        'bom_items',
        'bom_headers',
        'products',
        'warehouses',
        'materials',
    ):
        op.drop_table(table)
