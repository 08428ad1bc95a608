"""create purchase_orders, purchase_order_lines, inventory_items, stock_movements

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "0002"
down_revision: Union[str, None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

STORE_POLICY = "USING (store_id = nullif(trim(current_setting('app.store_id', true)), '')::uuid)"
STORE_SCOPED_TABLES = ("purchase_orders", "inventory_items", "stock_movements")


def upgrade() -> None:
    op.create_table(
        "purchase_orders",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("store_id", UUID(as_uuid=True), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False),
        sa.Column("po_number", sa.String(50), nullable=False),
        sa.Column("supplier_id", UUID(as_uuid=True), sa.ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("user_id", UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="ORDERED"),
        sa.Column("order_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expected_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("received_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("store_id", "po_number", name="uq_purchase_orders_store_po_number"),
        sa.CheckConstraint(
            "status IN ('DRAFT', 'ORDERED', 'PARTIALLY_RECEIVED', 'RECEIVED', 'CANCELLED', 'CLOSED')",
            name="ck_purchase_orders_status_valid",
        ),
    )
    op.create_index("ix_purchase_orders_store_id", "purchase_orders", ["store_id"], unique=False)
    op.create_index("ix_purchase_orders_store_status", "purchase_orders", ["store_id", "status"], unique=False)
    op.create_index("ix_purchase_orders_created_at", "purchase_orders", ["created_at"], unique=False)

    op.create_table(
        "purchase_order_lines",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("purchase_order_id", UUID(as_uuid=True), sa.ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("product_id", UUID(as_uuid=True), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("ordered_quantity", sa.Integer(), nullable=False),
        sa.Column("received_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unit_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("ordered_quantity > 0", name="ck_purchase_order_lines_ordered_quantity_positive"),
        sa.CheckConstraint(
            "received_quantity >= 0 AND received_quantity <= ordered_quantity",
            name="ck_purchase_order_lines_received_quantity_bounds",
        ),
        sa.CheckConstraint("unit_cost >= 0", name="ck_purchase_order_lines_unit_cost_non_negative"),
    )
    op.create_index("ix_purchase_order_lines_purchase_order_id", "purchase_order_lines", ["purchase_order_id"], unique=False)

    op.create_table(
        "inventory_items",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("store_id", UUID(as_uuid=True), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", UUID(as_uuid=True), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("location_id", UUID(as_uuid=True), sa.ForeignKey("inventory_locations.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cost_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("condition", sa.String(50), nullable=False, server_default="new"),
        sa.Column("status", sa.String(20), nullable=False, server_default="AVAILABLE"),
        sa.Column("unit_id", sa.String(100), nullable=True),
        sa.Column(
            "purchase_order_line_id",
            UUID(as_uuid=True),
            sa.ForeignKey("purchase_order_lines.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("store_id", "unit_id", name="uq_inventory_items_store_unit_id"),
        sa.CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_non_negative"),
    )
    op.create_index("ix_inventory_items_store_id", "inventory_items", ["store_id"], unique=False)
    op.create_index("ix_inventory_items_product_id", "inventory_items", ["product_id"], unique=False)
    op.create_index("ix_inventory_items_purchase_order_line_id", "inventory_items", ["purchase_order_line_id"], unique=False)

    # stock_movements table (append-only, no updated_at)
    op.create_table(
        "stock_movements",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("store_id", UUID(as_uuid=True), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", UUID(as_uuid=True), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("location_id", UUID(as_uuid=True), sa.ForeignKey("inventory_locations.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("inventory_item_id", UUID(as_uuid=True), sa.ForeignKey("inventory_items.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("movement_type", sa.String(50), nullable=False),
        sa.Column("quantity_delta", sa.Integer(), nullable=False),
        sa.Column("unit_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("reference_type", sa.String(30), nullable=True),
        sa.Column("reference_id", UUID(as_uuid=True), nullable=True),
        sa.Column("actor_id", UUID(as_uuid=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_stock_movements_store_id", "stock_movements", ["store_id"], unique=False)
    op.create_index("ix_stock_movements_reference_id", "stock_movements", ["reference_id"], unique=False)

    # stock_movements is INSERT-only for the application role
    op.execute("REVOKE UPDATE ON stock_movements FROM retail_app")
    op.execute("REVOKE DELETE ON stock_movements FROM retail_app")
    op.execute("GRANT INSERT, SELECT ON stock_movements TO retail_app")

    for table in STORE_SCOPED_TABLES:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(f"CREATE POLICY {table}_store_policy ON {table} {STORE_POLICY}")

    # Lines carry no store_id; they are visible through their purchase order
    op.execute("ALTER TABLE purchase_order_lines ENABLE ROW LEVEL SECURITY")
    op.execute(
        "CREATE POLICY purchase_order_lines_store_policy ON purchase_order_lines "
        "USING (EXISTS (SELECT 1 FROM purchase_orders po WHERE po.id = purchase_order_id "
        "AND po.store_id = nullif(trim(current_setting('app.store_id', true)), '')::uuid))"
    )


def downgrade() -> None:
    op.execute("DROP POLICY IF EXISTS purchase_order_lines_store_policy ON purchase_order_lines")
    op.execute("ALTER TABLE purchase_order_lines DISABLE ROW LEVEL SECURITY")
    for table in reversed(STORE_SCOPED_TABLES):
        op.execute(f"DROP POLICY IF EXISTS {table}_store_policy ON {table}")
        op.execute(f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY")

    op.drop_index("ix_stock_movements_reference_id", table_name="stock_movements")
    op.drop_index("ix_stock_movements_store_id", table_name="stock_movements")
    op.drop_table("stock_movements")
    op.drop_index("ix_inventory_items_purchase_order_line_id", table_name="inventory_items")
    op.drop_index("ix_inventory_items_product_id", table_name="inventory_items")
    op.drop_index("ix_inventory_items_store_id", table_name="inventory_items")
    op.drop_table("inventory_items")
    op.drop_index("ix_purchase_order_lines_purchase_order_id", table_name="purchase_order_lines")
    op.drop_table("purchase_order_lines")
    op.drop_index("ix_purchase_orders_created_at", table_name="purchase_orders")
    op.drop_index("ix_purchase_orders_store_status", table_name="purchase_orders")
    op.drop_index("ix_purchase_orders_store_id", table_name="purchase_orders")
    op.drop_table("purchase_orders")
