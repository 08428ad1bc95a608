"""create stores, store_counters, suppliers, products, inventory_locations

Revision ID: 0001
Revises:
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

STORE_POLICY = "USING (store_id = nullif(trim(current_setting('app.store_id', true)), '')::uuid)"
STORE_SCOPED_TABLES = ("store_counters", "suppliers", "products", "inventory_locations")


def upgrade() -> None:
    # Enable pgcrypto for gen_random_uuid()
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    op.create_table(
        "stores",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    # One counter row per store; locked with SELECT ... FOR UPDATE when numbering documents
    op.create_table(
        "store_counters",
        sa.Column("store_id", UUID(as_uuid=True), sa.ForeignKey("stores.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("last_po_number", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("po_number_prefix", sa.String(20), nullable=False, server_default="PO"),
        sa.Column("po_number_padding", sa.Integer(), nullable=False, server_default="5"),
    )

    op.create_table(
        "suppliers",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("store_id", UUID(as_uuid=True), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_suppliers_store_id", "suppliers", ["store_id"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("store_id", UUID(as_uuid=True), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sku", sa.String(100), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_serialized", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_products_store_id", "products", ["store_id"], unique=False)

    op.create_table(
        "inventory_locations",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("store_id", UUID(as_uuid=True), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_inventory_locations_store_id", "inventory_locations", ["store_id"], unique=False)

    op.execute("ALTER TABLE stores ENABLE ROW LEVEL SECURITY")
    op.execute(
        "CREATE POLICY stores_store_policy ON stores "
        "USING (id = nullif(trim(current_setting('app.store_id', true)), '')::uuid)"
    )
    for table in STORE_SCOPED_TABLES:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(f"CREATE POLICY {table}_store_policy ON {table} {STORE_POLICY}")


def downgrade() -> None:
    for table in reversed(STORE_SCOPED_TABLES):
        op.execute(f"DROP POLICY IF EXISTS {table}_store_policy ON {table}")
        op.execute(f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY")
    op.execute("DROP POLICY IF EXISTS stores_store_policy ON stores")
    op.execute("ALTER TABLE stores DISABLE ROW LEVEL SECURITY")

    op.drop_index("ix_inventory_locations_store_id", table_name="inventory_locations")
    op.drop_table("inventory_locations")
    op.drop_index("ix_products_store_id", table_name="products")
    op.drop_table("products")
    op.drop_index("ix_suppliers_store_id", table_name="suppliers")
    op.drop_table("suppliers")
    op.drop_table("store_counters")
    op.drop_table("stores")
