"""inventory count core

Revision ID: 0001_inventory_count_core
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_inventory_count_core"
down_revision = None
branch_labels = None
depends_on = None


class GUID(sa.TypeDecorator):
    impl = sa.CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(sa.CHAR(36))


def upgrade() -> None:
    op.create_table(
        "warehouses",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("code", sa.String(length=50), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "products",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("sku", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("unit", sa.String(length=20), nullable=False, server_default="pcs"),
        sa.Column("cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_products_sku", "products", ["sku"], unique=True)
    op.create_index("ix_products_category", "products", ["category"], unique=False)
    op.create_table(
        "product_variants",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("product_id", GUID(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("sku", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_product_variants_product_id", "product_variants", ["product_id"], unique=False)
    op.create_index("ix_product_variants_sku", "product_variants", ["sku"], unique=True)
    op.create_table(
        "materials",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("sku", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("unit", sa.String(length=20), nullable=False, server_default="pcs"),
        sa.Column("cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("current_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_materials_sku", "materials", ["sku"], unique=True)
    op.create_index("ix_materials_category", "materials", ["category"], unique=False)

    op.create_table(
        "inventory_items",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("warehouse_id", GUID(), sa.ForeignKey("warehouses.id"), nullable=False),
        sa.Column("product_id", GUID(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("variant_id", GUID(), sa.ForeignKey("product_variants.id"), nullable=True),
        sa.Column("location", sa.String(length=100), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_inventory_items_warehouse_id", "inventory_items", ["warehouse_id"], unique=False)
    op.create_index("ix_inventory_items_product_id", "inventory_items", ["product_id"], unique=False)
    op.create_index(
        "ix_inventory_items_lookup",
        "inventory_items",
        ["warehouse_id", "product_id", "location"],
        unique=False,
    )
    op.create_table(
        "material_inventory",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("warehouse_id", GUID(), sa.ForeignKey("warehouses.id"), nullable=False),
        sa.Column("material_id", GUID(), sa.ForeignKey("materials.id"), nullable=False),
        sa.Column("location", sa.String(length=100), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_material_inventory_warehouse_id", "material_inventory", ["warehouse_id"], unique=False)
    op.create_index("ix_material_inventory_material_id", "material_inventory", ["material_id"], unique=False)
    op.create_index(
        "ix_material_inventory_lookup",
        "material_inventory",
        ["warehouse_id", "material_id", "location"],
        unique=False,
    )
    op.create_table(
        "stock_movements",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("warehouse_id", GUID(), sa.ForeignKey("warehouses.id"), nullable=False),
        sa.Column("catalog_type", sa.String(length=30), nullable=False),
        sa.Column("catalog_id", GUID(), nullable=False),
        sa.Column("variant_id", GUID(), nullable=True),
        sa.Column("location", sa.String(length=100), nullable=True),
        sa.Column("movement_type", sa.String(length=30), nullable=False),
        sa.Column("direction", sa.String(length=20), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reference", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.String(length=100), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_stock_movements_warehouse_id", "stock_movements", ["warehouse_id"], unique=False)
    op.create_index("ix_stock_movements_catalog_id", "stock_movements", ["catalog_id"], unique=False)
    op.create_index("ix_stock_movements_reference", "stock_movements", ["reference"], unique=False)

    op.create_table(
        "count_sessions",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("code", sa.String(length=100), nullable=False),
        sa.Column("warehouse_id", GUID(), sa.ForeignKey("warehouses.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("count_type", sa.String(length=30), nullable=False, server_default="FULL"),
        sa.Column("planned_date", sa.Date(), nullable=True),
        sa.Column("require_double_count", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("freeze_inventory", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("allow_blind_count", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("filters", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="DRAFT"),
        sa.Column("total_items", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("counted_items", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discrepancy_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_variance_value", sa.Numeric(16, 2), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=100), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("started_by", sa.String(length=100), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_by", sa.String(length=100), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_by", sa.String(length=100), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_count_sessions_code", "count_sessions", ["code"], unique=True)
    op.create_index("ix_count_sessions_warehouse_id", "count_sessions", ["warehouse_id"], unique=False)
    op.create_index("ix_count_sessions_status", "count_sessions", ["status"], unique=False)
    op.create_table(
        "count_items",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("session_id", GUID(), sa.ForeignKey("count_sessions.id"), nullable=False),
        sa.Column("catalog_type", sa.String(length=30), nullable=False),
        sa.Column("catalog_id", GUID(), nullable=False),
        sa.Column("variant_id", GUID(), nullable=True),
        sa.Column("sku", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("unit", sa.String(length=20), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("location", sa.String(length=100), nullable=False),
        sa.Column("expected_quantity", sa.Integer(), nullable=False),
        sa.Column("unit_cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("counted_quantity", sa.Integer(), nullable=True),
        sa.Column("counted_by", sa.String(length=100), nullable=True),
        sa.Column("counted_at", sa.DateTime(), nullable=True),
        sa.Column("verified_quantity", sa.Integer(), nullable=True),
        sa.Column("verified_by", sa.String(length=100), nullable=True),
        sa.Column("verified_at", sa.DateTime(), nullable=True),
        sa.Column("reconciled_by", sa.String(length=100), nullable=True),
        sa.Column("reconciled_at", sa.DateTime(), nullable=True),
        sa.Column("final_quantity", sa.Integer(), nullable=True),
        sa.Column("variance", sa.Integer(), nullable=True),
        sa.Column("variance_value", sa.Numeric(14, 2), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="NOT_COUNTED"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_count_items_session_id", "count_items", ["session_id"], unique=False)
    op.create_index("ix_count_items_catalog_id", "count_items", ["catalog_id"], unique=False)
    op.create_index("ix_count_items_session_sku", "count_items", ["session_id", "sku"], unique=False)
    op.create_index("ix_count_items_session_status", "count_items", ["session_id", "status"], unique=False)

    op.create_table(
        "audit_events",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("actor", sa.String(length=100), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.String(length=100), nullable=True),
        sa.Column("trace_id", sa.String(length=100), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("result", sa.String(length=50), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"], unique=False)
    op.create_index("ix_audit_events_trace_id", "audit_events", ["trace_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_events_trace_id", table_name="audit_events")
    op.drop_index("ix_audit_events_entity_id", table_name="audit_events")
    op.drop_table("audit_events")

    op.drop_index("ix_count_items_session_status", table_name="count_items")
    op.drop_index("ix_count_items_session_sku", table_name="count_items")
    op.drop_index("ix_count_items_catalog_id", table_name="count_items")
    op.drop_index("ix_count_items_session_id", table_name="count_items")
    op.drop_table("count_items")
    op.drop_index("ix_count_sessions_status", table_name="count_sessions")
    op.drop_index("ix_count_sessions_warehouse_id", table_name="count_sessions")
    op.drop_index("ix_count_sessions_code", table_name="count_sessions")
    op.drop_table("count_sessions")

    op.drop_index("ix_stock_movements_reference", table_name="stock_movements")
    op.drop_index("ix_stock_movements_catalog_id", table_name="stock_movements")
    op.drop_index("ix_stock_movements_warehouse_id", table_name="stock_movements")
    op.drop_table("stock_movements")
    op.drop_index("ix_material_inventory_lookup", table_name="material_inventory")
    op.drop_index("ix_material_inventory_material_id", table_name="material_inventory")
    op.drop_index("ix_material_inventory_warehouse_id", table_name="material_inventory")
    op.drop_table("material_inventory")
    op.drop_index("ix_inventory_items_lookup", table_name="inventory_items")
    op.drop_index("ix_inventory_items_product_id", table_name="inventory_items")
    op.drop_index("ix_inventory_items_warehouse_id", table_name="inventory_items")
    op.drop_table("inventory_items")

    op.drop_index("ix_materials_category", table_name="materials")
    op.drop_index("ix_materials_sku", table_name="materials")
    op.drop_table("materials")
    op.drop_index("ix_product_variants_sku", table_name="product_variants")
    op.drop_index("ix_product_variants_product_id", table_name="product_variants")
    op.drop_table("product_variants")
    op.drop_index("ix_products_category", table_name="products")
    op.drop_index("ix_products_sku", table_name="products")
    op.drop_table("products")
    op.drop_table("warehouses")
