"""Initial carpet inventory schema.

- products, individual_products
- customers, orders, order_items
- suppliers, raw_materials, purchase_orders, purchase_order_items
- stock_movements, stock_settlements
- id_sequences
"""

from typing import List, Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "c41d7e2a9b10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID = sa.String(64)


def _timestamps() -> List[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _money(name: str, precision: int = 14) -> sa.Column:
    return sa.Column(name, sa.Numeric(precision, 2), nullable=False)


def _quantity(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(18, 3), nullable=False)


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("id", ID, nullable=False),
        sa.Column("qr_code", ID, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("subcategory", sa.Text(), nullable=True),
        sa.Column("length", sa.Numeric(12, 3), nullable=True),
        sa.Column("width", sa.Numeric(12, 3), nullable=True),
        sa.Column("length_unit", sa.String(16), nullable=True),
        sa.Column("width_unit", sa.String(16), nullable=True),
        sa.Column("weight", sa.Numeric(12, 3), nullable=True),
        sa.Column("weight_unit", sa.String(16), nullable=True),
        sa.Column("color", sa.Text(), nullable=True),
        sa.Column("pattern", sa.Text(), nullable=True),
        sa.Column("unit", sa.String(32), nullable=False),
        sa.Column("individual_stock_tracking", sa.Boolean(), nullable=False),
        sa.Column("base_quantity", sa.Integer(), nullable=False),
        sa.Column("current_stock", sa.Integer(), nullable=False),
        sa.Column("individual_products_count", sa.Integer(), nullable=False),
        sa.Column("min_stock_level", sa.Integer(), nullable=False),
        sa.Column("max_stock_level", sa.Integer(), nullable=False),
        sa.Column("reorder_point", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_products"),
        sa.UniqueConstraint("qr_code", name="uq_products_qr_code"),
    )

    op.create_table(
        "individual_products",
        sa.Column("id", ID, nullable=False),
        sa.Column("product_id", ID, nullable=False),
        sa.Column("product_name", sa.Text(), nullable=False),
        sa.Column("qr_code", ID, nullable=False),
        sa.Column("serial_number", sa.String(128), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("order_id", ID, nullable=True),
        sa.Column("reserved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sold_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("production_date", sa.Date(), nullable=True),
        sa.Column("batch_number", sa.Text(), nullable=True),
        sa.Column("quality_grade", sa.String(4), nullable=False),
        sa.Column("inspector", sa.Text(), nullable=True),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_individual_products"),
        sa.ForeignKeyConstraint(
            ["product_id"], ["products.id"],
            name="fk_individual_products_product_id_products", ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("qr_code", name="uq_individual_products_qr_code"),
        sa.UniqueConstraint("serial_number", name="uq_individual_products_serial_number"),
    )
    op.create_index("ix_individual_products_product_id", "individual_products", ["product_id"])
    op.create_index("ix_individual_products_status", "individual_products", ["status"])
    op.create_index("ix_individual_products_order_id", "individual_products", ["order_id"])

    op.create_table(
        "customers",
        sa.Column("id", ID, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("gst_number", sa.String(32), nullable=True),
        _money("credit_limit"),
        sa.Column("total_orders", sa.Integer(), nullable=False),
        _money("total_value"),
        sa.Column("last_order_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_customers"),
    )

    op.create_table(
        "orders",
        sa.Column("id", ID, nullable=False),
        sa.Column("order_number", ID, nullable=False),
        sa.Column("customer_id", ID, nullable=True),
        sa.Column("customer_name", sa.Text(), nullable=False),
        sa.Column("customer_email", sa.Text(), nullable=True),
        sa.Column("customer_phone", sa.String(32), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("workflow_step", sa.String(16), nullable=False),
        sa.Column("priority", sa.String(16), nullable=False),
        _money("subtotal"),
        sa.Column("gst_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("gst_included", sa.Boolean(), nullable=False),
        _money("gst_amount"),
        _money("discount_amount"),
        _money("total_amount"),
        _money("paid_amount"),
        _money("outstanding_amount"),
        sa.Column("order_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expected_delivery", sa.Date(), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("special_instructions", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_orders"),
        sa.ForeignKeyConstraint(
            ["customer_id"], ["customers.id"], name="fk_orders_customer_id_customers", ondelete="SET NULL"
        ),
        sa.UniqueConstraint("order_number", name="uq_orders_order_number"),
    )
    op.create_index("ix_orders_customer_id", "orders", ["customer_id"])
    op.create_index("ix_orders_status", "orders", ["status"])

    op.create_table(
        "order_items",
        sa.Column("id", ID, nullable=False),
        sa.Column("order_id", ID, nullable=False),
        sa.Column("product_type", sa.String(16), nullable=False),
        sa.Column("product_id", ID, nullable=True),
        sa.Column("raw_material_id", ID, nullable=True),
        sa.Column("product_name", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit", sa.String(32), nullable=False),
        _money("unit_price"),
        _money("total_price"),
        sa.Column("quality_grade", sa.String(4), nullable=True),
        sa.Column("specifications", sa.Text(), nullable=True),
        sa.Column("selected_individual_products", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_order_items"),
        sa.ForeignKeyConstraint(
            ["order_id"], ["orders.id"], name="fk_order_items_order_id_orders", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["product_id"], ["products.id"], name="fk_order_items_product_id_products", ondelete="RESTRICT"
        ),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])
    op.create_index("ix_order_items_product_id", "order_items", ["product_id"])
    op.create_index("ix_order_items_raw_material_id", "order_items", ["raw_material_id"])

    op.create_table(
        "suppliers",
        sa.Column("id", ID, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("contact_person", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("gst_number", sa.String(32), nullable=True),
        sa.Column("performance_rating", sa.Numeric(4, 1), nullable=False),
        sa.Column("total_orders", sa.Integer(), nullable=False),
        _money("total_value"),
        sa.Column("status", sa.String(16), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_suppliers"),
        sa.UniqueConstraint("name", name="uq_suppliers_name"),
    )

    op.create_table(
        "raw_materials",
        sa.Column("id", ID, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("brand", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("unit", sa.String(32), nullable=False),
        _quantity("current_stock"),
        _quantity("reserved_stock"),
        _quantity("min_threshold"),
        _quantity("max_capacity"),
        _quantity("reorder_point"),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("supplier_id", ID, nullable=True),
        sa.Column("supplier_name", sa.Text(), nullable=True),
        _money("cost_per_unit"),
        _money("total_value", 16),
        sa.Column("last_restocked", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_raw_materials"),
        sa.ForeignKeyConstraint(
            ["supplier_id"], ["suppliers.id"], name="fk_raw_materials_supplier_id_suppliers", ondelete="SET NULL"
        ),
    )
    op.create_index("ix_raw_materials_name", "raw_materials", ["name"])
    op.create_index("ix_raw_materials_status", "raw_materials", ["status"])

    op.create_table(
        "purchase_orders",
        sa.Column("id", ID, nullable=False),
        sa.Column("order_number", ID, nullable=False),
        sa.Column("supplier_id", ID, nullable=False),
        sa.Column("supplier_name", sa.Text(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("order_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expected_delivery", sa.Date(), nullable=True),
        sa.Column("actual_delivery", sa.DateTime(timezone=True), nullable=True),
        _money("subtotal"),
        sa.Column("tax_rate", sa.Numeric(5, 2), nullable=False),
        _money("tax_amount"),
        _money("discount_amount"),
        _money("total_amount"),
        _money("paid_amount"),
        _money("outstanding_amount"),
        sa.Column("approved_by", sa.Text(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approval_notes", sa.Text(), nullable=True),
        sa.Column("delivery_rating", sa.Numeric(4, 1), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status_history", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_purchase_orders"),
        sa.ForeignKeyConstraint(
            ["supplier_id"], ["suppliers.id"], name="fk_purchase_orders_supplier_id_suppliers", ondelete="RESTRICT"
        ),
        sa.UniqueConstraint("order_number", name="uq_purchase_orders_order_number"),
    )
    op.create_index("ix_purchase_orders_supplier_id", "purchase_orders", ["supplier_id"])
    op.create_index("ix_purchase_orders_status", "purchase_orders", ["status"])

    op.create_table(
        "purchase_order_items",
        sa.Column("id", ID, nullable=False),
        sa.Column("purchase_order_id", ID, nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("material_id", ID, nullable=False),
        sa.Column("material_name", sa.Text(), nullable=False),
        _quantity("quantity"),
        sa.Column("unit", sa.String(32), nullable=False),
        _money("unit_price"),
        _money("total_price"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_purchase_order_items"),
        sa.ForeignKeyConstraint(
            ["purchase_order_id"], ["purchase_orders.id"],
            name="fk_purchase_order_items_purchase_order_id_purchase_orders", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["material_id"], ["raw_materials.id"],
            name="fk_purchase_order_items_material_id_raw_materials", ondelete="RESTRICT",
        ),
    )
    op.create_index("ix_purchase_order_items_purchase_order_id", "purchase_order_items", ["purchase_order_id"])
    op.create_index("ix_purchase_order_items_material_id", "purchase_order_items", ["material_id"])

    op.create_table(
        "stock_movements",
        sa.Column("id", ID, nullable=False),
        sa.Column("material_id", ID, nullable=False),
        sa.Column("material_name", sa.Text(), nullable=False),
        sa.Column("movement_type", sa.String(16), nullable=False),
        _quantity("quantity"),
        sa.Column("unit", sa.String(32), nullable=False),
        _quantity("previous_stock"),
        _quantity("new_stock"),
        sa.Column("reason", sa.String(16), nullable=False),
        sa.Column("reference_id", ID, nullable=True),
        sa.Column("reference_type", sa.String(32), nullable=True),
        sa.Column("cost_per_unit", sa.Numeric(14, 2), nullable=True),
        sa.Column("total_cost", sa.Numeric(16, 2), nullable=True),
        sa.Column("operator", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_stock_movements"),
        sa.ForeignKeyConstraint(
            ["material_id"], ["raw_materials.id"],
            name="fk_stock_movements_material_id_raw_materials", ondelete="RESTRICT",
        ),
    )
    op.create_index("ix_stock_movements_material_id", "stock_movements", ["material_id"])
    op.create_index("ix_stock_movements_reference_id", "stock_movements", ["reference_id"])

    op.create_table(
        "stock_settlements",
        sa.Column("order_id", ID, nullable=False),
        sa.Column("trigger_status", sa.String(16), nullable=False),
        sa.Column("state", sa.String(16), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("order_id", name="pk_stock_settlements"),
        sa.ForeignKeyConstraint(
            ["order_id"], ["orders.id"], name="fk_stock_settlements_order_id_orders", ondelete="CASCADE"
        ),
    )
    op.create_index("ix_stock_settlements_state", "stock_settlements", ["state"])

    op.create_table(
        "id_sequences",
        sa.Column("prefix", sa.String(16), nullable=False),
        sa.Column("date_str", sa.String(16), nullable=False),
        sa.Column("last_sequence", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("prefix", "date_str", name="pk_id_sequences"),
    )


def downgrade() -> None:
    op.drop_table("id_sequences")
    op.drop_index("ix_stock_settlements_state", table_name="stock_settlements")
    op.drop_table("stock_settlements")
    op.drop_index("ix_stock_movements_reference_id", table_name="stock_movements")
    op.drop_index("ix_stock_movements_material_id", table_name="stock_movements")
    op.drop_table("stock_movements")
    op.drop_index("ix_purchase_order_items_material_id", table_name="purchase_order_items")
    op.drop_index("ix_purchase_order_items_purchase_order_id", table_name="purchase_order_items")
    op.drop_table("purchase_order_items")
    op.drop_index("ix_purchase_orders_status", table_name="purchase_orders")
    op.drop_index("ix_purchase_orders_supplier_id", table_name="purchase_orders")
    op.drop_table("purchase_orders")
    op.drop_index("ix_raw_materials_status", table_name="raw_materials")
    op.drop_index("ix_raw_materials_name", table_name="raw_materials")
    op.drop_table("raw_materials")
    op.drop_table("suppliers")
    op.drop_index("ix_order_items_raw_material_id", table_name="order_items")
    op.drop_index("ix_order_items_product_id", table_name="order_items")
    op.drop_index("ix_order_items_order_id", table_name="order_items")
    op.drop_table("order_items")
    op.drop_index("ix_orders_status", table_name="orders")
    op.drop_index("ix_orders_customer_id", table_name="orders")
    op.drop_table("orders")
    op.drop_table("customers")
    op.drop_index("ix_individual_products_order_id", table_name="individual_products")
    op.drop_index("ix_individual_products_status", table_name="individual_products")
    op.drop_index("ix_individual_products_product_id", table_name="individual_products")
    op.drop_table("individual_products")
    op.drop_table("products")
