"""Production batches and their material consumptions.

- production_batches
- material_consumptions
"""

from typing import List, Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5e8f0b3c7a21"
down_revision: Union[str, None] = "c41d7e2a9b10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID = sa.String(64)


def _timestamps() -> List[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "production_batches",
        sa.Column("id", ID, nullable=False),
        sa.Column("batch_number", ID, nullable=False),
        sa.Column("product_id", ID, nullable=False),
        sa.Column("product_name", sa.Text(), nullable=False),
        sa.Column("planned_quantity", sa.Integer(), nullable=False),
        sa.Column("actual_quantity", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("priority", sa.String(16), nullable=False),
        sa.Column("operator", sa.Text(), nullable=True),
        sa.Column("supervisor", sa.Text(), nullable=True),
        sa.Column("inspector", sa.Text(), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completion_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_production_batches"),
        sa.UniqueConstraint("batch_number", name="uq_production_batches_batch_number"),
        sa.ForeignKeyConstraint(
            ["product_id"], ["products.id"],
            name="fk_production_batches_product_id_products", ondelete="RESTRICT",
        ),
    )
    op.create_index("ix_production_batches_product_id", "production_batches", ["product_id"])
    op.create_index("ix_production_batches_status", "production_batches", ["status"])

    op.create_table(
        "material_consumptions",
        sa.Column("id", ID, nullable=False),
        sa.Column("batch_id", ID, nullable=False),
        sa.Column("material_type", sa.String(16), nullable=False),
        sa.Column("material_id", ID, nullable=False),
        sa.Column("material_name", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("unit", sa.String(32), nullable=False),
        sa.Column("individual_product_ids", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_material_consumptions"),
        sa.ForeignKeyConstraint(
            ["batch_id"], ["production_batches.id"],
            name="fk_material_consumptions_batch_id_production_batches", ondelete="CASCADE",
        ),
    )
    op.create_index("ix_material_consumptions_batch_id", "material_consumptions", ["batch_id"])
    op.create_index("ix_material_consumptions_material_id", "material_consumptions", ["material_id"])


def downgrade() -> None:
    op.drop_index("ix_material_consumptions_material_id", table_name="material_consumptions")
    op.drop_index("ix_material_consumptions_batch_id", table_name="material_consumptions")
    op.drop_table("material_consumptions")
    op.drop_index("ix_production_batches_status", table_name="production_batches")
    op.drop_index("ix_production_batches_product_id", table_name="production_batches")
    op.drop_table("production_batches")
