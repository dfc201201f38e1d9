"""stock ledger tables: locations / products / stocks / stock_movements

Revision ID: 0001_stock_ledger
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_stock_ledger"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema: create ledger tables."""
    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("allow_negative_stock", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("tenant_id", "code", name="uq_locations_tenant_code"),
    )
    op.create_index("ix_locations_tenant_id", "locations", ["tenant_id"])
    op.create_index("ix_locations_tenant_active", "locations", ["tenant_id", "is_active"])

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.UniqueConstraint("tenant_id", "sku", name="uq_products_tenant_sku"),
    )
    op.create_index("ix_products_tenant_id", "products", ["tenant_id"])

    op.create_table(
        "stocks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column(
            "product_id",
            sa.Integer(),
            sa.ForeignKey("products.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "location_id",
            sa.Integer(),
            sa.ForeignKey("locations.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reserved_quantity", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "tenant_id", "product_id", "location_id", name="uq_stocks_tenant_product_location"
        ),
        sa.CheckConstraint("reserved_quantity >= 0", name="ck_stocks_reserved_nonneg"),
        sa.CheckConstraint(
            "reserved_quantity = 0 OR reserved_quantity <= quantity",
            name="ck_stocks_reserved_le_qty",
        ),
    )
    op.create_index("ix_stocks_tenant_location", "stocks", ["tenant_id", "location_id"])
    op.create_index("ix_stocks_tenant_product", "stocks", ["tenant_id", "product_id"])

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("from_location_id", sa.Integer(), nullable=True),
        sa.Column("to_location_id", sa.Integer(), nullable=True),
        sa.Column("movement_type", sa.String(length=16), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=False),
        sa.Column("reference", sa.String(length=128), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_stock_movements_qty_pos"),
    )
    op.create_index(
        "ix_stock_movements_tenant_product_time",
        "stock_movements",
        ["tenant_id", "product_id", "created_at"],
    )
    op.create_index(
        "ix_stock_movements_tenant_location_time",
        "stock_movements",
        ["tenant_id", "location_id", "created_at"],
    )
    op.create_index(
        "ix_stock_movements_tenant_type_time",
        "stock_movements",
        ["tenant_id", "movement_type", "created_at"],
    )


def downgrade() -> None:
    """Downgrade schema: drop ledger tables."""
    op.drop_index("ix_stock_movements_tenant_type_time", table_name="stock_movements")
    op.drop_index("ix_stock_movements_tenant_location_time", table_name="stock_movements")
    op.drop_index("ix_stock_movements_tenant_product_time", table_name="stock_movements")
    op.drop_table("stock_movements")

    op.drop_index("ix_stocks_tenant_product", table_name="stocks")
    op.drop_index("ix_stocks_tenant_location", table_name="stocks")
    op.drop_table("stocks")

    op.drop_index("ix_products_tenant_id", table_name="products")
    op.drop_table("products")

    op.drop_index("ix_locations_tenant_active", table_name="locations")
    op.drop_index("ix_locations_tenant_id", table_name="locations")
    op.drop_table("locations")
