"""initial POS ledger schema

Revision ID: 0001_initial_pos_schema
Revises: 
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial_pos_schema"
down_revision = None
branch_labels = None
depends_on = None


def _money(name):
    return sa.Column(name, sa.Numeric(12, 2), nullable=False, server_default="0")


def upgrade():
    op.create_table(
        "product",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("category", sa.String(100)),
        sa.Column("vendor", sa.String(200)),
        _money("cost_price"),
        _money("retail_price"),
        _money("wholesale_price"),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "sale",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_no", sa.String(32), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("customer_type", sa.String(16), nullable=False, server_default="retail"),
        sa.Column("customer_name", sa.String(200)),
        sa.Column("customer_address", sa.Text()),
        sa.Column("items", sa.JSON(), nullable=False),
        _money("total_amount"),
        _money("profit"),
        _money("delivery_charge"),
        sa.Column("discount_type", sa.String(16), nullable=False, server_default="fixed"),
        _money("discount_value"),
        _money("discount_amount"),
    )
    op.create_index("ix_sale_invoice_no", "sale", ["invoice_no"])
    op.create_index("ix_sale_date", "sale", ["date"])

    op.create_table(
        "quotation",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("quotation_no", sa.String(32), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("customer_type", sa.String(16), nullable=False, server_default="retail"),
        sa.Column("customer_name", sa.String(200)),
        sa.Column("customer_address", sa.Text()),
        sa.Column("items", sa.JSON(), nullable=False),
        _money("total_amount"),
        _money("delivery_charge"),
        sa.Column("discount_type", sa.String(16), nullable=False, server_default="fixed"),
        _money("discount_value"),
        _money("discount_amount"),
    )
    op.create_index("ix_quotation_quotation_no", "quotation", ["quotation_no"])

    op.create_table(
        "shipment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shipment_id", sa.String(32), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("vendor", sa.String(200)),
        _money("shipping_cost"),
        sa.Column("exchange_rate", sa.Numeric(12, 4), nullable=False, server_default="1"),
        sa.Column("item_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("product_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(32), nullable=False, server_default="Completed"),
    )
    op.create_index("ix_shipment_shipment_id", "shipment", ["shipment_id"])

    op.create_table(
        "pos_settings",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("last_invoice_no", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_quotation_no", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_shipment_id", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "vendor",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("contact", sa.String(200)),
    )

    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(16), nullable=False, server_default="staff"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "sale_edit_journal",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("original_sale", sa.JSON(), nullable=False),
        sa.Column("replacement", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )


def downgrade():
    op.drop_table("sale_edit_journal")
    op.drop_table("user")
    op.drop_table("vendor")
    op.drop_table("pos_settings")
    op.drop_index("ix_shipment_shipment_id", table_name="shipment")
    op.drop_table("shipment")
    op.drop_index("ix_quotation_quotation_no", table_name="quotation")
    op.drop_table("quotation")
    op.drop_index("ix_sale_date", table_name="sale")
    op.drop_index("ix_sale_invoice_no", table_name="sale")
    op.drop_table("sale")
    op.drop_table("product")
