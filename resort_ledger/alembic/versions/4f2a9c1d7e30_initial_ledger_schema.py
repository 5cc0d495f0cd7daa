"""initial ledger schema

Revision ID: 4f2a9c1d7e30
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

from resort_ledger.app.db.models.core_types import (
    ConsumptionStatus,
    ConsumptionType,
    GRNStatus,
    MovementType,
    POStatus,
    ReplacementStatus,
    RequisitionStatus,
    RequisitionType,
)

# revision identifiers, used by Alembic.
revision: str = "4f2a9c1d7e30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

QTY = sa.Numeric(14, 3)
MONEY = sa.Numeric(14, 2)
MASTER_ID = sa.String(64)
TS = sa.DateTime(timezone=True)


def _pk() -> sa.Column:
    return sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True)


def upgrade() -> None:
    # ---------- STOCK ----------
    op.create_table(
        "stock_entries",
        sa.Column("store_id", MASTER_ID, primary_key=True),
        sa.Column("item_id", MASTER_ID, primary_key=True),
        sa.Column("resort_id", MASTER_ID),
        sa.Column("qty", QTY, nullable=False, server_default="0"),
        sa.Column("updated_at", TS, nullable=False),
        sa.CheckConstraint("qty >= 0", name="ck_stock_entry_qty_nonneg"),
    )
    op.create_index("ix_stock_entries_resort_id", "stock_entries", ["resort_id"])

    op.create_table(
        "stock_movements",
        _pk(),
        sa.Column("store_id", MASTER_ID, nullable=False),
        sa.Column("item_id", MASTER_ID, nullable=False),
        sa.Column("movement_type", sa.Enum(MovementType, name="movement_type"), nullable=False),
        sa.Column("quantity", QTY, nullable=False),
        sa.Column("reference_type", sa.String(32)),
        sa.Column("reference_no", sa.String(64)),
        sa.Column("created_by", sa.String(64)),
        sa.Column("happened_at", TS, nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_stock_movement_qty_pos"),
    )
    op.create_index("ix_stock_movements_reference_no", "stock_movements", ["reference_no"])
    op.create_index(
        "ix_stock_movements_store_item_time", "stock_movements", ["store_id", "item_id", "happened_at"]
    )

    # ---------- RECIPES ----------
    op.create_table(
        "recipes",
        _pk(),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("recipe_category", sa.String(64)),
        sa.Column("yield_qty", QTY),
        sa.Column("yield_uom", sa.String(32)),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_index("ix_recipes_code", "recipes", ["code"])

    op.create_table(
        "recipe_lines",
        _pk(),
        sa.Column("recipe_id", sa.BigInteger(), sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("item_id", MASTER_ID, nullable=False),
        sa.Column("qty", QTY, nullable=False),
    )
    op.create_index("ix_recipe_lines_recipe_id", "recipe_lines", ["recipe_id"])

    # ---------- TRANSFER RULES ----------
    op.create_table(
        "store_transfer_rules",
        _pk(),
        sa.Column("resort_id", MASTER_ID),
        sa.Column("from_store", MASTER_ID, nullable=False),
        sa.Column("to_store", MASTER_ID, nullable=False),
        sa.Column("is_allowed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=False),
        sa.UniqueConstraint("resort_id", "from_store", "to_store", name="uq_transfer_rule_resort_from_to"),
        sa.CheckConstraint("from_store <> to_store", name="ck_transfer_rule_distinct_stores"),
    )
    op.create_index("ix_transfer_rules_lookup", "store_transfer_rules", ["resort_id", "from_store", "is_allowed"])

    # ---------- CONSUMPTION ----------
    op.create_table(
        "consumptions",
        _pk(),
        sa.Column("consumption_no", sa.String(64), nullable=False, unique=True),
        sa.Column("type", sa.Enum(ConsumptionType, name="consumption_type"), nullable=False),
        sa.Column("status", sa.Enum(ConsumptionStatus, name="consumption_status"), nullable=False),
        sa.Column("resort_id", MASTER_ID, nullable=False),
        sa.Column("department_id", MASTER_ID),
        sa.Column("outlet", sa.String(128)),
        sa.Column("store_from", MASTER_ID),
        sa.Column("store_to", MASTER_ID),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("reference_no", sa.String(64)),
        sa.Column("notes", sa.Text()),
        sa.Column("event_name", sa.String(200)),
        sa.Column("menu_name", sa.String(200)),
        sa.Column("pax", sa.Integer()),
        sa.Column("created_by", sa.String(64)),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("posted_at", TS),
    )
    op.create_index("ix_consumptions_resort_id", "consumptions", ["resort_id"])
    op.create_index("ix_consumptions_resort_date", "consumptions", ["resort_id", "date"])

    op.create_table(
        "consumption_lines",
        _pk(),
        sa.Column(
            "consumption_id", sa.BigInteger(), sa.ForeignKey("consumptions.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("item_id", MASTER_ID),
        sa.Column("recipe_id", sa.BigInteger()),
        sa.Column("qty", QTY, nullable=False),
        sa.Column("uom", sa.String(32)),
        sa.Column("remark", sa.String(255)),
        sa.CheckConstraint("qty > 0", name="ck_consumption_line_qty_pos"),
        sa.CheckConstraint("(item_id IS NULL) <> (recipe_id IS NULL)", name="ck_consumption_line_item_xor_recipe"),
    )
    op.create_index("ix_consumption_lines_consumption_id", "consumption_lines", ["consumption_id"])

    # ---------- STORE REPLACEMENT ----------
    op.create_table(
        "store_replacements",
        _pk(),
        sa.Column("repl_no", sa.String(64), nullable=False, unique=True),
        sa.Column("resort_id", MASTER_ID, nullable=False),
        sa.Column("store_id", MASTER_ID, nullable=False),
        sa.Column("vendor_id", MASTER_ID),
        sa.Column("status", sa.Enum(ReplacementStatus, name="replacement_status"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("created_by", sa.String(64)),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("issued_at", TS),
        sa.Column("closed_at", TS),
    )
    op.create_index("ix_store_replacements_resort_id", "store_replacements", ["resort_id"])

    op.create_table(
        "store_replacement_lines",
        _pk(),
        sa.Column(
            "replacement_id",
            sa.BigInteger(),
            sa.ForeignKey("store_replacements.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("line_id", sa.String(32), nullable=False),
        sa.Column("item_id", MASTER_ID, nullable=False),
        sa.Column("qty", QTY, nullable=False),
        sa.Column("issued_qty", QTY, nullable=False, server_default="0"),
        sa.Column("received_qty", QTY, nullable=False, server_default="0"),
        sa.Column("remark", sa.String(255)),
        sa.UniqueConstraint("replacement_id", "line_id", name="uq_replacement_line_id"),
        sa.CheckConstraint("qty > 0", name="ck_replacement_line_qty_pos"),
        sa.CheckConstraint("issued_qty >= 0", name="ck_replacement_line_issued_nonneg"),
        sa.CheckConstraint("received_qty >= 0", name="ck_replacement_line_received_nonneg"),
    )
    op.create_index("ix_store_replacement_lines_replacement_id", "store_replacement_lines", ["replacement_id"])

    # ---------- PROCUREMENT ----------
    op.create_table(
        "requisitions",
        _pk(),
        sa.Column("requisition_no", sa.String(64), nullable=False, unique=True),
        sa.Column("type", sa.Enum(RequisitionType, name="requisition_type"), nullable=False),
        sa.Column("status", sa.Enum(RequisitionStatus, name="requisition_status"), nullable=False),
        sa.Column("resort_id", MASTER_ID, nullable=False),
        sa.Column("department_id", MASTER_ID),
        sa.Column("from_store", MASTER_ID),
        sa.Column("to_store", MASTER_ID),
        sa.Column("store_id", MASTER_ID),
        sa.Column("vendor_id", MASTER_ID),
        sa.Column("required_by", sa.Date()),
        sa.Column("po_id", sa.BigInteger()),
        sa.Column("po_no", sa.String(64)),
        sa.Column("grn_id", sa.BigInteger()),
        sa.Column("grn_no", sa.String(64)),
        sa.Column("approved_by", sa.String(64)),
        sa.Column("approved_at", TS),
        sa.Column("rejected_by", sa.String(64)),
        sa.Column("rejection_reason", sa.Text()),
        sa.Column("created_by", sa.String(64)),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_index("ix_requisitions_resort_id", "requisitions", ["resort_id"])

    op.create_table(
        "requisition_lines",
        _pk(),
        sa.Column(
            "requisition_id", sa.BigInteger(), sa.ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("item_id", MASTER_ID, nullable=False),
        sa.Column("qty", QTY, nullable=False),
        sa.Column("remark", sa.String(255)),
        sa.CheckConstraint("qty > 0", name="ck_requisition_line_qty_pos"),
    )
    op.create_index("ix_requisition_lines_requisition_id", "requisition_lines", ["requisition_id"])

    op.create_table(
        "purchase_orders",
        _pk(),
        sa.Column("po_no", sa.String(64), nullable=False, unique=True),
        sa.Column("requisition_id", sa.BigInteger(), sa.ForeignKey("requisitions.id", ondelete="SET NULL")),
        sa.Column("vendor_id", MASTER_ID),
        sa.Column("resort_id", MASTER_ID, nullable=False),
        sa.Column("deliver_to", MASTER_ID),
        sa.Column("po_date", sa.Date(), nullable=False),
        sa.Column("status", sa.Enum(POStatus, name="po_status"), nullable=False),
        sa.Column("sub_total", MONEY, nullable=False, server_default="0"),
        sa.Column("tax_percent", sa.Numeric(6, 2), nullable=False, server_default="0"),
        sa.Column("tax_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("total", MONEY, nullable=False, server_default="0"),
        sa.Column("created_by", sa.String(64)),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_index("ix_purchase_orders_requisition_id", "purchase_orders", ["requisition_id"])

    op.create_table(
        "purchase_order_lines",
        _pk(),
        sa.Column("po_id", sa.BigInteger(), sa.ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("item_id", MASTER_ID, nullable=False),
        sa.Column("qty", QTY, nullable=False),
        sa.Column("rate", MONEY, nullable=False, server_default="0"),
        sa.Column("amount", MONEY, nullable=False, server_default="0"),
        sa.Column("remark", sa.String(255)),
        sa.CheckConstraint("qty > 0", name="ck_po_line_qty_pos"),
        sa.CheckConstraint("rate >= 0", name="ck_po_line_rate_nonneg"),
    )
    op.create_index("ix_purchase_order_lines_po_id", "purchase_order_lines", ["po_id"])

    op.create_table(
        "goods_receipts",
        _pk(),
        sa.Column("grn_no", sa.String(64), nullable=False, unique=True),
        sa.Column("requisition_id", sa.BigInteger(), sa.ForeignKey("requisitions.id", ondelete="SET NULL")),
        sa.Column("po_id", sa.BigInteger(), sa.ForeignKey("purchase_orders.id", ondelete="SET NULL")),
        sa.Column("vendor_id", MASTER_ID),
        sa.Column("resort_id", MASTER_ID, nullable=False),
        sa.Column("store_id", MASTER_ID, nullable=False),
        sa.Column("grn_date", sa.Date(), nullable=False),
        sa.Column("status", sa.Enum(GRNStatus, name="grn_status"), nullable=False),
        sa.Column("challan_no", sa.String(64)),
        sa.Column("bill_no", sa.String(64)),
        sa.Column("received_by", sa.String(64)),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_index("ix_goods_receipts_requisition_id", "goods_receipts", ["requisition_id"], unique=True)
    op.create_index("ix_goods_receipts_po_id", "goods_receipts", ["po_id"], unique=True)

    op.create_table(
        "goods_receipt_lines",
        _pk(),
        sa.Column(
            "receipt_id", sa.BigInteger(), sa.ForeignKey("goods_receipts.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("item_id", MASTER_ID, nullable=False),
        sa.Column("received_qty", QTY, nullable=False),
        sa.Column("pending_qty", QTY, nullable=False, server_default="0"),
        sa.Column("remark", sa.String(255)),
        sa.CheckConstraint("received_qty >= 0", name="ck_gr_line_received_nonneg"),
        sa.CheckConstraint("pending_qty >= 0", name="ck_gr_line_pending_nonneg"),
    )
    op.create_index("ix_goods_receipt_lines_receipt_id", "goods_receipt_lines", ["receipt_id"])


def downgrade() -> None:
    # ordre inverse des FK
    for table in (
        "goods_receipt_lines",
        "goods_receipts",
        "purchase_order_lines",
        "purchase_orders",
        "requisition_lines",
        "requisitions",
        "store_replacement_lines",
        "store_replacements",
        "consumption_lines",
        "consumptions",
        "store_transfer_rules",
        "recipe_lines",
        "recipes",
        "stock_movements",
        "stock_entries",
    ):
        op.drop_table(table)

    for enum_name in (
        "grn_status",
        "po_status",
        "requisition_status",
        "requisition_type",
        "replacement_status",
        "consumption_status",
        "consumption_type",
        "movement_type",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
