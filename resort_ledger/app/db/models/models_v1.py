from __future__ import annotations

from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import (
    String,
    Integer,
    BigInteger,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Numeric,
    Text,
    Enum,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from resort_ledger.app.db.base import Base
from resort_ledger.app.db.models.core_types import (
    ConsumptionType,
    ConsumptionStatus,
    ReplacementStatus,
    RequisitionType,
    RequisitionStatus,
    POStatus,
    GRNStatus,
    MovementType,
)

# SQLite n'auto-incrémente que INTEGER PRIMARY KEY (tests)
BigIntPK = BigInteger().with_variant(Integer, "sqlite")
Qty = Numeric(14, 3)

# Les masters (resort, store, item, vendor, department, user) vivent ailleurs :
# on ne garde que leurs identifiants opaques.
MasterId = String(64)


def _utcnow() -> datetime:
    return datetime.utcnow()


# ---------- STOCK ----------
class StockEntry(Base):
    __tablename__ = "stock_entries"
    store_id: Mapped[str] = mapped_column(MasterId, primary_key=True)
    item_id: Mapped[str] = mapped_column(MasterId, primary_key=True)
    resort_id: Mapped[str | None] = mapped_column(MasterId, index=True)

    qty: Mapped[Decimal] = mapped_column(Qty, default=0, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    __table_args__ = (CheckConstraint("qty >= 0", name="ck_stock_entry_qty_nonneg"),)


class StockMovement(Base):
    """Journal append-only : une ligne par mutation du ledger."""

    __tablename__ = "stock_movements"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)

    store_id: Mapped[str] = mapped_column(MasterId, nullable=False)
    item_id: Mapped[str] = mapped_column(MasterId, nullable=False)
    movement_type: Mapped[MovementType] = mapped_column(Enum(MovementType, name="movement_type"), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Qty, nullable=False)

    reference_type: Mapped[str | None] = mapped_column(String(32))
    reference_no: Mapped[str | None] = mapped_column(String(64), index=True)

    created_by: Mapped[str | None] = mapped_column(String(64))
    happened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_movement_qty_pos"),
        Index("ix_stock_movements_store_item_time", "store_id", "item_id", "happened_at"),
    )


# ---------- RECIPES ----------
class Recipe(Base):
    __tablename__ = "recipes"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    code: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    recipe_category: Mapped[str | None] = mapped_column(String(64))

    # 0 / NULL = pas de rendement défini (voir RecipeExpander)
    yield_qty: Mapped[Decimal | None] = mapped_column(Qty)
    yield_uom: Mapped[str | None] = mapped_column(String(32))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    lines: Mapped[list["RecipeLine"]] = relationship(
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeLine.position",
    )


class RecipeLine(Base):
    __tablename__ = "recipe_lines"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    recipe_id: Mapped[int] = mapped_column(ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    item_id: Mapped[str] = mapped_column(MasterId, nullable=False)
    qty: Mapped[Decimal] = mapped_column(Qty, nullable=False)

    recipe: Mapped[Recipe] = relationship(back_populates="lines")


# ---------- TRANSFER RULES ----------
class StoreTransferRule(Base):
    __tablename__ = "store_transfer_rules"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    resort_id: Mapped[str | None] = mapped_column(MasterId)  # NULL = règle globale
    from_store: Mapped[str] = mapped_column(MasterId, nullable=False)
    to_store: Mapped[str] = mapped_column(MasterId, nullable=False)
    is_allowed: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("resort_id", "from_store", "to_store", name="uq_transfer_rule_resort_from_to"),
        CheckConstraint("from_store <> to_store", name="ck_transfer_rule_distinct_stores"),
        Index("ix_transfer_rules_lookup", "resort_id", "from_store", "is_allowed"),
    )


# ---------- CONSUMPTION ----------
class Consumption(Base):
    __tablename__ = "consumptions"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    consumption_no: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    type: Mapped[ConsumptionType] = mapped_column(Enum(ConsumptionType, name="consumption_type"), nullable=False)
    status: Mapped[ConsumptionStatus] = mapped_column(
        Enum(ConsumptionStatus, name="consumption_status"),
        default=ConsumptionStatus.draft,
        nullable=False,
    )

    resort_id: Mapped[str] = mapped_column(MasterId, nullable=False, index=True)
    department_id: Mapped[str | None] = mapped_column(MasterId)
    outlet: Mapped[str | None] = mapped_column(String(128))
    store_from: Mapped[str | None] = mapped_column(MasterId)
    store_to: Mapped[str | None] = mapped_column(MasterId)

    consumption_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    reference_no: Mapped[str | None] = mapped_column(String(64))
    notes: Mapped[str | None] = mapped_column(Text)
    event_name: Mapped[str | None] = mapped_column(String(200))
    menu_name: Mapped[str | None] = mapped_column(String(200))
    pax: Mapped[int | None] = mapped_column(Integer)

    created_by: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    lines: Mapped[list["ConsumptionLine"]] = relationship(
        back_populates="consumption",
        cascade="all, delete-orphan",
        order_by="ConsumptionLine.position",
    )

    __table_args__ = (Index("ix_consumptions_resort_date", "resort_id", "date"),)


class ConsumptionLine(Base):
    __tablename__ = "consumption_lines"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    consumption_id: Mapped[int] = mapped_column(
        ForeignKey("consumptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # ligne directe (item) OU ligne recette (recipe), jamais les deux
    item_id: Mapped[str | None] = mapped_column(MasterId)
    recipe_id: Mapped[int | None] = mapped_column(BigInteger)
    qty: Mapped[Decimal] = mapped_column(Qty, nullable=False)
    uom: Mapped[str | None] = mapped_column(String(32))
    remark: Mapped[str | None] = mapped_column(String(255))

    consumption: Mapped[Consumption] = relationship(back_populates="lines")

    __table_args__ = (
        CheckConstraint("qty > 0", name="ck_consumption_line_qty_pos"),
        CheckConstraint(
            "(item_id IS NULL) <> (recipe_id IS NULL)",
            name="ck_consumption_line_item_xor_recipe",
        ),
    )


# ---------- STORE REPLACEMENT ----------
class StoreReplacement(Base):
    __tablename__ = "store_replacements"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    repl_no: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    resort_id: Mapped[str] = mapped_column(MasterId, nullable=False, index=True)
    store_id: Mapped[str] = mapped_column(MasterId, nullable=False)
    vendor_id: Mapped[str | None] = mapped_column(MasterId)
    status: Mapped[ReplacementStatus] = mapped_column(
        Enum(ReplacementStatus, name="replacement_status"),
        default=ReplacementStatus.open,
        nullable=False,
    )
    replacement_date: Mapped[date] = mapped_column("date", Date, nullable=False)

    created_by: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    issued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    lines: Mapped[list["StoreReplacementLine"]] = relationship(
        back_populates="replacement",
        cascade="all, delete-orphan",
        order_by="StoreReplacementLine.id",
    )


class StoreReplacementLine(Base):
    __tablename__ = "store_replacement_lines"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    replacement_id: Mapped[int] = mapped_column(
        ForeignKey("store_replacements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    line_id: Mapped[str] = mapped_column(String(32), nullable=False)
    item_id: Mapped[str] = mapped_column(MasterId, nullable=False)
    qty: Mapped[Decimal] = mapped_column(Qty, nullable=False)  # qty demandée
    issued_qty: Mapped[Decimal] = mapped_column(Qty, default=0, nullable=False)
    received_qty: Mapped[Decimal] = mapped_column(Qty, default=0, nullable=False)
    remark: Mapped[str | None] = mapped_column(String(255))

    replacement: Mapped[StoreReplacement] = relationship(back_populates="lines")

    __table_args__ = (
        UniqueConstraint("replacement_id", "line_id", name="uq_replacement_line_id"),
        CheckConstraint("qty > 0", name="ck_replacement_line_qty_pos"),
        CheckConstraint("issued_qty >= 0", name="ck_replacement_line_issued_nonneg"),
        CheckConstraint("received_qty >= 0", name="ck_replacement_line_received_nonneg"),
    )


# ---------- PROCUREMENT ----------
class Requisition(Base):
    __tablename__ = "requisitions"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    requisition_no: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    type: Mapped[RequisitionType] = mapped_column(
        Enum(RequisitionType, name="requisition_type"),
        default=RequisitionType.internal,
        nullable=False,
    )
    status: Mapped[RequisitionStatus] = mapped_column(
        Enum(RequisitionStatus, name="requisition_status"),
        default=RequisitionStatus.pending,
        nullable=False,
    )

    resort_id: Mapped[str] = mapped_column(MasterId, nullable=False, index=True)
    department_id: Mapped[str | None] = mapped_column(MasterId)
    from_store: Mapped[str | None] = mapped_column(MasterId)
    to_store: Mapped[str | None] = mapped_column(MasterId)
    store_id: Mapped[str | None] = mapped_column(MasterId)  # réquisition VENDOR
    vendor_id: Mapped[str | None] = mapped_column(MasterId)
    required_by: Mapped[date | None] = mapped_column(Date)

    # back-références (au plus un PO, au plus un GRN)
    po_id: Mapped[int | None] = mapped_column(BigInteger)
    po_no: Mapped[str | None] = mapped_column(String(64))
    grn_id: Mapped[int | None] = mapped_column(BigInteger)
    grn_no: Mapped[str | None] = mapped_column(String(64))

    approved_by: Mapped[str | None] = mapped_column(String(64))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejected_by: Mapped[str | None] = mapped_column(String(64))
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    created_by: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    lines: Mapped[list["RequisitionLine"]] = relationship(
        back_populates="requisition",
        cascade="all, delete-orphan",
        order_by="RequisitionLine.position",
    )


class RequisitionLine(Base):
    __tablename__ = "requisition_lines"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    requisition_id: Mapped[int] = mapped_column(
        ForeignKey("requisitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    item_id: Mapped[str] = mapped_column(MasterId, nullable=False)
    qty: Mapped[Decimal] = mapped_column(Qty, nullable=False)
    remark: Mapped[str | None] = mapped_column(String(255))

    requisition: Mapped[Requisition] = relationship(back_populates="lines")

    __table_args__ = (CheckConstraint("qty > 0", name="ck_requisition_line_qty_pos"),)


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    po_no: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    requisition_id: Mapped[int | None] = mapped_column(
        ForeignKey("requisitions.id", ondelete="SET NULL"),
        index=True,
    )
    vendor_id: Mapped[str | None] = mapped_column(MasterId)
    resort_id: Mapped[str] = mapped_column(MasterId, nullable=False)
    deliver_to: Mapped[str | None] = mapped_column(MasterId)
    po_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[POStatus] = mapped_column(Enum(POStatus, name="po_status"), default=POStatus.open, nullable=False)

    sub_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    tax_percent: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=0, nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)

    created_by: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    lines: Mapped[list["PurchaseOrderLine"]] = relationship(
        back_populates="po",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLine.position",
    )


class PurchaseOrderLine(Base):
    __tablename__ = "purchase_order_lines"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    po_id: Mapped[int] = mapped_column(ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    item_id: Mapped[str] = mapped_column(MasterId, nullable=False)
    qty: Mapped[Decimal] = mapped_column(Qty, nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    remark: Mapped[str | None] = mapped_column(String(255))

    po: Mapped[PurchaseOrder] = relationship(back_populates="lines")

    __table_args__ = (
        CheckConstraint("qty > 0", name="ck_po_line_qty_pos"),
        CheckConstraint("rate >= 0", name="ck_po_line_rate_nonneg"),
    )


class GoodsReceipt(Base):
    __tablename__ = "goods_receipts"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    grn_no: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    # au plus un GRN par réquisition et par PO (NULL non contraint)
    requisition_id: Mapped[int | None] = mapped_column(
        ForeignKey("requisitions.id", ondelete="SET NULL"),
        index=True,
        unique=True,
    )
    po_id: Mapped[int | None] = mapped_column(
        ForeignKey("purchase_orders.id", ondelete="SET NULL"),
        index=True,
        unique=True,
    )
    vendor_id: Mapped[str | None] = mapped_column(MasterId)
    resort_id: Mapped[str] = mapped_column(MasterId, nullable=False)
    store_id: Mapped[str] = mapped_column(MasterId, nullable=False)
    grn_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[GRNStatus] = mapped_column(Enum(GRNStatus, name="grn_status"), default=GRNStatus.open, nullable=False)

    challan_no: Mapped[str | None] = mapped_column(String(64))
    bill_no: Mapped[str | None] = mapped_column(String(64))
    received_by: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    lines: Mapped[list["GoodsReceiptLine"]] = relationship(
        back_populates="receipt",
        cascade="all, delete-orphan",
        order_by="GoodsReceiptLine.position",
    )


class GoodsReceiptLine(Base):
    __tablename__ = "goods_receipt_lines"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    receipt_id: Mapped[int] = mapped_column(ForeignKey("goods_receipts.id", ondelete="CASCADE"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    item_id: Mapped[str] = mapped_column(MasterId, nullable=False)
    received_qty: Mapped[Decimal] = mapped_column(Qty, nullable=False)
    pending_qty: Mapped[Decimal] = mapped_column(Qty, default=0, nullable=False)
    remark: Mapped[str | None] = mapped_column(String(255))

    receipt: Mapped[GoodsReceipt] = relationship(back_populates="lines")

    __table_args__ = (
        CheckConstraint("received_qty >= 0", name="ck_gr_line_received_nonneg"),
        CheckConstraint("pending_qty >= 0", name="ck_gr_line_pending_nonneg"),
    )
