from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from resort_ledger.app.db.models.core_types import (
    GRNStatus,
    POStatus,
    RequisitionStatus,
    RequisitionType,
)


# ---------- Requisition ----------
class RequisitionLineIn(BaseModel):
    item_id: str = Field(min_length=1, max_length=64)
    qty: Decimal = Field(gt=0, decimal_places=3)
    remark: str | None = Field(default=None, max_length=255)


class RequisitionCreate(BaseModel):
    type: RequisitionType | None = None
    requisition_no: str | None = Field(default=None, max_length=64)
    resort_id: str | None = Field(default=None, max_length=64)
    department_id: str | None = Field(default=None, max_length=64)
    # INTERNAL
    from_store: str | None = Field(default=None, max_length=64)
    to_store: str | None = Field(default=None, max_length=64)
    # VENDOR
    vendor_id: str | None = Field(default=None, max_length=64)
    store_id: str | None = Field(default=None, max_length=64)
    required_by: date | None = None
    lines: list[RequisitionLineIn] = Field(default_factory=list)


class RequisitionReject(BaseModel):
    reason: str | None = None


class RequisitionLineRead(BaseModel):
    item_id: str
    qty: Decimal
    remark: str | None = None

    model_config = ConfigDict(from_attributes=True)


class RequisitionRead(BaseModel):
    id: int
    requisition_no: str
    type: RequisitionType
    status: RequisitionStatus
    resort_id: str
    department_id: str | None = None
    from_store: str | None = None
    to_store: str | None = None
    store_id: str | None = None
    vendor_id: str | None = None
    required_by: date | None = None
    po_id: int | None = None
    po_no: str | None = None
    grn_id: int | None = None
    grn_no: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejected_by: str | None = None
    rejection_reason: str | None = None
    created_by: str | None = None
    created_at: datetime
    lines: list[RequisitionLineRead] = []

    model_config = ConfigDict(from_attributes=True)


# ---------- Purchase order ----------
class POFromRequisition(BaseModel):
    rates: dict[str, Decimal] = Field(default_factory=dict)  # item_id -> prix unitaire
    tax_percent: Decimal = Field(default=Decimal("0"), ge=0)
    po_date: date | None = None


class POLineRead(BaseModel):
    item_id: str
    qty: Decimal
    rate: Decimal
    amount: Decimal
    remark: str | None = None

    model_config = ConfigDict(from_attributes=True)


class PORead(BaseModel):
    id: int
    po_no: str
    requisition_id: int | None = None
    vendor_id: str | None = None
    resort_id: str
    deliver_to: str | None = None
    po_date: date
    status: POStatus
    sub_total: Decimal
    tax_percent: Decimal
    tax_amount: Decimal
    total: Decimal
    created_at: datetime
    lines: list[POLineRead] = []

    model_config = ConfigDict(from_attributes=True)


# ---------- GRN ----------
class GRNLineIn(BaseModel):
    item_id: str = Field(min_length=1, max_length=64)
    received_qty: Decimal = Field(ge=0, decimal_places=3)
    remark: str | None = Field(default=None, max_length=255)


class GRNCreate(BaseModel):
    store_id: str | None = Field(default=None, max_length=64)
    grn_date: date | None = None
    challan_no: str | None = Field(default=None, max_length=64)
    bill_no: str | None = Field(default=None, max_length=64)
    lines: list[GRNLineIn] = Field(default_factory=list)


class GRNLineRead(BaseModel):
    item_id: str
    received_qty: Decimal
    pending_qty: Decimal
    remark: str | None = None

    model_config = ConfigDict(from_attributes=True)


class GRNRead(BaseModel):
    id: int
    grn_no: str
    requisition_id: int | None = None
    po_id: int | None = None
    vendor_id: str | None = None
    resort_id: str
    store_id: str
    grn_date: date
    status: GRNStatus
    challan_no: str | None = None
    bill_no: str | None = None
    received_by: str | None = None
    created_at: datetime
    lines: list[GRNLineRead] = []

    model_config = ConfigDict(from_attributes=True)
