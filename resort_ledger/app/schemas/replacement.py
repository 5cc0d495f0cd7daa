from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from resort_ledger.app.db.models.core_types import ReplacementStatus


class ReplacementLineIn(BaseModel):
    item_id: str = Field(min_length=1, max_length=64)
    qty: Decimal = Field(gt=0, decimal_places=3)
    remark: str | None = Field(default=None, max_length=255)


class ReplacementCreate(BaseModel):
    resort_id: str | None = Field(default=None, max_length=64)
    store_id: str | None = Field(default=None, max_length=64)
    replacement_date: date | None = None
    lines: list[ReplacementLineIn] = Field(default_factory=list)


class IssueLineIn(BaseModel):
    line_id: str = Field(min_length=1, max_length=32)
    issued_qty: Decimal = Field(ge=0, decimal_places=3)
    remark: str | None = Field(default=None, max_length=255)


class IssueToVendor(BaseModel):
    vendor_id: str | None = Field(default=None, max_length=64)
    lines: list[IssueLineIn] = Field(default_factory=list)


class ReceiptLineIn(BaseModel):
    line_id: str = Field(min_length=1, max_length=32)
    received_qty: Decimal = Field(ge=0, decimal_places=3)
    remark: str | None = Field(default=None, max_length=255)


class ReplacementReceipt(BaseModel):
    store_id: str | None = Field(default=None, max_length=64)  # défaut : store du replacement
    lines: list[ReceiptLineIn] = Field(default_factory=list)


class ReplacementLineRead(BaseModel):
    line_id: str
    item_id: str
    qty: Decimal
    issued_qty: Decimal
    received_qty: Decimal
    remark: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ReplacementRead(BaseModel):
    id: int
    repl_no: str
    resort_id: str
    store_id: str
    vendor_id: str | None = None
    status: ReplacementStatus
    replacement_date: date
    created_by: str | None = None
    created_at: datetime
    issued_at: datetime | None = None
    closed_at: datetime | None = None
    lines: list[ReplacementLineRead] = []

    model_config = ConfigDict(from_attributes=True)
