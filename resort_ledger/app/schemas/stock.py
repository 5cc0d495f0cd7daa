from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from resort_ledger.app.db.models.core_types import MovementType


class StockEntryRead(BaseModel):
    store_id: str
    item_id: str
    resort_id: str | None = None

    qty: Decimal  # READ ONLY, modifié uniquement par le ledger
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StockMovementRead(BaseModel):
    id: int
    store_id: str
    item_id: str
    movement_type: MovementType
    quantity: Decimal
    reference_type: str | None = None
    reference_no: str | None = None
    created_by: str | None = None
    happened_at: datetime

    model_config = ConfigDict(from_attributes=True)
