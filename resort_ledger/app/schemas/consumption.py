from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Union

from pydantic import BaseModel, ConfigDict, Field

from resort_ledger.app.db.models.core_types import ConsumptionStatus, ConsumptionType


# ---------- Lignes (variantes taguées par leurs champs) ----------
class ItemLineIn(BaseModel):
    """Ligne directe : item + qty (LUMPSUM, REPLACEMENT)."""

    model_config = ConfigDict(extra="forbid")

    item_id: str = Field(min_length=1, max_length=64)
    qty: Decimal = Field(gt=0, decimal_places=3)
    uom: str | None = Field(default=None, max_length=32)
    remark: str | None = Field(default=None, max_length=255)


class RecipeLineIn(BaseModel):
    """Ligne recette : recipe + qty (RECIPE_LUMPSUM, RECIPE_PORTION)."""

    model_config = ConfigDict(extra="forbid")

    recipe_id: int
    qty: Decimal = Field(gt=0, decimal_places=3)
    remark: str | None = Field(default=None, max_length=255)


ConsumptionLineIn = Union[ItemLineIn, RecipeLineIn]


class ConsumptionCreate(BaseModel):
    # type / resort restent optionnels ici : le workflow renvoie un 400 explicite
    type: ConsumptionType | None = None
    resort_id: str | None = Field(default=None, max_length=64)
    department_id: str | None = Field(default=None, max_length=64)
    outlet: str | None = Field(default=None, max_length=128)
    store_from: str | None = Field(default=None, max_length=64)
    store_to: str | None = Field(default=None, max_length=64)
    consumption_date: date | None = None
    status: ConsumptionStatus = ConsumptionStatus.posted

    reference_no: str | None = Field(default=None, max_length=64)
    notes: str | None = None
    event_name: str | None = Field(default=None, max_length=200)
    menu_name: str | None = Field(default=None, max_length=200)
    pax: int | None = Field(default=None, ge=0)

    lines: list[ConsumptionLineIn] = Field(default_factory=list)


class ConsumptionUpdate(BaseModel):
    """Mise à jour partielle (whitelist) : seuls les champs envoyés comptent."""

    type: ConsumptionType | None = None
    resort_id: str | None = Field(default=None, max_length=64)
    department_id: str | None = Field(default=None, max_length=64)
    outlet: str | None = Field(default=None, max_length=128)
    store_from: str | None = Field(default=None, max_length=64)
    store_to: str | None = Field(default=None, max_length=64)
    consumption_date: date | None = None
    reference_no: str | None = Field(default=None, max_length=64)
    notes: str | None = None
    event_name: str | None = Field(default=None, max_length=200)
    menu_name: str | None = Field(default=None, max_length=200)
    pax: int | None = Field(default=None, ge=0)
    lines: list[ConsumptionLineIn] | None = None


class ConsumptionLineRead(BaseModel):
    item_id: str | None = None
    recipe_id: int | None = None
    qty: Decimal
    uom: str | None = None
    remark: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ConsumptionRead(BaseModel):
    id: int
    consumption_no: str
    type: ConsumptionType
    status: ConsumptionStatus
    resort_id: str
    department_id: str | None = None
    outlet: str | None = None
    store_from: str | None = None
    store_to: str | None = None
    consumption_date: date
    reference_no: str | None = None
    notes: str | None = None
    event_name: str | None = None
    menu_name: str | None = None
    pax: int | None = None
    created_by: str | None = None
    created_at: datetime
    posted_at: datetime | None = None
    lines: list[ConsumptionLineRead] = []

    model_config = ConfigDict(from_attributes=True)
