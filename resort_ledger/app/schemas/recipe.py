from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class RecipeLineIn(BaseModel):
    item_id: str = Field(min_length=1, max_length=64)
    qty: Decimal = Field(gt=0, decimal_places=3)


class RecipeCreate(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=200)
    recipe_category: str | None = Field(default=None, max_length=64)
    yield_qty: Decimal | None = Field(default=None, ge=0, decimal_places=3)
    yield_uom: str | None = Field(default=None, max_length=32)
    lines: list[RecipeLineIn] = Field(default_factory=list)


class RecipeLineRead(BaseModel):
    item_id: str
    qty: Decimal

    model_config = ConfigDict(from_attributes=True)


class RecipeRead(BaseModel):
    id: int
    code: str
    name: str
    recipe_category: str | None = None
    yield_qty: Decimal | None = None
    yield_uom: str | None = None
    created_at: datetime
    lines: list[RecipeLineRead] = []

    model_config = ConfigDict(from_attributes=True)


class IngredientDeductionRead(BaseModel):
    item_id: str
    qty: Decimal
