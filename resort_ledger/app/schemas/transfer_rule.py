from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TransferRuleCreate(BaseModel):
    resort_id: str | None = Field(default=None, max_length=64)  # None = règle globale
    from_store: str | None = Field(default=None, max_length=64)
    to_store: str | None = Field(default=None, max_length=64)
    is_allowed: bool | None = None


class TransferRuleUpdate(BaseModel):
    """Mise à jour partielle : seuls les champs envoyés sont appliqués."""

    resort_id: str | None = Field(default=None, max_length=64)
    from_store: str | None = Field(default=None, max_length=64)
    to_store: str | None = Field(default=None, max_length=64)
    is_allowed: bool | None = None


class TransferRuleRead(BaseModel):
    id: int
    resort_id: str | None = None
    from_store: str
    to_store: str
    is_allowed: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransferCheckRead(BaseModel):
    resort_id: str | None = None
    from_store: str | None = None
    to_store: str | None = None
    allowed: bool
