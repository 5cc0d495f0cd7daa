from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from resort_ledger.app.api.deps import get_ledger
from resort_ledger.app.schemas.stock import StockEntryRead, StockMovementRead
from resort_ledger.services.inventory import StockLedger

router = APIRouter(prefix="/stock")


@router.get(
    "",
    response_model=list[StockEntryRead],
)
def get_stock(
    store_id: str | None = None,
    item_id: str | None = None,
    resort_id: str | None = None,
    ledger: StockLedger = Depends(get_ledger),
):
    """
    Stock (READ ONLY)
    - qty n'est modifiée que par les workflows (consommation, replacement, GRN)
    - une paire (store, item) absente vaut 0
    """
    return ledger.list_entries(store_id=store_id, item_id=item_id, resort_id=resort_id)


@router.get("/movements", response_model=list[StockMovementRead])
def list_movements(
    store_id: str | None = None,
    item_id: str | None = None,
    reference_no: str | None = None,
    limit: int = Query(default=200, ge=1, le=1000),
    ledger: StockLedger = Depends(get_ledger),
):
    return ledger.list_movements(store_id=store_id, item_id=item_id, reference_no=reference_no, limit=limit)


@router.get("/{store_id}/{item_id}")
def get_qty(store_id: str, item_id: str, ledger: StockLedger = Depends(get_ledger)):
    return {"store_id": store_id, "item_id": item_id, "qty": ledger.get(store_id, item_id)}
