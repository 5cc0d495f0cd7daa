from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from resort_ledger.app.api.deps import get_db
from resort_ledger.services.inventory import storage_guard

router = APIRouter(prefix="/health")


@router.get("")
def health(db: Session = Depends(get_db)):
    with storage_guard("health check"):
        db.execute(text("SELECT 1"))
    return {"status": "ok"}
