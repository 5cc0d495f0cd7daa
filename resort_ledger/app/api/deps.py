from __future__ import annotations

from typing import Generator

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from resort_ledger.app.core.config import get_settings
from resort_ledger.app.db.session import SessionLocal
from resort_ledger.services.consumption import ConsumptionWorkflow
from resort_ledger.services.inventory import StockLedger
from resort_ledger.services.procurement import ProcurementWorkflow
from resort_ledger.services.recipes import RecipeExpander
from resort_ledger.services.replacement import ReplacementWorkflow
from resort_ledger.services.transfer_rules import TransferRuleGate

SYSTEM_USER = "SYSTEM"


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    except Exception:
        # requête en échec : rien de partiel ne doit survivre
        db.rollback()
        raise
    finally:
        db.close()


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    return (x_user_id or "").strip() or SYSTEM_USER


# ---------- Services ----------
def get_ledger(db: Session = Depends(get_db)) -> StockLedger:
    return StockLedger(db)


def get_consumption_workflow(db: Session = Depends(get_db)) -> ConsumptionWorkflow:
    settings = get_settings()
    return ConsumptionWorkflow(
        db,
        ledger=StockLedger(db),
        expander=RecipeExpander(db, strict_missing_recipe=settings.strict_missing_recipe),
        gate=TransferRuleGate(db),
    )


def get_replacement_workflow(db: Session = Depends(get_db)) -> ReplacementWorkflow:
    return ReplacementWorkflow(
        db,
        ledger=StockLedger(db),
        cap_receipt_to_issued=get_settings().cap_receipt_to_issued,
    )


def get_procurement_workflow(db: Session = Depends(get_db)) -> ProcurementWorkflow:
    return ProcurementWorkflow(
        db,
        ledger=StockLedger(db),
        strict_vendor_po=get_settings().strict_vendor_po,
    )
