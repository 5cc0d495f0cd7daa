from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from resort_ledger.app.api.deps import get_db
from resort_ledger.app.schemas.transfer_rule import (
    TransferCheckRead,
    TransferRuleCreate,
    TransferRuleRead,
    TransferRuleUpdate,
)
from resort_ledger.services import transfer_rules as rule_service
from resort_ledger.services.transfer_rules import TransferRuleGate

router = APIRouter(prefix="/store-transfer-rules")


@router.get("", response_model=list[TransferRuleRead])
def list_rules(resort_id: str | None = None, from_store: str | None = None, db: Session = Depends(get_db)):
    return rule_service.list_rules(db, resort_id=resort_id, from_store=from_store)


@router.get("/check", response_model=TransferCheckRead)
def check_transfer(
    from_store: str,
    to_store: str,
    resort_id: str | None = None,
    db: Session = Depends(get_db),
):
    allowed = TransferRuleGate(db).is_allowed(resort_id, from_store, to_store)
    return TransferCheckRead(resort_id=resort_id, from_store=from_store, to_store=to_store, allowed=allowed)


@router.get("/{rule_id}", response_model=TransferRuleRead)
def get_rule(rule_id: int, db: Session = Depends(get_db)):
    return rule_service.get_rule(db, rule_id)


@router.post("", response_model=TransferRuleRead)
def create_rule(payload: TransferRuleCreate, response: Response, db: Session = Depends(get_db)):
    # upsert : 201 si créée, 200 si la paire existait déjà
    rule, created = rule_service.create_rule(db, payload)
    db.commit()
    db.refresh(rule)
    response.status_code = 201 if created else 200
    return rule


@router.patch("/{rule_id}", response_model=TransferRuleRead)
def update_rule(rule_id: int, payload: TransferRuleUpdate, db: Session = Depends(get_db)):
    rule = rule_service.update_rule(db, rule_id, payload)
    db.commit()
    db.refresh(rule)
    return rule


@router.delete("/{rule_id}", status_code=204)
def delete_rule(rule_id: int, db: Session = Depends(get_db)):
    rule_service.delete_rule(db, rule_id)
    db.commit()
    return Response(status_code=204)
