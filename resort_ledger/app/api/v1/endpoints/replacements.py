from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from resort_ledger.app.api.deps import get_current_user_id, get_db, get_replacement_workflow
from resort_ledger.app.schemas.replacement import (
    IssueToVendor,
    ReplacementCreate,
    ReplacementRead,
    ReplacementReceipt,
)
from resort_ledger.services.replacement import ReplacementWorkflow

router = APIRouter(prefix="/store-replacements")


@router.get("", response_model=list[ReplacementRead])
def list_replacements(resort_id: str | None = None, workflow: ReplacementWorkflow = Depends(get_replacement_workflow)):
    return workflow.list(resort_id=resort_id)


@router.get("/{replacement_id}", response_model=ReplacementRead)
def get_replacement(replacement_id: int, workflow: ReplacementWorkflow = Depends(get_replacement_workflow)):
    return workflow.get(replacement_id)


@router.post("", response_model=ReplacementRead, status_code=201)
def create_replacement(
    payload: ReplacementCreate,
    db: Session = Depends(get_db),
    workflow: ReplacementWorkflow = Depends(get_replacement_workflow),
    user_id: str = Depends(get_current_user_id),
):
    repl = workflow.create(payload, created_by=user_id)
    db.commit()
    db.refresh(repl)
    return repl


@router.post("/{replacement_id}/issue-to-vendor", response_model=ReplacementRead)
def issue_to_vendor(
    replacement_id: int,
    payload: IssueToVendor,
    db: Session = Depends(get_db),
    workflow: ReplacementWorkflow = Depends(get_replacement_workflow),
):
    repl = workflow.issue_to_vendor(replacement_id, payload)
    db.commit()
    db.refresh(repl)
    return repl


@router.post("/{replacement_id}/grn", response_model=ReplacementRead)
def receive_grn(
    replacement_id: int,
    payload: ReplacementReceipt,
    db: Session = Depends(get_db),
    workflow: ReplacementWorkflow = Depends(get_replacement_workflow),
    user_id: str = Depends(get_current_user_id),
):
    repl = workflow.receive_grn(replacement_id, payload, received_by=user_id)
    db.commit()
    db.refresh(repl)
    return repl
