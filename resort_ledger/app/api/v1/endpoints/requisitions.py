from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from resort_ledger.app.api.deps import get_current_user_id, get_db, get_procurement_workflow
from resort_ledger.app.db.models.core_types import RequisitionStatus
from resort_ledger.app.schemas.procurement import (
    GRNCreate,
    GRNRead,
    POFromRequisition,
    PORead,
    RequisitionCreate,
    RequisitionRead,
    RequisitionReject,
)
from resort_ledger.services.procurement import ProcurementWorkflow

router = APIRouter(prefix="/requisitions")


@router.get("", response_model=list[RequisitionRead])
def list_requisitions(
    resort_id: str | None = None,
    status: RequisitionStatus | None = None,
    workflow: ProcurementWorkflow = Depends(get_procurement_workflow),
):
    return workflow.list_requisitions(resort_id=resort_id, status=status)


@router.get("/{requisition_id}", response_model=RequisitionRead)
def get_requisition(requisition_id: int, workflow: ProcurementWorkflow = Depends(get_procurement_workflow)):
    return workflow.get_requisition(requisition_id)


@router.post("", response_model=RequisitionRead, status_code=201)
def create_requisition(
    payload: RequisitionCreate,
    db: Session = Depends(get_db),
    workflow: ProcurementWorkflow = Depends(get_procurement_workflow),
    user_id: str = Depends(get_current_user_id),
):
    req = workflow.create_requisition(payload, created_by=user_id)
    db.commit()
    db.refresh(req)
    return req


# ---------- Approbation ----------
@router.post("/{requisition_id}/approve", response_model=RequisitionRead)
def approve_requisition(
    requisition_id: int,
    db: Session = Depends(get_db),
    workflow: ProcurementWorkflow = Depends(get_procurement_workflow),
    user_id: str = Depends(get_current_user_id),
):
    req = workflow.approve(requisition_id, approved_by=user_id)
    db.commit()
    db.refresh(req)
    return req


@router.post("/{requisition_id}/hold", response_model=RequisitionRead)
def hold_requisition(
    requisition_id: int,
    db: Session = Depends(get_db),
    workflow: ProcurementWorkflow = Depends(get_procurement_workflow),
):
    req = workflow.hold(requisition_id)
    db.commit()
    db.refresh(req)
    return req


@router.post("/{requisition_id}/reject", response_model=RequisitionRead)
def reject_requisition(
    requisition_id: int,
    payload: RequisitionReject | None = None,
    db: Session = Depends(get_db),
    workflow: ProcurementWorkflow = Depends(get_procurement_workflow),
    user_id: str = Depends(get_current_user_id),
):
    reason = payload.reason if payload else None
    req = workflow.reject(requisition_id, reason=reason, rejected_by=user_id)
    db.commit()
    db.refresh(req)
    return req


# ---------- Aval : PO / GRN ----------
@router.post("/{requisition_id}/create-po", response_model=PORead, status_code=201)
def create_po(
    requisition_id: int,
    payload: POFromRequisition | None = None,
    db: Session = Depends(get_db),
    workflow: ProcurementWorkflow = Depends(get_procurement_workflow),
    user_id: str = Depends(get_current_user_id),
):
    po = workflow.create_po_from_requisition(requisition_id, payload, created_by=user_id)
    db.commit()
    db.refresh(po)
    return po


@router.post("/{requisition_id}/grn", response_model=GRNRead, status_code=201)
def create_grn(
    requisition_id: int,
    payload: GRNCreate,
    db: Session = Depends(get_db),
    workflow: ProcurementWorkflow = Depends(get_procurement_workflow),
    user_id: str = Depends(get_current_user_id),
):
    grn = workflow.create_grn(payload, requisition_id=requisition_id, received_by=user_id)
    db.commit()
    db.refresh(grn)
    return grn
