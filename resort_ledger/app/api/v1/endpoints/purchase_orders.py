from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from resort_ledger.app.api.deps import get_current_user_id, get_db, get_procurement_workflow
from resort_ledger.app.schemas.procurement import GRNCreate, GRNRead, PORead
from resort_ledger.services.procurement import ProcurementWorkflow

router = APIRouter(prefix="/purchase-orders")


@router.get("", response_model=list[PORead])
def list_pos(workflow: ProcurementWorkflow = Depends(get_procurement_workflow)):
    return workflow.list_pos()


@router.get("/{po_id}", response_model=PORead)
def get_po(po_id: int, workflow: ProcurementWorkflow = Depends(get_procurement_workflow)):
    return workflow.get_po(po_id)


@router.post("/{po_id}/grn", response_model=GRNRead, status_code=201)
def create_grn(
    po_id: int,
    payload: GRNCreate,
    db: Session = Depends(get_db),
    workflow: ProcurementWorkflow = Depends(get_procurement_workflow),
    user_id: str = Depends(get_current_user_id),
):
    """Réception marchandise : seule entrée de stock côté achats."""
    grn = workflow.create_grn(payload, po_id=po_id, received_by=user_id)
    db.commit()
    db.refresh(grn)
    return grn
