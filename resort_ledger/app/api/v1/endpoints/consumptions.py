from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from resort_ledger.app.api.deps import get_consumption_workflow, get_current_user_id, get_db
from resort_ledger.app.db.models.core_types import ConsumptionType
from resort_ledger.app.schemas.consumption import ConsumptionCreate, ConsumptionRead, ConsumptionUpdate
from resort_ledger.services.consumption import ConsumptionWorkflow

router = APIRouter(prefix="/consumptions")


@router.get("", response_model=list[ConsumptionRead])
def list_consumptions(
    type: ConsumptionType | None = None,
    resort_id: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    workflow: ConsumptionWorkflow = Depends(get_consumption_workflow),
):
    return workflow.list(type=type, resort_id=resort_id, date_from=date_from, date_to=date_to)


@router.get("/{consumption_id}", response_model=ConsumptionRead)
def get_consumption(consumption_id: int, workflow: ConsumptionWorkflow = Depends(get_consumption_workflow)):
    return workflow.get(consumption_id)


@router.post("", response_model=ConsumptionRead, status_code=201)
def create_consumption(
    payload: ConsumptionCreate,
    db: Session = Depends(get_db),
    workflow: ConsumptionWorkflow = Depends(get_consumption_workflow),
    user_id: str = Depends(get_current_user_id),
):
    """
    Crée (et par défaut poste) une consommation.
    Stock insuffisant sur une seule ligne -> 409, rien n'est écrit.
    """
    doc = workflow.create(payload, created_by=user_id)
    db.commit()
    db.refresh(doc)
    return doc


@router.post("/{consumption_id}/post", response_model=ConsumptionRead)
def post_consumption(
    consumption_id: int,
    db: Session = Depends(get_db),
    workflow: ConsumptionWorkflow = Depends(get_consumption_workflow),
    user_id: str = Depends(get_current_user_id),
):
    doc = workflow.post(consumption_id, posted_by=user_id)
    db.commit()
    db.refresh(doc)
    return doc


@router.patch("/{consumption_id}", response_model=ConsumptionRead)
def update_consumption(
    consumption_id: int,
    payload: ConsumptionUpdate,
    db: Session = Depends(get_db),
    workflow: ConsumptionWorkflow = Depends(get_consumption_workflow),
):
    doc = workflow.update(consumption_id, payload)
    db.commit()
    db.refresh(doc)
    return doc


@router.delete("/{consumption_id}", status_code=204)
def delete_consumption(
    consumption_id: int,
    db: Session = Depends(get_db),
    workflow: ConsumptionWorkflow = Depends(get_consumption_workflow),
):
    workflow.delete(consumption_id)
    db.commit()
    return Response(status_code=204)
