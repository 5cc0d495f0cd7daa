"""
Procurement service.

Requisition -> Purchase order -> GRN, chaque étape optionnelle vers l'avant.
Le seul effet stock côté achats est l'entrée au GRN (StockLedger.increment),
exactement une fois par réquisition.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from resort_ledger.app.db.models.core_types import (
    GRNStatus,
    MovementType,
    POStatus,
    RequisitionStatus,
    RequisitionType,
)
from resort_ledger.app.db.models.models_v1 import (
    GoodsReceipt,
    GoodsReceiptLine,
    PurchaseOrder,
    PurchaseOrderLine,
    Requisition,
    RequisitionLine,
)
from resort_ledger.app.schemas.procurement import GRNCreate, POFromRequisition, RequisitionCreate
from resort_ledger.services.exceptions import NotFound, StateConflict, ValidationError
from resort_ledger.services.inventory import ZERO, StockLedger, StockReference, storage_guard
from resort_ledger.services.numbering import GRN_PREFIX, PO_PREFIX, REQUISITION_PREFIX, make_doc_no

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# transitions d'approbation autorisées
REQUISITION_TRANSITIONS = {
    RequisitionStatus.pending: {RequisitionStatus.approved, RequisitionStatus.on_hold, RequisitionStatus.rejected},
    RequisitionStatus.on_hold: {RequisitionStatus.approved, RequisitionStatus.rejected},
    RequisitionStatus.approved: {RequisitionStatus.on_hold},
}

# une réquisition peut recevoir un GRN directement après approbation ou après PO
GRN_READY_STATUSES = {RequisitionStatus.approved, RequisitionStatus.po_created}


def recalc_po_totals(po: PurchaseOrder) -> PurchaseOrder:
    sub_total = ZERO
    for ln in po.lines:
        ln.amount = (Decimal(ln.qty) * Decimal(ln.rate)).quantize(CENT, rounding=ROUND_HALF_UP)
        sub_total += ln.amount

    tax_percent = Decimal(po.tax_percent or 0)
    po.sub_total = sub_total
    po.tax_amount = (sub_total * tax_percent / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)
    po.total = po.sub_total + po.tax_amount
    return po


class ProcurementWorkflow:
    def __init__(self, db: Session, *, ledger: StockLedger, strict_vendor_po: bool = False) -> None:
        self.db = db
        self.ledger = ledger
        self.strict_vendor_po = strict_vendor_po

    # ---------- REQUISITION ----------
    def list_requisitions(self, *, resort_id: str | None = None, status: RequisitionStatus | None = None) -> list[Requisition]:
        stmt = select(Requisition).options(selectinload(Requisition.lines)).order_by(Requisition.id.desc())
        if resort_id:
            stmt = stmt.where(Requisition.resort_id == resort_id)
        if status is not None:
            stmt = stmt.where(Requisition.status == status)
        return list(self.db.execute(stmt).scalars().all())

    def get_requisition(self, requisition_id: int) -> Requisition:
        req = self.db.get(Requisition, requisition_id)
        if not req:
            raise NotFound("Requisition", requisition_id)
        return req

    def _lock(self, model, entity_id: int, entity: str):
        # ordre de verrouillage : réquisition puis PO
        with storage_guard(f"{entity} lock"):
            obj = self.db.execute(
                select(model)
                .where(model.id == entity_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if not obj:
            raise NotFound(entity, entity_id)
        return obj

    def _lock_requisition(self, requisition_id: int) -> Requisition:
        return self._lock(Requisition, requisition_id, "Requisition")

    def _lock_po(self, po_id: int) -> PurchaseOrder:
        return self._lock(PurchaseOrder, po_id, "PurchaseOrder")

    def create_requisition(self, payload: RequisitionCreate, *, created_by: str | None = None) -> Requisition:
        if payload.type is None:
            raise ValidationError('Invalid or missing "type".')
        if not payload.resort_id:
            raise ValidationError('Missing "resort" id.')

        if payload.type == RequisitionType.vendor:
            if not payload.vendor_id:
                raise ValidationError('Missing or invalid "vendor" id.')
            if not payload.store_id:
                raise ValidationError('Missing or invalid "store" id.')
        else:
            if not payload.from_store or not payload.to_store:
                raise ValidationError('Missing or invalid "fromStore"/"toStore" ids.')

        if not payload.lines:
            raise ValidationError('Requisition must contain at least one line in "lines".')

        req = Requisition(
            requisition_no=payload.requisition_no or make_doc_no(REQUISITION_PREFIX),
            type=payload.type,
            status=RequisitionStatus.pending,
            resort_id=payload.resort_id,
            department_id=payload.department_id,
            required_by=payload.required_by,
            created_by=created_by,
        )
        if payload.type == RequisitionType.vendor:
            req.vendor_id = payload.vendor_id
            req.store_id = payload.store_id
        else:
            req.from_store = payload.from_store
            req.to_store = payload.to_store

        req.lines = [
            RequisitionLine(position=pos, item_id=ln.item_id, qty=ln.qty, remark=ln.remark or "")
            for pos, ln in enumerate(payload.lines)
        ]

        self.db.add(req)
        self.db.flush()
        logger.info("requisition %s created (%s)", req.requisition_no, req.type.value)
        return req

    def approve(self, requisition_id: int, *, approved_by: str | None = None) -> Requisition:
        req = self._transition(requisition_id, RequisitionStatus.approved)
        req.approved_by = approved_by
        req.approved_at = datetime.utcnow()
        self.db.flush()
        return req

    def hold(self, requisition_id: int) -> Requisition:
        req = self._transition(requisition_id, RequisitionStatus.on_hold)
        self.db.flush()
        return req

    def reject(self, requisition_id: int, *, reason: str | None = None, rejected_by: str | None = None) -> Requisition:
        req = self._transition(requisition_id, RequisitionStatus.rejected)
        req.rejection_reason = reason or ""
        req.rejected_by = rejected_by
        self.db.flush()
        return req

    def _transition(self, requisition_id: int, target: RequisitionStatus) -> Requisition:
        req = self._lock_requisition(requisition_id)
        if target not in REQUISITION_TRANSITIONS.get(req.status, set()):
            raise StateConflict("Requisition", requisition_id, req.status.value, target.value)
        req.status = target
        logger.info("requisition %s -> %s", req.requisition_no, target.value)
        return req

    # ---------- PURCHASE ORDER ----------
    def list_pos(self) -> list[PurchaseOrder]:
        stmt = select(PurchaseOrder).options(selectinload(PurchaseOrder.lines)).order_by(PurchaseOrder.id.desc())
        return list(self.db.execute(stmt).scalars().all())

    def get_po(self, po_id: int) -> PurchaseOrder:
        po = self.db.get(PurchaseOrder, po_id)
        if not po:
            raise NotFound("PurchaseOrder", po_id)
        return po

    def create_po_from_requisition(
        self,
        requisition_id: int,
        payload: POFromRequisition | None = None,
        *,
        created_by: str | None = None,
    ) -> PurchaseOrder:
        payload = payload or POFromRequisition()
        req = self._lock_requisition(requisition_id)

        if req.status != RequisitionStatus.approved:
            raise StateConflict("Requisition", requisition_id, req.status.value, RequisitionStatus.po_created.value)
        if self.strict_vendor_po and req.type != RequisitionType.vendor:
            raise ValidationError("Purchase orders can only be created from VENDOR requisitions")

        po = PurchaseOrder(
            po_no=make_doc_no(PO_PREFIX),
            requisition_id=req.id,
            vendor_id=req.vendor_id,
            resort_id=req.resort_id,
            deliver_to=req.store_id or req.to_store,
            po_date=payload.po_date or date.today(),
            status=POStatus.open,
            tax_percent=payload.tax_percent,
            created_by=created_by,
        )
        po.lines = [
            PurchaseOrderLine(
                position=ln.position,
                item_id=ln.item_id,
                qty=ln.qty,
                rate=payload.rates.get(ln.item_id, ZERO),
                remark=ln.remark,
            )
            for ln in req.lines
        ]
        recalc_po_totals(po)

        self.db.add(po)
        self.db.flush()

        req.status = RequisitionStatus.po_created
        req.po_id = po.id
        req.po_no = po.po_no
        self.db.flush()
        logger.info("PO %s created from requisition %s", po.po_no, req.requisition_no)
        return po

    # ---------- GRN ----------
    def get_grn(self, grn_id: int) -> GoodsReceipt:
        grn = self.db.get(GoodsReceipt, grn_id)
        if not grn:
            raise NotFound("GoodsReceipt", grn_id)
        return grn

    def create_grn(
        self,
        payload: GRNCreate,
        *,
        requisition_id: int | None = None,
        po_id: int | None = None,
        received_by: str | None = None,
    ) -> GoodsReceipt:
        """
        GRN depuis une réquisition ou un PO. Toutes les vérifications passent
        avant la première écriture stock ; puis une entrée par ligne reçue > 0.
        """
        if requisition_id is None and po_id is None:
            raise ValidationError("requisition or purchase order is required")
        if not payload.lines:
            raise ValidationError("GRN must contain at least one line")

        if po_id is not None and requisition_id is None:
            requisition_id = self.get_po(po_id).requisition_id
        # statuts relus sous verrou : deux GRN concurrents ne passent pas tous les deux
        req = self._lock_requisition(requisition_id) if requisition_id is not None else None
        po = self._lock_po(po_id) if po_id is not None else None

        if req is not None:
            if req.status not in GRN_READY_STATUSES:
                raise StateConflict("Requisition", req.id, req.status.value, RequisitionStatus.grn_created.value)
            if po is None and req.po_id is not None:
                po = self._lock_po(req.po_id)
        if po is not None and po.status == POStatus.closed:
            raise StateConflict("PurchaseOrder", po.id, po.status.value, POStatus.closed.value)

        store_id = payload.store_id or (po.deliver_to if po else None)
        if not store_id and req is not None:
            store_id = req.store_id or req.to_store
        if not store_id:
            raise ValidationError("store is required for GRN")

        resort_id = po.resort_id if po is not None else req.resort_id
        ordered: dict[str, Decimal] = {}
        for ln in (po.lines if po is not None else req.lines):
            ordered[ln.item_id] = ordered.get(ln.item_id, ZERO) + Decimal(ln.qty)

        grn = GoodsReceipt(
            grn_no=make_doc_no(GRN_PREFIX),
            requisition_id=req.id if req is not None else None,
            po_id=po.id if po is not None else None,
            vendor_id=(po.vendor_id if po is not None else req.vendor_id),
            resort_id=resort_id,
            store_id=store_id,
            grn_date=payload.grn_date or date.today(),
            status=GRNStatus.open,
            challan_no=payload.challan_no,
            bill_no=payload.bill_no,
            received_by=received_by,
        )
        grn.lines = [
            GoodsReceiptLine(
                position=pos,
                item_id=ln.item_id,
                received_qty=ln.received_qty,
                pending_qty=max(ordered.get(ln.item_id, ZERO) - ln.received_qty, ZERO),
                remark=ln.remark,
            )
            for pos, ln in enumerate(payload.lines)
        ]

        reference = StockReference(
            movement_type=MovementType.goods_receipt,
            reference_type="GRN",
            reference_no=grn.grn_no,
            created_by=received_by,
        )
        for ln in payload.lines:
            if ln.received_qty > ZERO:
                self.ledger.increment(store_id, ln.item_id, ln.received_qty, resort_id=resort_id, reference=reference)

        grn.status = GRNStatus.closed
        self.db.add(grn)
        self.db.flush()

        if po is not None:
            po.status = POStatus.closed
        if req is not None:
            req.status = RequisitionStatus.grn_created
            req.grn_id = grn.id
            req.grn_no = grn.grn_no
        self.db.flush()

        logger.info("GRN %s posted into store %s", grn.grn_no, store_id)
        return grn
