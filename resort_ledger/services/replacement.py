"""
Store replacement : OPEN -> SENT_TO_VENDOR -> CLOSED (jamais en arrière).

    create          : le stock sort du store tout de suite (qty demandées)
    issue_to_vendor : vendor + issued_qty par ligne, aucun effet stock
    receive_grn     : le stock revient avec received_qty tel quel, puis CLOSED

Un replacement CLOSED n'est jamais supprimé (piste d'audit).
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from resort_ledger.app.db.models.core_types import MovementType, ReplacementStatus
from resort_ledger.app.db.models.models_v1 import StoreReplacement, StoreReplacementLine
from resort_ledger.app.schemas.replacement import (
    IssueToVendor,
    ReplacementCreate,
    ReplacementReceipt,
)
from resort_ledger.services.exceptions import NotFound, StateConflict, ValidationError
from resort_ledger.services.inventory import ZERO, StockLedger, StockLine, StockReference, storage_guard
from resort_ledger.services.numbering import REPLACEMENT_PREFIX, make_doc_no

logger = logging.getLogger(__name__)

ISSUABLE_STATUSES = {ReplacementStatus.open, ReplacementStatus.sent_to_vendor}


class ReplacementWorkflow:
    def __init__(self, db: Session, *, ledger: StockLedger, cap_receipt_to_issued: bool = False) -> None:
        self.db = db
        self.ledger = ledger
        self.cap_receipt_to_issued = cap_receipt_to_issued

    def list(self, *, resort_id: str | None = None) -> list[StoreReplacement]:
        stmt = (
            select(StoreReplacement)
            .options(selectinload(StoreReplacement.lines))
            .order_by(StoreReplacement.id.desc())
        )
        if resort_id:
            stmt = stmt.where(StoreReplacement.resort_id == resort_id)
        return list(self.db.execute(stmt).scalars().all())

    def get(self, replacement_id: int) -> StoreReplacement:
        repl = self.db.get(StoreReplacement, replacement_id)
        if not repl:
            raise NotFound("StoreReplacement", replacement_id)
        return repl

    def _lock(self, replacement_id: int) -> StoreReplacement:
        """Relit le document sous FOR UPDATE : le statut vérifié ensuite est celui de la base."""
        with storage_guard("replacement lock"):
            repl = self.db.execute(
                select(StoreReplacement)
                .where(StoreReplacement.id == replacement_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if not repl:
            raise NotFound("StoreReplacement", replacement_id)
        return repl

    # ---------- OPEN ----------
    def create(self, payload: ReplacementCreate, *, created_by: str | None = None) -> StoreReplacement:
        if not payload.resort_id:
            raise ValidationError("resort is required")
        if not payload.store_id:
            raise ValidationError("store is required")
        if not payload.lines:
            raise ValidationError("At least one line item is required")

        repl = StoreReplacement(
            repl_no=make_doc_no(REPLACEMENT_PREFIX),
            resort_id=payload.resort_id,
            store_id=payload.store_id,
            status=ReplacementStatus.open,
            replacement_date=payload.replacement_date or date.today(),
            created_by=created_by,
        )
        repl.lines = [
            StoreReplacementLine(line_id=f"L{pos + 1}", item_id=ln.item_id, qty=ln.qty, remark=ln.remark)
            for pos, ln in enumerate(payload.lines)
        ]

        # sortie physique immédiate, tout ou rien ; rien n'est persisté si ça échoue
        self.ledger.decrement_batch(
            [StockLine(payload.store_id, ln.item_id, ln.qty) for ln in payload.lines],
            reference=StockReference(
                movement_type=MovementType.replacement_out,
                reference_type="STORE_REPLACEMENT",
                reference_no=repl.repl_no,
                created_by=created_by,
            ),
        )

        self.db.add(repl)
        self.db.flush()
        logger.info("replacement %s opened at store %s", repl.repl_no, repl.store_id)
        return repl

    # ---------- SENT_TO_VENDOR ----------
    def issue_to_vendor(self, replacement_id: int, payload: IssueToVendor) -> StoreReplacement:
        repl = self._lock(replacement_id)
        if repl.status not in ISSUABLE_STATUSES:
            raise StateConflict(
                "StoreReplacement", replacement_id, repl.status.value, ReplacementStatus.sent_to_vendor.value
            )
        if not payload.vendor_id:
            raise ValidationError("vendor is required")

        lines_by_id = self._lines_by_id(repl, [adj.line_id for adj in payload.lines])

        repl.vendor_id = payload.vendor_id
        repl.status = ReplacementStatus.sent_to_vendor
        repl.issued_at = datetime.utcnow()
        # lignes absentes de l'ajustement : inchangées
        for adj in payload.lines:
            line = lines_by_id[adj.line_id]
            line.issued_qty = adj.issued_qty
            if adj.remark is not None:
                line.remark = adj.remark

        self.db.flush()
        logger.info("replacement %s sent to vendor %s", repl.repl_no, repl.vendor_id)
        return repl

    # ---------- CLOSED ----------
    def receive_grn(self, replacement_id: int, payload: ReplacementReceipt, *, received_by: str | None = None) -> StoreReplacement:
        """
        Réintègre received_qty (et seulement received_qty) dans le store.
        Sous- ou sur-réception acceptée telle quelle, sauf si
        cap_receipt_to_issued est activé.
        """
        repl = self._lock(replacement_id)
        if repl.status != ReplacementStatus.sent_to_vendor:
            raise StateConflict("StoreReplacement", replacement_id, repl.status.value, ReplacementStatus.closed.value)

        store_id = payload.store_id or repl.store_id
        lines_by_id = self._lines_by_id(repl, [rc.line_id for rc in payload.lines])

        if self.cap_receipt_to_issued:
            for rc in payload.lines:
                line = lines_by_id[rc.line_id]
                ceiling = Decimal(line.issued_qty) if line.issued_qty else Decimal(line.qty)
                if rc.received_qty > ceiling:
                    raise ValidationError(
                        f"Line {rc.line_id}: received qty {rc.received_qty} exceeds {ceiling}",
                        line_id=rc.line_id,
                    )

        reference = StockReference(
            movement_type=MovementType.replacement_in,
            reference_type="STORE_REPLACEMENT",
            reference_no=repl.repl_no,
            created_by=received_by,
        )
        for rc in payload.lines:
            if rc.received_qty > ZERO:
                self.ledger.increment(
                    store_id,
                    lines_by_id[rc.line_id].item_id,
                    rc.received_qty,
                    resort_id=repl.resort_id,
                    reference=reference,
                )

        for rc in payload.lines:
            line = lines_by_id[rc.line_id]
            line.received_qty = rc.received_qty
            if rc.remark is not None:
                line.remark = rc.remark

        repl.status = ReplacementStatus.closed
        repl.closed_at = datetime.utcnow()
        self.db.flush()
        logger.info("replacement %s closed, received into store %s", repl.repl_no, store_id)
        return repl

    def _lines_by_id(self, repl: StoreReplacement, wanted: list[str]) -> dict[str, StoreReplacementLine]:
        lines_by_id = {ln.line_id: ln for ln in repl.lines}
        unknown = [line_id for line_id in wanted if line_id not in lines_by_id]
        if unknown:
            raise ValidationError(f"Unknown replacement line(s): {', '.join(unknown)}")
        if len(set(wanted)) != len(wanted):
            raise ValidationError("Duplicate replacement line in request")
        return lines_by_id
