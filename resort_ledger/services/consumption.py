"""
Consumption workflow : DRAFT -> POSTED (sens unique).

    LUMPSUM                        : lignes item+qty -> decrement_batch direct
    RECIPE_LUMPSUM / RECIPE_PORTION: lignes recette -> RecipeExpander, on
                                     aplatit tout puis UN seul decrement_batch
    REPLACEMENT                    : contrôle TransferRuleGate, aucun effet stock
                                     (intention seulement ; le vrai mouvement
                                     passe par le ReplacementWorkflow)

Update et delete ne touchent jamais au stock déjà mouvementé.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from resort_ledger.app.db.models.core_types import (
    RECIPE_CONSUMPTION_TYPES,
    ConsumptionStatus,
    ConsumptionType,
    MovementType,
)
from resort_ledger.app.db.models.models_v1 import Consumption, ConsumptionLine
from resort_ledger.app.schemas.consumption import (
    ConsumptionCreate,
    ConsumptionUpdate,
    ItemLineIn,
    RecipeLineIn,
)
from resort_ledger.services.exceptions import NotFound, StateConflict, ValidationError
from resort_ledger.services.inventory import ZERO, StockLedger, StockLine, StockReference, storage_guard
from resort_ledger.services.numbering import CONSUMPTION_PREFIX, make_doc_no
from resort_ledger.services.recipes import RecipeExpander
from resort_ledger.services.transfer_rules import TransferRuleGate

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "type",
    "resort_id",
    "department_id",
    "outlet",
    "consumption_date",
    "reference_no",
    "notes",
    "event_name",
    "menu_name",
    "pax",
    "store_from",
    "store_to",
    "lines",
)

# identité des lignes figée une fois POSTED
DRAFT_ONLY_FIELDS = {"type", "lines"}


def _build_lines(consumption_type: ConsumptionType, lines: list[ItemLineIn | RecipeLineIn]) -> list[ConsumptionLine]:
    wants_recipe = consumption_type in RECIPE_CONSUMPTION_TYPES
    built: list[ConsumptionLine] = []

    for pos, ln in enumerate(lines):
        if wants_recipe and not isinstance(ln, RecipeLineIn):
            raise ValidationError(f'Line {pos}: "recipe_id" is required for {consumption_type.value}')
        if not wants_recipe and not isinstance(ln, ItemLineIn):
            raise ValidationError(f'Line {pos}: "item_id" is required for {consumption_type.value}')

        if isinstance(ln, RecipeLineIn):
            built.append(ConsumptionLine(position=pos, recipe_id=ln.recipe_id, qty=ln.qty, remark=ln.remark))
        else:
            built.append(
                ConsumptionLine(position=pos, item_id=ln.item_id, qty=ln.qty, uom=ln.uom, remark=ln.remark)
            )
    return built


def _validate_header(
    consumption_type: ConsumptionType | None,
    resort_id: str | None,
    store_from: str | None,
    store_to: str | None,
) -> None:
    if not consumption_type:
        raise ValidationError("type is required")
    if not resort_id:
        raise ValidationError("resort is required")

    if consumption_type in RECIPE_CONSUMPTION_TYPES and not store_from:
        raise ValidationError("storeFrom is required for recipe consumption")
    if consumption_type == ConsumptionType.lumpsum and not store_from:
        raise ValidationError("storeFrom is required for lumpsum consumption")
    if consumption_type == ConsumptionType.replacement:
        if not store_from or not store_to:
            raise ValidationError("storeFrom and storeTo are required for replacement")
        if store_from == store_to:
            raise ValidationError("storeFrom and storeTo cannot be same")


class ConsumptionWorkflow:
    def __init__(
        self,
        db: Session,
        *,
        ledger: StockLedger,
        expander: RecipeExpander,
        gate: TransferRuleGate,
    ) -> None:
        self.db = db
        self.ledger = ledger
        self.expander = expander
        self.gate = gate

    # ---------- LECTURE ----------
    def list(
        self,
        *,
        type: ConsumptionType | None = None,
        resort_id: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[Consumption]:
        stmt = (
            select(Consumption)
            .options(selectinload(Consumption.lines))
            .order_by(Consumption.consumption_date.desc(), Consumption.id.desc())
        )
        if type is not None:
            stmt = stmt.where(Consumption.type == type)
        if resort_id and resort_id != "ALL":
            stmt = stmt.where(Consumption.resort_id == resort_id)
        if date_from is not None:
            stmt = stmt.where(Consumption.consumption_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Consumption.consumption_date <= date_to)
        return list(self.db.execute(stmt).scalars().all())

    def get(self, consumption_id: int) -> Consumption:
        doc = self.db.get(Consumption, consumption_id)
        if not doc:
            raise NotFound("Consumption", consumption_id)
        return doc

    def _lock(self, consumption_id: int) -> Consumption:
        with storage_guard("consumption lock"):
            doc = self.db.execute(
                select(Consumption)
                .where(Consumption.id == consumption_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if not doc:
            raise NotFound("Consumption", consumption_id)
        return doc

    # ---------- CREATE ----------
    def create(self, payload: ConsumptionCreate, *, created_by: str | None = None) -> Consumption:
        _validate_header(payload.type, payload.resort_id, payload.store_from, payload.store_to)
        if not payload.lines:
            raise ValidationError("At least one line item is required")

        if payload.type == ConsumptionType.replacement:
            self.gate.ensure_allowed(payload.resort_id, payload.store_from, payload.store_to)

        doc = Consumption(
            consumption_no=make_doc_no(CONSUMPTION_PREFIX),
            type=payload.type,
            status=ConsumptionStatus.draft,
            resort_id=payload.resort_id,
            department_id=payload.department_id,
            outlet=payload.outlet,
            store_from=payload.store_from,
            store_to=payload.store_to,
            consumption_date=payload.consumption_date or date.today(),
            reference_no=payload.reference_no,
            notes=payload.notes,
            event_name=payload.event_name,
            menu_name=payload.menu_name,
            pax=payload.pax,
            created_by=created_by,
        )
        doc.lines = _build_lines(payload.type, payload.lines)

        # Stock d'abord : si InsufficientStock, le document n'est jamais ajouté à la session
        if payload.status == ConsumptionStatus.posted:
            self._apply_stock(doc, created_by)
            doc.status = ConsumptionStatus.posted
            doc.posted_at = datetime.utcnow()

        self.db.add(doc)
        self.db.flush()
        logger.info("consumption %s created (%s, %s)", doc.consumption_no, doc.type.value, doc.status.value)
        return doc

    def post(self, consumption_id: int, *, posted_by: str | None = None) -> Consumption:
        doc = self._lock(consumption_id)
        if doc.status != ConsumptionStatus.draft:
            raise StateConflict("Consumption", consumption_id, doc.status.value, ConsumptionStatus.posted.value)

        _validate_header(doc.type, doc.resort_id, doc.store_from, doc.store_to)
        if not doc.lines:
            raise ValidationError("At least one line item is required")
        if doc.type == ConsumptionType.replacement:
            self.gate.ensure_allowed(doc.resort_id, doc.store_from, doc.store_to)

        self._apply_stock(doc, posted_by)
        doc.status = ConsumptionStatus.posted
        doc.posted_at = datetime.utcnow()
        self.db.flush()
        logger.info("consumption %s posted", doc.consumption_no)
        return doc

    # ---------- UPDATE ----------
    def update(self, consumption_id: int, payload: ConsumptionUpdate) -> Consumption:
        """
        Correction de métadonnées : whitelist, pas de re-posting, pas de
        reversal. Pour un REPLACEMENT, la règle de transfert est re-vérifiée
        sur les valeurs finales AVANT toute écriture.
        """
        doc = self._lock(consumption_id)
        fields = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if k in UPDATABLE_FIELDS}

        if doc.status == ConsumptionStatus.posted:
            locked = DRAFT_ONLY_FIELDS.intersection(fields)
            if locked:
                raise StateConflict("Consumption", consumption_id, doc.status.value, f"EDIT_{sorted(locked)[0].upper()}")

        new_type = fields.get("type", doc.type)
        resort_id = fields.get("resort_id", doc.resort_id)
        store_from = fields.get("store_from", doc.store_from)
        store_to = fields.get("store_to", doc.store_to)

        if not new_type:
            raise ValidationError("type is required")
        if not resort_id:
            raise ValidationError("resort is required")

        new_lines = None
        if "lines" in fields:
            if not payload.lines:
                raise ValidationError("At least one line item is required")
            new_lines = _build_lines(new_type, payload.lines)
        elif new_type != doc.type:
            # les lignes existantes doivent rester compatibles avec le nouveau type
            wants_recipe = new_type in RECIPE_CONSUMPTION_TYPES
            if any((ln.recipe_id is not None) != wants_recipe for ln in doc.lines):
                raise ValidationError(f"Existing lines do not match type {new_type.value}")

        if new_type == ConsumptionType.replacement and store_from and store_to:
            if store_from == store_to:
                raise ValidationError("storeFrom and storeTo cannot be same")
            self.gate.ensure_allowed(
                resort_id,
                store_from,
                store_to,
                message="Updated store transfer not allowed as per Store Transfer Rules.",
            )

        for field, value in fields.items():
            if field == "lines":
                continue
            setattr(doc, field, value)
        if new_lines is not None:
            doc.lines = new_lines

        self.db.flush()
        return doc

    # ---------- DELETE ----------
    def delete(self, consumption_id: int) -> None:
        """Supprime le document. Le stock déjà déduit n'est PAS réintégré."""
        doc = self._lock(consumption_id)
        logger.info("consumption %s deleted (no stock reversal)", doc.consumption_no)
        self.db.delete(doc)
        self.db.flush()

    # ---------- Helpers ----------
    def _stock_lines(self, doc: Consumption) -> list[StockLine]:
        if doc.type == ConsumptionType.replacement:
            return []

        if doc.type == ConsumptionType.lumpsum:
            return [StockLine(doc.store_from, ln.item_id, Decimal(ln.qty)) for ln in doc.lines]

        stock_lines: list[StockLine] = []
        for ln in doc.lines:
            for deduction in self.expander.expand(ln.recipe_id, ln.qty):
                if deduction.qty > ZERO:
                    stock_lines.append(StockLine(doc.store_from, deduction.item_id, deduction.qty))
        return stock_lines

    def _apply_stock(self, doc: Consumption, created_by: str | None) -> None:
        stock_lines = self._stock_lines(doc)
        if not stock_lines:
            return
        self.ledger.decrement_batch(
            stock_lines,
            reference=StockReference(
                movement_type=MovementType.consumption,
                reference_type="CONSUMPTION",
                reference_no=doc.consumption_no,
                created_by=created_by,
            ),
        )
