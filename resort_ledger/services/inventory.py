"""
Stock ledger.

Seule autorité sur la quantité en stock par (store, item). Aucun autre
module ne touche `StockEntry.qty` directement : consommation, replacement et
GRN passent tous par ici.

Règles :
    - qty >= 0 en permanence (vérifié AVANT toute écriture, contrainte DB en filet)
    - decrement_batch = tout ou rien
    - verrouillage SQL (FOR UPDATE) dans un ordre fixe (tri lexicographique
      des clés)
    - le ledger flush mais ne commit jamais : la transaction appartient à l'appelant
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Iterator

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session

from resort_ledger.app.db.models.core_types import MovementType
from resort_ledger.app.db.models.models_v1 import StockEntry, StockMovement
from resort_ledger.services.exceptions import InsufficientStock, StorageFault, ValidationError

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
# échelle des colonnes de quantité
QTY_QUANTUM = Decimal("0.001")

# Dialectes qui savent faire INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

StockKey = tuple[str, str]


@dataclass(frozen=True)
class StockLine:
    store_id: str
    item_id: str
    qty: Decimal


@dataclass(frozen=True)
class StockReference:
    """D'où vient le mouvement (pour le journal)."""

    movement_type: MovementType = MovementType.adjustment
    reference_type: str | None = None
    reference_no: str | None = None
    created_by: str | None = None


def to_qty(value, *, field: str = "qty") -> Decimal:
    """Decimal fini, arrondi à l'échelle de la colonne Numeric(14, 3)."""
    if isinstance(value, Decimal):
        qty = value
    else:
        try:
            qty = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError(f'"{field}" must be a number', field=field)
    if not qty.is_finite():
        raise ValidationError(f'"{field}" must be a finite number', field=field)
    try:
        return qty.quantize(QTY_QUANTUM, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f'"{field}" is out of range', field=field)


def _positive(value, field: str = "qty") -> Decimal:
    qty = to_qty(value, field=field)
    # 0.0004 arrondit à 0 : refusé comme 0
    if qty <= ZERO:
        raise ValidationError(f'"{field}" must be a positive number', field=field)
    return qty


@contextmanager
def storage_guard(operation: str) -> Iterator[None]:
    """Traduit les pannes du store (connexion, lock timeout, deadlock) en StorageFault."""
    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        logger.error("storage fault during %s", operation, exc_info=True)
        raise StorageFault(f"Storage unavailable during {operation}") from exc


class StockLedger:
    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- LECTURE ----------
    def get(self, store_id: str, item_id: str) -> Decimal:
        """Quantité en stock ; 0 si aucune entrée (jamais une erreur)."""
        with storage_guard("stock read"):
            qty = self.db.execute(
                select(StockEntry.qty)
                .where(StockEntry.store_id == store_id)
                .where(StockEntry.item_id == item_id)
            ).scalar_one_or_none()
        return ZERO if qty is None else Decimal(qty)

    def list_entries(
        self,
        *,
        store_id: str | None = None,
        item_id: str | None = None,
        resort_id: str | None = None,
    ) -> list[StockEntry]:
        stmt = select(StockEntry).order_by(StockEntry.store_id, StockEntry.item_id)
        if store_id is not None:
            stmt = stmt.where(StockEntry.store_id == store_id)
        if item_id is not None:
            stmt = stmt.where(StockEntry.item_id == item_id)
        if resort_id is not None:
            stmt = stmt.where(StockEntry.resort_id == resort_id)

        with storage_guard("stock listing"):
            return list(self.db.execute(stmt.execution_options(populate_existing=True)).scalars().all())

    def list_movements(
        self,
        *,
        store_id: str | None = None,
        item_id: str | None = None,
        reference_no: str | None = None,
        limit: int = 200,
    ) -> list[StockMovement]:
        stmt = select(StockMovement).order_by(StockMovement.id.desc()).limit(limit)
        if store_id is not None:
            stmt = stmt.where(StockMovement.store_id == store_id)
        if item_id is not None:
            stmt = stmt.where(StockMovement.item_id == item_id)
        if reference_no is not None:
            stmt = stmt.where(StockMovement.reference_no == reference_no)

        with storage_guard("movement listing"):
            return list(self.db.execute(stmt).scalars().all())

    # ---------- ENTRÉE ----------
    def increment(
        self,
        store_id: str,
        item_id: str,
        qty,
        *,
        resort_id: str | None = None,
        reference: StockReference | None = None,
    ) -> Decimal:
        """
        Upsert atomique : crée l'entrée si absente, sinon qty = qty + :qty.
        Pas de borne haute, réussit toujours (hors panne du store).
        """
        qty = _positive(qty)
        reference = reference or StockReference()
        now = datetime.utcnow()

        with storage_guard("stock increment"):
            dialect = self.db.get_bind().dialect.name
            insert = _UPSERT_INSERTS.get(dialect)

            if insert is not None:
                stmt = insert(StockEntry).values(
                    store_id=store_id,
                    item_id=item_id,
                    resort_id=resort_id,
                    qty=qty,
                    updated_at=now,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[StockEntry.store_id, StockEntry.item_id],
                    set_={
                        "qty": StockEntry.qty + qty,
                        "updated_at": now,
                        "resort_id": stmt.excluded.resort_id if resort_id is not None else StockEntry.resort_id,
                    },
                )
                self.db.execute(stmt)
            else:
                entry = self._lock_entry(store_id, item_id)
                if entry is None:
                    entry = StockEntry(store_id=store_id, item_id=item_id, resort_id=resort_id, qty=ZERO)
                    self.db.add(entry)
                entry.qty = Decimal(entry.qty) + qty
                entry.updated_at = now

            self._journal(store_id, item_id, qty, reference, now)
            self.db.flush()

        new_qty = self.get(store_id, item_id)
        logger.info(
            "stock +%s store=%s item=%s -> %s (%s %s)",
            qty, store_id, item_id, new_qty, reference.reference_type, reference.reference_no,
        )
        return new_qty

    # ---------- SORTIE ----------
    def decrement(
        self,
        store_id: str,
        item_id: str,
        qty,
        *,
        reference: StockReference | None = None,
    ) -> Decimal:
        result = self.decrement_batch([StockLine(store_id, item_id, qty)], reference=reference)
        return result[(store_id, item_id)]

    def decrement_batch(
        self,
        lines: Iterable[StockLine],
        *,
        reference: StockReference | None = None,
    ) -> dict[StockKey, Decimal]:
        """
        Applique N décréments comme une seule unité.

        1. agrège par (store, item) : deux lignes du même item comptent ensemble
        2. verrouille les lignes dans l'ordre trié des clés
        3. valide TOUT
        4. écrit seulement si tout passe

        Si une seule clé est insuffisante : InsufficientStock, rien n'est écrit.
        Retourne les nouvelles quantités par clé.
        """
        reference = reference or StockReference()

        totals: dict[StockKey, Decimal] = {}
        for ln in lines:
            key = (ln.store_id, ln.item_id)
            totals[key] = totals.get(key, ZERO) + _positive(ln.qty)

        if not totals:
            return {}

        keys = sorted(totals)
        now = datetime.utcnow()

        with storage_guard("stock decrement"):
            entries: dict[StockKey, StockEntry | None] = {key: self._lock_entry(*key) for key in keys}

            # ---------- VALIDATION (aucune écriture) ----------
            for key in keys:
                entry = entries[key]
                available = ZERO if entry is None else Decimal(entry.qty)
                if available < totals[key]:
                    logger.warning(
                        "insufficient stock store=%s item=%s requested=%s available=%s (%s %s)",
                        key[0], key[1], totals[key], available, reference.reference_type, reference.reference_no,
                    )
                    raise InsufficientStock(key[0], key[1], requested=totals[key], available=available)

            # ---------- ÉCRITURE ----------
            result: dict[StockKey, Decimal] = {}
            for key in keys:
                entry = entries[key]
                entry.qty = Decimal(entry.qty) - totals[key]
                entry.updated_at = now
                result[key] = entry.qty
                self._journal(key[0], key[1], totals[key], reference, now)

            self.db.flush()

        for key in keys:
            logger.info(
                "stock -%s store=%s item=%s -> %s (%s %s)",
                totals[key], key[0], key[1], result[key], reference.reference_type, reference.reference_no,
            )
        return result

    # ---------- Helpers ----------
    def _lock_entry(self, store_id: str, item_id: str) -> StockEntry | None:
        return (
            self.db.execute(
                select(StockEntry)
                .where(StockEntry.store_id == store_id)
                .where(StockEntry.item_id == item_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            .scalar_one_or_none()
        )

    def _journal(
        self,
        store_id: str,
        item_id: str,
        qty: Decimal,
        reference: StockReference,
        happened_at: datetime,
    ) -> None:
        self.db.add(
            StockMovement(
                store_id=store_id,
                item_id=item_id,
                movement_type=reference.movement_type,
                quantity=qty,
                reference_type=reference.reference_type,
                reference_no=reference.reference_no,
                created_by=reference.created_by,
                happened_at=happened_at,
            )
        )
