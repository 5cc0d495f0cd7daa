"""
Règles de transfert entre stores.

Politique :
    - aucune règle is_allowed=true pour (resort, from_store) -> tout est permis
    - au moins une -> liste blanche : seuls les to_store listés passent

Le filtre resort est exact : resort donné -> règles de ce resort ;
resort absent -> règles globales (resort_id NULL).
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from resort_ledger.app.db.models.models_v1 import StoreTransferRule
from resort_ledger.app.schemas.transfer_rule import TransferRuleCreate, TransferRuleUpdate
from resort_ledger.services.exceptions import NotFound, TransferNotAllowed, ValidationError
from resort_ledger.services.inventory import storage_guard

logger = logging.getLogger(__name__)


def _resort_filter(stmt, resort_id: str | None):
    if resort_id:
        return stmt.where(StoreTransferRule.resort_id == resort_id)
    return stmt.where(StoreTransferRule.resort_id.is_(None))


class TransferRuleGate:
    def __init__(self, db: Session) -> None:
        self.db = db

    def is_allowed(self, resort_id: str | None, from_store: str | None, to_store: str | None) -> bool:
        # documents partiels / historiques
        if not from_store or not to_store:
            return True

        stmt = (
            select(StoreTransferRule.to_store)
            .where(StoreTransferRule.from_store == from_store)
            .where(StoreTransferRule.is_allowed.is_(True))
        )
        stmt = _resort_filter(stmt, resort_id)

        with storage_guard("transfer rule lookup"):
            allowed_targets = set(self.db.execute(stmt).scalars().all())

        if not allowed_targets:
            return True
        return to_store in allowed_targets

    def ensure_allowed(
        self,
        resort_id: str | None,
        from_store: str | None,
        to_store: str | None,
        *,
        message: str | None = None,
    ) -> None:
        if self.is_allowed(resort_id, from_store, to_store):
            return
        logger.warning("transfer denied resort=%s %s -> %s", resort_id, from_store, to_store)
        if message:
            raise TransferNotAllowed(resort_id, from_store, to_store, message=message)
        raise TransferNotAllowed(resort_id, from_store, to_store)


# ---------- Administration ----------
def list_rules(db: Session, *, resort_id: str | None = None, from_store: str | None = None) -> list[StoreTransferRule]:
    stmt = select(StoreTransferRule).order_by(StoreTransferRule.from_store, StoreTransferRule.to_store)
    if resort_id:
        stmt = stmt.where(StoreTransferRule.resort_id == resort_id)
    if from_store:
        stmt = stmt.where(StoreTransferRule.from_store == from_store)
    return list(db.execute(stmt).scalars().all())


def get_rule(db: Session, rule_id: int) -> StoreTransferRule:
    rule = db.get(StoreTransferRule, rule_id)
    if not rule:
        raise NotFound("StoreTransferRule", rule_id)
    return rule


def create_rule(db: Session, payload: TransferRuleCreate) -> tuple[StoreTransferRule, bool]:
    """
    Crée la règle, ou met à jour is_allowed si (resort, from, to) existe déjà.
    Retourne (rule, created).
    """
    if not payload.from_store or not payload.to_store:
        raise ValidationError("fromStore and toStore are required")
    if payload.from_store == payload.to_store:
        raise ValidationError("fromStore and toStore cannot be same")

    is_allowed = True if payload.is_allowed is None else payload.is_allowed

    stmt = (
        select(StoreTransferRule)
        .where(StoreTransferRule.from_store == payload.from_store)
        .where(StoreTransferRule.to_store == payload.to_store)
    )
    existing = db.execute(_resort_filter(stmt, payload.resort_id)).scalar_one_or_none()
    if existing:
        existing.is_allowed = is_allowed
        db.flush()
        return existing, False

    rule = StoreTransferRule(
        resort_id=payload.resort_id or None,
        from_store=payload.from_store,
        to_store=payload.to_store,
        is_allowed=is_allowed,
    )
    db.add(rule)
    db.flush()
    logger.info("transfer rule %s: %s -> %s allowed=%s", rule.resort_id, rule.from_store, rule.to_store, is_allowed)
    return rule, True


def update_rule(db: Session, rule_id: int, payload: TransferRuleUpdate) -> StoreTransferRule:
    rule = get_rule(db, rule_id)
    fields = payload.model_dump(exclude_unset=True)

    from_store = fields.get("from_store") or rule.from_store
    to_store = fields.get("to_store") or rule.to_store
    if from_store == to_store:
        raise ValidationError("fromStore and toStore cannot be same")

    if fields.get("is_allowed") is not None:
        rule.is_allowed = fields["is_allowed"]
    if "resort_id" in fields:
        rule.resort_id = fields["resort_id"] or None
    rule.from_store = from_store
    rule.to_store = to_store

    db.flush()
    return rule


def delete_rule(db: Session, rule_id: int) -> None:
    rule = get_rule(db, rule_id)
    db.delete(rule)
    db.flush()
