"""
Exceptions typées du ledger.

Chaque erreur porte un `code` stable (lisible machine) et un `status_code`
HTTP par convention. Les erreurs métier (stock insuffisant, transfert refusé,
conflit d'état) ne sont jamais rejouées automatiquement ; seul StorageFault
est transitoire et peut être retenté par l'appelant.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class LedgerError(Exception):
    code = "LEDGER_ERROR"
    status_code = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "detail": self.message}
        payload.update({k: v for k, v in self.details.items() if v is not None})
        return payload


class ValidationError(LedgerError):
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFound(LedgerError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} not found", entity=entity, entity_id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class InsufficientStock(LedgerError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, store_id: str, item_id: str, requested: Decimal, available: Decimal) -> None:
        super().__init__(
            f"Insufficient stock for item {item_id} in store {store_id} "
            f"(requested={requested}, available={available})",
            store_id=store_id,
            item_id=item_id,
            requested=str(requested),
            available=str(available),
        )
        self.store_id = store_id
        self.item_id = item_id
        self.requested = requested
        self.available = available


class TransferNotAllowed(LedgerError):
    code = "TRANSFER_NOT_ALLOWED"
    status_code = 409

    def __init__(
        self,
        resort_id: str | None,
        from_store: str,
        to_store: str,
        message: str = "Store transfer not allowed as per Store Transfer Rules. Please contact Super Admin.",
    ) -> None:
        super().__init__(message, resort_id=resort_id, from_store=from_store, to_store=to_store)
        self.resort_id = resort_id
        self.from_store = from_store
        self.to_store = to_store


class StateConflict(LedgerError):
    code = "STATE_CONFLICT"
    status_code = 409

    def __init__(self, entity: str, entity_id: Any, current: str, attempted: str) -> None:
        super().__init__(
            f"{entity} {entity_id} cannot go from {current} to {attempted}",
            entity=entity,
            entity_id=entity_id,
            current=current,
            attempted=attempted,
        )
        self.current = current
        self.attempted = attempted


class StorageFault(LedgerError):
    code = "STORAGE_FAULT"
    status_code = 503
