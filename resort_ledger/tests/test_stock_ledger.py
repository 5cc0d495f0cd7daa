from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from resort_ledger.app.db.models.core_types import MovementType
from resort_ledger.services.exceptions import InsufficientStock, StorageFault, ValidationError
from resort_ledger.services.inventory import StockLine, StockReference, storage_guard, to_qty

MAIN_STORE = "S-MAIN"


def test_get_missing_entry_is_zero(ledger):
    assert ledger.get(MAIN_STORE, "NEVER-SEEN") == 0


def test_increment_creates_then_accumulates(ledger):
    assert ledger.increment(MAIN_STORE, "RICE", Decimal("4")) == 4
    assert ledger.increment(MAIN_STORE, "RICE", Decimal("2.5")) == Decimal("6.5")
    assert ledger.get(MAIN_STORE, "RICE") == Decimal("6.5")


@pytest.mark.parametrize("bad", [Decimal("0"), Decimal("-1"), "abc"])
def test_increment_rejects_non_positive_qty(ledger, bad):
    with pytest.raises(ValidationError):
        ledger.increment(MAIN_STORE, "RICE", bad)


def test_qty_rounded_to_column_scale():
    assert to_qty("1.2345") == Decimal("1.235")
    assert to_qty(Decimal("0.0004")) == 0
    assert to_qty(2).as_tuple().exponent == -3


def test_increment_below_one_thousandth_rejected(ledger):
    with pytest.raises(ValidationError):
        ledger.increment(MAIN_STORE, "SAFFRON", Decimal("0.0004"))
    assert ledger.get(MAIN_STORE, "SAFFRON") == 0


def test_increment_stores_rounded_qty(ledger):
    assert ledger.increment(MAIN_STORE, "SAFFRON", Decimal("0.0125")) == Decimal("0.013")
    assert ledger.get(MAIN_STORE, "SAFFRON") == Decimal("0.013")


def test_decrement_never_goes_negative(ledger, stock):
    """
    GIVEN 3 unités en stock
    THEN un décrément de 5 échoue et la quantité reste à 3
    """
    stock(MAIN_STORE, "OIL", 3)

    with pytest.raises(InsufficientStock) as exc_info:
        ledger.decrement(MAIN_STORE, "OIL", Decimal("5"))

    assert exc_info.value.requested == 5
    assert exc_info.value.available == 3
    assert ledger.get(MAIN_STORE, "OIL") == 3

    assert ledger.decrement(MAIN_STORE, "OIL", Decimal("3")) == 0
    assert ledger.get(MAIN_STORE, "OIL") == 0


def test_decrement_on_missing_entry_is_insufficient(ledger):
    with pytest.raises(InsufficientStock):
        ledger.decrement(MAIN_STORE, "GHOST", Decimal("1"))


def test_batch_is_all_or_nothing(ledger, stock):
    """
    GIVEN A=10, B=1
    WHEN  batch [(A,5), (B,999999)]
    THEN  InsufficientStock sur B, A reste à 10 (rien n'est écrit)
    """
    stock(MAIN_STORE, "A", 10)
    stock(MAIN_STORE, "B", 1)

    with pytest.raises(InsufficientStock) as exc_info:
        ledger.decrement_batch(
            [
                StockLine(MAIN_STORE, "A", Decimal("5")),
                StockLine(MAIN_STORE, "B", Decimal("999999")),
            ]
        )

    assert exc_info.value.item_id == "B"
    assert ledger.get(MAIN_STORE, "A") == 10
    assert ledger.get(MAIN_STORE, "B") == 1
    # seulement les deux entrées initiales au journal
    assert len(ledger.list_movements(store_id=MAIN_STORE)) == 2


def test_batch_aggregates_duplicate_keys(ledger, stock):
    """Deux lignes du même item comptent ensemble : 4 + 4 > 6 -> refus."""
    stock(MAIN_STORE, "SALT", 6)

    with pytest.raises(InsufficientStock) as exc_info:
        ledger.decrement_batch(
            [
                StockLine(MAIN_STORE, "SALT", Decimal("4")),
                StockLine(MAIN_STORE, "SALT", Decimal("4")),
            ]
        )
    assert exc_info.value.requested == 8
    assert ledger.get(MAIN_STORE, "SALT") == 6

    result = ledger.decrement_batch(
        [
            StockLine(MAIN_STORE, "SALT", Decimal("2")),
            StockLine(MAIN_STORE, "SALT", Decimal("3")),
        ]
    )
    assert result == {(MAIN_STORE, "SALT"): 1}


def test_empty_batch_is_noop(ledger):
    assert ledger.decrement_batch([]) == {}


def test_movements_are_journaled(ledger, stock):
    stock(MAIN_STORE, "FLOUR", 10)
    ledger.decrement(
        MAIN_STORE,
        "FLOUR",
        Decimal("4"),
        reference=StockReference(
            movement_type=MovementType.consumption,
            reference_type="CONSUMPTION",
            reference_no="CONS-TEST",
            created_by="chef",
        ),
    )

    movements = ledger.list_movements(reference_no="CONS-TEST")
    assert len(movements) == 1
    assert movements[0].movement_type == MovementType.consumption
    assert movements[0].quantity == 4
    assert movements[0].created_by == "chef"


def test_storage_errors_become_storage_fault():
    with pytest.raises(StorageFault):
        with storage_guard("unit test"):
            raise OperationalError("SELECT 1", {}, Exception("connection lost"))
