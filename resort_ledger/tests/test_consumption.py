from datetime import date
from decimal import Decimal

import pytest

from resort_ledger.app.db.models.core_types import ConsumptionStatus, ConsumptionType, MovementType
from resort_ledger.app.db.models.models_v1 import Consumption
from resort_ledger.app.schemas.consumption import (
    ConsumptionCreate,
    ConsumptionUpdate,
    ItemLineIn,
    RecipeLineIn,
)
from resort_ledger.app.schemas.recipe import RecipeCreate
from resort_ledger.app.schemas.recipe import RecipeLineIn as RecipeIngredientIn
from resort_ledger.app.schemas.transfer_rule import TransferRuleCreate
from resort_ledger.services.exceptions import (
    InsufficientStock,
    StateConflict,
    TransferNotAllowed,
    ValidationError,
)
from resort_ledger.services.recipes import create_recipe
from resort_ledger.services.transfer_rules import create_rule

RESORT = "R1"
STORE = "S-MAIN"


def _lumpsum(*lines, **kwargs) -> ConsumptionCreate:
    return ConsumptionCreate(
        type=ConsumptionType.lumpsum,
        resort_id=RESORT,
        store_from=STORE,
        lines=[ItemLineIn(item_id=item, qty=Decimal(str(qty))) for item, qty in lines],
        **kwargs,
    )


def _pasta_recipe(db_session):
    recipe = create_recipe(
        db_session,
        RecipeCreate(
            code="PASTA",
            name="Pasta",
            yield_qty=Decimal("10"),
            lines=[
                RecipeIngredientIn(item_id="FLOUR", qty=Decimal("2")),
                RecipeIngredientIn(item_id="EGG", qty=Decimal("4")),
            ],
        ),
    )
    db_session.commit()
    return recipe


# ---------- LUMPSUM ----------
def test_lumpsum_posts_and_deducts(consumption_workflow, ledger, stock, db_session):
    stock(STORE, "RICE", 10)
    stock(STORE, "OIL", 5)

    doc = consumption_workflow.create(_lumpsum(("RICE", 4), ("OIL", 1)), created_by="u1")
    db_session.commit()

    assert doc.status == ConsumptionStatus.posted
    assert doc.consumption_no.startswith("CONS-")
    assert doc.posted_at is not None
    assert ledger.get(STORE, "RICE") == 6
    assert ledger.get(STORE, "OIL") == 4

    movements = ledger.list_movements(reference_no=doc.consumption_no)
    assert {m.item_id for m in movements} == {"RICE", "OIL"}
    assert all(m.movement_type == MovementType.consumption for m in movements)


def test_lumpsum_insufficient_leaves_nothing(consumption_workflow, ledger, stock, db_session):
    """
    GIVEN RICE=10, OIL=1
    WHEN  consommation RICE 4 + OIL 2
    THEN  409 métier, RICE intact, aucun document
    """
    stock(STORE, "RICE", 10)
    stock(STORE, "OIL", 1)

    with pytest.raises(InsufficientStock):
        consumption_workflow.create(_lumpsum(("RICE", 4), ("OIL", 2)))
    db_session.rollback()

    assert ledger.get(STORE, "RICE") == 10
    assert ledger.get(STORE, "OIL") == 1
    assert db_session.query(Consumption).count() == 0


def test_lumpsum_requires_item_lines(consumption_workflow):
    payload = ConsumptionCreate(
        type=ConsumptionType.lumpsum,
        resort_id=RESORT,
        store_from=STORE,
        lines=[RecipeLineIn(recipe_id=1, qty=Decimal("1"))],
    )
    with pytest.raises(ValidationError):
        consumption_workflow.create(payload)


@pytest.mark.parametrize(
    "overrides",
    [
        {"type": None},
        {"resort_id": None},
        {"store_from": None},
        {"lines": []},
    ],
)
def test_create_header_validation(consumption_workflow, overrides):
    payload = _lumpsum(("RICE", 1)).model_copy(update=overrides)
    with pytest.raises(ValidationError):
        consumption_workflow.create(payload)


# ---------- RECIPE ----------
def test_recipe_consumption_flattens_into_one_batch(consumption_workflow, ledger, stock, db_session):
    """2 lignes de la même recette : FLOUR = 2*(5/10) + 2*(15/10) = 4 en un seul batch."""
    recipe = _pasta_recipe(db_session)
    stock(STORE, "FLOUR", 4)
    stock(STORE, "EGG", 8)

    doc = consumption_workflow.create(
        ConsumptionCreate(
            type=ConsumptionType.recipe_portion,
            resort_id=RESORT,
            store_from=STORE,
            lines=[
                RecipeLineIn(recipe_id=recipe.id, qty=Decimal("5")),
                RecipeLineIn(recipe_id=recipe.id, qty=Decimal("15")),
            ],
        )
    )
    db_session.commit()

    assert doc.status == ConsumptionStatus.posted
    assert ledger.get(STORE, "FLOUR") == 0
    assert ledger.get(STORE, "EGG") == 0
    # une écriture agrégée par item
    assert len(ledger.list_movements(reference_no=doc.consumption_no)) == 2


def test_recipe_consumption_fractional_deductions_are_rounded(consumption_workflow, ledger, stock, db_session):
    """yield=3, 1 OLIVE par batch, demande 1 -> 0.333 déduit, 0.667 restant ; PEPPER (0.0003) arrondi à 0, ignoré."""
    recipe = create_recipe(
        db_session,
        RecipeCreate(
            code="TAPENADE",
            name="Tapenade",
            yield_qty=Decimal("3"),
            lines=[
                RecipeIngredientIn(item_id="OLIVE", qty=Decimal("1")),
                RecipeIngredientIn(item_id="PEPPER", qty=Decimal("0.001")),
            ],
        ),
    )
    db_session.commit()
    stock(STORE, "OLIVE", 1)
    stock(STORE, "PEPPER", 1)

    doc = consumption_workflow.create(
        ConsumptionCreate(
            type=ConsumptionType.recipe_portion,
            resort_id=RESORT,
            store_from=STORE,
            lines=[RecipeLineIn(recipe_id=recipe.id, qty=Decimal("1"))],
        )
    )
    db_session.commit()

    assert doc.status == ConsumptionStatus.posted
    assert ledger.get(STORE, "OLIVE") == Decimal("0.667")
    assert ledger.get(STORE, "PEPPER") == 1
    assert [m.item_id for m in ledger.list_movements(reference_no=doc.consumption_no)] == ["OLIVE"]


def test_recipe_consumption_insufficient_ingredient(consumption_workflow, ledger, stock, db_session):
    recipe = _pasta_recipe(db_session)
    stock(STORE, "FLOUR", 100)
    stock(STORE, "EGG", 1)

    with pytest.raises(InsufficientStock) as exc_info:
        consumption_workflow.create(
            ConsumptionCreate(
                type=ConsumptionType.recipe_lumpsum,
                resort_id=RESORT,
                store_from=STORE,
                lines=[RecipeLineIn(recipe_id=recipe.id, qty=Decimal("10"))],
            )
        )
    db_session.rollback()

    assert exc_info.value.item_id == "EGG"
    assert ledger.get(STORE, "FLOUR") == 100


def test_recipe_consumption_skips_missing_recipe(consumption_workflow, ledger, stock, db_session):
    recipe = _pasta_recipe(db_session)
    stock(STORE, "FLOUR", 10)
    stock(STORE, "EGG", 10)

    doc = consumption_workflow.create(
        ConsumptionCreate(
            type=ConsumptionType.recipe_lumpsum,
            resort_id=RESORT,
            store_from=STORE,
            lines=[
                RecipeLineIn(recipe_id=999999, qty=Decimal("10")),
                RecipeLineIn(recipe_id=recipe.id, qty=Decimal("10")),
            ],
        )
    )
    db_session.commit()

    assert doc.status == ConsumptionStatus.posted
    assert len(doc.lines) == 2
    assert ledger.get(STORE, "FLOUR") == 8
    assert ledger.get(STORE, "EGG") == 6


# ---------- REPLACEMENT (intention) ----------
def test_replacement_consumption_checks_rules_without_stock_effect(consumption_workflow, ledger, stock, db_session):
    stock(STORE, "GLASS", 3)
    create_rule(db_session, TransferRuleCreate(resort_id=RESORT, from_store=STORE, to_store="S-BAR"))
    db_session.commit()

    payload = ConsumptionCreate(
        type=ConsumptionType.replacement,
        resort_id=RESORT,
        store_from=STORE,
        store_to="S-POOL",
        lines=[ItemLineIn(item_id="GLASS", qty=Decimal("2"))],
    )
    with pytest.raises(TransferNotAllowed):
        consumption_workflow.create(payload)
    db_session.rollback()

    doc = consumption_workflow.create(payload.model_copy(update={"store_to": "S-BAR"}))
    db_session.commit()

    assert doc.status == ConsumptionStatus.posted
    assert ledger.get(STORE, "GLASS") == 3


def test_replacement_consumption_same_store_rejected(consumption_workflow):
    with pytest.raises(ValidationError):
        consumption_workflow.create(
            ConsumptionCreate(
                type=ConsumptionType.replacement,
                resort_id=RESORT,
                store_from=STORE,
                store_to=STORE,
                lines=[ItemLineIn(item_id="GLASS", qty=Decimal("1"))],
            )
        )


# ---------- DRAFT -> POSTED ----------
def test_draft_then_post(consumption_workflow, ledger, stock, db_session):
    stock(STORE, "RICE", 5)

    doc = consumption_workflow.create(_lumpsum(("RICE", 2), status=ConsumptionStatus.draft))
    db_session.commit()
    assert doc.status == ConsumptionStatus.draft
    assert ledger.get(STORE, "RICE") == 5

    posted = consumption_workflow.post(doc.id, posted_by="u2")
    db_session.commit()
    assert posted.status == ConsumptionStatus.posted
    assert ledger.get(STORE, "RICE") == 3

    with pytest.raises(StateConflict):
        consumption_workflow.post(doc.id)


# ---------- UPDATE / DELETE ----------
def test_update_metadata_never_touches_stock(consumption_workflow, ledger, stock, db_session):
    stock(STORE, "RICE", 5)
    doc = consumption_workflow.create(_lumpsum(("RICE", 2)))
    db_session.commit()

    updated = consumption_workflow.update(
        doc.id,
        ConsumptionUpdate(notes="corrigé", pax=40, consumption_date=date(2026, 1, 2)),
    )
    db_session.commit()

    assert updated.notes == "corrigé"
    assert updated.pax == 40
    assert updated.consumption_date == date(2026, 1, 2)
    assert ledger.get(STORE, "RICE") == 3


def test_update_lines_of_posted_document_conflicts(consumption_workflow, stock, db_session):
    stock(STORE, "RICE", 5)
    doc = consumption_workflow.create(_lumpsum(("RICE", 2)))
    db_session.commit()

    with pytest.raises(StateConflict):
        consumption_workflow.update(doc.id, ConsumptionUpdate(lines=[ItemLineIn(item_id="RICE", qty=Decimal("1"))]))


def test_update_replacement_rechecks_rules(consumption_workflow, db_session):
    doc = consumption_workflow.create(
        ConsumptionCreate(
            type=ConsumptionType.replacement,
            resort_id=RESORT,
            store_from=STORE,
            store_to="S-BAR",
            lines=[ItemLineIn(item_id="GLASS", qty=Decimal("1"))],
        )
    )
    create_rule(db_session, TransferRuleCreate(resort_id=RESORT, from_store=STORE, to_store="S-BAR"))
    db_session.commit()

    with pytest.raises(TransferNotAllowed) as exc_info:
        consumption_workflow.update(doc.id, ConsumptionUpdate(store_to="S-POOL"))
    assert str(exc_info.value).startswith("Updated store transfer not allowed")
    db_session.rollback()

    assert consumption_workflow.get(doc.id).store_to == "S-BAR"


def test_delete_does_not_reverse_stock(consumption_workflow, ledger, stock, db_session):
    stock(STORE, "RICE", 5)
    doc = consumption_workflow.create(_lumpsum(("RICE", 2)))
    db_session.commit()

    consumption_workflow.delete(doc.id)
    db_session.commit()

    assert db_session.get(Consumption, doc.id) is None
    assert ledger.get(STORE, "RICE") == 3


def test_list_filters(consumption_workflow, stock, db_session):
    stock(STORE, "RICE", 10)
    consumption_workflow.create(_lumpsum(("RICE", 1), consumption_date=date(2026, 3, 1)))
    consumption_workflow.create(_lumpsum(("RICE", 1), consumption_date=date(2026, 3, 5)))
    db_session.commit()

    assert len(consumption_workflow.list(resort_id="ALL")) == 2
    assert len(consumption_workflow.list(date_from=date(2026, 3, 2))) == 1
    assert len(consumption_workflow.list(type=ConsumptionType.replacement)) == 0
    assert len(consumption_workflow.list(resort_id="OTHER")) == 0
