import pytest

from resort_ledger.app.schemas.transfer_rule import TransferRuleCreate, TransferRuleUpdate
from resort_ledger.services.exceptions import TransferNotAllowed, ValidationError
from resort_ledger.services.transfer_rules import (
    TransferRuleGate,
    create_rule,
    delete_rule,
    list_rules,
    update_rule,
)

RESORT = "R1"


def _rule(db_session, from_store, to_store, is_allowed=True, resort_id=RESORT):
    rule, _ = create_rule(
        db_session,
        TransferRuleCreate(resort_id=resort_id, from_store=from_store, to_store=to_store, is_allowed=is_allowed),
    )
    db_session.commit()
    return rule


def test_default_open_without_rules(db_session):
    gate = TransferRuleGate(db_session)
    for target in ("T", "U", "V"):
        assert gate.is_allowed(RESORT, "S", target) is True


def test_single_allow_rule_flips_to_allow_list(db_session):
    _rule(db_session, "S", "T")
    gate = TransferRuleGate(db_session)

    assert gate.is_allowed(RESORT, "S", "T") is True
    assert gate.is_allowed(RESORT, "S", "U") is False
    # les autres stores source restent ouverts
    assert gate.is_allowed(RESORT, "OTHER", "U") is True


def test_disallowed_rows_do_not_switch_to_allow_list(db_session):
    _rule(db_session, "S", "T", is_allowed=False)

    assert TransferRuleGate(db_session).is_allowed(RESORT, "S", "U") is True


def test_resort_filter_is_exact(db_session):
    _rule(db_session, "S", "T", resort_id="R2")
    gate = TransferRuleGate(db_session)

    assert gate.is_allowed(RESORT, "S", "U") is True
    assert gate.is_allowed("R2", "S", "U") is False
    # sans resort : seules les règles globales comptent
    assert gate.is_allowed(None, "S", "U") is True


def test_missing_store_passes(db_session):
    _rule(db_session, "S", "T")
    assert TransferRuleGate(db_session).is_allowed(RESORT, "S", None) is True


def test_ensure_allowed_message(db_session):
    _rule(db_session, "S", "T")
    gate = TransferRuleGate(db_session)

    with pytest.raises(TransferNotAllowed) as exc_info:
        gate.ensure_allowed(RESORT, "S", "U")
    assert "contact Super Admin" in str(exc_info.value)

    with pytest.raises(TransferNotAllowed) as exc_info:
        gate.ensure_allowed(RESORT, "S", "U", message="custom")
    assert str(exc_info.value) == "custom"


def test_create_rule_upserts(db_session):
    first, created = create_rule(db_session, TransferRuleCreate(resort_id=RESORT, from_store="S", to_store="T"))
    assert created is True
    assert first.is_allowed is True

    second, created = create_rule(
        db_session, TransferRuleCreate(resort_id=RESORT, from_store="S", to_store="T", is_allowed=False)
    )
    assert created is False
    assert second.id == first.id
    assert second.is_allowed is False
    assert len(list_rules(db_session, resort_id=RESORT)) == 1


@pytest.mark.parametrize(
    "from_store,to_store",
    [(None, "T"), ("S", None), ("S", "S")],
)
def test_create_rule_validation(db_session, from_store, to_store):
    with pytest.raises(ValidationError):
        create_rule(db_session, TransferRuleCreate(resort_id=RESORT, from_store=from_store, to_store=to_store))


def test_update_and_delete_rule(db_session):
    rule = _rule(db_session, "S", "T")

    updated = update_rule(db_session, rule.id, TransferRuleUpdate(to_store="U"))
    assert updated.to_store == "U"
    assert updated.is_allowed is True

    with pytest.raises(ValidationError):
        update_rule(db_session, rule.id, TransferRuleUpdate(to_store="S"))

    delete_rule(db_session, rule.id)
    db_session.commit()
    assert list_rules(db_session) == []
