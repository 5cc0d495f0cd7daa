from decimal import Decimal

import pytest

from resort_ledger.app.db.models.core_types import MovementType, ReplacementStatus, RequisitionType
from resort_ledger.app.db.models.models_v1 import StoreReplacement
from resort_ledger.app.schemas.procurement import GRNCreate, GRNLineIn, RequisitionCreate, RequisitionLineIn
from resort_ledger.app.schemas.replacement import (
    IssueLineIn,
    IssueToVendor,
    ReceiptLineIn,
    ReplacementCreate,
    ReplacementLineIn,
    ReplacementReceipt,
)
from resort_ledger.services.exceptions import InsufficientStock, StateConflict, ValidationError
from resort_ledger.services.replacement import ReplacementWorkflow

RESORT = "R1"
STORE = "S-MAIN"
VENDOR = "V-GLASSCO"


def _create_payload(*lines) -> ReplacementCreate:
    return ReplacementCreate(
        resort_id=RESORT,
        store_id=STORE,
        lines=[ReplacementLineIn(item_id=item, qty=Decimal(str(qty))) for item, qty in lines],
    )


def test_create_deducts_and_numbers_lines(replacement_workflow, ledger, stock, db_session):
    stock(STORE, "GLASS", 10)
    stock(STORE, "PLATE", 4)

    repl = replacement_workflow.create(_create_payload(("GLASS", 6), ("PLATE", 4)), created_by="u1")
    db_session.commit()

    assert repl.status == ReplacementStatus.open
    assert repl.repl_no.startswith("REPL-")
    assert [ln.line_id for ln in repl.lines] == ["L1", "L2"]
    assert ledger.get(STORE, "GLASS") == 4
    assert ledger.get(STORE, "PLATE") == 0
    assert {m.movement_type for m in ledger.list_movements(reference_no=repl.repl_no)} == {
        MovementType.replacement_out
    }


def test_create_insufficient_persists_nothing(replacement_workflow, ledger, stock, db_session):
    stock(STORE, "GLASS", 10)

    with pytest.raises(InsufficientStock):
        replacement_workflow.create(_create_payload(("GLASS", 6), ("PLATE", 1)))
    db_session.rollback()

    assert ledger.get(STORE, "GLASS") == 10
    assert db_session.query(StoreReplacement).count() == 0


@pytest.mark.parametrize(
    "overrides",
    [{"resort_id": None}, {"store_id": None}, {"lines": []}],
)
def test_create_validation(replacement_workflow, overrides):
    with pytest.raises(ValidationError):
        replacement_workflow.create(_create_payload(("GLASS", 1)).model_copy(update=overrides))


def test_issue_to_vendor_has_no_stock_effect(replacement_workflow, ledger, stock, db_session):
    stock(STORE, "GLASS", 10)
    repl = replacement_workflow.create(_create_payload(("GLASS", 6)))
    db_session.commit()

    repl = replacement_workflow.issue_to_vendor(
        repl.id,
        IssueToVendor(vendor_id=VENDOR, lines=[IssueLineIn(line_id="L1", issued_qty=Decimal("5"), remark="1 cassé")]),
    )
    db_session.commit()

    assert repl.status == ReplacementStatus.sent_to_vendor
    assert repl.vendor_id == VENDOR
    assert repl.lines[0].issued_qty == 5
    assert repl.lines[0].remark == "1 cassé"
    assert ledger.get(STORE, "GLASS") == 4


def test_issue_to_vendor_validation(replacement_workflow, stock, db_session):
    stock(STORE, "GLASS", 10)
    repl = replacement_workflow.create(_create_payload(("GLASS", 1)))
    db_session.commit()

    with pytest.raises(ValidationError):
        replacement_workflow.issue_to_vendor(repl.id, IssueToVendor(vendor_id=None))
    with pytest.raises(ValidationError):
        replacement_workflow.issue_to_vendor(
            repl.id, IssueToVendor(vendor_id=VENDOR, lines=[IssueLineIn(line_id="L9", issued_qty=Decimal("1"))])
        )

    assert replacement_workflow.get(repl.id).status == ReplacementStatus.open


def test_receive_requires_sent_to_vendor(replacement_workflow, stock, db_session):
    stock(STORE, "GLASS", 10)
    repl = replacement_workflow.create(_create_payload(("GLASS", 1)))
    db_session.commit()

    with pytest.raises(StateConflict):
        replacement_workflow.receive_grn(repl.id, ReplacementReceipt(lines=[]))


def test_closed_replacement_is_terminal(replacement_workflow, stock, db_session):
    stock(STORE, "GLASS", 10)
    repl = replacement_workflow.create(_create_payload(("GLASS", 2)))
    replacement_workflow.issue_to_vendor(repl.id, IssueToVendor(vendor_id=VENDOR))
    replacement_workflow.receive_grn(
        repl.id, ReplacementReceipt(lines=[ReceiptLineIn(line_id="L1", received_qty=Decimal("2"))])
    )
    db_session.commit()

    with pytest.raises(StateConflict):
        replacement_workflow.issue_to_vendor(repl.id, IssueToVendor(vendor_id=VENDOR))
    with pytest.raises(StateConflict):
        replacement_workflow.receive_grn(repl.id, ReplacementReceipt())

    assert replacement_workflow.get(repl.id).status == ReplacementStatus.closed


def test_receipt_into_other_store(replacement_workflow, ledger, stock, db_session):
    stock(STORE, "GLASS", 3)
    repl = replacement_workflow.create(_create_payload(("GLASS", 3)))
    replacement_workflow.issue_to_vendor(repl.id, IssueToVendor(vendor_id=VENDOR))
    replacement_workflow.receive_grn(
        repl.id,
        ReplacementReceipt(store_id="S-BAR", lines=[ReceiptLineIn(line_id="L1", received_qty=Decimal("3"))]),
    )
    db_session.commit()

    assert ledger.get(STORE, "GLASS") == 0
    assert ledger.get("S-BAR", "GLASS") == 3


def test_receipt_cap_when_enabled(db_session, ledger, stock):
    workflow = ReplacementWorkflow(db_session, ledger=ledger, cap_receipt_to_issued=True)
    stock(STORE, "GLASS", 10)
    repl = workflow.create(_create_payload(("GLASS", 4)))
    workflow.issue_to_vendor(
        repl.id, IssueToVendor(vendor_id=VENDOR, lines=[IssueLineIn(line_id="L1", issued_qty=Decimal("3"))])
    )
    db_session.commit()

    with pytest.raises(ValidationError):
        workflow.receive_grn(repl.id, ReplacementReceipt(lines=[ReceiptLineIn(line_id="L1", received_qty=Decimal("4"))]))
    db_session.rollback()

    assert ledger.get(STORE, "GLASS") == 6
    assert workflow.get(repl.id).status == ReplacementStatus.sent_to_vendor


def test_end_to_end_under_receipt(replacement_workflow, procurement_workflow, ledger, db_session):
    """
    GIVEN stock(S, X) = 0
    1. replacement qty=10          -> InsufficientStock, rien de créé
    2. GRN fournisseur de 10       -> stock = 10
    3. replacement qty=10          -> stock = 0
    4. issue_to_vendor(10)         -> SENT_TO_VENDOR, stock = 0
    5. receive_grn(8)              -> CLOSED, stock = 8 (sous-réception acceptée)
    """
    # ---------- 1 ----------
    with pytest.raises(InsufficientStock):
        replacement_workflow.create(_create_payload(("X", 10)))
    db_session.rollback()
    assert db_session.query(StoreReplacement).count() == 0

    # ---------- 2 ----------
    req = procurement_workflow.create_requisition(
        RequisitionCreate(
            type=RequisitionType.vendor,
            resort_id=RESORT,
            vendor_id=VENDOR,
            store_id=STORE,
            lines=[RequisitionLineIn(item_id="X", qty=Decimal("10"))],
        )
    )
    procurement_workflow.approve(req.id)
    procurement_workflow.create_grn(
        GRNCreate(lines=[GRNLineIn(item_id="X", received_qty=Decimal("10"))]),
        requisition_id=req.id,
    )
    db_session.commit()
    assert ledger.get(STORE, "X") == 10

    # ---------- 3 ----------
    repl = replacement_workflow.create(_create_payload(("X", 10)))
    db_session.commit()
    assert ledger.get(STORE, "X") == 0

    # ---------- 4 ----------
    repl = replacement_workflow.issue_to_vendor(
        repl.id, IssueToVendor(vendor_id=VENDOR, lines=[IssueLineIn(line_id="L1", issued_qty=Decimal("10"))])
    )
    db_session.commit()
    assert repl.status == ReplacementStatus.sent_to_vendor
    assert ledger.get(STORE, "X") == 0

    # ---------- 5 ----------
    repl = replacement_workflow.receive_grn(
        repl.id,
        ReplacementReceipt(store_id=STORE, lines=[ReceiptLineIn(line_id="L1", received_qty=Decimal("8"))]),
    )
    db_session.commit()
    assert repl.status == ReplacementStatus.closed
    assert repl.lines[0].received_qty == 8
    assert ledger.get(STORE, "X") == 8
