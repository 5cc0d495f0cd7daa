import os
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from resort_ledger.app.api.deps import get_db
from resort_ledger.app.db.models.models_v1 import Base
from resort_ledger.app.main import app
from resort_ledger.services.consumption import ConsumptionWorkflow
from resort_ledger.services.inventory import StockLedger
from resort_ledger.services.procurement import ProcurementWorkflow
from resort_ledger.services.recipes import RecipeExpander
from resort_ledger.services.replacement import ReplacementWorkflow
from resort_ledger.services.transfer_rules import TransferRuleGate

RESORT = "R1"


@pytest.fixture(scope="function")
def engine():
    """
    Base isolée par test.

    Par défaut SQLite en mémoire (une seule connexion partagée).
    TEST_DATABASE_URL permet de jouer la même suite sur Postgres.
    """
    url = os.getenv("TEST_DATABASE_URL")
    if url:
        eng = create_engine(url, pool_pre_ping=True)
        Base.metadata.drop_all(bind=eng)
    else:
        eng = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture(scope="function")
def db_session(engine) -> Session:
    session = Session(bind=engine, autoflush=False)
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def ledger(db_session) -> StockLedger:
    return StockLedger(db_session)


@pytest.fixture
def consumption_workflow(db_session, ledger) -> ConsumptionWorkflow:
    return ConsumptionWorkflow(
        db_session,
        ledger=ledger,
        expander=RecipeExpander(db_session),
        gate=TransferRuleGate(db_session),
    )


@pytest.fixture
def replacement_workflow(db_session, ledger) -> ReplacementWorkflow:
    return ReplacementWorkflow(db_session, ledger=ledger)


@pytest.fixture
def procurement_workflow(db_session, ledger) -> ProcurementWorkflow:
    return ProcurementWorkflow(db_session, ledger=ledger)


@pytest.fixture
def stock(ledger, db_session):
    """Pose du stock initial : stock(store, item, qty)."""

    def _stock(store_id: str, item_id: str, qty) -> None:
        ledger.increment(store_id, item_id, Decimal(str(qty)), resort_id=RESORT)
        db_session.commit()

    return _stock


@pytest.fixture
def client(engine):
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
