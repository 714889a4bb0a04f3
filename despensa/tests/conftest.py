import os
import pathlib
import sys
import tempfile
from datetime import date

import pytest


REPO_ROOT = pathlib.Path(__file__).resolve().parents[2]
sys.path.append(str(REPO_ROOT))


def pytest_configure():
    if os.getenv("DATABASE_URL") or os.getenv("SQLALCHEMY_DATABASE_URL"):
        return
    temp_dir = tempfile.mkdtemp(prefix="despensa-tests-")
    db_path = pathlib.Path(temp_dir) / "pytest.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"


@pytest.fixture(scope="session")
def sqlite_engine():
    from despensa.app.db import Base, engine
    from despensa.app import models  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def sqlite_session(sqlite_engine):
    from despensa.app.db import SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def api_client(sqlite_engine, sqlite_session):
    from despensa.app.db import get_db
    from despensa.app.main import app
    from fastapi.testclient import TestClient

    def _get_test_db():
        yield sqlite_session

    app.dependency_overrides[get_db] = _get_test_db
    client = TestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.pop(get_db, None)


# -------------------------
# Ledger documents
# -------------------------

TODAY = date(2026, 3, 10)


@pytest.fixture()
def catalog_state():
    from despensa.app.domain.state import LedgerState, Product, Settings

    return LedgerState(
        products=[
            Product(id="p-leche", ean="779001", name="Leche", unit_price=1000),
            Product(id="p-pan", ean="779002", name="Pan", unit_price=500),
            Product(id="p-suelto", ean="779003", name="Queso suelto", unit_price=0),
        ],
        settings=Settings(current_open_business_date=TODAY),
    )
