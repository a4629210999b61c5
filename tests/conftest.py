"""
Test fixtures – in-memory SQLite and a fake oracle, no network required.
"""

import os

# Configure before any medregistry import reads settings.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_IDENTITY"] = "admin-0x01"
os.environ["PLATFORM_OWNER"] = "owner-0x02"
os.environ["ORACLE_IDENTITY"] = "oracle-0x0a"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from medregistry.models.database import Base, engine_options, get_db
from medregistry.services import access_control, lifecycle, two_factor
from medregistry.services.oracle import get_oracle_client, hash_pin

from helpers import ADMIN, DOCTOR, ORACLE, FakeOracle


@pytest.fixture
def db_engine():
    engine = create_engine("sqlite://", **engine_options("sqlite://"))
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def active_registry(db):
    """Registry activated with DOCTOR authorized."""
    lifecycle.activate_contract(db, ADMIN)
    access_control.authorize_doctor(db, ADMIN, DOCTOR)
    return lifecycle.get_registry(db)


@pytest.fixture
def approve(db, oracle):
    """Issue a check for (doctor, patient, operation) and have the oracle approve it."""

    def _approve(doctor, patient, operation, allowed=True):
        request = two_factor.request_check(
            db,
            oracle,
            doctor,
            customer_id=f"cust-{doctor}",
            hashed_pin=hash_pin("1234"),
            patient_id=patient,
            operation=operation,
        )
        return two_factor.fulfill(db, ORACLE, request.request_id, allowed)

    return _approve


@pytest.fixture
def client(session_factory, oracle):
    from medregistry.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_oracle_client] = lambda: oracle
    yield TestClient(app)
    app.dependency_overrides.clear()

