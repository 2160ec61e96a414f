import os

os.environ.setdefault("TESTING", "true")
os.environ.setdefault("LEASE_SWEEP_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice.core.clock import FixedClock, get_clock
from backoffice.database import get_db
from backoffice.db.base import Base
from backoffice.main import app
from backoffice.models import UserRole
import backoffice.models  # noqa: F401
from tests.factories import NOW, auth_headers, make_tenant, make_unit, make_user

TEST_DATABASE_URL = "sqlite://"


@pytest.fixture
def engine():
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def client(session_factory, clock):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin(db):
    return make_user(db, "admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def applicant(db):
    return make_user(db, "applicant@example.com")


@pytest.fixture
def unit(db):
    return make_unit(db, "101", "5000.00")


@pytest.fixture
def other_unit(db):
    return make_unit(db, "102", "6500.00", floor=1)


@pytest.fixture
def tenant(db):
    return make_tenant(db)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def applicant_headers(applicant):
    return auth_headers(applicant)
