# tests/conftest.py
from itertools import count

import pytest
from httpx import ASGITransport, AsyncClient

from app import crud, schemas
from app.config import TestingConfig
from app.database import Database
from app.main import create_app
from app.security import Principal, ROLE_ADMIN, create_principal_token, get_password_hash
from app.services.appointment_service import AppointmentLifecycleManager
from app.services.feedback_service import FeedbackGate

from helpers import TEST_SECRET_KEY, TODAY

_unique = count(1)


@pytest.fixture
def settings():
    return TestingConfig(SECRET_KEY=TEST_SECRET_KEY, database_url="sqlite://")


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_tables()
    yield db
    db.drop_tables()
    db.dispose()


@pytest.fixture
def db_session(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def manager(db_session):
    return AppointmentLifecycleManager(db_session, today=lambda: TODAY)


@pytest.fixture
def gate(db_session):
    return FeedbackGate(db_session)


@pytest.fixture
def make_patient(db_session):
    def _make(name="Asha Verma", password=None, **fields):
        n = next(_unique)
        fields.setdefault("email", f"patient{n}@example.com")
        patient = schemas.PatientCreate(name=name, **fields)
        password_hash = get_password_hash(password) if password else None
        return crud.create_patient(db_session, patient, password_hash=password_hash)
    return _make


@pytest.fixture
def make_doctor(db_session):
    def _make(name="Dr. Rao", expertise="Cardiology", **fields):
        return crud.create_doctor(db_session, schemas.DoctorCreate(name=name, expertise=expertise, **fields))
    return _make


@pytest.fixture
def patient(make_patient):
    return make_patient()


@pytest.fixture
def doctor(make_doctor):
    return make_doctor()


# ---------- HTTP fixtures ----------

@pytest.fixture
def app(settings, database):
    return create_app(settings=settings, database=database)


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_account(db_session):
    return crud.create_admin(db_session, "frontdesk", get_password_hash("desk-pass-123"))


@pytest.fixture
def admin_headers(admin_account, settings):
    principal = Principal(role=ROLE_ADMIN, id=admin_account.id, username=admin_account.username)
    return {"Authorization": f"Bearer {create_principal_token(principal, settings)}"}
