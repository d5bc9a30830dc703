import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["JWT_SECRET"] = "test-secret-with-enough-bytes-for-hs256"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from hotelops.auth.security import AccountKind, CallerIdentity, create_access_token, get_password_hash  # noqa: E402
from hotelops.db import Base, get_db, make_engine, make_session_factory  # noqa: E402
from hotelops.main import app  # noqa: E402
from hotelops.models.models import Company, Employee, User  # noqa: E402
from hotelops.services.events import EventHub  # noqa: E402
from hotelops.services.mailer import get_mailer  # noqa: E402


class FakeMailer:
    def __init__(self):
        self.otps = []
        self.welcomes = []
        self.fail = False

    def send_otp(self, email, code):
        self.otps.append((email, code))
        return not self.fail

    def send_welcome(self, email, first_name, last_name):
        self.welcomes.append((email, first_name, last_name))
        if self.fail:
            return {"ok": False, "error": "smtp down"}
        return {"ok": True, "error": None}


class FakeWebSocket:
    """Records everything sent to it; optionally fails on send."""

    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(data)


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client(session_factory, mailer):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.state.event_hub = EventHub()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_company(db, name="Grand Hotel", is_active=True, room_count=20):
    c = Company(
        name=name,
        address="1 High Street",
        city="London",
        postcode="SW1A 1AA",
        phone="+44 20 0000 0000",
        email=f"info@{name.lower().replace(' ', '')}.example.com",
        room_count=room_count,
        is_active=is_active,
    )
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def make_employee(db, company, email=None, department="housekeeping", is_active=True):
    e = Employee(
        first_name="Sam",
        last_name="Porter",
        email=email or f"sam.{department}.{company.id.hex[:6]}@example.com",
        phone="+44 7000 000000",
        role="porter",
        department=department,
        start_date=date(2024, 1, 15),
        company_id=company.id,
        is_active=is_active,
    )
    db.add(e)
    db.commit()
    db.refresh(e)
    return e


def make_user(db, email="admin@example.com", role="admin", company=None, password="secret123", is_active=True):
    u = User(
        email=email,
        password_hash=get_password_hash(password),
        first_name="Alex",
        last_name="Admin",
        role=role,
        company_id=company.id if company is not None else None,
        is_active=is_active,
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def staff_caller(user):
    return CallerIdentity(subject_id=str(user.id), account_kind=AccountKind.STAFF, role=user.role, email=user.email)


def employee_caller(employee):
    return CallerIdentity(
        subject_id=str(employee.id), account_kind=AccountKind.EMPLOYEE, role="employee", email=employee.email
    )


def auth_header(user=None, employee=None):
    if user is not None:
        token = create_access_token(str(user.id), user.role, AccountKind.STAFF, email=user.email)
    else:
        token = create_access_token(str(employee.id), "employee", AccountKind.EMPLOYEE, email=employee.email)
    return {"Authorization": f"Bearer {token}"}
