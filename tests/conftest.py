import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_clinic.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENV", "test")

from datetime import date, datetime  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.core.db import async_session_maker, drop_db, engine, init_db  # noqa: E402
from app.core.security import create_access_token, hash_password  # noqa: E402
from app.main import app  # noqa: E402
from app.models.availability import AvailabilityRule  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402
from app.services.audit_service import AuditEvent  # noqa: E402

PASSWORD = "correct-horse-battery"
_PASSWORD_HASH = hash_password(PASSWORD)

# 2030-01-07 is a Monday; day_of_week 1 with Sunday = 0.
MONDAY = date(2030, 1, 7)
MONDAY_DOW = 1
BEFORE_MONDAY = datetime(2030, 1, 1, 8, 0)


class RecordingAuditSink:
    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def emit(self, event: AuditEvent) -> None:
        self.events.append(event)

    @property
    def actions(self) -> list[str]:
        return [e.action for e in self.events]


class FailingAuditSink:
    def emit(self, event: AuditEvent) -> None:
        raise RuntimeError("audit store is down")


@pytest.fixture(autouse=True)
async def database():
    await drop_db()
    await init_db()
    try:
        yield
    finally:
        await drop_db()
        await engine.dispose()


@pytest.fixture
async def session():
    async with async_session_maker() as s:
        yield s


async def make_user(session, role: UserRole, email: str, full_name: str | None = None) -> User:
    user = User(email=email, full_name=full_name, role=role, hashed_password=_PASSWORD_HASH)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest.fixture
async def provider(session) -> User:
    return await make_user(session, UserRole.PROVIDER, "doc@clinic.test", "John Doe")


@pytest.fixture
async def other_provider(session) -> User:
    return await make_user(session, UserRole.PROVIDER, "doc2@clinic.test", "Jane Roe")


@pytest.fixture
async def patient(session) -> User:
    return await make_user(session, UserRole.PATIENT, "patient@clinic.test", "Brook Khoo")


@pytest.fixture
async def other_patient(session) -> User:
    return await make_user(session, UserRole.PATIENT, "patient2@clinic.test", "Sam Lee")


@pytest.fixture
async def admin(session) -> User:
    return await make_user(session, UserRole.ADMIN, "admin@clinic.test", "Clinic Admin")


@pytest.fixture
async def monday_hours(session, provider) -> AvailabilityRule:
    """Provider open Mondays 09:00-17:00."""
    rule = AvailabilityRule(
        provider_id=provider.id, day_of_week=MONDAY_DOW, start_time="09:00", end_time="17:00", is_available=True
    )
    session.add(rule)
    await session.commit()
    await session.refresh(rule)
    return rule


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
