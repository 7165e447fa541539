import os
import sys
from collections.abc import AsyncGenerator
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

# Settings require these; tests never touch the application database.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./medix_unused.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_FORMAT", "console")
# Schedules in the tests are written in UTC with the default booking rules.
os.environ["CLINIC_TIMEZONE"] = "UTC"
os.environ["BOOKING_REQUIRES_SCHEDULE"] = "true"
os.environ["PATIENT_CANCEL_REFUND_PERCENT"] = "0.80"
os.environ["CANCELLATION_CUTOFF_HOURS"] = "2"

from medix.config import settings  # noqa: E402
from medix.core.redis_client import CacheManager  # noqa: E402
from medix.core.security import create_access_token  # noqa: E402
from medix.database import get_db  # noqa: E402
from medix.dependencies import get_cache_manager  # noqa: E402
from medix.main import app  # noqa: E402
from medix.models import (  # noqa: E402
    doctor_schedules,
    doctors,
    metadata,
    patients,
    users,
    wallets,
)

# Test database URL - MUST be different from the application database
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL") or "sqlite+aiosqlite:///./test_medix.db"

if settings.database_url == TEST_DATABASE_URL:
    print("\n❌ CRITICAL ERROR: Test database URL is same as application database!")
    print("This would DROP all data during tests.")
    print("Please set TEST_DATABASE_URL to a separate test database in .env")
    sys.exit(1)

# Ensure we're using asyncpg driver for async operations
TEST_DATABASE_URL = TEST_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")
IS_POSTGRES = TEST_DATABASE_URL.startswith("postgresql")

# Use NullPool to avoid event loop issues between tests
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,  # Set to True for SQL debugging
    poolclass=NullPool,
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

postgres_only = pytest.mark.skipif(not IS_POSTGRES, reason="needs a PostgreSQL test database")


def next_weekday(weekday: int) -> date:
    """Next date (at least a day ahead) falling on a Python weekday (0 = Monday)."""
    today = datetime.now(UTC).date()
    days_ahead = (weekday - today.weekday()) % 7 or 7
    return today + timedelta(days=days_ahead)


def at(day: date, hour: int, minute: int = 0) -> str:
    """ISO-8601 UTC instant on ``day``."""
    return datetime.combine(day, time(hour, minute), tzinfo=UTC).isoformat()


def headers_for(user: dict) -> dict:
    token = create_access_token(
        data={"sub": str(user["id"]), "email": user["email"]},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on freshly created tables."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def mock_redis() -> MagicMock:
    """Redis stand-in; every read is a cache miss."""
    redis_client = MagicMock()
    redis_client.get.return_value = None
    return redis_client


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    mock_redis: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: CacheManager(mock_redis)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def create_user(db: AsyncSession, role: str, name: str) -> dict:
    user = {
        "id": uuid4(),
        "email": f"{name.lower().replace(' ', '.')}.{uuid4().hex[:6]}@example.com",
        "full_name": name,
        "phone": "+84901234567",
        "role": role,
        "is_active": True,
    }
    await db.execute(insert(users).values(**user))
    await db.commit()
    return user


@pytest_asyncio.fixture
async def patient_user(db_session: AsyncSession) -> dict:
    return await create_user(db_session, "patient", "Test Patient")


@pytest_asyncio.fixture
async def patient(db_session: AsyncSession, patient_user: dict) -> dict:
    """Patient profile of ``patient_user``."""
    profile = {"id": uuid4(), "user_id": patient_user["id"], "gender": "female"}
    await db_session.execute(insert(patients).values(**profile))
    await db_session.commit()
    return profile


@pytest_asyncio.fixture
async def doctor_user(db_session: AsyncSession) -> dict:
    return await create_user(db_session, "doctor", "Test Doctor")


@pytest_asyncio.fixture
async def doctor(db_session: AsyncSession, doctor_user: dict) -> dict:
    """Doctor profile of ``doctor_user``: 200,000 per 30-minute consultation."""
    profile = {
        "id": uuid4(),
        "user_id": doctor_user["id"],
        "specialization": "Cardiology",
        "consultation_fee": Decimal("200000.00"),
        "consultation_duration_minutes": 30,
        "is_active": True,
    }
    await db_session.execute(insert(doctors).values(**profile))
    await db_session.commit()
    return profile


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> dict:
    return await create_user(db_session, "admin", "Test Admin")


@pytest_asyncio.fixture
async def wallet(db_session: AsyncSession, patient_user: dict) -> dict:
    """Patient wallet holding 500,000."""
    record = {"id": uuid4(), "user_id": patient_user["id"], "balance": Decimal("500000.00")}
    await db_session.execute(insert(wallets).values(**record))
    await db_session.commit()
    return record


@pytest.fixture
def monday() -> date:
    return next_weekday(0)


@pytest_asyncio.fixture
async def monday_schedule(db_session: AsyncSession, doctor: dict) -> dict:
    """Recurring Monday shift 08:00-12:00 (clinic time is UTC in tests)."""
    row = {
        "id": uuid4(),
        "doctor_id": doctor["id"],
        "day_of_week": 1,
        "start_time": time(8, 0),
        "end_time": time(12, 0),
        "is_available": True,
    }
    await db_session.execute(insert(doctor_schedules).values(**row))
    await db_session.commit()
    return row


@pytest.fixture
def patient_headers(patient_user: dict, patient: dict) -> dict:
    return headers_for(patient_user)


@pytest.fixture
def doctor_headers(doctor_user: dict, doctor: dict) -> dict:
    return headers_for(doctor_user)


@pytest.fixture
def admin_headers(admin_user: dict) -> dict:
    return headers_for(admin_user)


@pytest.fixture
def booking_payload(doctor: dict, monday: date):
    """Build a booking request for the test doctor on the next Monday."""

    def build(start: tuple[int, int], end: tuple[int, int], amount: str = "200000") -> dict:
        return {
            "doctor_id": str(doctor["id"]),
            "appointment_start_time": at(monday, *start),
            "appointment_end_time": at(monday, *end),
            "total_amount": amount,
            "chief_complaint": "Chest pain",
        }

    return build
