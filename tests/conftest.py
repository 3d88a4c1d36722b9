import os
from collections.abc import AsyncGenerator, Iterable
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Load environment variables from .env file
load_dotenv()

# Settings require these; tests never touch real services
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("REDIS_HOST", "localhost")
os.environ.setdefault("REDIS_PORT", "6379")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_FORMAT", "console")

from app.core.redis_client import CacheManager  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.core.storage import ProofFile, get_proof_storage  # noqa: E402
from app.database import get_db  # noqa: E402
from app.dependencies import get_cache_manager  # noqa: E402
from app.main import app  # noqa: E402
from app.models import all_metadata  # noqa: E402
from app.models.appointments import appointment_services, appointments  # noqa: E402
from app.models.billing import invoices  # noqa: E402
from app.models.profiles import profiles  # noqa: E402
from app.models.services import services  # noqa: E402

# In-memory SQLite shared across the test session
TEST_DATABASE_URL = "sqlite+aiosqlite://"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,  # Set to True for SQL debugging
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)

# Create test session factory
TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def _create_schema(conn, skip: Iterable[str] = ()) -> None:
    skip = set(skip)
    for metadata in all_metadata:
        tables = [table for table in metadata.sorted_tables if table.name not in skip]
        metadata.create_all(conn, tables=tables)


def _drop_schema(conn) -> None:
    for metadata in reversed(all_metadata):
        metadata.drop_all(conn)


async def _session(skip: Iterable[str] = ()) -> AsyncGenerator[AsyncSession, None]:
    async with test_engine.begin() as conn:
        await conn.run_sync(_drop_schema)
        await conn.run_sync(_create_schema, skip)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(_drop_schema)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session with the full schema."""
    async for session in _session():
        yield session


@pytest_asyncio.fixture
async def legacy_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Session on a schema that predates the appointment_durations table."""
    async for session in _session(skip=["appointment_durations"]):
        yield session


class FakeProofStorage:
    """Records uploads instead of sending them to the bucket."""

    def __init__(self) -> None:
        self.uploads: list[tuple[str, ProofFile]] = []
        self.fail = False

    async def upload(self, user_id: str, proof: ProofFile) -> str:
        if self.fail:
            raise RuntimeError("bucket not found")
        self.uploads.append((user_id, proof))
        return f"https://storage.test/payment-proofs/{user_id}/{len(self.uploads)}.{proof.extension}"


@pytest.fixture
def proof_storage() -> FakeProofStorage:
    """Fake receipt store."""
    return FakeProofStorage()


@pytest.fixture
def mock_redis() -> MagicMock:
    """Redis client that always misses."""
    redis_client = MagicMock()
    redis_client.get.return_value = None
    redis_client.exists.return_value = 0
    return redis_client


def _client(session: AsyncSession, mock_redis: MagicMock, proof_storage: FakeProofStorage):
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: CacheManager(mock_redis)
    app.dependency_overrides[get_proof_storage] = lambda: proof_storage

    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, mock_redis: MagicMock, proof_storage: FakeProofStorage
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""
    async with _client(db_session, mock_redis, proof_storage) as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def legacy_client(
    legacy_db_session: AsyncSession, mock_redis: MagicMock, proof_storage: FakeProofStorage
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the schema without appointment_durations."""
    async with _client(legacy_db_session, mock_redis, proof_storage) as client:
        yield client

    app.dependency_overrides.clear()


async def create_profile(
    session: AsyncSession,
    role: str,
    full_name: str | None = None,
    disabled: bool = False,
) -> dict:
    """Insert a profile and return it as a dict."""
    profile_id = uuid4()
    values = {
        "id": profile_id,
        "firebase_uid": f"firebase_{profile_id.hex}",
        "email": f"{role}_{profile_id.hex[:8]}@example.com",
        "full_name": full_name,
        "phone": "+639171234567",
        "role": role,
        "disabled": disabled,
    }
    await session.execute(insert(profiles).values(**values))
    await session.commit()
    return values


def headers_for(profile: dict) -> dict:
    """Bearer headers for a profile."""
    token = create_access_token(
        data={"sub": str(profile["id"])}, expires_delta=timedelta(minutes=30)
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> dict:
    return await create_profile(db_session, "admin", "Ada Admin")


@pytest_asyncio.fixture
async def doctor_user(db_session: AsyncSession) -> dict:
    return await create_profile(db_session, "doctor", "Dana Cruz")


@pytest_asyncio.fixture
async def staff_user(db_session: AsyncSession) -> dict:
    return await create_profile(db_session, "staff", "Sam Reyes")


@pytest_asyncio.fixture
async def patient_user(db_session: AsyncSession) -> dict:
    return await create_profile(db_session, "patient", "Maria Clara Santos")


@pytest.fixture
def admin_headers(admin_user: dict) -> dict:
    return headers_for(admin_user)


@pytest.fixture
def doctor_headers(doctor_user: dict) -> dict:
    return headers_for(doctor_user)


@pytest.fixture
def staff_headers(staff_user: dict) -> dict:
    return headers_for(staff_user)


@pytest.fixture
def patient_headers(patient_user: dict) -> dict:
    return headers_for(patient_user)


async def create_service(session: AsyncSession, name: str, price: str = "1000") -> dict:
    """Insert a catalog service."""
    values = {"id": uuid4(), "name": name, "price": Decimal(price)}
    await session.execute(insert(services).values(**values))
    await session.commit()
    return values


async def create_appointment(
    session: AsyncSession,
    patient_id,
    appointment_date: date,
    appointment_time: time = time(9, 0),
    status: str = "pending",
    branch: str | None = "Main Branch",
    service_ids: Iterable = (),
    duration_minutes: int | None = None,
) -> dict:
    """Insert an appointment and its service links."""
    values = {
        "id": uuid4(),
        "patient_id": patient_id,
        "appointment_date": appointment_date,
        "appointment_time": appointment_time,
        "status": status,
        "branch": branch,
        "duration_minutes": duration_minutes,
    }
    await session.execute(insert(appointments).values(**values))
    for service_id in service_ids:
        await session.execute(
            insert(appointment_services).values(
                appointment_id=values["id"], service_id=service_id
            )
        )
    await session.commit()
    return values


async def create_invoice(
    session: AsyncSession,
    patient_id,
    total_amount: str = "1000.00",
    amount_paid: str = "0.00",
    status: str = "pending",
) -> dict:
    """Insert an invoice directly."""
    values = {
        "id": uuid4(),
        "invoice_number": f"INV-TEST-{uuid4().hex[:6]}",
        "patient_id": patient_id,
        "invoice_date": datetime.now(),
        "subtotal": Decimal(total_amount),
        "total_amount": Decimal(total_amount),
        "amount_paid": Decimal(amount_paid),
        "status": status,
    }
    await session.execute(insert(invoices).values(**values))
    await session.commit()
    return values


@pytest_asyncio.fixture
async def sample_appointment(db_session: AsyncSession, patient_user: dict) -> dict:
    """Pending appointment tomorrow with one booked service."""
    cleaning = await create_service(db_session, "Oral Prophylaxis", "1500")
    return await create_appointment(
        db_session,
        patient_user["id"],
        date.today() + timedelta(days=1),
        service_ids=[cleaning["id"]],
    )


@pytest_asyncio.fixture
async def sample_invoice(db_session: AsyncSession, patient_user: dict) -> dict:
    """Unpaid invoice of 1000.00 for the sample patient."""
    return await create_invoice(db_session, patient_user["id"])


@pytest.fixture
def make_profile():
    """Profile factory: ``await make_profile(session, role, full_name)``."""
    return create_profile


@pytest.fixture
def make_service():
    """Catalog service factory."""
    return create_service


@pytest.fixture
def make_appointment():
    """Appointment factory."""
    return create_appointment


@pytest.fixture
def make_invoice():
    """Invoice factory."""
    return create_invoice


@pytest.fixture
def auth_headers_for():
    """Build bearer headers for a profile."""
    return headers_for
