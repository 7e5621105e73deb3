"""Pytest configuration and shared fixtures.

This module provides centralized test fixtures for:
- HTTP client for API testing
- In-memory SQLite database sessions
- A mocked OpenAI client and an AdvisorService built around it
- Sample model outputs
"""

import json
import os

# Must be set before fittrack.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-with-enough-length-for-hs256")
os.environ.setdefault("ADMIN_PASSWORD", "test-admin-password")
os.environ["OPENAI_API_KEY"] = ""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fittrack.database import Base, get_db
from fittrack.main import app
from fittrack.routes.advisor import get_advisor_service
from fittrack.schemas.advisor import WEEKDAYS
from fittrack.services.advisor import PLAN_COOLDOWN_MESSAGE, AdvisorService
from fittrack.services.cooldown import CooldownLimiter
from fittrack.services.model_client import ModelInvoker

ADMIN_PASSWORD = os.environ["ADMIN_PASSWORD"]

# A report long enough to pass the readability threshold
SAMPLE_REPORT_TEXT = (
    "Complete Blood Count. Hemoglobin 10.2 g/dL (reference 13.0-17.0), low. "
    "Total leukocyte count 7,800 /uL (reference 4,000-11,000). Platelets "
    "250,000 /uL. Fasting blood sugar 132 mg/dL (reference 70-100), high. "
    "Serum ferritin 8 ng/mL (reference 30-400), low. Vitamin D 14 ng/mL, deficient."
)


# =============================================================================
# Model output helpers
# =============================================================================


def make_plan_payload(days=WEEKDAYS, meal: str = "Oats with banana") -> dict:
    """Build a plan payload covering ``days``."""
    return {
        "dietPlan": {
            day: {
                "breakfast": meal,
                "juice": "Carrot juice",
                "lunch": "Dal, rice and salad",
                "snack": "Roasted chana",
                "dinner": "Vegetable khichdi",
            }
            for day in days
        },
        "workoutPlan": {
            day: {
                "warmup": "5 min brisk walk",
                "mainWorkout": "30 min bodyweight circuit",
                "cooldown": "Stretching",
            }
            for day in days
        },
        "confidence": "medium",
    }


def make_evaluation_payload() -> dict:
    return {
        "overview": "Mild anemia and raised fasting sugar.",
        "evaluation": "Hemoglobin and ferritin are low, suggesting iron deficiency.",
        "diet": "Add iron-rich foods such as spinach, lentils and jaggery.",
        "doctors": [
            {
                "name": "Dr. A. Rao",
                "specialization": "Hematologist",
                "hospital": "City General Hospital",
                "location": "Pune",
                "type": "government",
            }
        ],
        "furtherDiagnosis": ["HbA1c", "Iron studies"],
        "limitations": "Based on a single report.",
    }


def completion(content: str | None) -> MagicMock:
    """Mimic a chat.completions.create response."""
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    response = MagicMock()
    response.choices = [choice]
    return response


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# Model / service fixtures
# =============================================================================


@pytest.fixture
def openai_client() -> MagicMock:
    """Mock AsyncOpenAI client returning a complete plan by default."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=completion(json.dumps(make_plan_payload()))
    )
    client.close = AsyncMock()
    return client


@pytest.fixture
def invoker(openai_client) -> ModelInvoker:
    return ModelInvoker(client=openai_client, model="test-model", timeout_seconds=5)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def extractor() -> MagicMock:
    """Stand-in for PDF text extraction returning a readable report."""
    return MagicMock(return_value=SAMPLE_REPORT_TEXT)


@pytest.fixture
def advisor_service(invoker, extractor, clock) -> AdvisorService:
    return AdvisorService(
        invoker,
        extractor=extractor,
        plan_limiter=CooldownLimiter(60, clock=clock, message=PLAN_COOLDOWN_MESSAGE),
        report_limiter=CooldownLimiter(0, clock=clock),
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def test_engine():
    """Create an in-memory test database with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncSession:
    """Database session rolled back after each test."""
    session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_maker() as session:
        yield session
        await session.rollback()


# =============================================================================
# HTTP Client Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(test_engine, advisor_service):
    """Async test client for the FastAPI app with test database and advisor."""
    test_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_db():
        async with test_session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_advisor_service] = lambda: advisor_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_advisor_service, None)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"x-admin-password": ADMIN_PASSWORD}
