import os

os.environ.setdefault("SQLALCHEMY_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_FILE", os.devnull)

import pytest
import pytest_asyncio
import logging
from datetime import datetime, timedelta
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from backend.school_service.database import get_db
from backend.school_service.main import app
from backend.school_service import models, utils, schemas, bookings, sessions

logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)

# In-memory SQLite; StaticPool keeps every checkout on the same connection
DB_URL = os.getenv('TEST_DATABASE_URL', 'sqlite+aiosqlite:///:memory:')


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
    yield engine
    await engine.dispose()

@pytest_asyncio.fixture
async def db_session(engine):
    async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session
        await session.rollback()

@pytest_asyncio.fixture
async def other_session(engine):
    # A second request working on the same database
    async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session
        await session.rollback()

# Factories

@pytest_asyncio.fixture
async def make_user(db_session):
    counter = {"n": 0}

    async def factory(role=models.UserRole.trainee, **kwargs):
        counter["n"] += 1
        n = counter["n"]
        user = models.User(
            uid=kwargs.pop("uid", f"{role.value}-{n}"),
            email=kwargs.pop("email", f"{role.value}{n}@example.com"),
            name=kwargs.pop("name", f"{role.value.title()} {n}"),
            role=role,
            language=kwargs.pop("language", models.LanguageCode.en),
            **kwargs,
        )
        db_session.add(user)
        await db_session.commit()
        return user
    return factory

@pytest_asyncio.fixture
async def make_trainer(db_session, make_user):
    async def factory(status=models.TrainerStatus.active, **kwargs):
        user = await make_user(models.UserRole.trainer)
        trainer = models.Trainer(
            user_uid=user.uid,
            user=user,
            status=status,
            has_vehicle=kwargs.pop("has_vehicle", False),
            rating=kwargs.pop("rating", 0.0),
            total_reviews=kwargs.pop("total_reviews", 0),
            trainee_mappings=[],
            **kwargs,
        )
        db_session.add(trainer)
        await db_session.commit()
        return trainer
    return factory

@pytest_asyncio.fixture
async def make_trainee(db_session, make_user):
    async def factory(**kwargs):
        user = await make_user(models.UserRole.trainee)
        trainee = models.Trainee(
            user_uid=user.uid,
            user=user,
            preferred_language=models.LanguageCode.en,
            active_plans=[],
            previous_trainers=[],
            **kwargs,
        )
        db_session.add(trainee)
        await db_session.commit()
        return trainee
    return factory

@pytest_asyncio.fixture
async def make_plan(db_session):
    async def factory(**kwargs):
        plan = models.Plan(
            name_ar=kwargs.pop("name_ar", "الخطة الأساسية"),
            name_en=kwargs.pop("name_en", "Basic Plan"),
            description_ar=kwargs.pop("description_ar", "وصف الخطة"),
            description_en=kwargs.pop("description_en", "Plan description"),
            price=kwargs.pop("price", 1000.0),
            number_of_sessions=kwargs.pop("number_of_sessions", 3),
            duration=kwargs.pop("duration", 50),
            features=kwargs.pop("features", [{"text_ar": "سيارة حديثة", "text_en": "Modern car"}]),
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        db_session.add(plan)
        await db_session.commit()
        return plan
    return factory

def build_slots(count, start=None):
    start = start or datetime(2030, 1, 6)
    return [
        schemas.SessionSlot(scheduled_date=start + timedelta(days=i), start_time="10:00", end_time="10:50")
        for i in range(count)
    ]

@pytest.fixture
def make_slots():
    return build_slots

@pytest_asyncio.fixture
async def make_booking(db_session, make_trainee, make_plan):
    """Pending booking for a fresh trainee unless one is given."""
    async def factory(trainee=None, plan=None):
        trainee = trainee or await make_trainee()
        plan = plan or await make_plan()
        booking_in = schemas.BookingCreate(
            plan_id=plan.id,
            preferred_start_date=datetime(2030, 1, 5),
            preferred_times=[{"day": "Monday", "time": "10:00"}],
        )
        return await bookings.create_booking(db_session, trainee, booking_in)
    return factory

@pytest_asyncio.fixture
async def scheduled_booking(db_session, make_booking, make_trainer):
    """Confirmed booking with its plan's sessions generated."""
    async def factory(trainer=None, trainee=None, plan=None):
        trainer = trainer or await make_trainer()
        booking = await make_booking(trainee=trainee, plan=plan)
        await bookings.confirm_booking(db_session, booking.id, trainer.id)
        plan = plan or await db_session.get(models.Plan, booking.plan_id)
        created = await sessions.bulk_create_sessions(db_session, booking.id, build_slots(plan.number_of_sessions))
        return booking, trainer, created
    return factory

# HTTP clients

@pytest_asyncio.fixture
async def client(db_session):
    async def override_get_db():
        yield db_session
    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()

@pytest_asyncio.fixture
async def login(client):
    """Authenticate `client` as the given user for the rest of the test."""
    def as_user(user: models.User):
        async def mock_get_current_user():
            return user
        app.dependency_overrides[utils.get_current_user] = mock_get_current_user
        client.headers["Authorization"] = "Bearer test_token"
        return client
    return as_user
