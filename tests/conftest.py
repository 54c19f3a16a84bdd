import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trafficdesk.core.database import create_engine, init_models
from trafficdesk.core.constants import ViolationType
from trafficdesk.schemas.case import CaseCreate
from trafficdesk.schemas.query import QueryCreate
from trafficdesk.schemas.user import UserCreate
from trafficdesk.services.case_service import CaseService
from trafficdesk.services.query_service import QueryService
from trafficdesk.services.user_service import UserService

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test"""
    engine = create_engine(TEST_DATABASE_URL)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def users(session):
    return UserService(session)


@pytest.fixture
def cases(session):
    return CaseService(session)


@pytest.fixture
def queries(session):
    return QueryService(session)


@pytest.fixture
def make_user(users):
    counter = {"n": 0}

    async def _make_user(**overrides):
        counter["n"] += 1
        n = counter["n"]
        data = {
            "name": f"Driver {n}",
            "email": f"driver{n}@example.com",
            "password": "secret1",
        }
        data.update(overrides)
        return await users.create_user(UserCreate(**data))

    return _make_user


@pytest.fixture
def make_case(cases):
    async def _make_case(user_id, **overrides):
        data = {
            "user_id": user_id,
            "violation_type": ViolationType.SPEEDING,
            "violation": "Exceeding speed limit by 20 km/h",
            "fine": 100.0,
            "proof_url": "https://example.com/proof.jpg",
            "location": "Main Street",
            "date": "2024-02-01T14:30:00Z",
        }
        data.update(overrides)
        return await cases.create_case(CaseCreate(**data))

    return _make_case


@pytest.fixture
def make_query(queries):
    async def _make_query(user_id, **overrides):
        data = {
            "user_id": user_id,
            "subject": "Question about my fine",
            "message": "I would like to know more about this violation.",
        }
        data.update(overrides)
        return await queries.create_query(QueryCreate(**data))

    return _make_query
