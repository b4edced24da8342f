"""
Test fixtures for tripcollab backend tests.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient, ASGITransport

from tripcollab.database import Base, get_db, enable_sqlite_foreign_keys
from tripcollab.main import app
from tripcollab.models import MemberRole, Plan, PlanMember, PlanStatus
from tripcollab.realtime.changes import attach_change_feed, change_feed


# Create test database engine (SQLite in-memory, one shared connection)
TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(test_engine)

TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
attach_change_feed(TestSessionLocal, change_feed)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Creates all tables before the test and drops them after.
    """
    Base.metadata.create_all(bind=test_engine)

    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def override_get_db(db_session):
    """
    Override the get_db dependency to use the test database session.
    """
    def _override_get_db():
        try:
            yield db_session
        finally:
            pass

    return _override_get_db


@pytest.fixture(scope="function")
async def client(override_get_db):
    """
    Create an async test client with the database dependency overridden.
    """
    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def auth(user_id, email=None, name=None):
    """Identity headers as forwarded by the auth proxy."""
    headers = {"X-User-Id": user_id, "X-User-Name": name or user_id.title()}
    if email:
        headers["X-User-Email"] = email
    return headers


@pytest.fixture
def make_plan(db_session):
    """
    Factory for a plan owned by ``owner`` with the given accepted members.
    """
    def _make_plan(
        owner="alice",
        members=(),
        status=PlanStatus.COLLABORATION,
        destination="Lisbon",
        dates=None,
        plan_data=None,
    ):
        plan = Plan(
            owner_id=owner,
            owner_name=owner.title(),
            destination=destination,
            dates=dates,
            plan_data=plan_data,
            status=status,
        )
        plan.members.append(PlanMember(user_id=owner, user_name=owner.title(), role=MemberRole.OWNER))
        for user_id in members:
            plan.members.append(PlanMember(user_id=user_id, user_name=user_id.title(), role=MemberRole.PARTICIPANT))
        db_session.add(plan)
        db_session.commit()
        db_session.refresh(plan)
        return plan

    return _make_plan
