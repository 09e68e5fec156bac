"""Pytest configuration and shared fixtures."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chemflow.config import Settings
from chemflow.database import Base
from chemflow.models.domain import Principal
from chemflow.models.enums import Department, UserRole
from chemflow.services.audit import AuditRecorder
from chemflow.services.repository import AuditLogRepository, UserRepository
from chemflow.services.tickets import TicketService
# Import models to register them with SQLAlchemy Base
from chemflow.models.audit import AuditLogRecord  # noqa: F401
from chemflow.models.records import TicketRecord, UserRecord  # noqa: F401


class TickingClock:
    """Deterministic clock that moves forward one second per reading."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 3, 1, 9, 0, 0)

    def __call__(self):
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


@pytest.fixture
def db_session():
    """Create a fresh in-memory database for each test."""
    # In-memory SQLite for fast tests
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)

    TestingSessionLocal = sessionmaker(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def users(db_session):
    """Two requesters, two approvers and an admin, keyed by id."""
    repo = UserRepository(db_session)
    created = [
        repo.add("requester1", "Rita Requester", UserRole.REQUESTER, Department.PRODUCTION, user_id="u1"),
        repo.add("requester2", "Sam Requester", UserRole.REQUESTER, Department.MAINTENANCE, user_id="u2"),
        repo.add("approver1", "Alex Approver", UserRole.APPROVER, Department.QUALITY, user_id="a1"),
        repo.add("approver2", "Jo Approver", UserRole.APPROVER, Department.QUALITY, user_id="a2"),
        repo.add("admin", "Ada Admin", UserRole.ADMIN, Department.ENGINEERING, user_id="admin"),
    ]
    return {u.id: u for u in created}


@pytest.fixture
def principals(users):
    return {user_id: Principal(id=user_id, role=user.role) for user_id, user in users.items()}


@pytest.fixture
def recorder(db_session, clock):
    return AuditRecorder(AuditLogRepository(db_session), clock=clock)


@pytest.fixture
def service(db_session, clock, users):
    return TicketService.from_session(db_session, Settings(), clock=clock)


@pytest.fixture
def chemical_config():
    return {
        "machineId": "M-101",
        "machineName": "Rinse line 1",
        "chemicalType": "Caustic soda",
        "concentration": 2.5,
        "temperature": 60,
        "flowRate": 12.0,
        "additionalParams": {"phTarget": 11},
    }
