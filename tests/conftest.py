import pytest
import requests
import os
from datetime import date

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

import collab.database
from collab.database import Base, get_db
from collab.main import app
from collab.models.leave_policy import LeavePolicy, AccrualType, TrackUnit, RolloverType
from collab.models.leave_request import LeaveRequest, LeaveStatus, LeaveDuration
from collab.models.user import User, UserRole
from collab.models.workspace import Workspace, WorkspaceMember, WorkspaceRole
from collab.services.authorization import Actor, seed_default_permissions
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

THIS_YEAR = date.today().year


@pytest.fixture(scope="function", autouse=True)
def setup_database():
    """Fresh schema per test: services commit and roll back on their own."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    session = TestingSessionLocal()
    yield session
    session.close()


def _make_user(db_session, email, name, role=UserRole.MEMBER):
    user = User(email=email, name=name, role=role, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope="function")
def owner(db_session):
    return _make_user(db_session, "owner@acme.io", "Olivia Owner", UserRole.TEAM_LEAD)


@pytest.fixture(scope="function")
def manager(db_session):
    return _make_user(db_session, "hr@acme.io", "Harper HR", UserRole.HR)


@pytest.fixture(scope="function")
def member(db_session):
    return _make_user(db_session, "dev@acme.io", "Devon Dev", UserRole.DEVELOPER)


@pytest.fixture(scope="function")
def colleague(db_session):
    return _make_user(db_session, "pat@acme.io", "Pat Peer", UserRole.DEVELOPER)


@pytest.fixture(scope="function")
def outsider(db_session):
    return _make_user(db_session, "someone@elsewhere.io", "Sam Outsider")


@pytest.fixture(scope="function")
def workspace(db_session, owner, manager, member, colleague):
    """Acme workspace: owner, an HR manager and two regular members."""
    ws = Workspace(name="Acme", slug="acme", owner_id=owner.id)
    db_session.add(ws)
    db_session.flush()
    db_session.add_all([
        WorkspaceMember(user_id=manager.id, workspace_id=ws.id, role=WorkspaceRole.HR.value),
        WorkspaceMember(user_id=member.id, workspace_id=ws.id, role=WorkspaceRole.MEMBER.value),
        WorkspaceMember(user_id=colleague.id, workspace_id=ws.id, role=WorkspaceRole.DEVELOPER.value),
    ])
    seed_default_permissions(db_session, ws)
    db_session.commit()
    return ws


@pytest.fixture(scope="function")
def policy(db_session, workspace):
    """25 days per year, no rollover."""
    p = LeavePolicy(
        workspace_id=workspace.id,
        name="Annual Leave",
        is_paid=True,
        track_in=TrackUnit.DAYS.value,
        accrual_type=AccrualType.FIXED.value,
        accrual_amount=25.0,
        rollover_type=RolloverType.NONE.value,
    )
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope="function")
def as_actor():
    def _as_actor(user):
        return Actor(user_id=user.id, email=user.email)
    return _as_actor


@pytest.fixture(scope="function")
def headers_for():
    def _headers_for(user):
        return {"X-User-Email": user.email}
    return _headers_for


@pytest.fixture(scope="function")
def make_leave(db_session):
    """Insert a leave request directly, bypassing the workflow."""
    def _make_leave(user, policy, start, end, status=LeaveStatus.PENDING,
                    duration=LeaveDuration.FULL_DAY, notes=""):
        leave = LeaveRequest(
            user_id=user.id,
            policy_id=policy.id,
            start_date=start,
            end_date=end,
            duration=duration.value,
            status=status.value,
            notes=notes,
        )
        db_session.add(leave)
        db_session.commit()
        return leave
    return _make_leave


class FakeResponse:
    def __init__(self, status_code=200, text="ok"):
        self.status_code = status_code
        self.text = text


class RecordingPost:
    """Stands in for requests.post and records every call."""

    def __init__(self, response=None, error=None):
        self.calls = []
        self.response = response or FakeResponse()
        self.error = error

    def __call__(self, url, data=None, headers=None, timeout=None):
        self.calls.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture(scope="function")
def http_post():
    return RecordingPost()


@pytest.fixture(scope="function")
def unreachable_http_post():
    return RecordingPost(error=requests.ConnectionError("connection refused"))


@pytest.fixture(scope="function")
def client(db_session, monkeypatch):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    # Background webhook delivery opens its own session
    monkeypatch.setattr(collab.database, "SessionLocal", TestingSessionLocal)
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
