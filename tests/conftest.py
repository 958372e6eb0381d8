"""
Shared fixtures: in-memory SQLite database, app client with dependency
overrides, bearer tokens, and validator payloads
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import time
import pytest
from jose import jwt
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.models.user import User, UserRole
from app.models.validation_dto import ValidationResponse
from app.models.validation_record_db import Base, ProfileDB


USER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_USER_ID = "22222222-2222-2222-2222-222222222222"
ADMIN_ID = "99999999-9999-9999-9999-999999999999"


@pytest.fixture(autouse=True)
def audit_log_path(tmp_path, monkeypatch):
    """Keep audit writes inside the test's temp dir"""
    path = tmp_path / "audit.log"
    monkeypatch.setattr(settings, "audit_log_path", str(path))
    return path


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    Session = sessionmaker(bind=db_engine, autocommit=False, autoflush=False, expire_on_commit=False)
    session = Session()
    session.add_all([
        ProfileDB(id=USER_ID, email="nurse@example.com", full_name="Nora Nurse", role="user"),
        ProfileDB(id=OTHER_USER_ID, email="other@example.com", full_name="Oscar Other", role="user"),
        ProfileDB(id=ADMIN_ID, email="admin@example.com", full_name="Ada Admin", role="admin"),
    ])
    session.commit()
    yield session
    session.close()


@pytest.fixture
def user():
    return User(id=USER_ID, email="nurse@example.com", name="Nora Nurse", role=UserRole.USER)


@pytest.fixture
def admin_user():
    return User(id=ADMIN_ID, email="admin@example.com", name="Ada Admin", role=UserRole.ADMIN)


def make_token(sub: str, email: str, role: str = None, expires_in: int = 3600) -> str:
    """Sign an access token the way the identity provider does"""
    claims = {
        "sub": sub,
        "email": email,
        "aud": settings.jwt_audience,
        "role": "authenticated",
        "exp": int(time.time()) + expires_in,
    }
    if role:
        claims["app_metadata"] = {"role": role}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


@pytest.fixture
def user_headers():
    return {"Authorization": f"Bearer {make_token(USER_ID, 'nurse@example.com')}"}


@pytest.fixture
def other_user_headers():
    return {"Authorization": f"Bearer {make_token(OTHER_USER_ID, 'other@example.com')}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token(ADMIN_ID, 'admin@example.com', role='admin')}"}


class FakeDispatchClient:
    """Records dispatched requests and returns a canned acknowledgement or error"""

    def __init__(self, response=None, error=None):
        self.response = response or ValidationResponse(executionId="exec-123", status="processing", message="Workflow started")
        self.error = error
        self.requests = []

    async def dispatch(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def dispatch_client():
    return FakeDispatchClient()


@pytest.fixture
def client(db_session, dispatch_client):
    from app.main import app
    from app.services.db import get_db
    from app.routes.validations import get_blob_storage, get_dispatch_client

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatch_client] = lambda: dispatch_client
    app.dependency_overrides[get_blob_storage] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def validator_payload():
    """A completed validator result for a California note"""
    return {
        "overallScore": 94,
        "overallSummary": {
            "status": "Passed",
            "summary": "Documentation meets LCD requirements.",
            "keyFindings": ["Wound measurements documented", "Infection signs assessed"],
            "nextSteps": ["Schedule follow-up in 7 days"],
        },
        "lcdChecks": [
            {
                "id": "L35125",
                "title": "Wound Care LCD L35125",
                "status": "Met",
                "score": 94,
                "reasons": ["Measurements present"],
                "evidence": ["3.2cm x 2.1cm x 0.4cm"],
                "recommendations": ["Document pain level at each visit"],
            }
        ],
        "recommendations": ["Elevate the limb", "elevate the limb "],
        "sections": {
            "history": "Diabetic patient with venous insufficiency.",
            "woundAssessment": {
                "location": "Left lateral malleolus",
                "size": {"length": "3.2cm", "width": "2.1cm", "depth": "0.4cm"},
                "exudate": "Moderate serous",
            },
        },
        "meta": {"mac": "Noridian", "generatedAt": "2025-03-14T10:15:30Z"},
    }
