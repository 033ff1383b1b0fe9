"""API test fixtures: the app bound to the per-test in-memory stores"""
import jwt
import pytest
from fastapi.testclient import TestClient

from circuitflow.api.deps import get_repositories_dep
from circuitflow.config.settings import settings
from circuitflow.main import app


def make_token(user_id, role, role_id=None, name=None):
    claims = {"sub": user_id, "name": name or user_id, "role": role}
    if role_id:
        claims["role_id"] = role_id
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(repos):
    app.dependency_overrides[get_repositories_dep] = lambda: repos
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_token():
    return make_token("u-admin", "Admin")


@pytest.fixture
def reviewer_token():
    return make_token("u-reviewer", "FullUser", role_id="R-REVIEW")


@pytest.fixture
def viewer_token():
    return make_token("u-viewer", "SimpleUser")


@pytest.fixture
def admin_headers(admin_token):
    return bearer(admin_token)


@pytest.fixture
def reviewer_headers(reviewer_token):
    return bearer(reviewer_token)


@pytest.fixture
def viewer_headers(viewer_token):
    return bearer(viewer_token)
