import time

import jwt
import pytest

from circuitflow.domain.enums import UserRole
from circuitflow.domain.errors import AuthenticationError
from circuitflow.utils.jwt import TokenValidator

SECRET = "unit-secret"


@pytest.fixture
def validator():
    return TokenValidator(secret=SECRET, algorithm="HS256", audience="")


def encode(claims, secret=SECRET):
    return jwt.encode(claims, secret, algorithm="HS256")


def test_claims_become_actor_context(validator):
    token = encode({"sub": "u-1", "name": "Rey", "role": "FullUser", "role_id": 42})

    actor = validator.get_actor_context(f"Bearer {token}")

    assert actor.user_id == "u-1"
    assert actor.display_name == "Rey"
    assert actor.role == UserRole.FULL_USER
    assert actor.role_id == "42"


def test_role_defaults_to_simple_user(validator):
    actor = validator.get_actor_context(encode({"sub": "u-2"}))

    assert actor.role == UserRole.SIMPLE_USER
    assert actor.display_name == "u-2"
    assert actor.role_id is None


def test_unknown_role_rejected(validator):
    with pytest.raises(AuthenticationError):
        validator.get_actor_context(encode({"sub": "u-3", "role": "Superuser"}))


def test_bad_signature_rejected(validator):
    with pytest.raises(AuthenticationError):
        validator.get_actor_context(encode({"sub": "u-4"}, secret="other-secret"))


def test_expired_token_rejected(validator):
    with pytest.raises(AuthenticationError) as exc:
        validator.get_actor_context(encode({"sub": "u-5", "exp": int(time.time()) - 60}))

    assert "expired" in exc.value.message


def test_missing_subject_rejected(validator):
    with pytest.raises(AuthenticationError):
        validator.get_actor_context(encode({"name": "nobody"}))
