"""
Pytest Configuration and Fixtures

Tests run against the in-memory storage backend. The environment is set
before anything from circuitflow is imported so cached settings pick it up.
"""

import os
import tempfile
from types import SimpleNamespace

os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("LOGS_PATH", tempfile.mkdtemp(prefix="circuitflow-logs-"))
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest

from circuitflow.config.settings import Settings
from circuitflow.domain.enums import ActionEffect, UserRole
from circuitflow.domain.models import ActorContext
from circuitflow.engine import DocumentLocks, WorkflowEngine
from circuitflow.repositories import create_in_memory_repositories
from circuitflow.services import ActionService, CircuitService, StatusService

REVIEW_ROLE = "R-REVIEW"


@pytest.fixture
def repos():
    """Fresh in-memory stores"""
    return create_in_memory_repositories()


@pytest.fixture
def memory_settings():
    return Settings(storage_backend="memory")


@pytest.fixture
def admin():
    return ActorContext(user_id="u-admin", display_name="Ada Admin", role=UserRole.ADMIN)


@pytest.fixture
def reviewer():
    return ActorContext(
        user_id="u-reviewer", display_name="Rey Reviewer",
        role=UserRole.FULL_USER, role_id=REVIEW_ROLE
    )


@pytest.fixture
def outsider():
    return ActorContext(
        user_id="u-outsider", display_name="Otto Outsider",
        role=UserRole.FULL_USER, role_id="R-OTHER"
    )


@pytest.fixture
def viewer():
    return ActorContext(user_id="u-viewer", display_name="Vi Viewer", role=UserRole.SIMPLE_USER)


@pytest.fixture
def engine(repos, memory_settings):
    return WorkflowEngine(repositories=repos, config=memory_settings, locks=DocumentLocks())


@pytest.fixture
def circuit_service(repos):
    return CircuitService(repos)


@pytest.fixture
def status_service(repos):
    return StatusService(repos)


@pytest.fixture
def action_service(repos):
    return ActionService(repos)


def build_circuit(circuit_service, status_service, action_service, actor, **circuit_options):
    """
    Draft(0) -> Review(1, required "Approved") -> Final(2, final)

    Review is owned by REVIEW_ROLE. Approve, reject and move actions are
    global.
    """
    circuit = circuit_service.create_circuit("Contract approval", actor, **circuit_options)
    draft = circuit_service.create_step(circuit.circuit_id, "Draft", actor)
    review = circuit_service.create_step(
        circuit.circuit_id, "Review", actor, responsible_role_id=REVIEW_ROLE
    )
    final = circuit_service.create_step(circuit.circuit_id, "Final", actor, is_final_step=True)
    approved = status_service.create_status(review.step_id, "Approved", actor, is_required=True)
    signed_off = status_service.create_status(review.step_id, "Signed off", actor)

    suffix = circuit.circuit_id
    approve = action_service.create_action(f"approve-{suffix}", "Approve", ActionEffect.APPROVE, actor)
    reject = action_service.create_action(f"reject-{suffix}", "Reject", ActionEffect.REJECT, actor)
    move = action_service.create_action(f"move-{suffix}", "Move", ActionEffect.CUSTOM_MOVE, actor)

    return SimpleNamespace(
        circuit=circuit, draft=draft, review=review, final=final,
        approved=approved, signed_off=signed_off,
        approve=approve, reject=reject, move=move
    )


@pytest.fixture
def scenario(circuit_service, status_service, action_service, admin):
    """Ordered circuit without backtracking"""
    return build_circuit(circuit_service, status_service, action_service, admin)


@pytest.fixture
def backtrack_scenario(circuit_service, status_service, action_service, admin):
    """Ordered circuit that allows returning to earlier steps"""
    return build_circuit(circuit_service, status_service, action_service, admin, allow_backtrack=True)


@pytest.fixture
def unordered_scenario(circuit_service, status_service, action_service, admin):
    """Circuit whose steps can be visited in any order"""
    return build_circuit(circuit_service, status_service, action_service, admin, has_ordered_flow=False)
