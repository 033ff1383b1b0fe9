import threading

import pytest

from circuitflow.domain.enums import ActionEffect, HistoryEventType, LifecycleStatus, TransitionKind
from circuitflow.domain.errors import (
    ActionNotFoundError, BacktrackNotAllowedError, HistoryWriteError,
    InvalidStateError, PermissionDeniedError, RequirementsNotMetError,
    StateConflictError, ValidationError
)
from circuitflow.engine import DocumentLocks, WorkflowEngine
from circuitflow.repositories.inmemory import InMemoryHistoryRepository


class FlakyHistoryRepository(InMemoryHistoryRepository):
    """History store whose writes fail while ``failing`` is set"""

    def __init__(self):
        super().__init__()
        self.failing = False

    def append(self, entry):
        if self.failing:
            raise RuntimeError("history store unavailable")
        return super().append(entry)


def advance_to_review(engine, s, actor):
    engine.assign_circuit("DOC-1", s.circuit.circuit_id, actor)
    return engine.move_to_next_step("DOC-1", s.draft.step_id, s.review.step_id, actor)


# =============================================================================
# Approve
# =============================================================================

def test_approve_advances_to_next_step(engine, scenario, admin):
    engine.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)

    state = engine.perform_action("DOC-1", scenario.approve.action_id, admin)

    assert state.current_step_id == scenario.review.step_id
    entry = engine.get_history("DOC-1")[-1]
    assert entry.event_type == HistoryEventType.ACTION
    assert entry.action_id == scenario.approve.action_id
    assert entry.transition == TransitionKind.ADVANCE
    assert entry.is_approved is True


def test_approve_requires_current_step_satisfied(engine, scenario, admin):
    advance_to_review(engine, scenario, admin)

    with pytest.raises(RequirementsNotMetError):
        engine.perform_action("DOC-1", scenario.approve.action_id, admin)


def test_approve_on_unordered_circuit_still_requires_statuses(engine, unordered_scenario, admin):
    s = unordered_scenario
    engine.assign_circuit("DOC-1", s.circuit.circuit_id, admin)
    engine.move_to_step("DOC-1", s.review.step_id, admin)

    with pytest.raises(RequirementsNotMetError):
        engine.perform_action("DOC-1", s.approve.action_id, admin)

    engine.complete_status("DOC-1", s.approved.status_id, True, admin)
    state = engine.perform_action("DOC-1", s.approve.action_id, admin)

    assert state.current_step_id == s.final.step_id
    assert state.lifecycle_status == LifecycleStatus.COMPLETED
    assert engine.get_history("DOC-1")[-1].transition == TransitionKind.MOVE


def test_approve_on_final_step_with_open_requirement(engine, scenario, status_service, admin):
    status_service.create_status(scenario.final.step_id, "Archived", admin, is_required=True)
    advance_to_review(engine, scenario, admin)
    engine.complete_status("DOC-1", scenario.approved.status_id, True, admin)
    state = engine.perform_action("DOC-1", scenario.approve.action_id, admin)

    assert state.current_step_id == scenario.final.step_id
    assert state.lifecycle_status == LifecycleStatus.IN_PROGRESS

    with pytest.raises(RequirementsNotMetError):
        engine.perform_action("DOC-1", scenario.approve.action_id, admin)


def test_caller_can_override_recorded_approval(engine, scenario, admin):
    engine.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)
    engine.perform_action("DOC-1", scenario.approve.action_id, admin, is_approved=False)

    assert engine.get_history("DOC-1")[-1].is_approved is False


# =============================================================================
# Reject
# =============================================================================

def test_reject_keeps_step_and_marks_rejected(engine, scenario, admin):
    advance_to_review(engine, scenario, admin)
    engine.complete_status("DOC-1", scenario.signed_off.status_id, True, admin)

    state = engine.perform_action("DOC-1", scenario.reject.action_id, admin, comments="missing data")

    assert state.lifecycle_status == LifecycleStatus.REJECTED
    assert state.current_step_id == scenario.review.step_id
    assert state.completed_status_ids == {scenario.signed_off.status_id}
    entry = engine.get_history("DOC-1")[-1]
    assert entry.is_approved is False
    assert entry.transition is None

    with pytest.raises(InvalidStateError):
        engine.perform_action("DOC-1", scenario.reject.action_id, admin)


def test_approve_resubmits_rejected_document(engine, scenario, admin):
    advance_to_review(engine, scenario, admin)
    engine.perform_action("DOC-1", scenario.reject.action_id, admin)
    engine.complete_status("DOC-1", scenario.approved.status_id, True, admin)

    state = engine.perform_action("DOC-1", scenario.approve.action_id, admin)

    assert state.current_step_id == scenario.final.step_id
    assert state.lifecycle_status == LifecycleStatus.COMPLETED


def test_reject_with_target_sends_document_back(engine, backtrack_scenario, admin):
    s = backtrack_scenario
    advance_to_review(engine, s, admin)
    engine.complete_status("DOC-1", s.approved.status_id, True, admin)

    state = engine.perform_action("DOC-1", s.reject.action_id, admin, target_step_id=s.draft.step_id)

    assert state.lifecycle_status == LifecycleStatus.REJECTED
    assert state.current_step_id == s.draft.step_id
    assert state.completed_statuses == []
    assert engine.get_history("DOC-1")[-1].transition == TransitionKind.RETURN


def test_reject_cannot_send_document_forward(engine, backtrack_scenario, admin):
    s = backtrack_scenario
    engine.assign_circuit("DOC-1", s.circuit.circuit_id, admin)

    with pytest.raises(ValidationError):
        engine.perform_action("DOC-1", s.reject.action_id, admin, target_step_id=s.review.step_id)


def test_reject_in_unordered_circuit_only_goes_to_earlier_steps(engine, unordered_scenario, admin):
    s = unordered_scenario
    engine.assign_circuit("DOC-1", s.circuit.circuit_id, admin)
    engine.move_to_step("DOC-1", s.review.step_id, admin)

    with pytest.raises(ValidationError):
        engine.perform_action("DOC-1", s.reject.action_id, admin, target_step_id=s.final.step_id)

    state = engine.get_current_status("DOC-1", admin)
    assert state.current_step_id == s.review.step_id
    assert state.lifecycle_status == LifecycleStatus.IN_PROGRESS

    state = engine.perform_action("DOC-1", s.reject.action_id, admin, target_step_id=s.draft.step_id)

    assert state.current_step_id == s.draft.step_id
    assert state.lifecycle_status == LifecycleStatus.REJECTED
    assert state.is_circuit_completed is False


def test_reject_target_obeys_backtrack_setting(engine, scenario, admin):
    advance_to_review(engine, scenario, admin)

    with pytest.raises(BacktrackNotAllowedError):
        engine.perform_action("DOC-1", scenario.reject.action_id, admin, target_step_id=scenario.draft.step_id)


# =============================================================================
# Custom move and direct moves
# =============================================================================

def test_custom_move_requires_target(engine, scenario, admin):
    engine.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)

    with pytest.raises(ValidationError):
        engine.perform_action("DOC-1", scenario.move.action_id, admin)


def test_custom_move_goes_through_resolver(engine, backtrack_scenario, admin):
    s = backtrack_scenario
    advance_to_review(engine, s, admin)

    state = engine.perform_action("DOC-1", s.move.action_id, admin, target_step_id=s.draft.step_id)

    assert state.current_step_id == s.draft.step_id
    assert engine.get_history("DOC-1")[-1].transition == TransitionKind.RETURN


def test_move_next_checks_callers_view_of_position(engine, scenario, admin):
    advance_to_review(engine, scenario, admin)

    with pytest.raises(StateConflictError):
        engine.move_to_next_step("DOC-1", scenario.draft.step_id, scenario.review.step_id, admin)


def test_move_next_refuses_to_go_back(engine, backtrack_scenario, admin):
    s = backtrack_scenario
    advance_to_review(engine, s, admin)

    with pytest.raises(ValidationError):
        engine.move_to_next_step("DOC-1", s.review.step_id, s.draft.step_id, admin)

    state = engine.move_to_step("DOC-1", s.draft.step_id, admin)
    assert state.current_step_id == s.draft.step_id
    entry = engine.get_history("DOC-1")[-1]
    assert entry.transition == TransitionKind.RETURN
    assert entry.is_approved is False


def test_checklist_resets_when_step_changes(engine, backtrack_scenario, admin):
    s = backtrack_scenario
    advance_to_review(engine, s, admin)
    engine.complete_status("DOC-1", s.approved.status_id, True, admin)
    engine.move_to_step("DOC-1", s.draft.step_id, admin)

    state = engine.move_to_next_step("DOC-1", s.draft.step_id, s.review.step_id, admin)

    assert state.completed_statuses == []
    assert engine.get_current_status("DOC-1", admin).can_advance_to_next_step is False


def test_step_scoped_action_only_on_its_step(engine, scenario, action_service, admin):
    escalate = action_service.create_action(
        "escalate", "Escalate", ActionEffect.CUSTOM_MOVE, admin, step_id=scenario.review.step_id
    )
    engine.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)

    with pytest.raises(ValidationError):
        engine.perform_action("DOC-1", escalate.action_id, admin, target_step_id=scenario.review.step_id)

    with pytest.raises(ActionNotFoundError):
        engine.perform_action("DOC-1", "ACT-missing", admin)


def test_stale_version_is_rejected(engine, scenario, admin):
    engine.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)
    engine.perform_action("DOC-1", scenario.approve.action_id, admin, expected_version=1)

    with pytest.raises(StateConflictError) as exc:
        engine.perform_action("DOC-1", scenario.reject.action_id, admin, expected_version=1)

    assert exc.value.retryable is True
    assert engine.get_current_status("DOC-1", admin).lifecycle_status == LifecycleStatus.IN_PROGRESS


# =============================================================================
# Permissions
# =============================================================================

def test_simple_user_is_read_only(engine, scenario, admin, viewer):
    engine.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)

    with pytest.raises(PermissionDeniedError):
        engine.perform_action("DOC-1", scenario.approve.action_id, viewer)
    with pytest.raises(PermissionDeniedError):
        engine.assign_circuit("DOC-2", scenario.circuit.circuit_id, viewer)

    assert engine.get_current_status("DOC-1", viewer).available_actions == []


def test_responsible_role_gates_step(engine, scenario, admin, reviewer, outsider):
    engine.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)
    # Draft has no responsible role
    engine.move_to_next_step("DOC-1", scenario.draft.step_id, scenario.review.step_id, outsider)

    with pytest.raises(PermissionDeniedError):
        engine.complete_status("DOC-1", scenario.approved.status_id, True, outsider)

    state = engine.complete_status("DOC-1", scenario.approved.status_id, True, reviewer)
    assert state.completed_status_ids == {scenario.approved.status_id}


# =============================================================================
# Atomicity and concurrency
# =============================================================================

@pytest.fixture
def flaky_engine(repos, memory_settings):
    repos.history = FlakyHistoryRepository()
    return WorkflowEngine(repositories=repos, config=memory_settings, locks=DocumentLocks())


def test_failed_history_write_undoes_assignment(flaky_engine, repos, scenario, admin):
    repos.history.failing = True

    with pytest.raises(HistoryWriteError):
        flaky_engine.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)

    assert repos.states.get_state("DOC-1") is None


def test_failed_history_write_restores_previous_state(flaky_engine, repos, scenario, admin):
    flaky_engine.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)
    before = repos.states.get_state("DOC-1")
    repos.history.failing = True

    with pytest.raises(HistoryWriteError):
        flaky_engine.perform_action("DOC-1", scenario.approve.action_id, admin)

    assert repos.states.get_state("DOC-1") == before
    repos.history.failing = False
    assert len(flaky_engine.get_history("DOC-1")) == 1

    # the document is still usable with the version it had
    state = flaky_engine.perform_action("DOC-1", scenario.approve.action_id, admin, expected_version=before.version)
    assert state.current_step_id == scenario.review.step_id


def test_concurrent_actions_with_same_version_one_wins(engine, scenario, admin):
    engine.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)
    barrier = threading.Barrier(2)
    outcomes = []

    def act():
        barrier.wait()
        try:
            engine.perform_action("DOC-1", scenario.approve.action_id, admin, expected_version=1)
            outcomes.append("ok")
        except StateConflictError:
            outcomes.append("conflict")

    threads = [threading.Thread(target=act) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["conflict", "ok"]
    state = engine.get_current_status("DOC-1", admin)
    assert state.current_step_id == scenario.review.step_id
    assert len(engine.get_history("DOC-1")) == 2


def test_engines_sharing_a_store_detect_stale_writes(repos, memory_settings, scenario, admin):
    first = WorkflowEngine(repositories=repos, config=memory_settings, locks=DocumentLocks())
    second = WorkflowEngine(repositories=repos, config=memory_settings, locks=DocumentLocks())
    first.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)
    stale = repos.states.get_state("DOC-1")

    first.perform_action("DOC-1", scenario.approve.action_id, admin)

    with pytest.raises(StateConflictError):
        second.committer.commit(stale, stale, second.history_log.new_entry(
            document_id="DOC-1", event_type=HistoryEventType.MOVE, actor=admin
        ))
    assert len(second.get_history("DOC-1")) == 2
