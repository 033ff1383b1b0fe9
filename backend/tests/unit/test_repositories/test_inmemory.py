import pytest

from circuitflow.domain.enums import LifecycleStatus
from circuitflow.domain.errors import DocumentNotFoundError, StateConflictError
from circuitflow.domain.models import DocumentWorkflowState
from circuitflow.repositories.inmemory import InMemoryDocumentStateRepository
from circuitflow.utils.time import utc_now


@pytest.fixture
def states():
    return InMemoryDocumentStateRepository()


def make_state(document_id="DOC-1", **updates):
    now = utc_now()
    state = DocumentWorkflowState(
        document_id=document_id, circuit_id="CRC-1", current_step_id="STP-1",
        lifecycle_status=LifecycleStatus.IN_PROGRESS, assigned_at=now, updated_at=now
    )
    return state.model_copy(update=updates)


def test_save_bumps_version(states):
    states.insert_state(make_state())

    saved = states.save_state(make_state(current_step_id="STP-2"), expected_version=1)

    assert saved.version == 2
    assert states.get_state("DOC-1").current_step_id == "STP-2"


def test_save_with_stale_version_conflicts(states):
    states.insert_state(make_state())
    states.save_state(make_state(), expected_version=1)

    with pytest.raises(StateConflictError):
        states.save_state(make_state(current_step_id="STP-9"), expected_version=1)

    assert states.get_state("DOC-1").current_step_id == "STP-1"


def test_second_insert_conflicts(states):
    states.insert_state(make_state())

    with pytest.raises(StateConflictError):
        states.insert_state(make_state())


def test_save_unknown_document(states):
    with pytest.raises(DocumentNotFoundError):
        states.save_state(make_state(), expected_version=1)


def test_returned_states_are_copies(states):
    states.insert_state(make_state())

    loaded = states.get_state("DOC-1")
    loaded.completed_statuses.append(None)

    assert states.get_state("DOC-1").completed_statuses == []


def test_filters_and_counts(states):
    states.insert_state(make_state("DOC-1"))
    states.insert_state(make_state("DOC-2", lifecycle_status=LifecycleStatus.COMPLETED, current_step_id="STP-3"))

    assert [s.document_id for s in states.list_states([LifecycleStatus.IN_PROGRESS])] == ["DOC-1"]
    assert len(states.list_states()) == 2
    assert states.count_for_circuit("CRC-1") == 2
    assert states.count_for_step("STP-3") == 1
