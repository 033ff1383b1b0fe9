import pytest

from circuitflow.domain.enums import HistoryEventType, LifecycleStatus
from circuitflow.domain.errors import InvalidStatusError, StatusNotFoundError


@pytest.fixture
def at_review(engine, scenario, admin):
    engine.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)
    engine.move_to_next_step("DOC-1", scenario.draft.step_id, scenario.review.step_id, admin)
    return scenario


def action_titles(view):
    return [a.title for a in view.available_actions]


def test_view_describes_position(engine, at_review, reviewer):
    view = engine.get_current_status("DOC-1", reviewer)

    assert view.circuit_title == "Contract approval"
    assert view.current_step_title == "Review"
    assert view.lifecycle_status == LifecycleStatus.IN_PROGRESS
    assert view.next_step_id == at_review.final.step_id
    assert view.previous_step_id == at_review.draft.step_id
    assert [(i.title, i.is_required, i.is_complete) for i in view.statuses] == [
        ("Approved", True, False),
        ("Signed off", False, False),
    ]


def test_checklist_records_who_completed_a_status(engine, at_review, reviewer):
    engine.complete_status("DOC-1", at_review.approved.status_id, True, reviewer)

    item = engine.get_current_status("DOC-1", reviewer).statuses[0]

    assert item.is_complete is True
    assert item.completed_by == reviewer.user_id
    assert item.completed_at is not None


def test_available_actions_follow_state(engine, at_review, reviewer):
    assert action_titles(engine.get_current_status("DOC-1", reviewer)) == ["Reject"]

    engine.complete_status("DOC-1", at_review.approved.status_id, True, reviewer)

    assert action_titles(engine.get_current_status("DOC-1", reviewer)) == ["Approve", "Reject", "Move"]


def test_available_actions_hidden_from_other_roles(engine, at_review, outsider):
    assert engine.get_current_status("DOC-1", outsider).available_actions == []


def test_available_actions_for_first_step(engine, scenario, admin):
    engine.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)

    assert action_titles(engine.get_current_status("DOC-1", admin)) == ["Approve", "Reject", "Move"]


def test_return_flag_ignores_status_completion(engine, backtrack_scenario, admin):
    s = backtrack_scenario
    engine.assign_circuit("DOC-1", s.circuit.circuit_id, admin)
    engine.move_to_next_step("DOC-1", s.draft.step_id, s.review.step_id, admin)

    view = engine.get_current_status("DOC-1", admin)

    assert view.can_return_to_previous_step is True
    assert view.can_advance_to_next_step is False


def test_return_flag_off_without_backtrack(engine, at_review, admin):
    assert engine.get_current_status("DOC-1", admin).can_return_to_previous_step is False


def test_unordered_circuit_never_offers_advance(engine, unordered_scenario, admin):
    engine.assign_circuit("DOC-1", unordered_scenario.circuit.circuit_id, admin)

    view = engine.get_current_status("DOC-1", admin)

    assert view.can_advance_to_next_step is False
    assert view.next_step_id == unordered_scenario.review.step_id


def test_toggle_writes_one_history_entry(engine, at_review, reviewer):
    before = len(engine.get_history("DOC-1"))

    state = engine.complete_status("DOC-1", at_review.approved.status_id, True, reviewer, comments="ok")

    history = engine.get_history("DOC-1")
    assert len(history) == before + 1
    assert history[-1].event_type == HistoryEventType.STATUS_CHANGE
    assert history[-1].status_id == at_review.approved.status_id
    assert history[-1].is_approved is True
    assert history[-1].comments == "ok"
    assert state.version == 3


def test_repeating_a_toggle_changes_nothing(engine, at_review, reviewer):
    first = engine.complete_status("DOC-1", at_review.approved.status_id, True, reviewer)
    again = engine.complete_status("DOC-1", at_review.approved.status_id, True, reviewer)

    assert again.version == first.version
    assert len(engine.get_history("DOC-1")) == 3


def test_toggle_off_reopens_requirement(engine, at_review, reviewer):
    engine.complete_status("DOC-1", at_review.approved.status_id, True, reviewer)
    state = engine.complete_status("DOC-1", at_review.approved.status_id, False, reviewer)

    assert state.completed_statuses == []
    assert engine.get_history("DOC-1")[-1].is_approved is False
    assert engine.get_current_status("DOC-1", reviewer).can_advance_to_next_step is False


def test_status_of_another_step_is_rejected(engine, scenario, admin):
    engine.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)

    with pytest.raises(InvalidStatusError):
        engine.complete_status("DOC-1", scenario.approved.status_id, True, admin)
    with pytest.raises(StatusNotFoundError):
        engine.complete_status("DOC-1", "STS-missing", True, admin)


def test_completing_last_requirement_on_final_step_closes_document(
    engine, scenario, status_service, admin
):
    archived = status_service.create_status(scenario.final.step_id, "Archived", admin, is_required=True)
    engine.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)
    engine.move_to_next_step("DOC-1", scenario.draft.step_id, scenario.review.step_id, admin)
    engine.complete_status("DOC-1", scenario.approved.status_id, True, admin)
    engine.move_to_next_step("DOC-1", scenario.review.step_id, scenario.final.step_id, admin)

    state = engine.complete_status("DOC-1", archived.status_id, True, admin)

    assert state.lifecycle_status == LifecycleStatus.COMPLETED
    assert state.is_circuit_completed is True


def test_pending_documents_by_role(engine, scenario, admin, reviewer, outsider, viewer):
    engine.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)
    engine.assign_circuit("DOC-2", scenario.circuit.circuit_id, admin)
    engine.move_to_next_step("DOC-2", scenario.draft.step_id, scenario.review.step_id, admin)

    assert [v.document_id for v in engine.list_pending_documents(reviewer)] == ["DOC-1", "DOC-2"]
    assert [v.document_id for v in engine.list_pending_documents(outsider)] == ["DOC-1"]
    assert engine.list_pending_documents(viewer) == []
