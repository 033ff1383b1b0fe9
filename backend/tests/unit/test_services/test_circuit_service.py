import logging

import pytest

from circuitflow.domain.errors import (
    CircuitNotFoundError, ConflictError, DuplicateOrderIndexError,
    PermissionDeniedError, StepNotFoundError, ValidationError
)


@pytest.fixture
def circuit(circuit_service, admin):
    return circuit_service.create_circuit("Invoices", admin, description="Incoming invoices")


def test_create_circuit_generates_key(circuit):
    assert circuit.circuit_id.startswith("CRC-")
    assert circuit.circuit_key.startswith("CRC-")
    assert circuit.has_ordered_flow is True
    assert circuit.allow_backtrack is False


def test_list_and_filter_circuits(circuit_service, circuit, admin):
    circuit_service.create_circuit("Archive", admin, is_active=False)

    assert [c.title for c in circuit_service.list_circuits()] == ["Archive", "Invoices"]
    assert [c.title for c in circuit_service.list_circuits(is_active=True)] == ["Invoices"]


def test_steps_default_to_next_index(circuit_service, circuit, admin):
    first = circuit_service.create_step(circuit.circuit_id, "Capture", admin)
    second = circuit_service.create_step(circuit.circuit_id, "Check", admin)

    assert (first.order_index, second.order_index) == (0, 1)
    assert [s.step_id for s in circuit_service.list_steps(circuit.circuit_id)] == [first.step_id, second.step_id]


def test_duplicate_order_index_rejected(circuit_service, circuit, admin):
    circuit_service.create_step(circuit.circuit_id, "Capture", admin)

    with pytest.raises(DuplicateOrderIndexError) as exc:
        circuit_service.create_step(circuit.circuit_id, "Again", admin, order_index=0)
    assert exc.value.http_status == 409


def test_ordered_circuit_keeps_indexes_contiguous(circuit_service, circuit, admin):
    with pytest.raises(ValidationError):
        circuit_service.create_step(circuit.circuit_id, "Gap", admin, order_index=3)


def test_unordered_circuit_accepts_gaps(circuit_service, admin):
    circuit = circuit_service.create_circuit("Loose", admin, has_ordered_flow=False)

    step = circuit_service.create_step(circuit.circuit_id, "Anywhere", admin, order_index=10)

    assert step.order_index == 10


def test_final_step_must_be_last(circuit_service, circuit, admin):
    circuit_service.create_step(circuit.circuit_id, "Capture", admin)
    circuit_service.create_step(circuit.circuit_id, "Done", admin, is_final_step=True)

    with pytest.raises(ValidationError):
        circuit_service.create_step(circuit.circuit_id, "After done", admin)


def test_final_flag_only_on_highest_step(circuit_service, circuit, admin):
    first = circuit_service.create_step(circuit.circuit_id, "Capture", admin)
    circuit_service.create_step(circuit.circuit_id, "Check", admin)

    with pytest.raises(ValidationError):
        circuit_service.update_step(first.step_id, {"is_final_step": True}, admin)


def test_ordered_steps_reordered_only_through_reorder(circuit_service, circuit, admin):
    first = circuit_service.create_step(circuit.circuit_id, "Capture", admin)
    second = circuit_service.create_step(circuit.circuit_id, "Check", admin)

    with pytest.raises(ValidationError):
        circuit_service.update_step(first.step_id, {"order_index": 1}, admin)

    steps = circuit_service.reorder_steps(
        circuit.circuit_id, [(first.step_id, 1), (second.step_id, 0)], admin
    )

    assert [s.title for s in steps] == ["Check", "Capture"]


def test_reorder_must_be_a_permutation(circuit_service, circuit, admin):
    first = circuit_service.create_step(circuit.circuit_id, "Capture", admin)
    second = circuit_service.create_step(circuit.circuit_id, "Check", admin)

    with pytest.raises(ValidationError):
        circuit_service.reorder_steps(circuit.circuit_id, [(first.step_id, 0), (second.step_id, 2)], admin)
    with pytest.raises(ValidationError):
        circuit_service.reorder_steps(circuit.circuit_id, [(first.step_id, 0)], admin)


def test_reorder_keeps_final_step_on_top(circuit_service, circuit, admin):
    first = circuit_service.create_step(circuit.circuit_id, "Capture", admin)
    final = circuit_service.create_step(circuit.circuit_id, "Done", admin, is_final_step=True)

    with pytest.raises(ValidationError):
        circuit_service.reorder_steps(circuit.circuit_id, [(first.step_id, 1), (final.step_id, 0)], admin)


def test_delete_step_renumbers_and_cascades(
    circuit_service, status_service, action_service, repos, circuit, admin
):
    from circuitflow.domain.enums import ActionEffect

    first = circuit_service.create_step(circuit.circuit_id, "Capture", admin)
    middle = circuit_service.create_step(circuit.circuit_id, "Check", admin)
    last = circuit_service.create_step(circuit.circuit_id, "Book", admin)
    status_service.create_status(middle.step_id, "Checked", admin, is_required=True)
    action_service.create_action("recheck", "Recheck", ActionEffect.CUSTOM_MOVE, admin, step_id=middle.step_id)

    circuit_service.delete_step(middle.step_id, admin)

    steps = circuit_service.list_steps(circuit.circuit_id)
    assert [(s.step_id, s.order_index) for s in steps] == [(first.step_id, 0), (last.step_id, 1)]
    assert repos.statuses.list_statuses(middle.step_id) == []
    assert action_service.list_actions() == []
    with pytest.raises(StepNotFoundError):
        circuit_service.get_step(middle.step_id)


def test_switching_to_ordered_validates_steps(circuit_service, admin):
    circuit = circuit_service.create_circuit("Loose", admin, has_ordered_flow=False)
    circuit_service.create_step(circuit.circuit_id, "A", admin, order_index=0)
    circuit_service.create_step(circuit.circuit_id, "B", admin, order_index=5)

    with pytest.raises(ValidationError):
        circuit_service.update_circuit(circuit.circuit_id, {"has_ordered_flow": True}, admin)

    updated = circuit_service.update_circuit(circuit.circuit_id, {"allow_backtrack": True}, admin)
    assert updated.allow_backtrack is True


def test_in_use_circuit_and_step_cannot_be_deleted(circuit_service, engine, scenario, admin):
    engine.assign_circuit("DOC-1", scenario.circuit.circuit_id, admin)

    with pytest.raises(ConflictError):
        circuit_service.delete_step(scenario.draft.step_id, admin)
    with pytest.raises(ConflictError):
        circuit_service.delete_circuit(scenario.circuit.circuit_id, admin)


def assign_during_usage_check(monkeypatch, engine, repos, actor, method, circuit_id):
    """Assign DOC-1 right after the first usage count, as a concurrent writer would"""
    real_count = getattr(repos.states, method)
    calls = []

    def count_then_assign(key):
        documents = real_count(key)
        if not calls:
            calls.append(key)
            engine.assign_circuit("DOC-1", circuit_id, actor)
        return documents

    monkeypatch.setattr(repos.states, method, count_then_assign)


def test_circuit_delete_reports_documents_assigned_meanwhile(
    circuit_service, engine, repos, scenario, admin, monkeypatch, caplog
):
    circuit_id = scenario.circuit.circuit_id
    assign_during_usage_check(monkeypatch, engine, repos, admin, "count_for_circuit", circuit_id)

    with caplog.at_level(logging.ERROR, logger="circuitflow.services.circuit_service"):
        circuit_service.delete_circuit(circuit_id, admin)

    assert [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR] == [
        f"1 document(s) still reference deleted circuit {circuit_id}"
    ]


def test_step_delete_reports_documents_assigned_meanwhile(
    circuit_service, engine, repos, scenario, admin, monkeypatch, caplog
):
    draft_id = scenario.draft.step_id
    assign_during_usage_check(
        monkeypatch, engine, repos, admin, "count_for_step", scenario.circuit.circuit_id
    )

    with caplog.at_level(logging.ERROR, logger="circuitflow.services.circuit_service"):
        circuit_service.delete_step(draft_id, admin)

    assert [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR] == [
        f"1 document(s) still reference deleted step {draft_id}"
    ]


def test_unused_delete_logs_no_orphans(circuit_service, circuit, admin, caplog):
    with caplog.at_level(logging.ERROR, logger="circuitflow.services.circuit_service"):
        circuit_service.delete_circuit(circuit.circuit_id, admin)

    assert not [r for r in caplog.records if r.levelno == logging.ERROR]


def test_delete_unused_circuit(circuit_service, circuit, admin):
    circuit_service.create_step(circuit.circuit_id, "Capture", admin)

    circuit_service.delete_circuit(circuit.circuit_id, admin)

    with pytest.raises(CircuitNotFoundError):
        circuit_service.get_circuit(circuit.circuit_id)


def test_unknown_fields_rejected(circuit_service, circuit, admin):
    with pytest.raises(ValidationError):
        circuit_service.update_circuit(circuit.circuit_id, {"circuit_key": "X"}, admin)


def test_simple_user_cannot_configure(circuit_service, viewer):
    with pytest.raises(PermissionDeniedError):
        circuit_service.create_circuit("Nope", viewer)
