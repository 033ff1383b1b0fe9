"""In-memory implementation of the repositories.

Useful for tests or when no database is configured. Data is not persisted
across process restarts. Stored models are copied on the way in and out so
callers never share mutable state with the store.
"""

import threading
from typing import Any, Dict, Iterator, List, Optional

from ..domain.enums import LifecycleStatus
from ..domain.errors import (
    ActionNotFoundError, AlreadyExistsError, CircuitNotFoundError,
    DocumentNotFoundError, StateConflictError, StatusNotFoundError,
    StepNotFoundError
)
from ..domain.models import (
    Action, Circuit, DocumentWorkflowState, HistoryEntry, Status, Step
)
from ..utils.time import utc_now


def _copy(model):
    return model.model_copy(deep=True)


def _apply(model, updates: Dict[str, Any]):
    data = model.model_dump()
    data.update(updates)
    return type(model).model_validate(data)


class InMemoryCircuitRepository:
    """Store circuits and steps in local memory."""

    def __init__(self) -> None:
        self._circuits: Dict[str, Circuit] = {}
        self._steps: Dict[str, Step] = {}
        self._lock = threading.Lock()

    def create_circuit(self, circuit: Circuit) -> Circuit:
        with self._lock:
            if circuit.circuit_id in self._circuits or any(
                c.circuit_key == circuit.circuit_key for c in self._circuits.values()
            ):
                raise AlreadyExistsError(f"Circuit {circuit.circuit_key} already exists")
            self._circuits[circuit.circuit_id] = _copy(circuit)
        return circuit

    def get_circuit(self, circuit_id: str) -> Optional[Circuit]:
        circuit = self._circuits.get(circuit_id)
        return _copy(circuit) if circuit else None

    def list_circuits(self, is_active: Optional[bool] = None) -> List[Circuit]:
        circuits = [
            c for c in self._circuits.values()
            if is_active is None or c.is_active == is_active
        ]
        return [_copy(c) for c in sorted(circuits, key=lambda c: c.title)]

    def update_circuit(self, circuit_id: str, updates: Dict[str, Any]) -> Circuit:
        with self._lock:
            circuit = self._circuits.get(circuit_id)
            if circuit is None:
                raise CircuitNotFoundError(f"Circuit {circuit_id} not found")
            updated = _apply(circuit, {**updates, "updated_at": utc_now()})
            self._circuits[circuit_id] = updated
        return _copy(updated)

    def delete_circuit(self, circuit_id: str) -> bool:
        with self._lock:
            for step_id in [s.step_id for s in self._steps.values() if s.circuit_id == circuit_id]:
                del self._steps[step_id]
            return self._circuits.pop(circuit_id, None) is not None

    def create_step(self, step: Step) -> Step:
        with self._lock:
            self._steps[step.step_id] = _copy(step)
        return step

    def get_step(self, step_id: str) -> Optional[Step]:
        step = self._steps.get(step_id)
        return _copy(step) if step else None

    def list_steps(self, circuit_id: str) -> List[Step]:
        steps = [s for s in self._steps.values() if s.circuit_id == circuit_id]
        steps.sort(key=lambda s: (s.order_index, s.created_at))
        return [_copy(s) for s in steps]

    def update_step(self, step_id: str, updates: Dict[str, Any]) -> Step:
        with self._lock:
            step = self._steps.get(step_id)
            if step is None:
                raise StepNotFoundError(f"Step {step_id} not found")
            updated = _apply(step, {**updates, "updated_at": utc_now()})
            self._steps[step_id] = updated
        return _copy(updated)

    def delete_step(self, step_id: str) -> bool:
        with self._lock:
            return self._steps.pop(step_id, None) is not None


class InMemoryStatusRepository:
    """Store statuses in local memory."""

    def __init__(self) -> None:
        self._statuses: Dict[str, Status] = {}
        self._lock = threading.Lock()

    def create_status(self, status: Status) -> Status:
        with self._lock:
            self._statuses[status.status_id] = _copy(status)
        return status

    def get_status(self, status_id: str) -> Optional[Status]:
        status = self._statuses.get(status_id)
        return _copy(status) if status else None

    def list_statuses(self, step_id: str) -> List[Status]:
        # dicts keep insertion order, which is creation order here
        return [_copy(s) for s in self._statuses.values() if s.step_id == step_id]

    def update_status(self, status_id: str, updates: Dict[str, Any]) -> Status:
        with self._lock:
            status = self._statuses.get(status_id)
            if status is None:
                raise StatusNotFoundError(f"Status {status_id} not found")
            updated = _apply(status, updates)
            self._statuses[status_id] = updated
        return _copy(updated)

    def delete_status(self, status_id: str) -> bool:
        with self._lock:
            return self._statuses.pop(status_id, None) is not None

    def delete_statuses_for_step(self, step_id: str) -> int:
        with self._lock:
            doomed = [sid for sid, s in self._statuses.items() if s.step_id == step_id]
            for status_id in doomed:
                del self._statuses[status_id]
        return len(doomed)


class InMemoryActionRepository:
    """Store actions in local memory."""

    def __init__(self) -> None:
        self._actions: Dict[str, Action] = {}
        self._lock = threading.Lock()

    def create_action(self, action: Action) -> Action:
        with self._lock:
            if any(a.action_key == action.action_key for a in self._actions.values()):
                raise AlreadyExistsError(f"Action {action.action_key} already exists")
            self._actions[action.action_id] = _copy(action)
        return action

    def get_action(self, action_id: str) -> Optional[Action]:
        action = self._actions.get(action_id)
        return _copy(action) if action else None

    def list_actions(self, step_id: Optional[str] = None) -> List[Action]:
        return [
            _copy(a) for a in self._actions.values()
            if step_id is None or a.step_id in (None, step_id)
        ]

    def update_action(self, action_id: str, updates: Dict[str, Any]) -> Action:
        with self._lock:
            action = self._actions.get(action_id)
            if action is None:
                raise ActionNotFoundError(f"Action {action_id} not found")
            updated = _apply(action, updates)
            self._actions[action_id] = updated
        return _copy(updated)

    def delete_action(self, action_id: str) -> bool:
        with self._lock:
            return self._actions.pop(action_id, None) is not None

    def delete_actions_for_step(self, step_id: str) -> int:
        with self._lock:
            doomed = [aid for aid, a in self._actions.items() if a.step_id == step_id]
            for action_id in doomed:
                del self._actions[action_id]
        return len(doomed)


class InMemoryDocumentStateRepository:
    """Store document workflow states in local memory."""

    def __init__(self) -> None:
        self._states: Dict[str, DocumentWorkflowState] = {}
        self._lock = threading.Lock()

    def insert_state(self, state: DocumentWorkflowState) -> DocumentWorkflowState:
        with self._lock:
            if state.document_id in self._states:
                raise StateConflictError(
                    f"Document {state.document_id} was assigned concurrently. Please refresh and try again.",
                    details={"document_id": state.document_id}
                )
            self._states[state.document_id] = _copy(state)
        return _copy(state)

    def get_state(self, document_id: str) -> Optional[DocumentWorkflowState]:
        state = self._states.get(document_id)
        return _copy(state) if state else None

    def save_state(
        self, state: DocumentWorkflowState, expected_version: int
    ) -> DocumentWorkflowState:
        with self._lock:
            self._check_version(state.document_id, expected_version)
            stored = state.model_copy(update={"version": expected_version + 1}, deep=True)
            self._states[state.document_id] = stored
        return _copy(stored)

    def restore_state(self, state: DocumentWorkflowState, expected_version: int) -> None:
        with self._lock:
            self._check_version(state.document_id, expected_version)
            self._states[state.document_id] = _copy(state)

    def delete_state(self, document_id: str, expected_version: int) -> None:
        with self._lock:
            self._check_version(document_id, expected_version)
            del self._states[document_id]

    def list_states(
        self, lifecycle_statuses: Optional[List[LifecycleStatus]] = None
    ) -> List[DocumentWorkflowState]:
        states = [
            s for s in self._states.values()
            if not lifecycle_statuses or s.lifecycle_status in lifecycle_statuses
        ]
        return [_copy(s) for s in sorted(states, key=lambda s: s.document_id)]

    def count_for_circuit(self, circuit_id: str) -> int:
        return sum(1 for s in self._states.values() if s.circuit_id == circuit_id)

    def count_for_step(self, step_id: str) -> int:
        return sum(1 for s in self._states.values() if s.current_step_id == step_id)

    def _check_version(self, document_id: str, expected_version: int) -> None:
        current = self._states.get(document_id)
        if current is None:
            raise DocumentNotFoundError(f"Document {document_id} has no workflow state")
        if current.version != expected_version:
            raise StateConflictError(
                f"Document {document_id} was modified. Please refresh and try again.",
                details={"expected_version": expected_version, "current_version": current.version}
            )


class InMemoryHistoryRepository:
    """Store history entries in local memory (append-only)."""

    def __init__(self) -> None:
        self._entries: List[HistoryEntry] = []
        self._lock = threading.Lock()

    def append(self, entry: HistoryEntry) -> HistoryEntry:
        with self._lock:
            self._entries.append(_copy(entry))
        return entry

    def iter_for_document(self, document_id: str) -> Iterator[HistoryEntry]:
        return self._iter(lambda e: e.document_id == document_id)

    def iter_for_step(self, step_id: str) -> Iterator[HistoryEntry]:
        return self._iter(lambda e: e.step_id == step_id)

    def _iter(self, predicate) -> Iterator[HistoryEntry]:
        with self._lock:
            snapshot = [e for e in self._entries if predicate(e)]
        # stable sort keeps append order for equal timestamps
        snapshot.sort(key=lambda e: e.processed_at)
        for entry in snapshot:
            yield _copy(entry)
