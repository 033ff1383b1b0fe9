"""Repository protocols shared by the MongoDB and in-memory backends."""

from typing import Any, Dict, Iterator, List, Optional, Protocol

from ..domain.enums import LifecycleStatus
from ..domain.models import (
    Action, Circuit, DocumentWorkflowState, HistoryEntry, Status, Step
)


class CircuitRepository(Protocol):
    """Circuits and their steps."""

    def create_circuit(self, circuit: Circuit) -> Circuit:
        """Insert a circuit."""

    def get_circuit(self, circuit_id: str) -> Optional[Circuit]:
        """Circuit by id, or None."""

    def list_circuits(self, is_active: Optional[bool] = None) -> List[Circuit]:
        """Circuits ordered by title."""

    def update_circuit(self, circuit_id: str, updates: Dict[str, Any]) -> Circuit:
        """Apply field updates and return the stored circuit."""

    def delete_circuit(self, circuit_id: str) -> bool:
        """Remove a circuit; True if it existed."""

    def create_step(self, step: Step) -> Step:
        """Insert a step."""

    def get_step(self, step_id: str) -> Optional[Step]:
        """Step by id, or None."""

    def list_steps(self, circuit_id: str) -> List[Step]:
        """Steps of a circuit ascending by order_index."""

    def update_step(self, step_id: str, updates: Dict[str, Any]) -> Step:
        """Apply field updates and return the stored step."""

    def delete_step(self, step_id: str) -> bool:
        """Remove a step; True if it existed."""


class StatusRepository(Protocol):
    """Status checklist items scoped to steps."""

    def create_status(self, status: Status) -> Status:
        """Insert a status."""

    def get_status(self, status_id: str) -> Optional[Status]:
        """Status by id, or None."""

    def list_statuses(self, step_id: str) -> List[Status]:
        """Statuses of a step in creation order."""

    def update_status(self, status_id: str, updates: Dict[str, Any]) -> Status:
        """Apply field updates and return the stored status."""

    def delete_status(self, status_id: str) -> bool:
        """Remove a status; True if it existed."""

    def delete_statuses_for_step(self, step_id: str) -> int:
        """Remove every status of a step."""


class ActionRepository(Protocol):
    """Actions offered on documents."""

    def create_action(self, action: Action) -> Action:
        """Insert an action."""

    def get_action(self, action_id: str) -> Optional[Action]:
        """Action by id, or None."""

    def list_actions(self, step_id: Optional[str] = None) -> List[Action]:
        """Global actions plus those scoped to ``step_id`` (all when None)."""

    def update_action(self, action_id: str, updates: Dict[str, Any]) -> Action:
        """Apply field updates and return the stored action."""

    def delete_action(self, action_id: str) -> bool:
        """Remove an action; True if it existed."""

    def delete_actions_for_step(self, step_id: str) -> int:
        """Remove actions scoped to a step."""


class DocumentStateRepository(Protocol):
    """Per-document workflow state with optimistic concurrency."""

    def insert_state(self, state: DocumentWorkflowState) -> DocumentWorkflowState:
        """Create the first state of a document; StateConflictError if one exists."""

    def get_state(self, document_id: str) -> Optional[DocumentWorkflowState]:
        """Last committed state, or None."""

    def save_state(
        self, state: DocumentWorkflowState, expected_version: int
    ) -> DocumentWorkflowState:
        """Replace the state if its stored version matches; bumps the version."""

    def restore_state(
        self, state: DocumentWorkflowState, expected_version: int
    ) -> None:
        """Put back an earlier snapshot verbatim (rollback of a failed commit)."""

    def delete_state(self, document_id: str, expected_version: int) -> None:
        """Remove a state created by a commit that failed."""

    def list_states(
        self, lifecycle_statuses: Optional[List[LifecycleStatus]] = None
    ) -> List[DocumentWorkflowState]:
        """States, optionally filtered by lifecycle status."""

    def count_for_circuit(self, circuit_id: str) -> int:
        """Documents assigned to a circuit."""

    def count_for_step(self, step_id: str) -> int:
        """Documents currently positioned on a step."""


class HistoryRepository(Protocol):
    """Append-only document history."""

    def append(self, entry: HistoryEntry) -> HistoryEntry:
        """Store an entry; storage errors propagate."""

    def iter_for_document(self, document_id: str) -> Iterator[HistoryEntry]:
        """Entries of a document ascending by processed_at."""

    def iter_for_step(self, step_id: str) -> Iterator[HistoryEntry]:
        """Entries recorded at a step ascending by processed_at."""
