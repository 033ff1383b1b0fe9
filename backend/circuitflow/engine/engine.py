"""
Workflow Engine - Entry point for document workflow operations

=============================================================================
MODULE STRUCTURE
=============================================================================

1. INITIALIZATION
   - Wire repositories, resolver, guard, history log and document locks

2. ASSIGNMENT
   - assign_circuit: Place a document at the first step of a circuit

3. QUERIES
   - get_current_status: Status view with checklist and affordances
   - get_circuit_steps / get_step_statuses: Configuration lookups
   - get_history: History of a document
   - list_pending_documents: Open documents the caller can act on

4. MUTATIONS
   - perform_action: Approve, reject or custom move
   - move_to_next_step / move_to_step: Direct moves
   - complete_status: Toggle a checklist item

=============================================================================
DEPENDENCIES
=============================================================================

Repositories:
    - Repositories: circuit, status, action, state and history stores

Components:
    - TransitionResolver: Classify and validate step changes
    - PermissionGuard: Role checks
    - WorkflowStateTracker: Views and status toggles
    - ActionExecutor: Actions and moves
    - HistoryLog / StateCommitter: Atomic state plus history writes

=============================================================================
"""

from datetime import datetime
from typing import List, Optional

from ..config.settings import Settings, settings as default_settings
from ..domain.models import (
    ActorContext, DocumentWorkflowState, HistoryEntry, Status, Step, WorkflowStatusView
)
from ..domain.errors import CircuitNotFoundError, StepNotFoundError
from ..repositories import Repositories, get_repositories
from .action_executor import ActionExecutor
from .commit import StateCommitter
from .document_locks import DocumentLocks, get_document_locks
from .history_log import HistoryLog
from .permission_guard import PermissionGuard
from .requirements import RequirementChecker
from .state_tracker import WorkflowStateTracker
from .transition_resolver import TransitionResolver
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WorkflowEngine:
    """
    The Workflow Engine - Orchestrates document movement through circuits

    Responsibilities:
    - Track each document's position and status checklist
    - Validate every transition against the circuit rules
    - Enforce role permissions through PermissionGuard
    - Record exactly one history entry per change, atomically with the state
    - Serialize writers per document

    Every call takes the caller identity explicitly as ``actor``.
    """

    def __init__(
        self,
        repositories: Optional[Repositories] = None,
        config: Optional[Settings] = None,
        locks: Optional[DocumentLocks] = None
    ):
        self.config = config or default_settings
        self.repos = repositories or get_repositories()
        self.locks = locks or get_document_locks()

        self.requirement_checker = RequirementChecker()
        self.permission_guard = PermissionGuard()
        self.resolver = TransitionResolver(
            requirement_checker=self.requirement_checker,
            gate_arbitrary_moves=self.config.gate_arbitrary_moves
        )
        self.history_log = HistoryLog(self.repos.history)
        self.committer = StateCommitter(self.repos.states, self.history_log)
        self.tracker = WorkflowStateTracker(
            repositories=self.repos,
            resolver=self.resolver,
            permission_guard=self.permission_guard,
            history_log=self.history_log,
            committer=self.committer,
            locks=self.locks,
            requirement_checker=self.requirement_checker
        )
        self.executor = ActionExecutor(
            repositories=self.repos,
            tracker=self.tracker,
            resolver=self.resolver,
            permission_guard=self.permission_guard,
            history_log=self.history_log,
            committer=self.committer,
            locks=self.locks,
            requirement_checker=self.requirement_checker
        )

    # =========================================================================
    # Assignment
    # =========================================================================

    def assign_circuit(
        self,
        document_id: str,
        circuit_id: str,
        actor: ActorContext,
        comments: Optional[str] = None
    ) -> DocumentWorkflowState:
        """Assign a document to a circuit at its first step"""
        return self.executor.assign_circuit(document_id, circuit_id, actor, comments)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_current_status(
        self,
        document_id: str,
        actor: Optional[ActorContext] = None
    ) -> WorkflowStatusView:
        """Current workflow status of a document"""
        return self.tracker.get_status(document_id, actor)

    def get_circuit_steps(self, circuit_id: str) -> List[Step]:
        """Steps of a circuit ascending by order index"""
        if self.repos.circuits.get_circuit(circuit_id) is None:
            raise CircuitNotFoundError(
                f"Circuit {circuit_id} not found",
                details={"circuit_id": circuit_id}
            )
        return self.repos.circuits.list_steps(circuit_id)

    def get_step_statuses(self, step_id: str) -> List[Status]:
        """Statuses of a step in creation order"""
        if self.repos.circuits.get_step(step_id) is None:
            raise StepNotFoundError(
                f"Step {step_id} not found",
                details={"step_id": step_id}
            )
        return self.repos.statuses.list_statuses(step_id)

    def get_history(
        self, document_id: str, since: Optional[datetime] = None
    ) -> List[HistoryEntry]:
        """History of a document ascending by processed_at, optionally from ``since`` on"""
        self.tracker.get_state_or_raise(document_id)
        return list(self.history_log.query(document_id=document_id, since=since))

    def list_pending_documents(self, actor: ActorContext) -> List[WorkflowStatusView]:
        """Open documents positioned on steps the actor may act on"""
        return self.tracker.list_pending(actor)

    # =========================================================================
    # Mutations
    # =========================================================================

    def perform_action(
        self,
        document_id: str,
        action_id: str,
        actor: ActorContext,
        comments: Optional[str] = None,
        is_approved: Optional[bool] = None,
        target_step_id: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> DocumentWorkflowState:
        """Perform a configured action on a document"""
        return self.executor.perform_action(
            document_id=document_id,
            action_id=action_id,
            actor=actor,
            comments=comments,
            is_approved=is_approved,
            target_step_id=target_step_id,
            expected_version=expected_version
        )

    def move_to_next_step(
        self,
        document_id: str,
        current_step_id: str,
        next_step_id: str,
        actor: ActorContext,
        comments: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> DocumentWorkflowState:
        """Advance a document to the following step"""
        return self.executor.move_to_next_step(
            document_id, current_step_id, next_step_id, actor, comments, expected_version
        )

    def move_to_step(
        self,
        document_id: str,
        target_step_id: str,
        actor: ActorContext,
        comments: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> DocumentWorkflowState:
        """Move a document to any step the circuit rules allow"""
        return self.executor.move_to_step(
            document_id, target_step_id, actor, comments, expected_version
        )

    def complete_status(
        self,
        document_id: str,
        status_id: str,
        is_complete: bool,
        actor: ActorContext,
        comments: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> DocumentWorkflowState:
        """Mark a status of the current step complete or incomplete"""
        return self.tracker.mark_status_complete(
            document_id, status_id, is_complete, actor, comments, expected_version
        )
