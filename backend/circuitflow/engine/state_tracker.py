"""Workflow State Tracker - Document position, checklist and affordances"""
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..domain.models import (
    Action, ActorContext, Circuit, DocumentWorkflowState, Status,
    StatusChecklistItem, StatusCompletion, Step, WorkflowStatusView
)
from ..domain.enums import (
    ActionEffect, HistoryEventType, LifecycleStatus, TransitionKind
)
from ..domain.errors import (
    CircuitNotFoundError, DocumentNotFoundError, InvalidStateError,
    InvalidStatusError, StateConflictError, StatusNotFoundError, StepNotFoundError
)
from ..repositories import Repositories
from .commit import StateCommitter
from .document_locks import DocumentLocks
from .history_log import HistoryLog
from .permission_guard import PermissionGuard
from .requirements import RequirementChecker
from .transition_resolver import TransitionResolver
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class WorkflowContext:
    """Circuit configuration around a document's current step"""
    circuit: Circuit
    steps: List[Step]
    current_step: Step
    requirements: List[Status]


class WorkflowStateTracker:
    """
    Read and update a document's position and status checklist

    Views are pure reads built from the last committed state. Status
    toggles are serialized per document and committed with one history
    entry.
    """

    def __init__(
        self,
        repositories: Repositories,
        resolver: TransitionResolver,
        permission_guard: PermissionGuard,
        history_log: HistoryLog,
        committer: StateCommitter,
        locks: DocumentLocks,
        requirement_checker: Optional[RequirementChecker] = None
    ):
        self.repos = repositories
        self.resolver = resolver
        self.permission_guard = permission_guard
        self.history_log = history_log
        self.committer = committer
        self.locks = locks
        self.requirement_checker = requirement_checker or RequirementChecker()

    # =========================================================================
    # Loading
    # =========================================================================

    def get_state_or_raise(self, document_id: str) -> DocumentWorkflowState:
        """Last committed state of a document"""
        state = self.repos.states.get_state(document_id)
        if state is None:
            raise DocumentNotFoundError(
                f"Document {document_id} has no workflow state",
                details={"document_id": document_id}
            )
        return state

    def load_context(self, state: DocumentWorkflowState) -> WorkflowContext:
        """Load the circuit, its steps and the current step's statuses"""
        if not state.circuit_id or not state.current_step_id:
            raise InvalidStateError(
                f"Document {state.document_id} is not assigned to a circuit",
                details={"document_id": state.document_id}
            )

        circuit = self.repos.circuits.get_circuit(state.circuit_id)
        if circuit is None:
            raise CircuitNotFoundError(
                f"Circuit {state.circuit_id} not found",
                details={"circuit_id": state.circuit_id}
            )

        steps = self.repos.circuits.list_steps(circuit.circuit_id)
        current = next((s for s in steps if s.step_id == state.current_step_id), None)
        if current is None:
            raise StepNotFoundError(
                f"Step {state.current_step_id} not found in circuit {circuit.circuit_id}",
                details={"step_id": state.current_step_id}
            )

        return WorkflowContext(
            circuit=circuit,
            steps=steps,
            current_step=current,
            requirements=self.repos.statuses.list_statuses(current.step_id)
        )

    def ensure_open(self, state: DocumentWorkflowState) -> None:
        """Completed documents accept no further changes"""
        if state.is_closed:
            raise InvalidStateError(
                f"Document {state.document_id} has completed its circuit",
                details={"document_id": state.document_id, "lifecycle_status": state.lifecycle_status.value}
            )

    def ensure_version(self, state: DocumentWorkflowState, expected_version: Optional[int]) -> None:
        """Compare a caller's version token with the stored one"""
        if expected_version is not None and expected_version != state.version:
            raise StateConflictError(
                f"Document {state.document_id} was modified. Please refresh and try again.",
                details={"expected_version": expected_version, "current_version": state.version}
            )

    # =========================================================================
    # Views
    # =========================================================================

    def get_status(
        self,
        document_id: str,
        actor: Optional[ActorContext] = None
    ) -> WorkflowStatusView:
        """Current status view of a document"""
        return self.build_view(self.get_state_or_raise(document_id), actor)

    def build_view(
        self,
        state: DocumentWorkflowState,
        actor: Optional[ActorContext] = None,
        context: Optional[WorkflowContext] = None
    ) -> WorkflowStatusView:
        """
        Build the status view of a committed state

        When ``actor`` is given, available_actions only lists what that actor
        may perform.
        """
        if not state.circuit_id or not state.current_step_id:
            return WorkflowStatusView(
                document_id=state.document_id,
                lifecycle_status=state.lifecycle_status,
                is_circuit_completed=state.is_circuit_completed,
                version=state.version
            )

        ctx = context or self.load_context(state)
        completed = state.completed_status_ids
        next_step = self.resolver.next_step(ctx.circuit, ctx.steps, ctx.current_step)
        previous_step = self.resolver.previous_step(ctx.circuit, ctx.steps, ctx.current_step)

        can_advance = False
        can_return = False
        if not state.is_closed:
            can_advance = (
                ctx.circuit.has_ordered_flow
                and next_step is not None
                and self._peek(state, ctx, next_step) == TransitionKind.ADVANCE
            )
            can_return = (
                ctx.circuit.allow_backtrack
                and previous_step is not None
                and self._peek(state, ctx, previous_step) is not None
            )

        return WorkflowStatusView(
            document_id=state.document_id,
            circuit_id=ctx.circuit.circuit_id,
            circuit_title=ctx.circuit.title,
            current_step_id=ctx.current_step.step_id,
            current_step_title=ctx.current_step.title,
            lifecycle_status=state.lifecycle_status,
            is_circuit_completed=state.is_circuit_completed,
            version=state.version,
            statuses=self._checklist(state, ctx.requirements),
            available_actions=self._available_actions(state, ctx, next_step, completed, actor),
            can_advance_to_next_step=can_advance,
            can_return_to_previous_step=can_return,
            next_step_id=next_step.step_id if next_step else None,
            previous_step_id=previous_step.step_id if previous_step else None
        )

    def list_pending(self, actor: ActorContext) -> List[WorkflowStatusView]:
        """Open documents positioned on steps the actor may act on"""
        views = []
        states = self.repos.states.list_states(
            [LifecycleStatus.IN_PROGRESS, LifecycleStatus.REJECTED]
        )
        for state in states:
            ctx = self.load_context(state)
            if self.permission_guard.can_perform_action(actor, ctx.current_step):
                views.append(self.build_view(state, actor, ctx))
        return views

    def _checklist(
        self,
        state: DocumentWorkflowState,
        requirements: Sequence[Status]
    ) -> List[StatusChecklistItem]:
        completions = {c.status_id: c for c in state.completed_statuses}
        items = []
        for status in requirements:
            completion = completions.get(status.status_id)
            items.append(StatusChecklistItem(
                status_id=status.status_id,
                status_key=status.status_key,
                title=status.title,
                is_required=status.is_required,
                is_complete=completion is not None,
                completed_by=completion.completed_by if completion else None,
                completed_at=completion.completed_at if completion else None
            ))
        return items

    def _available_actions(
        self,
        state: DocumentWorkflowState,
        ctx: WorkflowContext,
        next_step: Optional[Step],
        completed,
        actor: Optional[ActorContext]
    ) -> List[Action]:
        if state.is_closed:
            return []
        if actor is not None and not self.permission_guard.can_perform_action(actor, ctx.current_step):
            return []

        satisfied = self.requirement_checker.is_satisfied(ctx.requirements, completed)
        can_approve = satisfied and (ctx.current_step.is_final_step or next_step is not None)
        can_reject = state.lifecycle_status != LifecycleStatus.REJECTED
        can_move = any(
            self._peek(state, ctx, step) is not None
            for step in ctx.steps
            if step.step_id != ctx.current_step.step_id
        )

        offered = {
            ActionEffect.APPROVE: can_approve,
            ActionEffect.REJECT: can_reject,
            ActionEffect.CUSTOM_MOVE: can_move,
        }
        return [
            action for action in self.repos.actions.list_actions(ctx.current_step.step_id)
            if offered[action.effect]
        ]

    def _peek(
        self,
        state: DocumentWorkflowState,
        ctx: WorkflowContext,
        target: Step
    ) -> Optional[TransitionKind]:
        return self.resolver.peek(
            ctx.circuit, ctx.steps, ctx.current_step.step_id, target.step_id,
            ctx.requirements, state.completed_status_ids
        )

    # =========================================================================
    # Mutations
    # =========================================================================

    def settle_completion(
        self,
        state: DocumentWorkflowState,
        step: Step,
        requirements: Sequence[Status]
    ) -> DocumentWorkflowState:
        """Close the document when it sits on a satisfied final step"""
        if not step.is_final_step:
            return state
        if not self.requirement_checker.is_satisfied(requirements, state.completed_status_ids):
            return state

        logger.info(
            f"Document {state.document_id} completed circuit {state.circuit_id}",
            extra={
                "document_id": state.document_id,
                "circuit_id": state.circuit_id,
                "lifecycle_status": LifecycleStatus.COMPLETED.value
            }
        )
        return state.model_copy(update={
            "lifecycle_status": LifecycleStatus.COMPLETED,
            "is_circuit_completed": True
        })

    def mark_status_complete(
        self,
        document_id: str,
        status_id: str,
        is_complete: bool,
        actor: ActorContext,
        comments: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> DocumentWorkflowState:
        """
        Mark a status of the current step complete or incomplete

        Toggling to the value already recorded changes nothing and writes no
        history.
        """
        with self.locks.hold(document_id):
            state = self.get_state_or_raise(document_id)
            self.ensure_open(state)
            ctx = self.load_context(state)
            self.permission_guard.ensure_can_perform_action(actor, ctx.current_step, "update statuses")
            self.ensure_version(state, expected_version)

            status = self.repos.statuses.get_status(status_id)
            if status is None:
                raise StatusNotFoundError(
                    f"Status {status_id} not found",
                    details={"status_id": status_id}
                )
            if status.step_id != ctx.current_step.step_id:
                raise InvalidStatusError(
                    f"Status {status.title} does not belong to step {ctx.current_step.title}",
                    details={"status_id": status_id, "current_step_id": ctx.current_step.step_id}
                )

            already_complete = status_id in state.completed_status_ids
            if already_complete == is_complete:
                return state

            now = utc_now()
            if is_complete:
                completions = state.completed_statuses + [
                    StatusCompletion(status_id=status_id, completed_by=actor.user_id, completed_at=now)
                ]
            else:
                completions = [c for c in state.completed_statuses if c.status_id != status_id]

            new_state = state.model_copy(update={"completed_statuses": completions, "updated_at": now})
            new_state = self.settle_completion(new_state, ctx.current_step, ctx.requirements)

            entry = self.history_log.new_entry(
                document_id=document_id,
                event_type=HistoryEventType.STATUS_CHANGE,
                actor=actor,
                circuit_id=state.circuit_id,
                step_id=ctx.current_step.step_id,
                to_step_id=ctx.current_step.step_id,
                status_id=status_id,
                comments=comments,
                is_approved=is_complete
            )
            saved = self.committer.commit(state, new_state, entry)

        logger.info(
            f"Status {status_id} marked {'complete' if is_complete else 'incomplete'}",
            extra={
                "document_id": document_id,
                "status_id": status_id,
                "actor_id": actor.user_id,
                "lifecycle_status": saved.lifecycle_status.value
            }
        )
        return saved
