"""Action Executor - Apply actions and moves to document workflow state"""
from typing import Optional

from ..domain.models import (
    ActorContext, DocumentWorkflowState, Step, TransitionDecision
)
from ..domain.enums import (
    ActionEffect, HistoryEventType, LifecycleStatus, TransitionKind
)
from ..domain.errors import (
    ActionNotFoundError, CircuitNotFoundError, InvalidStateError,
    RequirementsNotMetError, StateConflictError, ValidationError
)
from ..repositories import Repositories
from .commit import StateCommitter
from .document_locks import DocumentLocks
from .history_log import HistoryLog
from .permission_guard import PermissionGuard
from .requirements import RequirementChecker
from .state_tracker import WorkflowContext, WorkflowStateTracker
from .transition_resolver import TransitionResolver
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ActionExecutor:
    """
    Execute document actions and direct step moves

    Every operation follows the same sequence under the document lock:
    1. Load the committed state and the circuit around it
    2. Check permission on the current step
    3. Validate the version token and the requested change
    4. Commit the new state with exactly one history entry

    A failed validation leaves the stored state untouched.
    """

    def __init__(
        self,
        repositories: Repositories,
        tracker: WorkflowStateTracker,
        resolver: TransitionResolver,
        permission_guard: PermissionGuard,
        history_log: HistoryLog,
        committer: StateCommitter,
        locks: DocumentLocks,
        requirement_checker: Optional[RequirementChecker] = None
    ):
        self.repos = repositories
        self.tracker = tracker
        self.resolver = resolver
        self.permission_guard = permission_guard
        self.history_log = history_log
        self.committer = committer
        self.locks = locks
        self.requirement_checker = requirement_checker or RequirementChecker()

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
        """
        Place a document at the first step of a circuit

        A document may be reassigned once it is no longer in progress.
        """
        self.permission_guard.ensure_can_perform_action(actor, None, "assign a circuit")

        circuit = self.repos.circuits.get_circuit(circuit_id)
        if circuit is None:
            raise CircuitNotFoundError(
                f"Circuit {circuit_id} not found",
                details={"circuit_id": circuit_id}
            )
        if not circuit.is_active:
            raise ValidationError(
                f"Circuit {circuit.title} is not active",
                details={"circuit_id": circuit_id}
            )

        steps = self.repos.circuits.list_steps(circuit_id)
        entry_step = self.resolver.entry_step(steps)
        if entry_step is None:
            raise ValidationError(
                f"Circuit {circuit.title} has no steps",
                details={"circuit_id": circuit_id}
            )

        with self.locks.hold(document_id):
            existing = self.repos.states.get_state(document_id)
            if existing is not None and existing.lifecycle_status == LifecycleStatus.IN_PROGRESS:
                raise InvalidStateError(
                    f"Document {document_id} is already in progress in a circuit",
                    details={"document_id": document_id, "circuit_id": existing.circuit_id}
                )

            now = utc_now()
            state = DocumentWorkflowState(
                document_id=document_id,
                circuit_id=circuit_id,
                current_step_id=entry_step.step_id,
                lifecycle_status=LifecycleStatus.IN_PROGRESS,
                completed_statuses=[],
                is_circuit_completed=False,
                version=existing.version if existing else 1,
                assigned_at=now,
                updated_at=now
            )
            state = self.tracker.settle_completion(
                state, entry_step, self.repos.statuses.list_statuses(entry_step.step_id)
            )

            entry = self.history_log.new_entry(
                document_id=document_id,
                event_type=HistoryEventType.ASSIGN_CIRCUIT,
                actor=actor,
                circuit_id=circuit_id,
                step_id=entry_step.step_id,
                to_step_id=entry_step.step_id,
                comments=comments
            )

            if existing is None:
                saved = self.committer.commit_new(state, entry)
            else:
                saved = self.committer.commit(existing, state, entry)

        logger.info(
            f"Assigned document {document_id} to circuit {circuit_id}",
            extra={
                "document_id": document_id,
                "circuit_id": circuit_id,
                "step_id": entry_step.step_id,
                "actor_id": actor.user_id
            }
        )
        return saved

    # =========================================================================
    # Actions
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
        """
        Perform a configured action on a document

        Args:
            document_id: Document to act on
            action_id: Configured action
            actor: Caller identity
            comments: Free text recorded in history
            is_approved: Recorded approval flag (defaults from the action effect)
            target_step_id: Destination for CUSTOM_MOVE, optional for REJECT
            expected_version: Version token the caller last saw

        Returns:
            The committed DocumentWorkflowState
        """
        action = self.repos.actions.get_action(action_id)
        if action is None:
            raise ActionNotFoundError(
                f"Action {action_id} not found",
                details={"action_id": action_id}
            )

        with self.locks.hold(document_id):
            state = self.tracker.get_state_or_raise(document_id)
            self.tracker.ensure_open(state)
            ctx = self.tracker.load_context(state)
            self.permission_guard.ensure_can_perform_action(actor, ctx.current_step, f"perform {action.title}")
            self.tracker.ensure_version(state, expected_version)

            if action.step_id is not None and action.step_id != ctx.current_step.step_id:
                raise ValidationError(
                    f"Action {action.title} is not available at step {ctx.current_step.title}",
                    details={"action_id": action_id, "step_id": ctx.current_step.step_id}
                )

            if is_approved is None:
                is_approved = action.effect == ActionEffect.APPROVE

            if action.effect == ActionEffect.APPROVE:
                new_state, transition = self._approve(state, ctx)
            elif action.effect == ActionEffect.REJECT:
                new_state, transition = self._reject(state, ctx, target_step_id)
            else:
                new_state, transition = self._custom_move(state, ctx, target_step_id)

            entry = self.history_log.new_entry(
                document_id=document_id,
                event_type=HistoryEventType.ACTION,
                actor=actor,
                circuit_id=state.circuit_id,
                step_id=state.current_step_id,
                to_step_id=new_state.current_step_id,
                transition=transition,
                action_id=action_id,
                comments=comments,
                is_approved=is_approved
            )
            saved = self.committer.commit(state, new_state, entry)

        logger.info(
            f"Action {action.action_key} performed on document {document_id}",
            extra={
                "document_id": document_id,
                "action": action.effect.value,
                "actor_id": actor.user_id,
                "step_id": saved.current_step_id,
                "lifecycle_status": saved.lifecycle_status.value,
                "transition": transition.value if transition else None
            }
        )
        return saved

    def _approve(self, state: DocumentWorkflowState, ctx: WorkflowContext):
        """Approve: finish on a final step, otherwise advance by order index"""
        missing = self.requirement_checker.missing(ctx.requirements, state.completed_status_ids)
        if missing:
            raise RequirementsNotMetError(
                f"Required statuses of step {ctx.current_step.title} are not complete",
                details={
                    "step_id": ctx.current_step.step_id,
                    "missing_status_ids": [s.status_id for s in missing]
                }
            )

        if ctx.current_step.is_final_step:
            return state.model_copy(update={
                "lifecycle_status": LifecycleStatus.COMPLETED,
                "is_circuit_completed": True,
                "updated_at": utc_now()
            }), None

        next_step = self.resolver.next_step(ctx.circuit, ctx.steps, ctx.current_step)
        if next_step is None:
            raise InvalidStateError(
                f"Step {ctx.current_step.title} has no following step and is not final",
                details={"step_id": ctx.current_step.step_id}
            )

        decision = self._resolve(state, ctx, next_step.step_id)
        return self._enter(state, decision.to_step, LifecycleStatus.IN_PROGRESS), decision.kind

    def _reject(
        self,
        state: DocumentWorkflowState,
        ctx: WorkflowContext,
        target_step_id: Optional[str]
    ):
        """Reject: mark REJECTED, optionally sending the document back"""
        if state.lifecycle_status == LifecycleStatus.REJECTED:
            raise InvalidStateError(
                f"Document {state.document_id} is already rejected",
                details={"document_id": state.document_id}
            )

        if not target_step_id:
            return state.model_copy(update={
                "lifecycle_status": LifecycleStatus.REJECTED,
                "updated_at": utc_now()
            }), None

        # status completion does not gate a rejection
        decision = self.resolver.resolve(
            ctx.circuit, ctx.steps, ctx.current_step.step_id, target_step_id, [], ()
        )
        # earlier by order index only, so a rejection never lands on a final step
        if decision.to_step.order_index >= decision.from_step.order_index:
            raise ValidationError(
                "A rejection can only send a document back",
                details={"target_step_id": target_step_id, "transition": decision.kind.value}
            )
        return self._enter(state, decision.to_step, LifecycleStatus.REJECTED), decision.kind

    def _custom_move(
        self,
        state: DocumentWorkflowState,
        ctx: WorkflowContext,
        target_step_id: Optional[str]
    ):
        """Custom move: caller-chosen target validated by the resolver"""
        if not target_step_id:
            raise ValidationError("target_step_id is required for this action")

        decision = self._resolve(state, ctx, target_step_id)
        return self._enter(state, decision.to_step, LifecycleStatus.IN_PROGRESS), decision.kind

    # =========================================================================
    # Direct moves
    # =========================================================================

    def move_to_next_step(
        self,
        document_id: str,
        current_step_id: str,
        next_step_id: str,
        actor: ActorContext,
        comments: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> DocumentWorkflowState:
        """Advance a document from the step the caller believes it is at"""
        with self.locks.hold(document_id):
            state = self.tracker.get_state_or_raise(document_id)
            self.tracker.ensure_open(state)
            ctx = self.tracker.load_context(state)
            self.permission_guard.ensure_can_perform_action(actor, ctx.current_step, "move this document")
            self.tracker.ensure_version(state, expected_version)

            if state.current_step_id != current_step_id:
                raise StateConflictError(
                    f"Document {document_id} is no longer at step {current_step_id}. Please refresh and try again.",
                    details={"expected_step_id": current_step_id, "current_step_id": state.current_step_id}
                )

            decision = self._resolve(state, ctx, next_step_id)
            if decision.kind not in (TransitionKind.ADVANCE, TransitionKind.MOVE):
                raise ValidationError(
                    "Use move-to-step to send a document back",
                    details={"next_step_id": next_step_id, "transition": decision.kind.value}
                )

            saved = self._commit_move(state, decision, actor, comments)

        return saved

    def move_to_step(
        self,
        document_id: str,
        target_step_id: str,
        actor: ActorContext,
        comments: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> DocumentWorkflowState:
        """Move a document to any step the circuit rules allow"""
        with self.locks.hold(document_id):
            state = self.tracker.get_state_or_raise(document_id)
            self.tracker.ensure_open(state)
            ctx = self.tracker.load_context(state)
            self.permission_guard.ensure_can_perform_action(actor, ctx.current_step, "move this document")
            self.tracker.ensure_version(state, expected_version)

            decision = self._resolve(state, ctx, target_step_id)
            saved = self._commit_move(state, decision, actor, comments)

        return saved

    def _commit_move(
        self,
        state: DocumentWorkflowState,
        decision: TransitionDecision,
        actor: ActorContext,
        comments: Optional[str]
    ) -> DocumentWorkflowState:
        new_state = self._enter(state, decision.to_step, LifecycleStatus.IN_PROGRESS)
        entry = self.history_log.new_entry(
            document_id=state.document_id,
            event_type=HistoryEventType.MOVE,
            actor=actor,
            circuit_id=state.circuit_id,
            step_id=decision.from_step.step_id,
            to_step_id=decision.to_step.step_id,
            transition=decision.kind,
            comments=comments,
            is_approved=decision.kind != TransitionKind.RETURN
        )
        saved = self.committer.commit(state, new_state, entry)

        logger.info(
            f"Moved document {state.document_id}: {decision.from_step.step_id} -> {decision.to_step.step_id}",
            extra={
                "document_id": state.document_id,
                "step_id": decision.to_step.step_id,
                "transition": decision.kind.value,
                "actor_id": actor.user_id,
                "lifecycle_status": saved.lifecycle_status.value
            }
        )
        return saved

    # =========================================================================
    # Helpers
    # =========================================================================

    def _resolve(
        self,
        state: DocumentWorkflowState,
        ctx: WorkflowContext,
        target_step_id: str
    ) -> TransitionDecision:
        return self.resolver.resolve(
            ctx.circuit, ctx.steps, ctx.current_step.step_id, target_step_id,
            ctx.requirements, state.completed_status_ids
        )

    def _enter(
        self,
        state: DocumentWorkflowState,
        step: Step,
        lifecycle_status: LifecycleStatus
    ) -> DocumentWorkflowState:
        """New state positioned on ``step`` with a fresh checklist"""
        entered = state.model_copy(update={
            "current_step_id": step.step_id,
            "completed_statuses": [],
            "lifecycle_status": lifecycle_status,
            "updated_at": utc_now()
        })
        if lifecycle_status == LifecycleStatus.REJECTED:
            return entered
        return self.tracker.settle_completion(
            entered, step, self.repos.statuses.list_statuses(step.step_id)
        )
