"""Circuit Service - Circuit and step definition management"""
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..domain.models import ActorContext, Circuit, Step
from ..domain.errors import (
    CircuitNotFoundError, ConflictError, DuplicateOrderIndexError,
    StepNotFoundError, ValidationError
)
from ..engine.permission_guard import PermissionGuard
from ..repositories import Repositories
from ..utils.idgen import generate_circuit_id, generate_key, generate_step_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

CIRCUIT_FIELDS = {"title", "description", "is_active", "has_ordered_flow", "allow_backtrack"}
STEP_FIELDS = {"title", "description", "order_index", "responsible_role_id", "is_final_step"}


class CircuitService:
    """
    Service for circuit and step definitions

    Ordered circuits keep their step indexes contiguous from 0, and a final
    step can only sit at the highest index.

    Deletes refuse configuration that a document currently uses. The usage
    check and the delete are separate store calls and take no document lock,
    so an assignment or move committed between them is not prevented. Usage
    is counted again after the delete and any document left on removed
    configuration is logged as an error.
    """

    def __init__(
        self,
        repositories: Repositories,
        permission_guard: Optional[PermissionGuard] = None
    ):
        self.repos = repositories
        self.repo = repositories.circuits
        self.permission_guard = permission_guard or PermissionGuard()

    # =========================================================================
    # Circuits
    # =========================================================================

    def create_circuit(
        self,
        title: str,
        actor: ActorContext,
        description: Optional[str] = None,
        has_ordered_flow: bool = True,
        allow_backtrack: bool = False,
        is_active: bool = True
    ) -> Circuit:
        """Create a new circuit without steps"""
        self.permission_guard.ensure_can_configure(actor)
        now = utc_now()

        circuit = Circuit(
            circuit_id=generate_circuit_id(),
            circuit_key=generate_key("CRC"),
            title=title,
            description=description,
            is_active=is_active,
            has_ordered_flow=has_ordered_flow,
            allow_backtrack=allow_backtrack,
            created_at=now,
            updated_at=now
        )
        return self.repo.create_circuit(circuit)

    def get_circuit(self, circuit_id: str) -> Circuit:
        """Get circuit by ID"""
        circuit = self.repo.get_circuit(circuit_id)
        if circuit is None:
            raise CircuitNotFoundError(
                f"Circuit {circuit_id} not found",
                details={"circuit_id": circuit_id}
            )
        return circuit

    def list_circuits(self, is_active: Optional[bool] = None) -> List[Circuit]:
        """List circuits"""
        return self.repo.list_circuits(is_active=is_active)

    def update_circuit(
        self,
        circuit_id: str,
        updates: Dict[str, Any],
        actor: ActorContext
    ) -> Circuit:
        """Update circuit settings"""
        self.permission_guard.ensure_can_configure(actor)
        circuit = self.get_circuit(circuit_id)
        updates = self._filter(updates, CIRCUIT_FIELDS)

        if updates.get("has_ordered_flow") and not circuit.has_ordered_flow:
            self._validate_ordering(self.repo.list_steps(circuit_id))

        if not updates:
            return circuit
        return self.repo.update_circuit(circuit_id, updates)

    def delete_circuit(self, circuit_id: str, actor: ActorContext) -> None:
        """Delete a circuit with its steps, statuses and step actions"""
        self.permission_guard.ensure_can_configure(actor)
        self.get_circuit(circuit_id)

        documents = self.repos.states.count_for_circuit(circuit_id)
        if documents:
            raise ConflictError(
                f"Circuit {circuit_id} is used by {documents} document(s)",
                details={"circuit_id": circuit_id, "documents": documents}
            )

        for step in self.repo.list_steps(circuit_id):
            self._delete_step_children(step.step_id)
        self.repo.delete_circuit(circuit_id)

        logger.info(f"Deleted circuit: {circuit_id}", extra={"circuit_id": circuit_id})
        self._report_orphans(self.repos.states.count_for_circuit(circuit_id), circuit_id=circuit_id)

    # =========================================================================
    # Steps
    # =========================================================================

    def create_step(
        self,
        circuit_id: str,
        title: str,
        actor: ActorContext,
        description: Optional[str] = None,
        order_index: Optional[int] = None,
        responsible_role_id: Optional[str] = None,
        is_final_step: bool = False
    ) -> Step:
        """
        Add a step to a circuit

        The order index defaults to the next free position. In an ordered
        circuit it must be exactly that position.
        """
        self.permission_guard.ensure_can_configure(actor)
        circuit = self.get_circuit(circuit_id)
        steps = self.repo.list_steps(circuit_id)
        next_index = max((s.order_index for s in steps), default=-1) + 1

        if order_index is None:
            order_index = next_index
        if order_index < 0:
            raise ValidationError("order_index must not be negative", details={"order_index": order_index})

        taken = next((s for s in steps if s.order_index == order_index), None)
        if taken is not None:
            raise DuplicateOrderIndexError(
                f"Order index {order_index} is already used by step {taken.title}",
                details={"circuit_id": circuit_id, "order_index": order_index, "step_id": taken.step_id}
            )
        if circuit.has_ordered_flow and order_index != next_index:
            raise ValidationError(
                f"Steps of an ordered circuit must be contiguous; next index is {next_index}",
                details={"circuit_id": circuit_id, "order_index": order_index}
            )

        final = next((s for s in steps if s.is_final_step), None)
        if final is not None and order_index > final.order_index:
            raise ValidationError(
                f"Cannot add a step after the final step {final.title}",
                details={"circuit_id": circuit_id, "final_step_id": final.step_id}
            )
        if is_final_step and order_index < next_index - 1:
            raise ValidationError(
                "Only the step with the highest order index can be final",
                details={"order_index": order_index}
            )

        now = utc_now()
        step = Step(
            step_id=generate_step_id(),
            step_key=generate_key("STP"),
            circuit_id=circuit_id,
            title=title,
            description=description,
            order_index=order_index,
            responsible_role_id=responsible_role_id,
            is_final_step=is_final_step,
            created_at=now,
            updated_at=now
        )
        self.repo.create_step(step)

        logger.info(
            f"Created step {step.step_id} at index {order_index}",
            extra={"circuit_id": circuit_id, "step_id": step.step_id}
        )
        return step

    def get_step(self, step_id: str) -> Step:
        """Get step by ID"""
        step = self.repo.get_step(step_id)
        if step is None:
            raise StepNotFoundError(
                f"Step {step_id} not found",
                details={"step_id": step_id}
            )
        return step

    def list_steps(self, circuit_id: str) -> List[Step]:
        """Steps of a circuit ascending by order index"""
        self.get_circuit(circuit_id)
        return self.repo.list_steps(circuit_id)

    def update_step(
        self,
        step_id: str,
        updates: Dict[str, Any],
        actor: ActorContext
    ) -> Step:
        """Update step fields; ordered circuits reorder through reorder_steps"""
        self.permission_guard.ensure_can_configure(actor)
        step = self.get_step(step_id)
        circuit = self.get_circuit(step.circuit_id)
        updates = self._filter(updates, STEP_FIELDS)
        others = [s for s in self.repo.list_steps(circuit.circuit_id) if s.step_id != step_id]

        order_index = updates.get("order_index", step.order_index)
        if order_index != step.order_index:
            if circuit.has_ordered_flow:
                raise ValidationError(
                    "Use the step order endpoint to reorder an ordered circuit",
                    details={"step_id": step_id}
                )
            if order_index is None or order_index < 0:
                raise ValidationError("order_index must not be negative", details={"order_index": order_index})
            if any(s.order_index == order_index for s in others):
                raise DuplicateOrderIndexError(
                    f"Order index {order_index} is already used",
                    details={"circuit_id": circuit.circuit_id, "order_index": order_index}
                )

        is_final = updates.get("is_final_step", step.is_final_step)
        if is_final and any(s.order_index > order_index for s in others):
            raise ValidationError(
                "Only the step with the highest order index can be final",
                details={"step_id": step_id}
            )
        if not is_final and any(s.is_final_step and s.order_index < order_index for s in others):
            raise ValidationError(
                "A step cannot be placed after the final step",
                details={"step_id": step_id}
            )

        if not updates:
            return step
        return self.repo.update_step(step_id, updates)

    def delete_step(self, step_id: str, actor: ActorContext) -> None:
        """Delete a step, its statuses and step actions"""
        self.permission_guard.ensure_can_configure(actor)
        step = self.get_step(step_id)
        circuit = self.get_circuit(step.circuit_id)

        documents = self.repos.states.count_for_step(step_id)
        if documents:
            raise ConflictError(
                f"Step {step_id} is the current step of {documents} document(s)",
                details={"step_id": step_id, "documents": documents}
            )

        self._delete_step_children(step_id)
        self.repo.delete_step(step_id)

        if circuit.has_ordered_flow:
            for index, remaining in enumerate(self.repo.list_steps(circuit.circuit_id)):
                if remaining.order_index != index:
                    self.repo.update_step(remaining.step_id, {"order_index": index})

        logger.info(f"Deleted step: {step_id}", extra={"circuit_id": circuit.circuit_id, "step_id": step_id})
        self._report_orphans(
            self.repos.states.count_for_step(step_id), circuit_id=circuit.circuit_id, step_id=step_id
        )

    def reorder_steps(
        self,
        circuit_id: str,
        ordering: Sequence[Tuple[str, int]],
        actor: ActorContext
    ) -> List[Step]:
        """
        Replace the order of all steps of a circuit

        Args:
            circuit_id: Circuit to reorder
            ordering: (step_id, order_index) for every step of the circuit
            actor: Caller identity

        Returns:
            Steps in their new order
        """
        self.permission_guard.ensure_can_configure(actor)
        circuit = self.get_circuit(circuit_id)
        steps = {s.step_id: s for s in self.repo.list_steps(circuit_id)}

        requested = dict(ordering)
        if len(requested) != len(ordering) or set(requested) != set(steps):
            raise ValidationError(
                "The new order must list every step of the circuit exactly once",
                details={"circuit_id": circuit_id}
            )

        indexes = list(requested.values())
        if len(set(indexes)) != len(indexes) or any(i < 0 for i in indexes):
            raise ValidationError(
                "Order indexes must be distinct and not negative",
                details={"circuit_id": circuit_id}
            )

        reordered = [
            steps[step_id].model_copy(update={"order_index": index})
            for step_id, index in requested.items()
        ]
        if circuit.has_ordered_flow:
            self._validate_ordering(reordered)
        else:
            self._validate_final(reordered)

        for step in reordered:
            if steps[step.step_id].order_index != step.order_index:
                self.repo.update_step(step.step_id, {"order_index": step.order_index})

        logger.info(f"Reordered steps of circuit {circuit_id}", extra={"circuit_id": circuit_id})
        return self.repo.list_steps(circuit_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _validate_ordering(self, steps: Sequence[Step]) -> None:
        """Indexes must be 0..n-1 with the final step on top"""
        indexes = sorted(s.order_index for s in steps)
        if indexes != list(range(len(steps))):
            raise ValidationError(
                "Steps of an ordered circuit must use order indexes 0..n-1",
                details={"order_indexes": indexes}
            )
        self._validate_final(steps)

    def _validate_final(self, steps: Sequence[Step]) -> None:
        if not steps:
            return
        top = max(s.order_index for s in steps)
        for step in steps:
            if step.is_final_step and step.order_index != top:
                raise ValidationError(
                    f"Final step {step.title} must have the highest order index",
                    details={"step_id": step.step_id}
                )

    def _report_orphans(
        self, documents: int, circuit_id: str, step_id: Optional[str] = None
    ) -> int:
        if documents:
            target = f"step {step_id}" if step_id else f"circuit {circuit_id}"
            logger.error(
                f"{documents} document(s) still reference deleted {target}",
                extra={"circuit_id": circuit_id, "step_id": step_id, "error_code": "ORPHANED_DOCUMENTS"}
            )
        return documents

    def _delete_step_children(self, step_id: str) -> None:
        self.repos.statuses.delete_statuses_for_step(step_id)
        self.repos.actions.delete_actions_for_step(step_id)

    def _filter(self, updates: Dict[str, Any], allowed: set) -> Dict[str, Any]:
        unknown = set(updates) - allowed
        if unknown:
            raise ValidationError(
                f"Unknown fields: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)}
            )
        return dict(updates)
