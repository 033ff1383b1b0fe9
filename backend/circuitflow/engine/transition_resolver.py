"""Transition Resolver - Classify and validate requested step changes"""
from typing import Iterable, List, Optional, Sequence

from ..domain.models import Circuit, Status, Step, TransitionDecision
from ..domain.enums import TransitionKind
from ..domain.errors import (
    BacktrackNotAllowedError, NoOpTransitionError, RequirementsNotMetError,
    StepNotFoundError, StepSkipSkippedError, TransitionError
)
from .requirements import RequirementChecker
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TransitionResolver:
    """
    Resolve a requested move of a document to a target step

    Given current step S and target step T of the same circuit:
    1. T == S -> NoOpTransitionError
    2. Unordered circuit -> MOVE (status gate only when gate_arbitrary_moves)
    3. Ordered circuit:
       - T.order_index == S.order_index + 1 -> ADVANCE, S must be satisfied
       - T.order_index <  S.order_index     -> RETURN, circuit must allow backtrack
       - T.order_index >  S.order_index + 1 -> StepSkipSkippedError

    Steps are located by order_index, never by id arithmetic.
    """

    def __init__(
        self,
        requirement_checker: Optional[RequirementChecker] = None,
        gate_arbitrary_moves: bool = False
    ):
        self.requirement_checker = requirement_checker or RequirementChecker()
        self.gate_arbitrary_moves = gate_arbitrary_moves

    def resolve(
        self,
        circuit: Circuit,
        steps: Sequence[Step],
        current_step_id: str,
        target_step_id: str,
        current_requirements: Sequence[Status],
        completed_status_ids: Iterable[str]
    ) -> TransitionDecision:
        """
        Classify a move and validate it against the circuit rules

        Args:
            circuit: Circuit the document runs in
            steps: Steps of the circuit
            current_step_id: Step the document is at
            target_step_id: Requested step
            current_requirements: Statuses of the current step
            completed_status_ids: Statuses completed on the current step

        Returns:
            TransitionDecision with the classification

        Raises:
            TransitionError subclasses for illegal moves
            StepNotFoundError if a step is not part of the circuit
        """
        current = self._member(circuit, steps, current_step_id)
        target = self._member(circuit, steps, target_step_id)

        if target.step_id == current.step_id:
            raise NoOpTransitionError(
                f"Document is already at step {current.title}",
                details={"step_id": current.step_id}
            )

        details = {
            "circuit_id": circuit.circuit_id,
            "from_step_id": current.step_id,
            "to_step_id": target.step_id,
        }

        if not circuit.has_ordered_flow:
            if self.gate_arbitrary_moves:
                self._ensure_satisfied(current, current_requirements, completed_status_ids, details)
            kind = TransitionKind.MOVE

        elif target.order_index == current.order_index + 1:
            self._ensure_satisfied(current, current_requirements, completed_status_ids, details)
            kind = TransitionKind.ADVANCE

        elif target.order_index < current.order_index:
            if not circuit.allow_backtrack:
                raise BacktrackNotAllowedError(
                    f"Circuit {circuit.title} does not allow returning to previous steps",
                    details=details
                )
            kind = TransitionKind.RETURN

        else:
            raise StepSkipSkippedError(
                f"Cannot skip from step {current.title} to step {target.title}",
                details={**details, "from_order_index": current.order_index, "to_order_index": target.order_index}
            )

        logger.info(
            f"Resolved transition: {current.step_id} -> {target.step_id} ({kind.value})",
            extra={"circuit_id": circuit.circuit_id, "step_id": current.step_id, "transition": kind.value}
        )

        return TransitionDecision(kind=kind, from_step=current, to_step=target)

    def peek(
        self,
        circuit: Circuit,
        steps: Sequence[Step],
        current_step_id: str,
        target_step_id: str,
        current_requirements: Sequence[Status],
        completed_status_ids: Iterable[str]
    ) -> Optional[TransitionKind]:
        """Classification of a legal move, or None when it would be rejected"""
        try:
            decision = self.resolve(
                circuit, steps, current_step_id, target_step_id,
                current_requirements, completed_status_ids
            )
        except (TransitionError, StepNotFoundError):
            return None
        return decision.kind

    def next_step(self, circuit: Circuit, steps: Sequence[Step], current: Step) -> Optional[Step]:
        """Step following the current one by order index"""
        if circuit.has_ordered_flow:
            return self._step_at(steps, current.order_index + 1)
        later = [s for s in self._sorted(steps) if s.order_index > current.order_index]
        return later[0] if later else None

    def previous_step(self, circuit: Circuit, steps: Sequence[Step], current: Step) -> Optional[Step]:
        """Step preceding the current one by order index"""
        if circuit.has_ordered_flow:
            if current.order_index == 0:
                return None
            return self._step_at(steps, current.order_index - 1)
        earlier = [s for s in self._sorted(steps) if s.order_index < current.order_index]
        return earlier[-1] if earlier else None

    def entry_step(self, steps: Sequence[Step]) -> Optional[Step]:
        """Step a newly assigned document starts at"""
        ordered = self._sorted(steps)
        return ordered[0] if ordered else None

    def _ensure_satisfied(
        self,
        current: Step,
        requirements: Sequence[Status],
        completed_status_ids: Iterable[str],
        details: dict
    ) -> None:
        missing = self.requirement_checker.missing(requirements, completed_status_ids)
        if missing:
            raise RequirementsNotMetError(
                f"Required statuses of step {current.title} are not complete",
                details={**details, "missing_status_ids": [s.status_id for s in missing]}
            )

    def _member(self, circuit: Circuit, steps: Sequence[Step], step_id: str) -> Step:
        for step in steps:
            if step.step_id == step_id:
                return step
        raise StepNotFoundError(
            f"Step {step_id} is not part of circuit {circuit.circuit_id}",
            details={"step_id": step_id, "circuit_id": circuit.circuit_id}
        )

    def _step_at(self, steps: Sequence[Step], order_index: int) -> Optional[Step]:
        for step in self._sorted(steps):
            if step.order_index == order_index:
                return step
        return None

    def _sorted(self, steps: Sequence[Step]) -> List[Step]:
        return sorted(steps, key=lambda s: s.order_index)
