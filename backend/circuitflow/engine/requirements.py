"""Requirement Checker - Status gate evaluation for steps"""
from typing import Iterable, List, Sequence

from ..domain.models import Status


class RequirementChecker:
    """
    Evaluate a step's status checklist

    A step is satisfied when every status marked required is among the
    completed status ids. A step without statuses is always satisfied.
    """

    def is_satisfied(
        self,
        statuses: Sequence[Status],
        completed_status_ids: Iterable[str]
    ) -> bool:
        """Check whether all required statuses are complete"""
        return not self.missing(statuses, completed_status_ids)

    def missing(
        self,
        statuses: Sequence[Status],
        completed_status_ids: Iterable[str]
    ) -> List[Status]:
        """Required statuses not yet completed"""
        completed = set(completed_status_ids)
        return [s for s in statuses if s.is_required and s.status_id not in completed]
