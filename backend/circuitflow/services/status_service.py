"""Status Service - Step status checklist management"""
from typing import Any, Dict, Iterable, List, Optional

from ..domain.models import ActorContext, Status
from ..domain.errors import StatusNotFoundError, StepNotFoundError, ValidationError
from ..engine.permission_guard import PermissionGuard
from ..engine.requirements import RequirementChecker
from ..repositories import Repositories
from ..utils.idgen import generate_key, generate_status_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

STATUS_FIELDS = {"title", "is_required"}


class StatusService:
    """Service for statuses attached to steps"""

    def __init__(
        self,
        repositories: Repositories,
        permission_guard: Optional[PermissionGuard] = None,
        requirement_checker: Optional[RequirementChecker] = None
    ):
        self.repos = repositories
        self.repo = repositories.statuses
        self.permission_guard = permission_guard or PermissionGuard()
        self.requirement_checker = requirement_checker or RequirementChecker()

    def create_status(
        self,
        step_id: str,
        title: str,
        actor: ActorContext,
        is_required: bool = False
    ) -> Status:
        """Add a status to a step"""
        self.permission_guard.ensure_can_configure(actor)
        self._ensure_step(step_id)

        status = Status(
            status_id=generate_status_id(),
            status_key=generate_key("STS"),
            step_id=step_id,
            title=title,
            is_required=is_required,
            created_at=utc_now()
        )
        self.repo.create_status(status)

        logger.info(
            f"Created status {status.status_id}",
            extra={"step_id": step_id, "status_id": status.status_id}
        )
        return status

    def get_status(self, status_id: str) -> Status:
        """Get status by ID"""
        status = self.repo.get_status(status_id)
        if status is None:
            raise StatusNotFoundError(
                f"Status {status_id} not found",
                details={"status_id": status_id}
            )
        return status

    def get_requirements(self, step_id: str) -> List[Status]:
        """Statuses of a step in creation order"""
        self._ensure_step(step_id)
        return self.repo.list_statuses(step_id)

    def is_step_satisfied(self, step_id: str, completed_status_ids: Iterable[str]) -> bool:
        """True when every required status of the step is completed"""
        return self.requirement_checker.is_satisfied(
            self.get_requirements(step_id), completed_status_ids
        )

    def update_status(
        self,
        status_id: str,
        updates: Dict[str, Any],
        actor: ActorContext
    ) -> Status:
        """Update title or required flag"""
        self.permission_guard.ensure_can_configure(actor)
        status = self.get_status(status_id)

        unknown = set(updates) - STATUS_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown fields: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)}
            )
        if not updates:
            return status
        return self.repo.update_status(status_id, updates)

    def delete_status(self, status_id: str, actor: ActorContext) -> None:
        """Delete a status"""
        self.permission_guard.ensure_can_configure(actor)
        self.get_status(status_id)
        self.repo.delete_status(status_id)

    def _ensure_step(self, step_id: str) -> None:
        if self.repos.circuits.get_step(step_id) is None:
            raise StepNotFoundError(
                f"Step {step_id} not found",
                details={"step_id": step_id}
            )
