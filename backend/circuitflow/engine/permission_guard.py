"""Permission Guard - Authorization enforcement for engine operations"""
from typing import Optional

from ..domain.models import ActorContext, Step
from ..domain.enums import UserRole
from ..domain.errors import PermissionDeniedError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class PermissionGuard:
    """
    Permission enforcement for document and configuration operations

    Rules:
    - SimpleUser is read-only
    - Admin can act on every step and edit configuration
    - FullUser can edit configuration and act on steps without a responsible
      role or whose responsible role is the caller's role
    """

    def can_perform_action(self, actor: ActorContext, step: Optional[Step]) -> bool:
        """Check if the actor may move or act on a document at this step"""
        if actor.role == UserRole.SIMPLE_USER:
            return False

        if actor.role == UserRole.ADMIN:
            return True

        if step is None or step.responsible_role_id is None:
            return True

        return actor.role_id is not None and actor.role_id == step.responsible_role_id

    def ensure_can_perform_action(
        self,
        actor: ActorContext,
        step: Optional[Step],
        operation: str
    ) -> None:
        """Raise PermissionDeniedError unless the actor may act on the step"""
        if self.can_perform_action(actor, step):
            return

        logger.warning(
            f"Permission denied: {actor.user_id} cannot {operation}",
            extra={
                "actor_id": actor.user_id,
                "action": operation,
                "step_id": step.step_id if step else None
            }
        )
        raise PermissionDeniedError(
            f"You cannot {operation} at this step",
            details={
                "role": actor.role.value,
                "required_role_id": step.responsible_role_id if step else None
            }
        )

    def can_configure(self, actor: ActorContext) -> bool:
        """Check if the actor may edit circuits, steps, statuses and actions"""
        return actor.role in (UserRole.ADMIN, UserRole.FULL_USER)

    def ensure_can_configure(self, actor: ActorContext) -> None:
        """Raise PermissionDeniedError unless the actor may edit configuration"""
        if not self.can_configure(actor):
            raise PermissionDeniedError(
                "You cannot modify circuit configuration",
                details={"role": actor.role.value}
            )
