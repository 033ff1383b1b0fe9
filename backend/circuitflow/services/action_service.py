"""Action Service - Configured document actions"""
from typing import Any, Dict, List, Optional

from ..domain.models import Action, ActorContext
from ..domain.enums import ActionEffect
from ..domain.errors import ActionNotFoundError, StepNotFoundError, ValidationError
from ..engine.permission_guard import PermissionGuard
from ..repositories import Repositories
from ..utils.idgen import generate_action_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

ACTION_FIELDS = {"title", "description", "effect", "step_id"}


class ActionService:
    """Service for actions offered on documents"""

    def __init__(
        self,
        repositories: Repositories,
        permission_guard: Optional[PermissionGuard] = None
    ):
        self.repos = repositories
        self.repo = repositories.actions
        self.permission_guard = permission_guard or PermissionGuard()

    def create_action(
        self,
        action_key: str,
        title: str,
        effect: ActionEffect,
        actor: ActorContext,
        description: Optional[str] = None,
        step_id: Optional[str] = None
    ) -> Action:
        """Create an action, optionally scoped to one step"""
        self.permission_guard.ensure_can_configure(actor)
        if step_id is not None:
            self._ensure_step(step_id)

        action = Action(
            action_id=generate_action_id(),
            action_key=action_key,
            title=title,
            description=description,
            effect=effect,
            step_id=step_id,
            created_at=utc_now()
        )
        self.repo.create_action(action)

        logger.info(f"Created action {action_key}", extra={"action": effect.value, "step_id": step_id})
        return action

    def get_action(self, action_id: str) -> Action:
        """Get action by ID"""
        action = self.repo.get_action(action_id)
        if action is None:
            raise ActionNotFoundError(
                f"Action {action_id} not found",
                details={"action_id": action_id}
            )
        return action

    def list_actions(self, step_id: Optional[str] = None) -> List[Action]:
        """All actions, or those offered at ``step_id``"""
        return self.repo.list_actions(step_id)

    def update_action(
        self,
        action_id: str,
        updates: Dict[str, Any],
        actor: ActorContext
    ) -> Action:
        """Update an action"""
        self.permission_guard.ensure_can_configure(actor)
        action = self.get_action(action_id)

        unknown = set(updates) - ACTION_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown fields: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)}
            )
        if updates.get("step_id") is not None:
            self._ensure_step(updates["step_id"])

        if not updates:
            return action
        return self.repo.update_action(action_id, updates)

    def delete_action(self, action_id: str, actor: ActorContext) -> None:
        """Delete an action"""
        self.permission_guard.ensure_can_configure(actor)
        self.get_action(action_id)
        self.repo.delete_action(action_id)

    def _ensure_step(self, step_id: str) -> None:
        if self.repos.circuits.get_step(step_id) is None:
            raise StepNotFoundError(
                f"Step {step_id} not found",
                details={"step_id": step_id}
            )
