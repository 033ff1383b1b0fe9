"""Action Repository - Data access for document actions"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError
from pymongo import ASCENDING

from .mongo_client import get_database
from ..domain.models import Action
from ..domain.errors import ActionNotFoundError, AlreadyExistsError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MongoActionRepository:
    """Repository for actions"""

    def __init__(self, database: Optional[Database] = None):
        db = database if database is not None else get_database()
        self._actions: Collection = db["actions"]

    def create_action(self, action: Action) -> Action:
        """Create a new action"""
        doc = action.model_dump()
        doc["_id"] = action.action_id

        try:
            self._actions.insert_one(doc)
        except DuplicateKeyError:
            raise AlreadyExistsError(f"Action {action.action_key} already exists")

        logger.info(f"Created action: {action.action_key}", extra={"action": action.action_key})
        return action

    def get_action(self, action_id: str) -> Optional[Action]:
        """Get action by ID"""
        doc = self._actions.find_one({"action_id": action_id})
        if doc:
            doc.pop("_id", None)
            return Action.model_validate(doc)
        return None

    def list_actions(self, step_id: Optional[str] = None) -> List[Action]:
        """List global actions plus those scoped to the step"""
        query: Dict[str, Any] = {}
        if step_id is not None:
            query["step_id"] = {"$in": [None, step_id]}

        cursor = self._actions.find(query).sort(
            [("created_at", ASCENDING), ("action_id", ASCENDING)]
        )

        actions = []
        for doc in cursor:
            doc.pop("_id", None)
            actions.append(Action.model_validate(doc))
        return actions

    def update_action(self, action_id: str, updates: Dict[str, Any]) -> Action:
        """Update action fields"""
        result = self._actions.find_one_and_update(
            {"action_id": action_id},
            {"$set": updates},
            return_document=True
        )
        if result is None:
            raise ActionNotFoundError(f"Action {action_id} not found")

        result.pop("_id", None)
        return Action.model_validate(result)

    def delete_action(self, action_id: str) -> bool:
        """Delete an action"""
        result = self._actions.delete_one({"action_id": action_id})
        return result.deleted_count > 0

    def delete_actions_for_step(self, step_id: str) -> int:
        """Delete actions scoped to a step"""
        result = self._actions.delete_many({"step_id": step_id})
        return result.deleted_count
