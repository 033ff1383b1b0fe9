"""Status Repository - Data access for step statuses"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo import ASCENDING

from .mongo_client import get_database
from ..domain.models import Status
from ..domain.errors import StatusNotFoundError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MongoStatusRepository:
    """Repository for status requirements"""

    def __init__(self, database: Optional[Database] = None):
        db = database if database is not None else get_database()
        self._statuses: Collection = db["statuses"]

    def create_status(self, status: Status) -> Status:
        """Create a new status"""
        doc = status.model_dump()
        doc["_id"] = status.status_id

        self._statuses.insert_one(doc)
        logger.info(
            f"Created status: {status.status_id}",
            extra={"step_id": status.step_id, "status_id": status.status_id}
        )
        return status

    def get_status(self, status_id: str) -> Optional[Status]:
        """Get status by ID"""
        doc = self._statuses.find_one({"status_id": status_id})
        if doc:
            doc.pop("_id", None)
            return Status.model_validate(doc)
        return None

    def list_statuses(self, step_id: str) -> List[Status]:
        """List statuses of a step in creation order"""
        cursor = self._statuses.find({"step_id": step_id}).sort(
            [("created_at", ASCENDING), ("status_id", ASCENDING)]
        )

        statuses = []
        for doc in cursor:
            doc.pop("_id", None)
            statuses.append(Status.model_validate(doc))
        return statuses

    def update_status(self, status_id: str, updates: Dict[str, Any]) -> Status:
        """Update status fields"""
        result = self._statuses.find_one_and_update(
            {"status_id": status_id},
            {"$set": updates},
            return_document=True
        )
        if result is None:
            raise StatusNotFoundError(f"Status {status_id} not found")

        result.pop("_id", None)
        return Status.model_validate(result)

    def delete_status(self, status_id: str) -> bool:
        """Delete a status"""
        result = self._statuses.delete_one({"status_id": status_id})
        return result.deleted_count > 0

    def delete_statuses_for_step(self, step_id: str) -> int:
        """Delete all statuses of a step"""
        result = self._statuses.delete_many({"step_id": step_id})
        return result.deleted_count
