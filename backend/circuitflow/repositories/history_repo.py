"""History Repository - Append-only document history"""
from typing import Any, Dict, Iterator, Optional
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo import ASCENDING

from .mongo_client import get_database
from ..domain.models import HistoryEntry
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MongoHistoryRepository:
    """Repository for history entries (append-only)"""

    def __init__(self, database: Optional[Database] = None):
        db = database if database is not None else get_database()
        self._history: Collection = db["document_history"]

    def append(self, entry: HistoryEntry) -> HistoryEntry:
        """Append a history entry"""
        doc = entry.model_dump()
        doc["_id"] = entry.history_id

        self._history.insert_one(doc)
        logger.info(
            f"Appended history entry: {entry.event_type.value}",
            extra={"document_id": entry.document_id, "step_id": entry.step_id}
        )
        return entry

    def iter_for_document(self, document_id: str) -> Iterator[HistoryEntry]:
        """Stream history of a document, oldest first"""
        return self._iter({"document_id": document_id})

    def iter_for_step(self, step_id: str) -> Iterator[HistoryEntry]:
        """Stream history recorded at a step, oldest first"""
        return self._iter({"step_id": step_id})

    def _iter(self, query: Dict[str, Any]) -> Iterator[HistoryEntry]:
        cursor = self._history.find(query).sort(
            [("processed_at", ASCENDING), ("history_id", ASCENDING)]
        )
        for doc in cursor:
            doc.pop("_id", None)
            yield HistoryEntry.model_validate(doc)
