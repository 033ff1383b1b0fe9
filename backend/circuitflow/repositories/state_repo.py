"""Document State Repository - Per-document workflow state with optimistic concurrency"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_database
from ..domain.models import DocumentWorkflowState
from ..domain.enums import LifecycleStatus
from ..domain.errors import DocumentNotFoundError, StateConflictError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MongoDocumentStateRepository:
    """Repository for document workflow states"""

    def __init__(self, database: Optional[Database] = None):
        db = database if database is not None else get_database()
        self._states: Collection = db["document_workflow_states"]

    def insert_state(self, state: DocumentWorkflowState) -> DocumentWorkflowState:
        """Create the first workflow state of a document"""
        doc = state.model_dump()
        doc["_id"] = state.document_id

        try:
            self._states.insert_one(doc)
        except DuplicateKeyError:
            raise StateConflictError(
                f"Document {state.document_id} was assigned concurrently. Please refresh and try again.",
                details={"document_id": state.document_id}
            )

        logger.info(f"Created workflow state: {state.document_id}", extra={"document_id": state.document_id})
        return state

    def get_state(self, document_id: str) -> Optional[DocumentWorkflowState]:
        """Get workflow state by document ID"""
        doc = self._states.find_one({"document_id": document_id})
        if doc:
            doc.pop("_id", None)
            return DocumentWorkflowState.model_validate(doc)
        return None

    def save_state(
        self, state: DocumentWorkflowState, expected_version: int
    ) -> DocumentWorkflowState:
        """
        Replace state with optimistic concurrency

        Args:
            state: New state content
            expected_version: Version the caller read
        """
        doc = state.model_dump()
        doc["version"] = expected_version + 1
        doc["_id"] = state.document_id

        result = self._states.find_one_and_replace(
            {"document_id": state.document_id, "version": expected_version},
            doc,
            return_document=True
        )

        if result is None:
            self._raise_missing(state.document_id, expected_version)

        result.pop("_id", None)
        return DocumentWorkflowState.model_validate(result)

    def restore_state(self, state: DocumentWorkflowState, expected_version: int) -> None:
        """Write back a previous snapshot, keeping its version"""
        doc = state.model_dump()
        doc["_id"] = state.document_id

        result = self._states.replace_one(
            {"document_id": state.document_id, "version": expected_version},
            doc
        )
        if result.matched_count == 0:
            self._raise_missing(state.document_id, expected_version)

        logger.warning(
            f"Restored workflow state of {state.document_id} to version {state.version}",
            extra={"document_id": state.document_id}
        )

    def delete_state(self, document_id: str, expected_version: int) -> None:
        """Delete a state (rollback of a failed assignment)"""
        result = self._states.delete_one({"document_id": document_id, "version": expected_version})
        if result.deleted_count == 0:
            self._raise_missing(document_id, expected_version)

    def list_states(
        self, lifecycle_statuses: Optional[List[LifecycleStatus]] = None
    ) -> List[DocumentWorkflowState]:
        """List states, optionally filtered by lifecycle status"""
        query: Dict[str, Any] = {}
        if lifecycle_statuses:
            query["lifecycle_status"] = {"$in": [s.value for s in lifecycle_statuses]}

        states = []
        for doc in self._states.find(query).sort("document_id", 1):
            doc.pop("_id", None)
            states.append(DocumentWorkflowState.model_validate(doc))
        return states

    def count_for_circuit(self, circuit_id: str) -> int:
        """Count documents assigned to a circuit"""
        return self._states.count_documents({"circuit_id": circuit_id})

    def count_for_step(self, step_id: str) -> int:
        """Count documents positioned on a step"""
        return self._states.count_documents({"current_step_id": step_id})

    def _raise_missing(self, document_id: str, expected_version: int) -> None:
        exists = self._states.find_one({"document_id": document_id})
        if exists:
            raise StateConflictError(
                f"Document {document_id} was modified. Please refresh and try again.",
                details={"expected_version": expected_version, "current_version": exists.get("version")}
            )
        raise DocumentNotFoundError(f"Document {document_id} has no workflow state")
