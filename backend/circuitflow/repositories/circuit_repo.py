"""Circuit Repository - Data access for circuits and steps"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError
from pymongo import ASCENDING

from .mongo_client import get_database
from ..domain.models import Circuit, Step
from ..domain.errors import AlreadyExistsError, CircuitNotFoundError, StepNotFoundError
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MongoCircuitRepository:
    """Repository for circuit and step definitions"""

    def __init__(self, database: Optional[Database] = None):
        db = database if database is not None else get_database()
        self._circuits: Collection = db["circuits"]
        self._steps: Collection = db["steps"]

    # =========================================================================
    # Circuit CRUD
    # =========================================================================

    def create_circuit(self, circuit: Circuit) -> Circuit:
        """Create a new circuit"""
        doc = circuit.model_dump()
        doc["_id"] = circuit.circuit_id

        try:
            self._circuits.insert_one(doc)
        except DuplicateKeyError:
            raise AlreadyExistsError(f"Circuit {circuit.circuit_key} already exists")

        logger.info(f"Created circuit: {circuit.circuit_id}", extra={"circuit_id": circuit.circuit_id})
        return circuit

    def get_circuit(self, circuit_id: str) -> Optional[Circuit]:
        """Get circuit by ID"""
        doc = self._circuits.find_one({"circuit_id": circuit_id})
        if doc:
            doc.pop("_id", None)
            return Circuit.model_validate(doc)
        return None

    def list_circuits(self, is_active: Optional[bool] = None) -> List[Circuit]:
        """List circuits ordered by title"""
        query: Dict[str, Any] = {}
        if is_active is not None:
            query["is_active"] = is_active

        circuits = []
        for doc in self._circuits.find(query).sort("title", ASCENDING):
            doc.pop("_id", None)
            circuits.append(Circuit.model_validate(doc))
        return circuits

    def update_circuit(self, circuit_id: str, updates: Dict[str, Any]) -> Circuit:
        """Update circuit fields"""
        updates["updated_at"] = utc_now()

        result = self._circuits.find_one_and_update(
            {"circuit_id": circuit_id},
            {"$set": updates},
            return_document=True
        )
        if result is None:
            raise CircuitNotFoundError(f"Circuit {circuit_id} not found")

        result.pop("_id", None)
        logger.info(f"Updated circuit: {circuit_id}", extra={"circuit_id": circuit_id})
        return Circuit.model_validate(result)

    def delete_circuit(self, circuit_id: str) -> bool:
        """Delete circuit and its steps"""
        self._steps.delete_many({"circuit_id": circuit_id})
        result = self._circuits.delete_one({"circuit_id": circuit_id})
        return result.deleted_count > 0

    # =========================================================================
    # Step CRUD
    # =========================================================================

    def create_step(self, step: Step) -> Step:
        """Create a new step"""
        doc = step.model_dump()
        doc["_id"] = step.step_id

        self._steps.insert_one(doc)
        logger.info(
            f"Created step: {step.step_id}",
            extra={"circuit_id": step.circuit_id, "step_id": step.step_id}
        )
        return step

    def get_step(self, step_id: str) -> Optional[Step]:
        """Get step by ID"""
        doc = self._steps.find_one({"step_id": step_id})
        if doc:
            doc.pop("_id", None)
            return Step.model_validate(doc)
        return None

    def list_steps(self, circuit_id: str) -> List[Step]:
        """List steps of a circuit ascending by order index"""
        cursor = self._steps.find({"circuit_id": circuit_id}).sort(
            [("order_index", ASCENDING), ("created_at", ASCENDING)]
        )

        steps = []
        for doc in cursor:
            doc.pop("_id", None)
            steps.append(Step.model_validate(doc))
        return steps

    def update_step(self, step_id: str, updates: Dict[str, Any]) -> Step:
        """Update step fields"""
        updates["updated_at"] = utc_now()

        result = self._steps.find_one_and_update(
            {"step_id": step_id},
            {"$set": updates},
            return_document=True
        )
        if result is None:
            raise StepNotFoundError(f"Step {step_id} not found")

        result.pop("_id", None)
        return Step.model_validate(result)

    def delete_step(self, step_id: str) -> bool:
        """Delete a step"""
        result = self._steps.delete_one({"step_id": step_id})
        return result.deleted_count > 0
