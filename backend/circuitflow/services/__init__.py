"""Service modules - Configuration business logic"""
from .circuit_service import CircuitService
from .status_service import StatusService
from .action_service import ActionService

__all__ = ["CircuitService", "StatusService", "ActionService"]
