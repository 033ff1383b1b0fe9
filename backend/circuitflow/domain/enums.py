"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class LifecycleStatus(str, Enum):
    """Coarse state of a document's participation in a circuit"""
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class TransitionKind(str, Enum):
    """Classification assigned to a requested step change"""
    ADVANCE = "ADVANCE"
    RETURN = "RETURN"
    MOVE = "MOVE"  # Arbitrary move within an unordered circuit


class ActionEffect(str, Enum):
    """What performing an action does to the document"""
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CUSTOM_MOVE = "CUSTOM_MOVE"


class UserRole(str, Enum):
    """Caller roles known to the engine"""
    ADMIN = "Admin"
    FULL_USER = "FullUser"
    SIMPLE_USER = "SimpleUser"  # Read-only


class HistoryEventType(str, Enum):
    """Kinds of history entries"""
    ASSIGN_CIRCUIT = "ASSIGN_CIRCUIT"
    ACTION = "ACTION"
    MOVE = "MOVE"
    STATUS_CHANGE = "STATUS_CHANGE"
