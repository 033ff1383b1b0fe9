"""Workflow engine modules"""
from .engine import WorkflowEngine
from .transition_resolver import TransitionResolver
from .permission_guard import PermissionGuard
from .history_log import HistoryLog
from .document_locks import DocumentLocks, get_document_locks

__all__ = [
    "WorkflowEngine",
    "TransitionResolver",
    "PermissionGuard",
    "HistoryLog",
    "DocumentLocks",
    "get_document_locks",
]
