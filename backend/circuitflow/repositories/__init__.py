"""Repository modules - Data access layer"""
from dataclasses import dataclass
from typing import Optional

from ..config.settings import Settings, settings as default_settings
from .base import (
    ActionRepository, CircuitRepository, DocumentStateRepository,
    HistoryRepository, StatusRepository
)
from .inmemory import (
    InMemoryActionRepository, InMemoryCircuitRepository,
    InMemoryDocumentStateRepository, InMemoryHistoryRepository,
    InMemoryStatusRepository
)


@dataclass
class Repositories:
    """The set of stores the engine and services work against"""
    circuits: CircuitRepository
    statuses: StatusRepository
    actions: ActionRepository
    states: DocumentStateRepository
    history: HistoryRepository


def create_in_memory_repositories() -> Repositories:
    """Fresh, empty in-memory stores"""
    return Repositories(
        circuits=InMemoryCircuitRepository(),
        statuses=InMemoryStatusRepository(),
        actions=InMemoryActionRepository(),
        states=InMemoryDocumentStateRepository(),
        history=InMemoryHistoryRepository(),
    )


def create_mongo_repositories() -> Repositories:
    """Stores backed by the configured MongoDB database"""
    from .action_repo import MongoActionRepository
    from .circuit_repo import MongoCircuitRepository
    from .history_repo import MongoHistoryRepository
    from .mongo_client import get_database
    from .state_repo import MongoDocumentStateRepository
    from .status_repo import MongoStatusRepository

    db = get_database()
    return Repositories(
        circuits=MongoCircuitRepository(db),
        statuses=MongoStatusRepository(db),
        actions=MongoActionRepository(db),
        states=MongoDocumentStateRepository(db),
        history=MongoHistoryRepository(db),
    )


_repositories: Optional[Repositories] = None


def get_repositories(config: Optional[Settings] = None) -> Repositories:
    """
    Factory for the process-wide repositories.

    The backend is selected by ``storage_backend`` ("mongo" or "memory").
    """
    global _repositories
    if _repositories is not None and config is None:
        return _repositories

    config = config or default_settings
    backend = config.storage_backend.lower()

    if backend == "memory":
        _repositories = create_in_memory_repositories()
    elif backend == "mongo":
        _repositories = create_mongo_repositories()
    else:
        raise ValueError(f"Unsupported storage backend: {config.storage_backend}")

    return _repositories


def reset_repositories() -> None:
    """Drop the cached repositories (tests and shutdown)"""
    global _repositories
    _repositories = None


__all__ = [
    "Repositories",
    "CircuitRepository",
    "StatusRepository",
    "ActionRepository",
    "DocumentStateRepository",
    "HistoryRepository",
    "create_in_memory_repositories",
    "create_mongo_repositories",
    "get_repositories",
    "reset_repositories",
]
