"""Per-document mutual exclusion for validate-mutate-log sequences"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class DocumentLocks:
    """
    One lock per document id

    Distinct documents never contend; only writers on the same document are
    serialized. Readers never take these locks.

    A lock lives only while some caller holds or waits for it, so the
    registry stays bounded by the number of documents currently being
    written.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, threading.Lock] = {}
        self._holders: Dict[str, int] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def __contains__(self, document_id: str) -> bool:
        with self._guard:
            return document_id in self._locks

    @contextmanager
    def hold(self, document_id: str) -> Iterator[None]:
        """Hold the document's lock for the duration of the block"""
        lock = self._checkout(document_id)
        try:
            with lock:
                yield
        finally:
            self._checkin(document_id)

    def _checkout(self, document_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(document_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[document_id] = lock
            self._holders[document_id] = self._holders.get(document_id, 0) + 1
            return lock

    def _checkin(self, document_id: str) -> None:
        with self._guard:
            remaining = self._holders[document_id] - 1
            if remaining:
                self._holders[document_id] = remaining
            else:
                del self._holders[document_id]
                del self._locks[document_id]


# Process-wide registry shared by every engine instance
_document_locks = DocumentLocks()


def get_document_locks() -> DocumentLocks:
    """Get the process-wide document lock registry"""
    return _document_locks
