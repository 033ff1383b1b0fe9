"""State Committer - Pair a state write with its history entry"""
from ..domain.models import DocumentWorkflowState, HistoryEntry
from ..domain.errors import DomainError, HistoryWriteError
from ..repositories.base import DocumentStateRepository
from .history_log import HistoryLog
from ..utils.logger import get_logger

logger = get_logger(__name__)


class StateCommitter:
    """
    Commit a state change together with exactly one history entry

    The state is written first with a compare-and-set on its version. If the
    history append then fails, the previous snapshot is put back and the
    failure is raised as HistoryWriteError. Callers hold the document lock.
    """

    def __init__(self, state_repo: DocumentStateRepository, history_log: HistoryLog):
        self.state_repo = state_repo
        self.history_log = history_log

    def commit(
        self,
        previous: DocumentWorkflowState,
        new_state: DocumentWorkflowState,
        entry: HistoryEntry
    ) -> DocumentWorkflowState:
        """Replace ``previous`` with ``new_state`` and log ``entry``"""
        saved = self.state_repo.save_state(new_state, expected_version=previous.version)

        try:
            self.history_log.append(entry)
        except Exception as e:
            self.state_repo.restore_state(previous, expected_version=saved.version)
            logger.error(
                f"Rolled back state of {previous.document_id} after history failure",
                extra={"document_id": previous.document_id, "error_code": HistoryWriteError.error_code}
            )
            raise self._history_error(entry, e) from e

        return saved

    def commit_new(
        self,
        state: DocumentWorkflowState,
        entry: HistoryEntry
    ) -> DocumentWorkflowState:
        """Insert the first state of a document and log ``entry``"""
        saved = self.state_repo.insert_state(state)

        try:
            self.history_log.append(entry)
        except Exception as e:
            self.state_repo.delete_state(saved.document_id, expected_version=saved.version)
            logger.error(
                f"Removed state of {saved.document_id} after history failure",
                extra={"document_id": saved.document_id, "error_code": HistoryWriteError.error_code}
            )
            raise self._history_error(entry, e) from e

        return saved

    def _history_error(self, entry: HistoryEntry, cause: Exception) -> DomainError:
        return HistoryWriteError(
            f"Could not record history for document {entry.document_id}; the change was not applied",
            details={"document_id": entry.document_id, "cause": str(cause)}
        )
