"""History Log - Append-only record of document transitions and actions"""
from datetime import datetime
from typing import Iterator, Optional

from ..domain.models import ActorContext, HistoryEntry
from ..domain.enums import HistoryEventType, TransitionKind
from ..domain.errors import ValidationError
from ..repositories.base import HistoryRepository
from ..utils.idgen import generate_history_id
from ..utils.time import utc_now
from ..utils.logger import get_logger, get_correlation_id

logger = get_logger(__name__)


class HistoryLog:
    """
    Write and read history entries (append-only)

    Every state change produces exactly one entry. Entries are never
    mutated or deleted.
    """

    def __init__(self, repo: HistoryRepository):
        self.repo = repo

    def new_entry(
        self,
        document_id: str,
        event_type: HistoryEventType,
        actor: ActorContext,
        circuit_id: Optional[str] = None,
        step_id: Optional[str] = None,
        to_step_id: Optional[str] = None,
        transition: Optional[TransitionKind] = None,
        action_id: Optional[str] = None,
        status_id: Optional[str] = None,
        comments: Optional[str] = None,
        is_approved: bool = False,
        correlation_id: Optional[str] = None
    ) -> HistoryEntry:
        """Build an entry stamped with the current time"""
        return HistoryEntry(
            history_id=generate_history_id(),
            document_id=document_id,
            circuit_id=circuit_id,
            step_id=step_id,
            to_step_id=to_step_id,
            event_type=event_type,
            transition=transition,
            action_id=action_id,
            status_id=status_id,
            processed_by=actor.user_id,
            processed_at=utc_now(),
            comments=comments or "",
            is_approved=is_approved,
            correlation_id=correlation_id or get_correlation_id()
        )

    def append(self, entry: HistoryEntry) -> HistoryEntry:
        """Store an entry; storage failures propagate to the caller"""
        try:
            return self.repo.append(entry)
        except Exception:
            logger.error(
                f"Failed to append history entry {entry.history_id}",
                extra={"document_id": entry.document_id, "step_id": entry.step_id},
                exc_info=True
            )
            raise

    def query(
        self,
        document_id: Optional[str] = None,
        step_id: Optional[str] = None,
        since: Optional[datetime] = None
    ) -> Iterator[HistoryEntry]:
        """
        Lazily read entries ordered by processed_at ascending

        Exactly one of document_id / step_id must be given. With ``since``
        only entries processed at or after that instant are returned. Each
        call starts a fresh read.
        """
        if (document_id is None) == (step_id is None):
            raise ValidationError("Query history by exactly one of document_id or step_id")

        if document_id is not None:
            entries = self.repo.iter_for_document(document_id)
        else:
            entries = self.repo.iter_for_step(step_id)

        if since is None:
            return entries
        return (e for e in entries if e.processed_at >= since)
