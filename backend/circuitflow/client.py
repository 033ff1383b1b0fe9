"""Workflow Client - HTTP client for the document workflow API"""
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Set

import httpx

from .domain.models import DocumentWorkflowState, HistoryEntry, WorkflowStatusView
from .domain.errors import DomainError, MoveInProgressError, StateConflictError, error_from_payload
from .utils.logger import get_logger
from .utils.time import format_iso

logger = get_logger(__name__)

API_PREFIX = "/api/v1/workflow"


class WorkflowClient:
    """
    Client for the workflow endpoints

    Only one state-changing request per document is in flight at a time:
    a second one raises MoveInProgressError without reaching the server.
    When the server reports a state conflict the client re-reads the
    document status (see ``last_status``) before re-raising.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        token: Optional[str] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None
    ):
        self._http = http_client or httpx.Client(base_url=base_url, timeout=timeout)
        self._owns_http = http_client is None
        self._token = token
        self._busy: Set[str] = set()
        self._busy_lock = threading.Lock()
        self.last_status: Dict[str, WorkflowStatusView] = {}

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "WorkflowClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # =========================================================================
    # Reads
    # =========================================================================

    def get_status(self, document_id: str) -> WorkflowStatusView:
        """Current workflow status of a document"""
        data = self._request("GET", f"/documents/{document_id}/status")
        view = WorkflowStatusView.model_validate(data)
        self.last_status[document_id] = view
        return view

    def get_history(
        self, document_id: str, since: Optional[datetime] = None
    ) -> List[HistoryEntry]:
        """History of a document, oldest first"""
        params = {"since": format_iso(since)} if since is not None else None
        data = self._request("GET", f"/documents/{document_id}/history", params=params)
        return [HistoryEntry.model_validate(item) for item in data]

    def list_pending_documents(self) -> List[WorkflowStatusView]:
        """Open documents the caller may act on"""
        data = self._request("GET", "/pending-documents")
        return [WorkflowStatusView.model_validate(item) for item in data]

    # =========================================================================
    # Mutations
    # =========================================================================

    def assign_circuit(
        self,
        document_id: str,
        circuit_id: str,
        comments: Optional[str] = None
    ) -> DocumentWorkflowState:
        """Assign a document to a circuit"""
        return self._mutate(document_id, "/assign-circuit", {
            "document_id": document_id,
            "circuit_id": circuit_id,
            "comments": comments
        })

    def perform_action(
        self,
        document_id: str,
        action_id: str,
        comments: Optional[str] = None,
        is_approved: Optional[bool] = None,
        target_step_id: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> DocumentWorkflowState:
        """Perform a configured action on a document"""
        return self._mutate(document_id, "/perform-action", {
            "document_id": document_id,
            "action_id": action_id,
            "comments": comments,
            "is_approved": is_approved,
            "target_step_id": target_step_id,
            "expected_version": expected_version
        })

    def move_to_next_step(
        self,
        document_id: str,
        current_step_id: str,
        next_step_id: str,
        comments: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> DocumentWorkflowState:
        """Advance a document to the following step"""
        return self._mutate(document_id, "/move-next", {
            "document_id": document_id,
            "current_step_id": current_step_id,
            "next_step_id": next_step_id,
            "comments": comments,
            "expected_version": expected_version
        })

    def move_to_step(
        self,
        document_id: str,
        target_step_id: str,
        comments: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> DocumentWorkflowState:
        """Move a document to a chosen step"""
        return self._mutate(document_id, "/move-to-step", {
            "document_id": document_id,
            "target_step_id": target_step_id,
            "comments": comments,
            "expected_version": expected_version
        })

    def complete_status(
        self,
        document_id: str,
        status_id: str,
        is_complete: bool = True,
        comments: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> DocumentWorkflowState:
        """Mark a status of the current step complete or incomplete"""
        return self._mutate(document_id, "/complete-status", {
            "document_id": document_id,
            "status_id": status_id,
            "is_complete": is_complete,
            "comments": comments,
            "expected_version": expected_version
        })

    # =========================================================================
    # Helpers
    # =========================================================================

    def is_busy(self, document_id: str) -> bool:
        """True while a state-changing request for the document is in flight"""
        with self._busy_lock:
            return document_id in self._busy

    @contextmanager
    def _in_flight(self, document_id: str) -> Iterator[None]:
        with self._busy_lock:
            if document_id in self._busy:
                raise MoveInProgressError(
                    f"A request for document {document_id} is already in progress",
                    details={"document_id": document_id}
                )
            self._busy.add(document_id)
        try:
            yield
        finally:
            with self._busy_lock:
                self._busy.discard(document_id)

    def _mutate(self, document_id: str, path: str, body: Dict[str, Any]) -> DocumentWorkflowState:
        with self._in_flight(document_id):
            try:
                data = self._request("POST", path, json=body)
            except StateConflictError:
                logger.info(
                    f"State conflict on {document_id}, refreshing status",
                    extra={"document_id": document_id}
                )
                try:
                    self.get_status(document_id)
                except (DomainError, httpx.HTTPError) as refresh_error:
                    logger.warning(
                        f"Status refresh for {document_id} failed: {refresh_error}",
                        extra={"document_id": document_id}
                    )
                raise
        return DocumentWorkflowState.model_validate(data)

    def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        response = self._http.request(
            method, f"{API_PREFIX}{path}", json=json, params=params, headers=headers
        )

        if response.is_error:
            try:
                payload = response.json()
            except ValueError:
                payload = {"error": {"code": "HTTP_ERROR", "message": response.text}}
            raise error_from_payload(payload)

        return response.json()
