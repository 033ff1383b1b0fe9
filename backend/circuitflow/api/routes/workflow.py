"""Document Workflow API Routes - Assignment, actions, moves and history"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ..deps import get_correlation_id_dep, get_current_user_dep, get_engine_dep
from ...domain.models import (
    ActorContext, DocumentWorkflowState, HistoryEntry, WorkflowStatusView
)
from ...domain.errors import ValidationError
from ...engine import WorkflowEngine
from ...utils.logger import get_logger
from ...utils.time import parse_iso

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request Models
# ============================================================================

class AssignCircuitRequest(BaseModel):
    """Request to assign a document to a circuit"""
    document_id: str = Field(..., min_length=1)
    circuit_id: str = Field(..., min_length=1)
    comments: Optional[str] = Field(None, max_length=2000)


class PerformActionRequest(BaseModel):
    """Request to perform an action on a document"""
    document_id: str = Field(..., min_length=1)
    action_id: str = Field(..., min_length=1)
    comments: Optional[str] = Field(None, max_length=2000)
    is_approved: Optional[bool] = None
    target_step_id: Optional[str] = None
    expected_version: Optional[int] = Field(None, ge=1)


class MoveNextRequest(BaseModel):
    """Request to advance a document from its current step"""
    document_id: str = Field(..., min_length=1)
    current_step_id: str = Field(..., min_length=1)
    next_step_id: str = Field(..., min_length=1)
    comments: Optional[str] = Field(None, max_length=2000)
    expected_version: Optional[int] = Field(None, ge=1)


class MoveToStepRequest(BaseModel):
    """Request to move a document to a chosen step"""
    document_id: str = Field(..., min_length=1)
    target_step_id: str = Field(..., min_length=1)
    comments: Optional[str] = Field(None, max_length=2000)
    expected_version: Optional[int] = Field(None, ge=1)


class CompleteStatusRequest(BaseModel):
    """Request to mark a status complete or incomplete"""
    document_id: str = Field(..., min_length=1)
    status_id: str = Field(..., min_length=1)
    is_complete: bool = True
    comments: Optional[str] = Field(None, max_length=2000)
    expected_version: Optional[int] = Field(None, ge=1)


# ============================================================================
# Routes
# ============================================================================

@router.post("/assign-circuit", response_model=DocumentWorkflowState)
def assign_circuit(
    request: AssignCircuitRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: WorkflowEngine = Depends(get_engine_dep)
):
    """Assign a document to a circuit at its first step"""
    return engine.assign_circuit(
        request.document_id, request.circuit_id, actor, comments=request.comments
    )


@router.get("/documents/{document_id}/status", response_model=WorkflowStatusView)
def get_document_status(
    document_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    engine: WorkflowEngine = Depends(get_engine_dep)
):
    """
    Current workflow status of a document

    available_actions only lists actions the caller may perform.
    """
    return engine.get_current_status(document_id, actor)


@router.post("/perform-action", response_model=DocumentWorkflowState)
def perform_action(
    request: PerformActionRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: WorkflowEngine = Depends(get_engine_dep)
):
    """Approve, reject or move a document through a configured action"""
    return engine.perform_action(
        document_id=request.document_id,
        action_id=request.action_id,
        actor=actor,
        comments=request.comments,
        is_approved=request.is_approved,
        target_step_id=request.target_step_id,
        expected_version=request.expected_version
    )


@router.post("/move-next", response_model=DocumentWorkflowState)
def move_to_next_step(
    request: MoveNextRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: WorkflowEngine = Depends(get_engine_dep)
):
    """Advance a document to the following step"""
    return engine.move_to_next_step(
        document_id=request.document_id,
        current_step_id=request.current_step_id,
        next_step_id=request.next_step_id,
        actor=actor,
        comments=request.comments,
        expected_version=request.expected_version
    )


@router.post("/move-to-step", response_model=DocumentWorkflowState)
def move_to_step(
    request: MoveToStepRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: WorkflowEngine = Depends(get_engine_dep)
):
    """Move a document to any step the circuit rules allow"""
    return engine.move_to_step(
        document_id=request.document_id,
        target_step_id=request.target_step_id,
        actor=actor,
        comments=request.comments,
        expected_version=request.expected_version
    )


@router.post("/complete-status", response_model=DocumentWorkflowState)
def complete_status(
    request: CompleteStatusRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: WorkflowEngine = Depends(get_engine_dep)
):
    """Mark a status of the current step complete or incomplete"""
    return engine.complete_status(
        document_id=request.document_id,
        status_id=request.status_id,
        is_complete=request.is_complete,
        actor=actor,
        comments=request.comments,
        expected_version=request.expected_version
    )


@router.get("/documents/{document_id}/history", response_model=List[HistoryEntry])
def get_document_history(
    document_id: str,
    since: Optional[str] = Query(None, description="ISO 8601 timestamp; only entries processed at or after it"),
    actor: ActorContext = Depends(get_current_user_dep),
    engine: WorkflowEngine = Depends(get_engine_dep)
):
    """History of a document, oldest first"""
    since_dt = None
    if since:
        try:
            since_dt = parse_iso(since)
        except ValueError:
            raise ValidationError(
                f"Invalid since timestamp: {since}",
                details={"since": since}
            )
    return engine.get_history(document_id, since=since_dt)


@router.get("/pending-documents", response_model=List[WorkflowStatusView])
def list_pending_documents(
    actor: ActorContext = Depends(get_current_user_dep),
    engine: WorkflowEngine = Depends(get_engine_dep)
):
    """Open documents waiting on steps the caller may act on"""
    return engine.list_pending_documents(actor)
