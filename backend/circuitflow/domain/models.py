"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import FrozenSet, List, Optional
from pydantic import BaseModel, Field, ConfigDict

from .enums import (
    LifecycleStatus, TransitionKind, ActionEffect, UserRole, HistoryEventType
)


# ============================================================================
# Caller Identity
# ============================================================================

class ActorContext(BaseModel):
    """Caller identity passed explicitly into every engine call"""
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(..., description="User identifier (token subject)")
    display_name: str = Field(..., description="User display name")
    role: UserRole = Field(..., description="Enumerated role")
    role_id: Optional[str] = Field(None, description="Role ID matched against Step.responsible_role_id")


# ============================================================================
# Circuit Definitions (configuration data)
# ============================================================================

class Circuit(BaseModel):
    """Configured workflow definition"""
    model_config = ConfigDict(extra="ignore")

    circuit_id: str = Field(..., description="Unique circuit ID")
    circuit_key: str = Field(..., description="Human-facing circuit key")
    title: str
    description: Optional[str] = None
    is_active: bool = Field(default=True)
    has_ordered_flow: bool = Field(default=True, description="Steps must be followed by order_index")
    allow_backtrack: bool = Field(default=False, description="Returning to earlier steps allowed (ordered flow)")
    created_at: datetime
    updated_at: datetime


class Step(BaseModel):
    """Stage within a circuit that a document occupies"""
    model_config = ConfigDict(extra="ignore")

    step_id: str = Field(..., description="Unique step ID")
    step_key: str = Field(..., description="Human-facing step key")
    circuit_id: str
    title: str
    description: Optional[str] = None
    order_index: int = Field(..., ge=0)
    responsible_role_id: Optional[str] = Field(None, description="Role allowed to act on this step")
    is_final_step: bool = Field(default=False)
    created_at: datetime
    updated_at: datetime


class Status(BaseModel):
    """Checklist item attached to a step"""
    model_config = ConfigDict(extra="ignore")

    status_id: str = Field(..., description="Unique status ID")
    status_key: str
    step_id: str
    title: str
    is_required: bool = Field(default=False)
    created_at: datetime


class Action(BaseModel):
    """Named action a caller can perform on a document"""
    model_config = ConfigDict(extra="ignore")

    action_id: str = Field(..., description="Unique action ID")
    action_key: str
    title: str
    description: Optional[str] = None
    effect: ActionEffect
    step_id: Optional[str] = Field(None, description="Only offered on this step when set")
    created_at: datetime


# ============================================================================
# Document Workflow State (transactional data)
# ============================================================================

class StatusCompletion(BaseModel):
    """Completion record of a status during the current step visit"""
    model_config = ConfigDict(extra="ignore")

    status_id: str
    completed_by: str
    completed_at: datetime


class DocumentWorkflowState(BaseModel):
    """Per-document position within its circuit"""
    model_config = ConfigDict(extra="ignore")

    document_id: str = Field(..., description="Document identifier")
    circuit_id: Optional[str] = None
    current_step_id: Optional[str] = None
    lifecycle_status: LifecycleStatus = Field(default=LifecycleStatus.DRAFT)
    completed_statuses: List[StatusCompletion] = Field(default_factory=list)
    is_circuit_completed: bool = Field(default=False)
    version: int = Field(default=1, description="Optimistic concurrency token")
    assigned_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def completed_status_ids(self) -> FrozenSet[str]:
        """Ids of statuses completed on the current step"""
        return frozenset(c.status_id for c in self.completed_statuses)

    @property
    def is_closed(self) -> bool:
        """Completed documents accept no further changes"""
        return self.lifecycle_status == LifecycleStatus.COMPLETED


class HistoryEntry(BaseModel):
    """History record (append-only)"""
    model_config = ConfigDict(extra="forbid")

    history_id: str
    document_id: str
    circuit_id: Optional[str] = None
    step_id: Optional[str] = Field(None, description="Step the event was processed at")
    to_step_id: Optional[str] = Field(None, description="Step the document is at after the event")
    event_type: HistoryEventType
    transition: Optional[TransitionKind] = None
    action_id: Optional[str] = None
    status_id: Optional[str] = None
    processed_by: str
    processed_at: datetime
    comments: str = ""
    is_approved: bool = False
    correlation_id: Optional[str] = None


# ============================================================================
# Engine Results & Views
# ============================================================================

class TransitionDecision(BaseModel):
    """Validated classification of a requested step change"""
    kind: TransitionKind
    from_step: Step
    to_step: Step


class StatusChecklistItem(BaseModel):
    """A step status with its completion for the current visit"""
    status_id: str
    status_key: str
    title: str
    is_required: bool
    is_complete: bool
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None


class WorkflowStatusView(BaseModel):
    """Document workflow state plus the derived affordances"""
    document_id: str
    circuit_id: Optional[str] = None
    circuit_title: Optional[str] = None
    current_step_id: Optional[str] = None
    current_step_title: Optional[str] = None
    lifecycle_status: LifecycleStatus
    is_circuit_completed: bool
    version: int
    statuses: List[StatusChecklistItem] = Field(default_factory=list)
    available_actions: List[Action] = Field(default_factory=list)
    can_advance_to_next_step: bool = False
    can_return_to_previous_step: bool = False
    next_step_id: Optional[str] = None
    previous_step_id: Optional[str] = None
