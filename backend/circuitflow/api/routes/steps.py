"""Step API Routes - Step and step status endpoints"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field

from ..deps import (
    get_circuit_service_dep, get_correlation_id_dep, get_current_user_dep,
    get_status_service_dep
)
from ...domain.models import ActorContext, Status, Step
from ...services.circuit_service import CircuitService
from ...services.status_service import StatusService

router = APIRouter()


class UpdateStepRequest(BaseModel):
    """Request to update a step (only provided fields change)"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    order_index: Optional[int] = Field(None, ge=0)
    responsible_role_id: Optional[str] = None
    is_final_step: Optional[bool] = None


class CreateStatusRequest(BaseModel):
    """Request to add a status to a step"""
    title: str = Field(..., min_length=1, max_length=200)
    is_required: bool = False


@router.get("/{step_id}", response_model=Step)
def get_step(
    step_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: CircuitService = Depends(get_circuit_service_dep)
):
    """Get a step"""
    return service.get_step(step_id)


@router.patch("/{step_id}", response_model=Step)
def update_step(
    step_id: str,
    request: UpdateStepRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: CircuitService = Depends(get_circuit_service_dep)
):
    """Update a step"""
    return service.update_step(step_id, request.model_dump(exclude_unset=True), actor)


@router.delete("/{step_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_step(
    step_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: CircuitService = Depends(get_circuit_service_dep)
):
    """Delete a step no document is positioned on"""
    service.delete_step(step_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{step_id}/statuses", response_model=List[Status])
def list_statuses(
    step_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: StatusService = Depends(get_status_service_dep)
):
    """Statuses of a step in creation order"""
    return service.get_requirements(step_id)


@router.post("/{step_id}/statuses", response_model=Status, status_code=status.HTTP_201_CREATED)
def create_status(
    step_id: str,
    request: CreateStatusRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: StatusService = Depends(get_status_service_dep)
):
    """Add a status to a step"""
    return service.create_status(step_id, request.title, actor, is_required=request.is_required)
