"""Action API Routes"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from ..deps import get_action_service_dep, get_correlation_id_dep, get_current_user_dep
from ...domain.models import Action, ActorContext
from ...domain.enums import ActionEffect
from ...services.action_service import ActionService

router = APIRouter()


class CreateActionRequest(BaseModel):
    """Request to create an action"""
    action_key: str = Field(..., min_length=1, max_length=100)
    title: str = Field(..., min_length=1, max_length=200)
    effect: ActionEffect
    description: Optional[str] = Field(None, max_length=2000)
    step_id: Optional[str] = None


class UpdateActionRequest(BaseModel):
    """Request to update an action (only provided fields change)"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    effect: Optional[ActionEffect] = None
    description: Optional[str] = Field(None, max_length=2000)
    step_id: Optional[str] = None


@router.post("", response_model=Action, status_code=status.HTTP_201_CREATED)
def create_action(
    request: CreateActionRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: ActionService = Depends(get_action_service_dep)
):
    """Create an action"""
    return service.create_action(
        action_key=request.action_key,
        title=request.title,
        effect=request.effect,
        actor=actor,
        description=request.description,
        step_id=request.step_id
    )


@router.get("", response_model=List[Action])
def list_actions(
    step_id: Optional[str] = Query(None),
    actor: ActorContext = Depends(get_current_user_dep),
    service: ActionService = Depends(get_action_service_dep)
):
    """All actions, or the ones offered at a step"""
    return service.list_actions(step_id)


@router.get("/{action_id}", response_model=Action)
def get_action(
    action_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: ActionService = Depends(get_action_service_dep)
):
    """Get an action"""
    return service.get_action(action_id)


@router.patch("/{action_id}", response_model=Action)
def update_action(
    action_id: str,
    request: UpdateActionRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: ActionService = Depends(get_action_service_dep)
):
    """Update an action"""
    return service.update_action(action_id, request.model_dump(exclude_unset=True), actor)


@router.delete("/{action_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_action(
    action_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: ActionService = Depends(get_action_service_dep)
):
    """Delete an action"""
    service.delete_action(action_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
