"""Status API Routes"""
from typing import Optional
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field

from ..deps import get_correlation_id_dep, get_current_user_dep, get_status_service_dep
from ...domain.models import ActorContext, Status
from ...services.status_service import StatusService

router = APIRouter()


class UpdateStatusRequest(BaseModel):
    """Request to update a status (only provided fields change)"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    is_required: Optional[bool] = None


@router.get("/{status_id}", response_model=Status)
def get_status(
    status_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: StatusService = Depends(get_status_service_dep)
):
    """Get a status"""
    return service.get_status(status_id)


@router.patch("/{status_id}", response_model=Status)
def update_status(
    status_id: str,
    request: UpdateStatusRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: StatusService = Depends(get_status_service_dep)
):
    """Update a status"""
    return service.update_status(status_id, request.model_dump(exclude_unset=True), actor)


@router.delete("/{status_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_status(
    status_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: StatusService = Depends(get_status_service_dep)
):
    """Delete a status"""
    service.delete_status(status_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
