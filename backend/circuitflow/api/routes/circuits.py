"""Circuit API Routes - Circuit and step definition endpoints"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from ..deps import get_circuit_service_dep, get_correlation_id_dep, get_current_user_dep
from ...domain.models import ActorContext, Circuit, Step
from ...services.circuit_service import CircuitService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request Models
# ============================================================================

class CreateCircuitRequest(BaseModel):
    """Request to create a circuit"""
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    has_ordered_flow: bool = True
    allow_backtrack: bool = False
    is_active: bool = True


class UpdateCircuitRequest(BaseModel):
    """Request to update circuit settings (only provided fields change)"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    has_ordered_flow: Optional[bool] = None
    allow_backtrack: Optional[bool] = None
    is_active: Optional[bool] = None


class CreateStepRequest(BaseModel):
    """Request to add a step to a circuit"""
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    order_index: Optional[int] = Field(None, ge=0)
    responsible_role_id: Optional[str] = None
    is_final_step: bool = False


class StepOrderItem(BaseModel):
    """New position of one step"""
    step_id: str
    order_index: int = Field(..., ge=0)


class ReorderStepsRequest(BaseModel):
    """Request to replace the order of all steps"""
    steps: List[StepOrderItem]


# ============================================================================
# Circuits
# ============================================================================

@router.post("", response_model=Circuit, status_code=status.HTTP_201_CREATED)
def create_circuit(
    request: CreateCircuitRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: CircuitService = Depends(get_circuit_service_dep)
):
    """Create a circuit"""
    circuit = service.create_circuit(
        title=request.title,
        actor=actor,
        description=request.description,
        has_ordered_flow=request.has_ordered_flow,
        allow_backtrack=request.allow_backtrack,
        is_active=request.is_active
    )
    logger.info(
        f"Created circuit: {circuit.circuit_id}",
        extra={"circuit_id": circuit.circuit_id, "actor_id": actor.user_id}
    )
    return circuit


@router.get("", response_model=List[Circuit])
def list_circuits(
    is_active: Optional[bool] = Query(None),
    actor: ActorContext = Depends(get_current_user_dep),
    service: CircuitService = Depends(get_circuit_service_dep)
):
    """List circuits, optionally only active or inactive ones"""
    return service.list_circuits(is_active=is_active)


@router.get("/{circuit_id}", response_model=Circuit)
def get_circuit(
    circuit_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: CircuitService = Depends(get_circuit_service_dep)
):
    """Get a circuit"""
    return service.get_circuit(circuit_id)


@router.patch("/{circuit_id}", response_model=Circuit)
def update_circuit(
    circuit_id: str,
    request: UpdateCircuitRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: CircuitService = Depends(get_circuit_service_dep)
):
    """Update circuit settings"""
    return service.update_circuit(circuit_id, request.model_dump(exclude_unset=True), actor)


@router.delete("/{circuit_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_circuit(
    circuit_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: CircuitService = Depends(get_circuit_service_dep)
):
    """Delete a circuit that no document uses"""
    service.delete_circuit(circuit_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Steps of a circuit
# ============================================================================

@router.get("/{circuit_id}/steps", response_model=List[Step])
def list_steps(
    circuit_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: CircuitService = Depends(get_circuit_service_dep)
):
    """Steps of a circuit ascending by order index"""
    return service.list_steps(circuit_id)


@router.post("/{circuit_id}/steps", response_model=Step, status_code=status.HTTP_201_CREATED)
def create_step(
    circuit_id: str,
    request: CreateStepRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: CircuitService = Depends(get_circuit_service_dep)
):
    """Add a step to a circuit"""
    return service.create_step(
        circuit_id=circuit_id,
        title=request.title,
        actor=actor,
        description=request.description,
        order_index=request.order_index,
        responsible_role_id=request.responsible_role_id,
        is_final_step=request.is_final_step
    )


@router.put("/{circuit_id}/steps/order", response_model=List[Step])
def reorder_steps(
    circuit_id: str,
    request: ReorderStepsRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: CircuitService = Depends(get_circuit_service_dep)
):
    """Replace the order of all steps of a circuit"""
    return service.reorder_steps(
        circuit_id,
        [(item.step_id, item.order_index) for item in request.steps],
        actor
    )
