"""API Dependencies - Common dependencies for routes"""
from typing import Optional
from fastapi import Depends, Header

from ..domain.models import ActorContext
from ..domain.errors import AuthenticationError
from ..engine import WorkflowEngine
from ..repositories import Repositories, get_repositories
from ..services import ActionService, CircuitService, StatusService
from ..utils.jwt import get_current_user as _jwt_get_current_user
from ..utils.logger import set_correlation_id
from ..utils.idgen import generate_correlation_id


async def get_correlation_id_dep(
    x_correlation_id: Optional[str] = Header(None, alias="X-Correlation-Id")
) -> str:
    """
    Get or generate correlation ID for request tracing

    If client provides X-Correlation-Id, use it.
    Otherwise generate a new one.
    """
    correlation_id = x_correlation_id or generate_correlation_id()
    set_correlation_id(correlation_id)
    return correlation_id


async def get_current_user_dep(
    authorization: Optional[str] = Header(None)
) -> ActorContext:
    """
    Caller identity from the Authorization bearer token

    Raises:
        AuthenticationError: if the token is missing or invalid (rendered as 401)
    """
    if not authorization:
        raise AuthenticationError("Authorization header is missing")
    return _jwt_get_current_user(authorization)


def get_repositories_dep() -> Repositories:
    """Configured storage backend"""
    return get_repositories()


def get_engine_dep(repositories: Repositories = Depends(get_repositories_dep)) -> WorkflowEngine:
    """Workflow engine bound to the configured stores"""
    return WorkflowEngine(repositories=repositories)


def get_circuit_service_dep(repositories: Repositories = Depends(get_repositories_dep)) -> CircuitService:
    return CircuitService(repositories)


def get_status_service_dep(repositories: Repositories = Depends(get_repositories_dep)) -> StatusService:
    return StatusService(repositories)


def get_action_service_dep(repositories: Repositories = Depends(get_repositories_dep)) -> ActionService:
    return ActionService(repositories)
