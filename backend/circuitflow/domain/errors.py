"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""
    
    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400
    retryable: bool = False
    
    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
                "retryable": self.retryable
            }
        }


# Authentication & Authorization Errors
class AuthenticationError(DomainError):
    """Token missing, invalid, or expired"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class PermissionDeniedError(DomainError):
    """Caller's role may not act on this step"""
    error_code = "PERMISSION_DENIED"
    http_status = 403


# Validation Errors
class ValidationError(DomainError):
    """Malformed request or definition"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class CircuitNotFoundError(NotFoundError):
    """Circuit not found"""
    error_code = "CIRCUIT_NOT_FOUND"


class StepNotFoundError(NotFoundError):
    """Step not found"""
    error_code = "STEP_NOT_FOUND"


class StatusNotFoundError(NotFoundError):
    """Status not found"""
    error_code = "STATUS_NOT_FOUND"


class ActionNotFoundError(NotFoundError):
    """Action not found"""
    error_code = "ACTION_NOT_FOUND"


class DocumentNotFoundError(NotFoundError):
    """Document has no workflow state"""
    error_code = "DOCUMENT_NOT_FOUND"


# Conflict Errors
class ConflictError(DomainError):
    """Configuration conflict (e.g., deleting in-use circuit or step)"""
    error_code = "CONFLICT"
    http_status = 409


class DuplicateOrderIndexError(ConflictError):
    """Step order index already taken in an ordered circuit"""
    error_code = "DUPLICATE_ORDER_INDEX"


class AlreadyExistsError(ConflictError):
    """Resource already exists"""
    error_code = "ALREADY_EXISTS"


class StateConflictError(ConflictError):
    """Concurrent modification of a document's workflow state"""
    error_code = "STATE_CONFLICT"
    retryable = True


class MoveInProgressError(ConflictError):
    """A move for this document is already in flight from this client"""
    error_code = "MOVE_IN_PROGRESS"


class InvalidStateError(ConflictError):
    """Operation not valid for the document's lifecycle status"""
    error_code = "INVALID_STATE"


# Transition Errors
class TransitionError(DomainError):
    """Requested step change violates circuit rules"""
    error_code = "TRANSITION_ERROR"
    http_status = 422


class RequirementsNotMetError(TransitionError):
    """Required statuses of the current step are not complete"""
    error_code = "REQUIREMENTS_NOT_MET"


class BacktrackNotAllowedError(TransitionError):
    """Circuit does not allow returning to earlier steps"""
    error_code = "BACKTRACK_NOT_ALLOWED"


class StepSkipSkippedError(TransitionError):
    """Ordered circuits do not allow skipping steps"""
    error_code = "STEP_SKIP_NOT_ALLOWED"


class NoOpTransitionError(TransitionError):
    """Target step is the current step"""
    error_code = "NO_OP_TRANSITION"


class InvalidStatusError(DomainError):
    """Status does not belong to the document's current step"""
    error_code = "INVALID_STATUS"
    http_status = 422


# Engine Errors
class EngineError(DomainError):
    """Workflow engine error"""
    error_code = "ENGINE_ERROR"
    http_status = 500


class HistoryWriteError(EngineError):
    """History entry could not be stored; the enclosing change was rolled back"""
    error_code = "HISTORY_WRITE_FAILED"


ERROR_TYPES = {
    cls.error_code: cls
    for cls in (
        DomainError, AuthenticationError, PermissionDeniedError, ValidationError,
        NotFoundError, CircuitNotFoundError, StepNotFoundError, StatusNotFoundError,
        ActionNotFoundError, DocumentNotFoundError, ConflictError,
        DuplicateOrderIndexError, AlreadyExistsError, StateConflictError,
        MoveInProgressError, InvalidStateError,
        TransitionError, RequirementsNotMetError, BacktrackNotAllowedError,
        StepSkipSkippedError, NoOpTransitionError, InvalidStatusError,
        EngineError, HistoryWriteError,
    )
}


def error_from_payload(payload: Dict[str, Any]) -> DomainError:
    """Rebuild a domain error from its API response dict"""
    body: Dict[str, Any] = {}
    if isinstance(payload, dict):
        body = payload.get("error") or {}
        # framework-level HTTPException bodies nest the error under "detail"
        detail = payload.get("detail")
        if not body and isinstance(detail, dict):
            body = detail.get("error") or {}
    code = body.get("code", DomainError.error_code)
    error_cls = ERROR_TYPES.get(code, DomainError)
    return error_cls(
        body.get("message", "Unknown error"),
        details=body.get("details"),
        error_code=code
    )
