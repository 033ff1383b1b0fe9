"""
API Middleware

    - correlation: X-Correlation-Id propagation into logs and history
    - error_handlers: DomainError and request validation rendering
"""

from .correlation import CorrelationIdMiddleware
from .error_handlers import register_error_handlers

__all__ = ["CorrelationIdMiddleware", "register_error_handlers"]
