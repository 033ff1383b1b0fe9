"""Utility modules"""
from .logger import get_logger, setup_logging
from .jwt import TokenValidator, get_current_user
from .idgen import generate_id, generate_correlation_id
from .time import utc_now, format_iso, parse_iso

__all__ = [
    "get_logger",
    "setup_logging",
    "TokenValidator",
    "get_current_user",
    "generate_id",
    "generate_correlation_id",
    "utc_now",
    "format_iso",
    "parse_iso",
]
