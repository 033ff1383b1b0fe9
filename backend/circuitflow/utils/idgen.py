"""ID Generation Utilities"""
import uuid
from typing import Optional

from .time import utc_now


def generate_id(prefix: Optional[str] = None) -> str:
    """
    Generate a unique ID with optional prefix
    
    Args:
        prefix: Optional prefix for the ID (e.g., 'CRC', 'STP', 'HIS')
        
    Returns:
        Unique ID string
        
    Examples:
        >>> generate_id('CRC')
        'CRC-a1b2c3d4e5f6'
        >>> generate_id()
        'a1b2c3d4e5f6'
    """
    unique_part = uuid.uuid4().hex[:12]
    
    if prefix:
        return f"{prefix}-{unique_part}"
    return unique_part


def generate_circuit_id() -> str:
    """Generate circuit ID"""
    return generate_id("CRC")


def generate_step_id() -> str:
    """Generate step ID"""
    return generate_id("STP")


def generate_status_id() -> str:
    """Generate status ID"""
    return generate_id("STS")


def generate_action_id() -> str:
    """Generate action ID"""
    return generate_id("ACT")


def generate_history_id() -> str:
    """Generate history entry ID"""
    return generate_id("HIS")


def generate_key(prefix: str) -> str:
    """
    Generate a short human-facing key (circuit, step and status keys)
    
    Example:
        >>> generate_key('CR')
        'CR-3F9A1C'
    """
    return f"{prefix}-{uuid.uuid4().hex[:6].upper()}"


def generate_correlation_id() -> str:
    """
    Generate a correlation ID for request tracing
    
    Returns:
        Correlation ID string with timestamp prefix
    """
    timestamp = utc_now().strftime("%Y%m%d%H%M%S")
    unique_part = uuid.uuid4().hex[:8]
    return f"COR-{timestamp}-{unique_part}"
