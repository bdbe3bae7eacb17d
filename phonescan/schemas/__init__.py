"""
==============================================================================
Schemas Package - Pydantic Models
==============================================================================

Request and response schemas using Pydantic for validation.

This package provides:
- Common: Shared response schemas
- Session: Scan session and extraction schemas

==============================================================================
"""

from .common import MessageResponse
from .session import (
    ExtractRequest,
    ExtractResponse,
    HandoffRequest,
    ManualNumberRequest,
    SessionResponse,
)

__all__ = [
    # Common
    "MessageResponse",
    # Session
    "ExtractRequest",
    "ExtractResponse",
    "HandoffRequest",
    "ManualNumberRequest",
    "SessionResponse",
]
