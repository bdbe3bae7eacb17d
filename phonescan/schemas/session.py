"""
==============================================================================
Scan Session Schemas Module
==============================================================================

Request and response schemas for scan sessions and stateless extraction.

==============================================================================
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from phonescan.session.state import SessionState


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class ExtractRequest(BaseModel):
    """Text to run through the phone extractor."""
    text: str = Field(..., max_length=10000)


class ManualNumberRequest(BaseModel):
    """Typed phone number."""
    number: str = Field(..., max_length=100)

    @field_validator("number")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        return v.strip()


class HandoffRequest(BaseModel):
    """Message to pre-fill in the messaging app (emptiness is checked by the session)."""
    message: str = Field(default="", max_length=2000)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class ExtractResponse(BaseModel):
    """Extraction result."""
    success: bool = Field(default=True)
    phone_number: Optional[str] = None
    digits: int = Field(default=0, ge=0)


class SessionResponse(BaseModel):
    """Session id with its current state."""
    success: bool = Field(default=True)
    session_id: str
    state: SessionState
