"""
==============================================================================
Session State Module
==============================================================================

One immutable value object for everything a scan session shows, plus the
pure transition functions that produce its successors.

Nothing here touches devices, timers or the decoder: every function takes a
SessionState and returns a new one.

==============================================================================
"""

from __future__ import annotations

from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from phonescan.scanner.acquisition import PermissionState


class SessionState(BaseModel):
    """
    Observable state of one scan session.

    Attributes:
        permission: Camera permission as last observed
        is_scanning: Live scan in flight
        is_processing_file: Still image being decoded
        last_payload: Echo of the last decoded payload (diagnostics only)
        phone_number: Current phone number, if any
        handoff_attempted: Messaging hand-off was requested
        handoff_uri: URI of the last hand-off
        error: Last user-facing message
        notices: Recent user-facing messages, oldest first
    """

    model_config = ConfigDict(frozen=True)

    permission: PermissionState = Field(default=PermissionState.UNKNOWN)
    is_scanning: bool = Field(default=False)
    is_processing_file: bool = Field(default=False)
    last_payload: Optional[str] = Field(default=None)
    phone_number: Optional[str] = Field(default=None)
    handoff_attempted: bool = Field(default=False)
    handoff_uri: Optional[str] = Field(default=None)
    error: Optional[str] = Field(default=None)
    notices: Tuple[str, ...] = Field(default=())

    @property
    def scanned(self) -> bool:
        """A phone number is available."""
        return self.phone_number is not None


# =============================================================================
# TRANSITIONS
# =============================================================================

def permission_changed(state: SessionState, permission: PermissionState) -> SessionState:
    return state.model_copy(update={"permission": permission})


def scanning_started(state: SessionState) -> SessionState:
    return state.model_copy(update={"is_scanning": True, "error": None})


def scanning_stopped(state: SessionState) -> SessionState:
    return state.model_copy(update={"is_scanning": False})


def file_processing_started(state: SessionState) -> SessionState:
    return state.model_copy(update={"is_processing_file": True, "error": None})


def file_processing_finished(state: SessionState) -> SessionState:
    return state.model_copy(update={"is_processing_file": False})


def payload_decoded(state: SessionState, text: str, echo_chars: int = 200) -> SessionState:
    """Keep a truncated echo of the decoded payload."""
    echo = text[:echo_chars] + ("..." if len(text) > echo_chars else "")
    return state.model_copy(update={"last_payload": echo})


def phone_found(state: SessionState, phone_number: str) -> SessionState:
    return state.model_copy(update={"phone_number": phone_number, "error": None})


def error_reported(state: SessionState, message: str, history: int = 20) -> SessionState:
    """Record a user-facing message as the current error and in the history."""
    notices = (state.notices + (message,))[-history:]
    return state.model_copy(update={"error": message, "notices": notices})


def handoff_started(state: SessionState) -> SessionState:
    return state.model_copy(
        update={"handoff_attempted": False, "handoff_uri": None, "error": None}
    )


def handoff_attempted(state: SessionState, uri: str) -> SessionState:
    return state.model_copy(update={"handoff_attempted": True, "handoff_uri": uri})


def reset_state(state: SessionState) -> SessionState:
    """Clear everything the session produced; permission belongs to the environment."""
    return SessionState(permission=state.permission)
