"""
==============================================================================
Scan Session Endpoints
==============================================================================

REST surface of the session state machine.

Recoverable scanner failures (no code, no phone number, wrong file type,
camera refused, ...) are not HTTP errors: the endpoint answers 200 with the
session state, whose `error` holds the user-facing message. Only an unknown
session or a full registry produce an error response.

==============================================================================
"""

import logging

from fastapi import APIRouter, Depends, File, Header, UploadFile

from phonescan.schemas.common import MessageResponse
from phonescan.schemas.session import HandoffRequest, ManualNumberRequest, SessionResponse
from phonescan.session.machine import ScanSession
from phonescan.session.manager import SessionManager, get_session_manager


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Sessions"])


def _respond(session: ScanSession) -> SessionResponse:
    return SessionResponse(session_id=session.session_id, state=session.state)


@router.post("", response_model=SessionResponse)
async def create_session(manager: SessionManager = Depends(get_session_manager)):
    """Create a scan session and probe camera permission."""
    session = manager.create()
    await session.refresh_permission()
    return _respond(session)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    """Current session state."""
    return _respond(manager.get(session_id))


@router.delete("/{session_id}", response_model=MessageResponse)
async def close_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    """Close a session, releasing its camera."""
    manager.close(session_id)
    return MessageResponse(message="Session closed")


@router.post("/{session_id}/camera/start", response_model=SessionResponse)
async def start_camera(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    """Start live scanning on the server camera."""
    session = manager.get(session_id)
    await session.start_camera()
    return _respond(session)


@router.post("/{session_id}/camera/stop", response_model=SessionResponse)
async def stop_camera(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    """Stop live scanning."""
    session = manager.get(session_id)
    session.stop_camera()
    return _respond(session)


@router.post("/{session_id}/upload", response_model=SessionResponse)
async def upload_image(
    session_id: str,
    file: UploadFile = File(...),
    manager: SessionManager = Depends(get_session_manager)
):
    """Decode a QR code from an uploaded image."""
    session = manager.get(session_id)
    data = await file.read()
    await session.upload_image(file.filename, file.content_type, data)
    return _respond(session)


@router.post("/{session_id}/manual", response_model=SessionResponse)
async def enter_manual_number(
    session_id: str,
    body: ManualNumberRequest,
    manager: SessionManager = Depends(get_session_manager)
):
    """Use a typed phone number."""
    session = manager.get(session_id)
    session.enter_manual_number(body.number)
    return _respond(session)


@router.post("/{session_id}/handoff", response_model=SessionResponse)
async def compose_and_hand_off(
    session_id: str,
    body: HandoffRequest,
    user_agent: str = Header(default=""),
    manager: SessionManager = Depends(get_session_manager)
):
    """
    Build the messaging hand-off link.

    The client navigates to state.handoff_uri; nothing is sent here.
    """
    session = manager.get(session_id)
    session.compose_and_hand_off(body.message, user_agent)
    return _respond(session)


@router.post("/{session_id}/reset", response_model=SessionResponse)
async def reset_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    """Scan another: clear the session and stop the camera."""
    session = manager.get(session_id)
    session.reset()
    return _respond(session)
