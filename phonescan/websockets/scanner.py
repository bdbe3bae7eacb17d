"""
==============================================================================
Scanner WebSocket Module
==============================================================================

Live QR phone scanning with frames pushed by the client.

Protocol:
---------
1. Client connects; server opens a scan session and replies "init"
2. Client sends {"type": "frame", "frame": <base64 JPEG/PNG>} messages
3. Server replies "ambiguous" for codes without a phone number
4. Server replies "found" at most once, then closes the connection
5. Client may send {"type": "stop"} at any time

The newest pushed frame is decoded on each poll tick; frames arriving
between ticks replace one another.

==============================================================================
"""

import asyncio
import base64
import binascii
import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from phonescan.core.exceptions import AppException
from phonescan.scanner.acquisition import OutcomeKind, ScanOutcome
from phonescan.scanner.devices import PushedFrameProvider
from phonescan.session.machine import ScanSession
from phonescan.session.manager import SessionManager, get_session_manager
from phonescan.session.state import SessionState


# Module logger
logger = logging.getLogger(__name__)

router = APIRouter()


class ScannerWebSocketHandler:
    """
    Handler for live scanning WebSocket connections.

    Manages the lifecycle of a scanning session including:
    - Session creation with a pushed-frame provider
    - Frame intake
    - Outcome reporting
    - Session teardown on disconnect
    """

    def __init__(self, websocket: WebSocket, manager: SessionManager):
        self._websocket = websocket
        self._manager = manager
        self._provider = PushedFrameProvider()
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._session: Optional[ScanSession] = None

    async def send_error(self, message: str, code: str = "ERROR") -> None:
        """Send error message to client."""
        await self._websocket.send_json({
            "type": "error",
            "code": code,
            "message": message
        })

    def _on_outcome(self, outcome: ScanOutcome, state: SessionState) -> None:
        """Queue live-scan outcomes for the client."""
        if outcome.kind == OutcomeKind.FOUND:
            self._outbox.put_nowait({
                "type": "found",
                "phone_number": outcome.phone_number,
                "payload": state.last_payload
            })
        elif outcome.kind == OutcomeKind.AMBIGUOUS:
            self._outbox.put_nowait({
                "type": "ambiguous",
                "message": state.error,
                "payload": state.last_payload
            })

    def handle_frame(self, data: dict) -> bool:
        """Decode a pushed frame and hand it to the provider."""
        try:
            img_data = base64.b64decode(data["frame"], validate=True)
        except (KeyError, TypeError, binascii.Error) as e:
            logger.warning(f"Bad frame message: {e}")
            return False

        frame = self._session.decoder.load_image(img_data)
        if frame is None:
            return False

        return self._provider.push(frame)

    async def start(self) -> bool:
        """Open the session and start scanning."""
        try:
            self._session = self._manager.create(provider=self._provider)
        except AppException as exc:
            await self.send_error(exc.message, exc.code)
            return False

        self._session.outcome_listener = self._on_outcome
        state = await self._session.start_camera()

        if not state.is_scanning:
            await self.send_error(state.error or "Failed to start scanning", "START_FAILED")
            return False

        await self._websocket.send_json({
            "type": "init",
            "session_id": self._session.session_id
        })
        return True

    async def run(self) -> None:
        """Main handler loop."""
        await self._websocket.accept()
        logger.info("📱 Scanner WebSocket connected")

        receive_task: Optional[asyncio.Task] = None
        outbox_task: Optional[asyncio.Task] = None
        frame_count = 0

        try:
            if not await self.start():
                await self._websocket.close()
                return

            while True:
                if receive_task is None:
                    receive_task = asyncio.ensure_future(self._websocket.receive_json())
                if outbox_task is None:
                    outbox_task = asyncio.ensure_future(self._outbox.get())

                done, _ = await asyncio.wait(
                    {receive_task, outbox_task},
                    return_when=asyncio.FIRST_COMPLETED
                )

                if outbox_task in done:
                    message = outbox_task.result()
                    outbox_task = None
                    await self._websocket.send_json(message)

                    if message["type"] == "found":
                        logger.info(f"🎉 Found after {frame_count} frames")
                        await self._websocket.close()
                        break

                if receive_task in done:
                    data = receive_task.result()
                    receive_task = None

                    if data.get("type") == "frame":
                        frame_count += 1
                        self.handle_frame(data)

                    elif data.get("type") == "stop":
                        logger.info("🛑 Client requested stop")
                        await self._websocket.close()
                        break

        except WebSocketDisconnect:
            logger.info("📱 Client disconnected")
        except Exception as e:
            logger.error(f"WebSocket error: {e}")
            try:
                await self.send_error(str(e))
            except Exception:
                logger.debug("Could not report error to a closed socket")
        finally:
            for task in (receive_task, outbox_task):
                if task is not None and not task.done():
                    task.cancel()
            if self._session is not None and self._session.session_id in self._manager.session_ids:
                self._manager.close(self._session.session_id)
            logger.info("✅ Scanner WebSocket closed")


@router.websocket("/ws/scan")
async def websocket_scan(
    websocket: WebSocket,
    manager: SessionManager = Depends(get_session_manager)
):
    """Real-time QR phone scanning via WebSocket."""
    handler = ScannerWebSocketHandler(websocket, manager)
    await handler.run()
