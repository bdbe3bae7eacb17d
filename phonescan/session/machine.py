"""
==============================================================================
Scan Session Module
==============================================================================

Commands a presentation layer invokes on one scan session.

Commands:
---------
- start_camera / stop_camera: live scanning through the AcquisitionController
- upload_image: one-shot STRICT_BEST decode of a still image
- enter_manual_number: typed number through the same extractor
- compose_and_hand_off: open the messaging app with number and message
- reset: clear session-derived state, force the controller idle
- close: teardown (device released, late results discarded)

Error Policy:
-------------
Every failure is an AppException caught where it is detected; its message
goes to the notification sink and SessionState.error, and the command
returns normally. All failures are recoverable.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Callable, Optional

from phonescan.config import Settings, get_settings
from phonescan.core import exceptions
from phonescan.core.exceptions import AppException
from phonescan.scanner.acquisition import (
    AcquisitionController,
    CaptureProvider,
    OutcomeKind,
    PermissionState,
    ScanOutcome,
)
from phonescan.scanner.decoder import DecodedPayload, DecodeMode, QRDecoder
from phonescan.scanner.extractor import PhoneExtractor
from phonescan.session import state as transitions
from phonescan.session.handoff import (
    HandoffLauncher,
    build_handoff_uri,
    is_mobile_user_agent,
    log_launcher,
)
from phonescan.session.state import SessionState
from phonescan.utils.validators import (
    ImageUploadValidator,
    MessageValidator,
    PhoneNumberValidator,
)


# Module logger
logger = logging.getLogger(__name__)

Notifier = Callable[[str], None]
OutcomeListener = Callable[[ScanOutcome, SessionState], None]


class ScanSession:
    """
    Session state machine for one user.

    Holds the current SessionState and replaces it through the pure
    transitions in phonescan.session.state.

    Attributes:
        session_id: Random identifier
        state: Current SessionState

    Example:
        >>> session = ScanSession(OpenCVCaptureProvider())
        >>> await session.start_camera()
        >>> session.state.is_scanning
        True
        >>> session.close()
    """

    def __init__(
        self,
        provider: CaptureProvider,
        decoder: Optional[QRDecoder] = None,
        extractor: Optional[PhoneExtractor] = None,
        notifier: Optional[Notifier] = None,
        launcher: Optional[HandoffLauncher] = None,
        settings: Optional[Settings] = None,
        session_id: Optional[str] = None
    ) -> None:
        self._settings = settings or get_settings()
        self.session_id = session_id or uuid.uuid4().hex

        self._decoder = decoder or QRDecoder(self._settings.decoder_symbols_list)
        self._extractor = extractor or PhoneExtractor(
            allow_digit_fallback=self._settings.extractor_digit_fallback
        )
        self._notifier = notifier
        self._launcher = launcher or log_launcher

        self._controller = AcquisitionController(
            provider,
            self._decoder,
            self._extractor,
            self._on_outcome,
            poll_interval=self._settings.poll_interval,
            constraints=self._settings.capture_constraints,
        )

        self._upload_validator = ImageUploadValidator(self._settings.max_upload_bytes)
        self._message_validator = MessageValidator()
        self._phone_validator = PhoneNumberValidator()

        self._state = SessionState()
        self._upload_generation = 0
        self._closed = False

        self.outcome_listener: Optional[OutcomeListener] = None

        logger.debug(f"Session {self.session_id} created")

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def controller(self) -> AcquisitionController:
        return self._controller

    @property
    def decoder(self) -> QRDecoder:
        return self._decoder

    @property
    def is_closed(self) -> bool:
        return self._closed

    # =========================================================================
    # CAMERA
    # =========================================================================

    async def refresh_permission(self) -> SessionState:
        """Probe the provider's permission state."""
        permission = await self._controller.probe_permission()
        self._state = transitions.permission_changed(self._state, permission)
        return self._state

    async def start_camera(self) -> SessionState:
        """
        Start live scanning, requesting permission first if needed.

        A DENIED permission is re-probed once; it only recovers through an
        external settings change.
        """
        if self._closed or self._controller.is_active or self._controller.is_starting:
            return self._state

        self._state = transitions.scanning_started(self._state)

        try:
            if self._controller.permission_state == PermissionState.DENIED:
                await self.refresh_permission()
                if self._controller.permission_state == PermissionState.DENIED:
                    raise exceptions.permission_denied()

            started = await self._controller.start_scanning()

        except AppException as exc:
            self._state = transitions.scanning_stopped(self._state)
            self._sync_permission()
            self._report(exc)
            return self._state

        self._sync_permission()
        if not started and not self._controller.is_active:
            self._state = transitions.scanning_stopped(self._state)

        return self._state

    def stop_camera(self) -> SessionState:
        """Stop live scanning. Safe in any state."""
        self._controller.stop_scanning()
        self._state = transitions.scanning_stopped(self._state)
        return self._state

    def _on_outcome(self, outcome: ScanOutcome) -> None:
        """Apply a live-scan outcome from the controller."""
        if self._closed:
            logger.debug(f"Session {self.session_id}: outcome after close dropped")
            return

        if outcome.payload is not None:
            self._record_payload(outcome.payload)

        if outcome.kind == OutcomeKind.FOUND:
            self._state = transitions.phone_found(self._state, outcome.phone_number)
            self._state = transitions.scanning_stopped(self._state)
            logger.info(f"Session {self.session_id}: phone number found by camera")

        elif outcome.kind == OutcomeKind.AMBIGUOUS:
            self._report(
                exceptions.extraction_failed(
                    outcome.payload.text,
                    self._settings.payload_preview_chars,
                    live=True,
                )
            )

        if self.outcome_listener is not None:
            self.outcome_listener(outcome, self._state)

    # =========================================================================
    # STILL IMAGE
    # =========================================================================

    async def upload_image(
        self,
        filename: Optional[str],
        content_type: Optional[str],
        data: bytes
    ) -> SessionState:
        """
        Decode an uploaded image once in STRICT_BEST mode.

        Non-image media types are rejected before the decoder is touched.
        A found number ends live scanning.
        A reset or close while decoding discards the result.
        """
        if self._closed:
            return self._state

        is_valid, reason = self._upload_validator.validate_media_type(content_type)
        if not is_valid:
            logger.info(f"Upload rejected ({filename}): {reason}")
            self._report(exceptions.invalid_file_type(content_type))
            return self._state

        is_valid, reason = self._upload_validator.validate_size(len(data))
        if not is_valid:
            self._report(exceptions.file_load_failed(reason))
            return self._state

        self._upload_generation += 1
        generation = self._upload_generation
        self._state = transitions.file_processing_started(self._state)

        try:
            payload = await asyncio.to_thread(self._decode_still, data)
        except AppException as exc:
            if generation == self._upload_generation:
                self._state = transitions.file_processing_finished(self._state)
                self._report(exc)
            return self._state

        if generation != self._upload_generation or self._closed:
            logger.debug(f"Session {self.session_id}: stale upload result discarded")
            return self._state

        self._state = transitions.file_processing_finished(self._state)

        if payload is None:
            self._report(exceptions.decode_not_found())
            return self._state

        self._record_payload(payload)
        phone_number = self._extractor.extract(payload.text)

        if phone_number:
            self.stop_camera()
            self._state = transitions.phone_found(self._state, phone_number)
            logger.info(f"Session {self.session_id}: phone number found in {filename}")
        else:
            self._report(
                exceptions.extraction_failed(payload.text, self._settings.payload_preview_chars)
            )

        return self._state

    def _decode_still(self, data: bytes) -> Optional[DecodedPayload]:
        frame = self._decoder.load_image(data)
        if frame is None:
            raise exceptions.file_load_failed()
        return self._decoder.decode(frame, DecodeMode.STRICT_BEST)

    # =========================================================================
    # MANUAL INPUT / HAND-OFF
    # =========================================================================

    def enter_manual_number(self, text: str) -> SessionState:
        """Accept a typed number; an accepted number ends live scanning."""
        phone_number = self._extractor.extract(text)

        if not phone_number:
            self._report(exceptions.invalid_manual_input())
            return self._state

        self.stop_camera()
        self._state = transitions.phone_found(self._state, phone_number)
        return self._state

    def compose_and_hand_off(self, message: str, user_agent: Optional[str] = None) -> SessionState:
        """
        Ask the environment to open the messaging app pre-filled.

        Sending is never confirmed; handoff_attempted only means the link
        was handed to the launcher.
        """
        self._state = transitions.handoff_started(self._state)
        phone_number = self._state.phone_number

        if not self._phone_validator.is_valid(phone_number):
            self._report(exceptions.invalid_phone_number())
            return self._state

        is_valid, _ = self._message_validator.validate(message)
        if not is_valid:
            self._report(exceptions.empty_message())
            return self._state

        uri = build_handoff_uri(phone_number, message, self._settings.handoff_scheme)

        if not is_mobile_user_agent(user_agent):
            self._report(exceptions.handoff_unsupported_environment())

        try:
            self._launcher(uri)
        except Exception as e:
            logger.error(f"Failed to open hand-off link: {e}")
            self._report(exceptions.handoff_failed(str(e)))
            return self._state

        self._state = transitions.handoff_attempted(self._state, uri)
        return self._state

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def reset(self) -> SessionState:
        """Clear session-derived state and force the controller idle."""
        self._controller.stop_scanning()
        self._upload_generation += 1
        self._state = transitions.reset_state(self._state)
        logger.debug(f"Session {self.session_id} reset")
        return self._state

    def close(self) -> None:
        """Teardown: release the device, cancel polling, drop late results."""
        if self._closed:
            return
        self._closed = True
        self._upload_generation += 1
        self._controller.close()
        self._state = transitions.scanning_stopped(
            transitions.file_processing_finished(self._state)
        )
        logger.debug(f"Session {self.session_id} closed")

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _record_payload(self, payload: DecodedPayload) -> None:
        self._state = transitions.payload_decoded(
            self._state, payload.text, self._settings.payload_echo_chars
        )

    def _sync_permission(self) -> None:
        self._state = transitions.permission_changed(
            self._state, self._controller.permission_state
        )

    def _report(self, exc: AppException) -> None:
        """Send a failure's message to the notification sink."""
        logger.info(f"Session {self.session_id}: {exc.code}")
        self._state = transitions.error_reported(
            self._state, exc.message, self._settings.notice_history
        )
        if self._notifier is not None:
            self._notifier(exc.message)
