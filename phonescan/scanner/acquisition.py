"""
==============================================================================
Acquisition Controller Module
==============================================================================

Capture-device lifecycle and the live polling loop.

State Machine:
--------------
    IDLE ──start_scanning()──▶ REQUESTING ──device acquired──▶ ACTIVE (polling)
     ▲                             │                              │
     │                             │ refused                      │ found / stop_scanning()
     │                             ▼                              │
     │                          DENIED (left only via probe)      │
     └────────────────────────────────────────────────────────────┘

Polling:
--------
Every poll interval (200 ms by default) one tick runs synchronously:
capture a frame, decode it in LIVE_TOLERANT mode, extract a phone number.

- found:     the device is released and polling stops BEFORE the outcome
             is reported; at most one found outcome per session
- ambiguous: decoded text without a phone number is reported and polling
             continues

Each start opens a new generation. stop_scanning() closes it, so a device
acquired after cancellation is released unused and no late tick reports.

==============================================================================
"""

from __future__ import annotations

import asyncio
import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from phonescan.core.exceptions import AppException
from phonescan.scanner.decoder import DecodedPayload, DecodeMode, QRDecoder, RasterFrame
from phonescan.scanner.extractor import PhoneExtractor


# Module logger
logger = logging.getLogger(__name__)


# =============================================================================
# TYPES
# =============================================================================

class PermissionState(str, enum.Enum):
    """Camera permission as last observed."""

    UNKNOWN = "unknown"
    PROMPT = "prompt"
    GRANTED = "granted"
    DENIED = "denied"

    def __str__(self) -> str:
        return self.value


class OutcomeKind(str, enum.Enum):
    """Result category of one scan attempt."""

    NONE = "none"
    FOUND = "found"
    AMBIGUOUS = "ambiguous"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ScanOutcome:
    """
    Outcome of a scan attempt.

    Attributes:
        kind: none, found or ambiguous
        phone_number: Normalized number when found
        payload: Decoded payload for found and ambiguous outcomes
    """

    kind: OutcomeKind
    phone_number: Optional[str] = None
    payload: Optional[DecodedPayload] = None

    @classmethod
    def nothing(cls) -> "ScanOutcome":
        return cls(OutcomeKind.NONE)

    @classmethod
    def found(cls, phone_number: str, payload: Optional[DecodedPayload] = None) -> "ScanOutcome":
        return cls(OutcomeKind.FOUND, phone_number, payload)

    @classmethod
    def ambiguous(cls, payload: DecodedPayload) -> "ScanOutcome":
        return cls(OutcomeKind.AMBIGUOUS, None, payload)


class CaptureDevice(ABC):
    """Live frame source handed out by a provider."""

    @abstractmethod
    def capture_frame(self) -> Optional[RasterFrame]:
        """Capture one frame. Returns None while not enough data is buffered."""
        ...


class CaptureProvider(ABC):
    """
    Source of capture devices.

    acquire() raises the categorized AppException of the failure:
    PERMISSION_DENIED, DEVICE_NOT_FOUND or DEVICE_FAILURE.
    """

    @abstractmethod
    async def acquire(self, constraints: Dict[str, Any]) -> CaptureDevice:
        ...

    @abstractmethod
    def release(self, device: CaptureDevice) -> None:
        ...

    async def query_permission(self) -> PermissionState:
        """Current permission without acquiring; UNKNOWN if unsupported."""
        return PermissionState.UNKNOWN


OutcomeCallback = Callable[[ScanOutcome], None]
FrameSink = Callable[[RasterFrame], None]


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


# =============================================================================
# CONTROLLER
# =============================================================================

class AcquisitionController:
    """
    Owns the capture device and the poll task of one scan session.

    Nothing outside the controller touches the device or the task.

    Example:
        >>> controller = AcquisitionController(provider, QRDecoder(), PhoneExtractor(), on_outcome)
        >>> await controller.start_scanning()
        >>> # ... on_outcome(ScanOutcome.found("+12025550172")) ...
        >>> controller.close()
    """

    def __init__(
        self,
        provider: CaptureProvider,
        decoder: QRDecoder,
        extractor: PhoneExtractor,
        on_outcome: OutcomeCallback,
        poll_interval: float = 0.2,
        constraints: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Initialize controller.

        Args:
            provider: Capture-device provider
            decoder: Decoder adapter (LIVE_TOLERANT is used per tick)
            extractor: Phone extractor
            on_outcome: Receives found and ambiguous outcomes
            poll_interval: Seconds between ticks
            constraints: Passed to provider.acquire()
        """
        self._provider = provider
        self._decoder = decoder
        self._extractor = extractor
        self._on_outcome = on_outcome
        self._poll_interval = poll_interval
        self._constraints = constraints or {}

        self._device: Optional[CaptureDevice] = None
        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self._starting = False
        self._closed = False
        self._permission = PermissionState.UNKNOWN

        self.frame_sink: Optional[FrameSink] = None

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def permission_state(self) -> PermissionState:
        return self._permission

    @property
    def is_active(self) -> bool:
        """True while a device is held and the poll task is alive."""
        return self._device is not None and self._task is not None

    @property
    def is_starting(self) -> bool:
        return self._starting

    @property
    def is_closed(self) -> bool:
        return self._closed

    # =========================================================================
    # PERMISSION
    # =========================================================================

    async def probe_permission(self) -> PermissionState:
        """
        Refresh permission from the provider's permission query.

        This is the only way out of DENIED short of a successful acquire.
        """
        state = await self._provider.query_permission()
        if state != PermissionState.UNKNOWN:
            if state != self._permission:
                logger.info(f"📷 Camera permission: {self._permission} -> {state}")
            self._permission = state
        return self._permission

    async def request_permission(self) -> PermissionState:
        """
        Confirm camera access by acquiring a device and releasing it at once.

        Raises:
            AppException: PERMISSION_DENIED, DEVICE_NOT_FOUND or DEVICE_FAILURE
        """
        device = await self._acquire()
        self._provider.release(device)
        self._permission = PermissionState.GRANTED
        logger.info("✅ Camera permission granted")
        return self._permission

    # =========================================================================
    # SCANNING
    # =========================================================================

    async def start_scanning(self) -> bool:
        """
        Acquire a device and start the poll task.

        Returns:
            True if polling started; False when already active, starting,
            closed, or cancelled while acquiring

        Raises:
            AppException: PERMISSION_DENIED, DEVICE_NOT_FOUND or DEVICE_FAILURE
        """
        if self._closed or self._starting or self.is_active:
            return False

        self._generation += 1
        generation = self._generation
        self._starting = True

        try:
            if self._permission != PermissionState.GRANTED:
                await self.request_permission()
                if generation != self._generation:
                    logger.info("Scan cancelled during permission request")
                    return False

            device = await self._acquire()

            if generation != self._generation or self._closed:
                logger.info("Scan cancelled during device acquisition, releasing device")
                self._provider.release(device)
                return False

            self._permission = PermissionState.GRANTED
            self._device = device
            self._task = asyncio.create_task(self._poll_loop(generation))
            logger.info(f"📷 Scanning started (every {self._poll_interval * 1000:.0f} ms)")
            return True

        finally:
            self._starting = False

    def stop_scanning(self) -> None:
        """
        Stop polling and release the device.

        Idempotent and safe from any state, including while a start is
        still acquiring its device.
        """
        self._generation += 1

        task, self._task = self._task, None
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

        device, self._device = self._device, None
        if device is not None:
            self._provider.release(device)
            logger.info("🛑 Scanning stopped, device released")

        self.frame_sink = None

    def close(self) -> None:
        """Teardown: stop everything and refuse further starts."""
        self.stop_scanning()
        self._closed = True

    async def __aenter__(self) -> "AcquisitionController":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    # =========================================================================
    # POLLING
    # =========================================================================

    def poll_once(self) -> ScanOutcome:
        """
        Run one tick: capture, decode, extract.

        Returns:
            ScanOutcome (nothing when no frame or no code)
        """
        device = self._device
        if device is None:
            return ScanOutcome.nothing()

        frame = device.capture_frame()
        if frame is None:
            return ScanOutcome.nothing()

        if self.frame_sink is not None:
            self.frame_sink(frame)

        payload = self._decoder.decode(frame, DecodeMode.LIVE_TOLERANT)
        if payload is None:
            return ScanOutcome.nothing()

        phone_number = self._extractor.extract(payload.text)
        if phone_number:
            return ScanOutcome.found(phone_number, payload)

        return ScanOutcome.ambiguous(payload)

    async def _poll_loop(self, generation: int) -> None:
        """Tick until stopped or a phone number is found."""
        ticks = 0

        try:
            while generation == self._generation:
                ticks += 1

                try:
                    outcome = self.poll_once()
                except Exception as e:
                    logger.error(f"Poll tick error: {e}")
                    outcome = ScanOutcome.nothing()

                if outcome.kind == OutcomeKind.FOUND:
                    self.stop_scanning()
                    logger.info(f"🎉 Phone number found after {ticks} ticks")
                    self._emit(outcome)
                    return

                if outcome.kind == OutcomeKind.AMBIGUOUS:
                    logger.debug(f"Tick {ticks}: code without phone number")
                    self._emit(outcome)

                await asyncio.sleep(self._poll_interval)

        except asyncio.CancelledError:
            logger.debug(f"Poll task cancelled after {ticks} ticks")
            raise

    def _emit(self, outcome: ScanOutcome) -> None:
        try:
            self._on_outcome(outcome)
        except Exception as e:
            logger.error(f"Outcome handler error: {e}")

    async def _acquire(self) -> CaptureDevice:
        """Acquire a device, recording a refusal as DENIED."""
        try:
            return await self._provider.acquire(self._constraints)
        except AppException as exc:
            if exc.code == "PERMISSION_DENIED":
                self._permission = PermissionState.DENIED
            logger.warning(f"Camera acquisition failed: {exc.code}")
            raise
