"""
==============================================================================
Pytest Configuration and Fixtures
==============================================================================

Provides fake capture providers, a scripted decoder, scan sessions and an
API client wired to them.

==============================================================================
"""

import asyncio
import threading
from typing import Any, Dict, Generator, Iterable, List, Optional

import numpy as np
import pytest
from fastapi.testclient import TestClient

from phonescan.config import Settings
from phonescan.main import app
from phonescan.scanner.acquisition import CaptureDevice, CaptureProvider, PermissionState
from phonescan.scanner.decoder import DecodedPayload, DecodeMode, RasterFrame
from phonescan.session.machine import ScanSession
from phonescan.session.manager import SessionManager, get_session_manager


# ============================================================================
# FAKES
# ============================================================================

UNREADABLE = b"not-an-image"


def blank_frame() -> RasterFrame:
    return RasterFrame.from_array(np.zeros((48, 64, 3), dtype=np.uint8))


class ScriptedDecoder:
    """
    Decoder double returning scripted payload texts in order.

    None entries mean "no code in this frame"; the last entry repeats.
    `still`, when set, answers every STRICT_BEST decode instead.
    """

    def __init__(self, texts: Iterable[Optional[str]] = (None,)) -> None:
        self._texts = list(texts) or [None]
        self._index = 0
        self.calls: List[DecodeMode] = []
        self.loads = 0
        self.load_gate: Optional[threading.Event] = None
        self.still: Optional[str] = None

    def script(self, *texts: Optional[str]) -> None:
        """Replace the scripted texts and start over."""
        self._texts = list(texts) or [None]
        self._index = 0

    def decode(self, frame: RasterFrame, mode: DecodeMode = DecodeMode.LIVE_TOLERANT):
        self.calls.append(mode)
        if mode == DecodeMode.STRICT_BEST and self.still is not None:
            return DecodedPayload(self.still)
        text = self._texts[min(self._index, len(self._texts) - 1)]
        self._index += 1
        return DecodedPayload(text) if text is not None else None

    def load_image(self, data: bytes) -> Optional[RasterFrame]:
        self.loads += 1
        if self.load_gate is not None:
            self.load_gate.wait(timeout=5)
        if data == UNREADABLE:
            return None
        return blank_frame()


class FakeDevice(CaptureDevice):
    """Device producing blank frames."""

    def __init__(self, frames: bool = True) -> None:
        self._frames = frames
        self.captures = 0

    def capture_frame(self) -> Optional[RasterFrame]:
        self.captures += 1
        return blank_frame() if self._frames else None


class FakeProvider(CaptureProvider):
    """
    Provider recording every acquire and release.

    Attributes:
        error: AppException raised by acquire, if set
        gate: asyncio.Event acquire waits on, if set
        permission: Answer of query_permission
    """

    def __init__(self, permission: PermissionState = PermissionState.PROMPT) -> None:
        self.permission = permission
        self.error = None
        self.gate: Optional[asyncio.Event] = None
        self.acquired: List[FakeDevice] = []
        self.released: List[FakeDevice] = []
        self.last_constraints: Dict[str, Any] = {}

    async def query_permission(self) -> PermissionState:
        return self.permission

    async def acquire(self, constraints: Dict[str, Any]) -> CaptureDevice:
        self.last_constraints = constraints
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        device = FakeDevice()
        self.acquired.append(device)
        return device

    def release(self, device: CaptureDevice) -> None:
        self.released.append(device)

    @property
    def held(self) -> List[FakeDevice]:
        """Devices acquired and not yet released."""
        return [d for d in self.acquired if d not in self.released]


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def settings() -> Settings:
    """Fast polling, short notice history."""
    return Settings(poll_interval_ms=20, notice_history=5, max_sessions=3)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def decoder() -> ScriptedDecoder:
    return ScriptedDecoder()


@pytest.fixture
def notices() -> List[str]:
    return []


@pytest.fixture
def launched() -> List[str]:
    return []


@pytest.fixture
def session(
    provider: FakeProvider,
    decoder: ScriptedDecoder,
    settings: Settings,
    notices: List[str],
    launched: List[str]
) -> Generator[ScanSession, None, None]:
    """Scan session on fake collaborators."""
    scan_session = ScanSession(
        provider,
        decoder=decoder,
        notifier=notices.append,
        launcher=launched.append,
        settings=settings,
    )
    yield scan_session
    scan_session.close()


@pytest.fixture
def providers() -> List[FakeProvider]:
    """Providers handed to sessions created through the API."""
    return []


@pytest.fixture
def manager(
    providers: List[FakeProvider],
    decoder: ScriptedDecoder,
    settings: Settings
) -> SessionManager:
    def factory() -> FakeProvider:
        fake = FakeProvider()
        providers.append(fake)
        return fake

    return SessionManager(factory, settings, decoder=decoder)


@pytest.fixture
def client(manager: SessionManager) -> Generator[TestClient, None, None]:
    """Test client with the session registry overridden."""
    app.dependency_overrides[get_session_manager] = lambda: manager

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def run(coro):
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)

