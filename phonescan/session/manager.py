"""
==============================================================================
Session Manager Module
==============================================================================

In-memory registry of live scan sessions.

Sessions are never persisted. Closing a session (explicitly or on
application shutdown) releases its capture device and cancels its poll task.

==============================================================================
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Callable, Dict, List, Optional

from phonescan.config import Settings, get_settings
from phonescan.core import exceptions
from phonescan.scanner.acquisition import CaptureProvider
from phonescan.scanner.decoder import QRDecoder
from phonescan.scanner.devices import OpenCVCaptureProvider
from phonescan.session.machine import Notifier, ScanSession


# Module logger
logger = logging.getLogger(__name__)

ProviderFactory = Callable[[], CaptureProvider]


class SessionManager:
    """
    Registry of ScanSession objects keyed by session id.

    Attributes:
        _sessions: Live sessions
        _provider_factory: Builds the capture provider of each new session

    Example:
        >>> manager = SessionManager(lambda: OpenCVCaptureProvider(0))
        >>> session = manager.create()
        >>> manager.get(session.session_id) is session
        True
        >>> manager.close_all()
    """

    def __init__(
        self,
        provider_factory: ProviderFactory,
        settings: Optional[Settings] = None,
        decoder: Optional[QRDecoder] = None
    ) -> None:
        self._settings = settings or get_settings()
        self._provider_factory = provider_factory
        self._decoder = decoder or QRDecoder(self._settings.decoder_symbols_list)
        self._sessions: Dict[str, ScanSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    @property
    def session_ids(self) -> List[str]:
        return list(self._sessions)

    def create(
        self,
        provider: Optional[CaptureProvider] = None,
        notifier: Optional[Notifier] = None
    ) -> ScanSession:
        """
        Create and register a new session.

        Raises:
            AppException: SESSION_LIMIT when the registry is full
        """
        if len(self._sessions) >= self._settings.max_sessions:
            raise exceptions.session_limit(self._settings.max_sessions)

        session = ScanSession(
            provider or self._provider_factory(),
            decoder=self._decoder,
            notifier=notifier,
            settings=self._settings,
        )
        self._sessions[session.session_id] = session
        logger.info(f"🆕 Session {session.session_id} created ({len(self._sessions)} active)")
        return session

    def get(self, session_id: str) -> ScanSession:
        """
        Look up a session.

        Raises:
            AppException: SESSION_NOT_FOUND
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise exceptions.session_not_found(session_id)
        return session

    def close(self, session_id: str) -> None:
        """Close and forget a session."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise exceptions.session_not_found(session_id)
        session.close()
        logger.info(f"🗑️ Session {session_id} closed ({len(self._sessions)} active)")

    def close_all(self) -> None:
        """Close every session (application shutdown)."""
        for session_id in list(self._sessions):
            self._sessions.pop(session_id).close()
        logger.info("✅ All scan sessions closed")


@lru_cache(maxsize=1)
def get_session_manager() -> SessionManager:
    """
    Get the global SessionManager (singleton pattern).

    New sessions use the server-attached OpenCV camera.
    """
    settings = get_settings()
    return SessionManager(lambda: OpenCVCaptureProvider(settings.camera_index), settings)
