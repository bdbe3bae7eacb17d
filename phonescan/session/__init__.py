"""
==============================================================================
Session Package
==============================================================================

Scan session state machine.

Modules:
--------
- state: Immutable SessionState and pure transitions
- machine: ScanSession commands
- handoff: Messaging hand-off URI helpers
- manager: In-memory session registry

==============================================================================
"""

from .state import SessionState
from .machine import ScanSession
from .manager import SessionManager, get_session_manager

__all__ = [
    "ScanSession",
    "SessionManager",
    "SessionState",
    "get_session_manager",
]
