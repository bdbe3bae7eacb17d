"""
==============================================================================
WebSocket Package
==============================================================================

Real-time WebSocket handlers for QR phone scanning.

Handlers:
---------
- scanner: Live scanning of client-pushed frames

==============================================================================
"""

from .scanner import router as scanner_router

__all__ = ["scanner_router"]
