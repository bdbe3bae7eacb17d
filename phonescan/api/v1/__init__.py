"""
==============================================================================
API v1 Endpoints
==============================================================================

Version 1 of the REST API.

Routers:
--------
- health: Health check endpoints
- extract: Stateless phone number extraction
- sessions: Scan session commands

==============================================================================
"""

from . import health, extract, sessions

__all__ = ["health", "extract", "sessions"]
