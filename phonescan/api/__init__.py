"""
==============================================================================
API Package
==============================================================================

REST API routers.

==============================================================================
"""
