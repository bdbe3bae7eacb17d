"""
==============================================================================
Core Package
==============================================================================

Core infrastructure for the application.

This package provides:
- AppException with consistent error responses
- Exception factory functions for every scanner failure kind

Usage:
------
    from phonescan.core import AppException, exceptions

    raise exceptions.device_not_found()

==============================================================================
"""

from . import exceptions
from .exceptions import (
    AppException,
    register_exception_handlers,
)

__all__ = [
    "AppException",
    "exceptions",
    "register_exception_handlers",
]
