"""
==============================================================================
Utilities Package
==============================================================================

Utility classes for the application.

Modules:
--------
- validators: Upload, message and phone number validation

==============================================================================
"""

from .validators import ImageUploadValidator, MessageValidator, PhoneNumberValidator

__all__ = [
    "ImageUploadValidator",
    "MessageValidator",
    "PhoneNumberValidator",
]
