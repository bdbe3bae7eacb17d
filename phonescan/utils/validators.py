"""
==============================================================================
Validation Utilities Module
==============================================================================

Validation classes for user input reaching a scan session.

This module implements:
- ImageUploadValidator: Declared media type and size of uploaded files
- MessageValidator: Hand-off message text
- PhoneNumberValidator: Phone number handed to the messaging app

Validation Rules for Uploads:
----------------------------
- Declared media type must be image/* (checked before any decoding)
- Size: 1 byte up to the configured maximum

==============================================================================
"""

from __future__ import annotations

from typing import Optional, Tuple

from phonescan.scanner.extractor import MIN_DIGITS, digit_count


class ImageUploadValidator:
    """
    Validator for uploaded image files.

    Example:
        >>> validator = ImageUploadValidator(max_bytes=1024 * 1024)
        >>> validator.validate_media_type("image/png")
        (True, None)
        >>> validator.validate_media_type("application/pdf")
        (False, 'Media type must be image/*, got application/pdf')
    """

    MEDIA_PREFIX = "image/"

    def __init__(self, max_bytes: int = 10 * 1024 * 1024) -> None:
        self.max_bytes = max_bytes

    def validate_media_type(self, content_type: Optional[str]) -> Tuple[bool, Optional[str]]:
        """
        Validate the declared media type.

        Args:
            content_type: Declared MIME type (may carry parameters)

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not content_type:
            return False, "Media type is required"

        media_type = content_type.split(";", 1)[0].strip().lower()

        if not media_type.startswith(self.MEDIA_PREFIX):
            return False, f"Media type must be image/*, got {media_type}"

        return True, None

    def validate_size(self, size: int) -> Tuple[bool, Optional[str]]:
        """
        Validate the upload size.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if size <= 0:
            return False, "File is empty"

        if size > self.max_bytes:
            return False, f"File exceeds {self.max_bytes} bytes"

        return True, None


class MessageValidator:
    """Validator for hand-off message text."""

    MAX_LENGTH = 2000

    def validate(self, message: Optional[str]) -> Tuple[bool, Optional[str]]:
        """
        Validate a message.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not message or not message.strip():
            return False, "Message cannot be empty"

        if len(message) > self.MAX_LENGTH:
            return False, f"Message must be at most {self.MAX_LENGTH} characters"

        return True, None


class PhoneNumberValidator:
    """Validator for a number about to be handed off."""

    def is_valid(self, phone_number: Optional[str]) -> bool:
        """Quick validation check: at least 10 digits."""
        return bool(phone_number) and digit_count(phone_number) >= MIN_DIGITS
