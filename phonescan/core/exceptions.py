"""
Application Exception Handling

Single AppException class for all scanner errors with FastAPI integration.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class AppException(Exception):
    """
    Unified application exception for all error scenarios.

    Every scanner failure is recoverable. Inside a scan session the
    exception is caught where it is detected and only its message reaches
    the notification sink; at the API boundary the registered handler turns
    it into a JSON error body.

    Usage:
        raise AppException("No camera found on this device.", "DEVICE_NOT_FOUND", 404)

    Error Codes:
        Capture:
            - PERMISSION_DENIED (403)
            - DEVICE_NOT_FOUND (404)
            - DEVICE_FAILURE (503)

        Decode / extraction:
            - DECODE_NOT_FOUND (422)
            - EXTRACTION_FAILED (422)

        File input:
            - INVALID_FILE_TYPE (415)
            - FILE_LOAD_FAILED (400)

        Phone number / hand-off:
            - INVALID_MANUAL_INPUT (400)
            - INVALID_PHONE_NUMBER (400)
            - EMPTY_MESSAGE (400)
            - HANDOFF_FAILED (502)
            - HANDOFF_UNSUPPORTED_ENVIRONMENT (200, advisory)

        Sessions:
            - SESSION_NOT_FOUND (404)
            - SESSION_LIMIT (429)
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize application exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (e.g., "DEVICE_NOT_FOUND")
            status_code: HTTP status code (default: 400)
            details: Additional error context (optional)
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        error_dict = {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp
            }
        }

        if self.details:
            error_dict["error"]["details"] = self.details

        return error_dict


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    FastAPI exception handler for AppException.

    Converts AppException to consistent JSON error response.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AppException, app_exception_handler)


def _preview(text: str, limit: int) -> str:
    """Quote at most `limit` characters of a payload, marking truncation."""
    return text[:limit] + ("..." if len(text) > limit else "")


# ============================================
# CAPTURE DEVICE
# ============================================

def permission_denied() -> AppException:
    """Create camera permission denied exception."""
    return AppException(
        "Camera access denied. Please allow camera access in your browser settings.",
        "PERMISSION_DENIED",
        403
    )


def device_not_found() -> AppException:
    """Create no capture device exception."""
    return AppException("No camera found on this device.", "DEVICE_NOT_FOUND", 404)


def device_failure(reason: str) -> AppException:
    """Create generic capture device failure exception."""
    return AppException(
        f"Camera access failed: {reason}",
        "DEVICE_FAILURE",
        503,
        {"reason": reason}
    )


# ============================================
# DECODE / EXTRACTION
# ============================================

def decode_not_found() -> AppException:
    """Create no code detected exception."""
    return AppException(
        "No QR code detected in the image. Please ensure the image contains "
        "a clear, well-lit QR code.",
        "DECODE_NOT_FOUND",
        422
    )


def extraction_failed(payload: str, preview_chars: int = 100, live: bool = False) -> AppException:
    """Create decoded-but-no-phone exception."""
    if live:
        message = (
            "QR Code detected but no phone number found. "
            f'Content: "{_preview(payload, preview_chars)}"'
        )
    else:
        message = (
            "QR code found but no valid phone number detected. "
            f'Content: "{_preview(payload, preview_chars)}"'
        )
    return AppException(message, "EXTRACTION_FAILED", 422, {"payload_length": len(payload)})


# ============================================
# FILE INPUT
# ============================================

def invalid_file_type(media_type: Optional[str]) -> AppException:
    """Create non-image upload exception."""
    return AppException(
        "Please select an image file (JPG, PNG, GIF, WebP, etc.)",
        "INVALID_FILE_TYPE",
        415,
        {"media_type": media_type or ""}
    )


def file_load_failed(reason: Optional[str] = None) -> AppException:
    """Create unreadable image exception."""
    message = "Failed to load image file. Please try a different image."
    details = {"reason": reason} if reason else {}
    return AppException(message, "FILE_LOAD_FAILED", 400, details)


# ============================================
# PHONE NUMBER / HAND-OFF
# ============================================

def invalid_manual_input() -> AppException:
    """Create invalid typed phone number exception."""
    return AppException(
        "Please enter a valid phone number (10-15 digits with optional country code).",
        "INVALID_MANUAL_INPUT",
        400
    )


def invalid_phone_number() -> AppException:
    """Create hand-off without usable phone number exception."""
    return AppException(
        "Failed to send SMS: Invalid phone number",
        "INVALID_PHONE_NUMBER",
        400
    )


def empty_message() -> AppException:
    """Create empty hand-off message exception."""
    return AppException(
        "Failed to send SMS: Message cannot be empty",
        "EMPTY_MESSAGE",
        400
    )


def handoff_failed(reason: str) -> AppException:
    """Create messaging app could not be opened exception."""
    return AppException(
        "Failed to send SMS: Failed to open SMS application. Please copy the "
        "phone number and message manually.",
        "HANDOFF_FAILED",
        502,
        {"reason": reason}
    )


def handoff_unsupported_environment() -> AppException:
    """Create advisory non-mobile environment notice."""
    return AppException(
        "SMS links work best on mobile devices. On desktop, you may need to "
        "copy the phone number manually.",
        "HANDOFF_UNSUPPORTED_ENVIRONMENT",
        200
    )


# ============================================
# SESSIONS
# ============================================

def session_not_found(session_id: str) -> AppException:
    """Create unknown session exception."""
    return AppException(
        "Scan session not found",
        "SESSION_NOT_FOUND",
        404,
        {"session_id": session_id}
    )


def session_limit(limit: int) -> AppException:
    """Create too many sessions exception."""
    return AppException(
        f"Too many active scan sessions (limit {limit})",
        "SESSION_LIMIT",
        429,
        {"limit": limit}
    )
