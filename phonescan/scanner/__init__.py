"""
==============================================================================
Scanner Package - QR Decoding and Phone Extraction
==============================================================================

QR decoding with OpenCV and pyzbar, phone number extraction and the live
acquisition loop.

Classes:
--------
- QRDecoder: Decoder adapter (LIVE_TOLERANT / STRICT_BEST)
- PhoneExtractor: Ordered-pattern phone number extraction
- AcquisitionController: Capture device lifecycle and polling
- OpenCVCaptureProvider / PushedFrameProvider: Frame sources

==============================================================================
"""

from .decoder import DecodedPayload, DecodeMode, PixelFormat, QRDecoder, RasterFrame
from .extractor import PhoneExtractor, PhoneMatcher, digit_count, extract_phone_number
from .acquisition import (
    AcquisitionController,
    CaptureDevice,
    CaptureProvider,
    OutcomeKind,
    PermissionState,
    ScanOutcome,
)
from .devices import OpenCVCaptureProvider, PushedFrameProvider

__all__ = [
    "AcquisitionController",
    "CaptureDevice",
    "CaptureProvider",
    "DecodedPayload",
    "DecodeMode",
    "OpenCVCaptureProvider",
    "OutcomeKind",
    "PermissionState",
    "PhoneExtractor",
    "PhoneMatcher",
    "PixelFormat",
    "PushedFrameProvider",
    "QRDecoder",
    "RasterFrame",
    "ScanOutcome",
    "digit_count",
    "extract_phone_number",
]
