"""
==============================================================================
QR Decoder Module
==============================================================================

Adapter around the pyzbar decoding primitive.

Both invocation modes share one call:

    decoder.decode(frame, DecodeMode.LIVE_TOLERANT)   # timer-driven live feed
    decoder.decode(frame, DecodeMode.STRICT_BEST)     # one-shot still image

Modes:
------
- LIVE_TOLERANT: single grayscale pass, no inversion attempt (fast)
- STRICT_BEST:   normal pass, then an inverted pass (light-on-dark codes)

A frame without a recognizable code yields None; that is not an error.

==============================================================================
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

import cv2
import numpy as np
from pyzbar.pyzbar import ZBarSymbol, decode


# Module logger
logger = logging.getLogger(__name__)


class DecodeMode(str, enum.Enum):
    """Decoder invocation mode."""

    LIVE_TOLERANT = "live_tolerant"
    STRICT_BEST = "strict_best"

    def __str__(self) -> str:
        return self.value


class PixelFormat(str, enum.Enum):
    """Channel layout of a raster buffer."""

    GRAY = "gray"
    BGR = "bgr"      # OpenCV capture/imdecode order
    BGRA = "bgra"
    RGBA = "rgba"    # browser canvas order

    def __str__(self) -> str:
        return self.value


# cv2 conversion to luminance per pixel format
_GRAY_CONVERSIONS = {
    PixelFormat.BGR: cv2.COLOR_BGR2GRAY,
    PixelFormat.BGRA: cv2.COLOR_BGRA2GRAY,
    PixelFormat.RGBA: cv2.COLOR_RGBA2GRAY,
}


@dataclass(frozen=True)
class RasterFrame:
    """
    One captured frame.

    Produced once per capture tick, owned by the call that produced it and
    discarded after decode.

    Attributes:
        width: Frame width in pixels
        height: Frame height in pixels
        pixels: NumPy buffer shaped (h, w) or (h, w, channels)
        pixel_format: Channel layout of `pixels`
    """

    width: int
    height: int
    pixels: np.ndarray
    pixel_format: PixelFormat = PixelFormat.BGR

    @classmethod
    def from_array(
        cls,
        pixels: np.ndarray,
        pixel_format: Optional[PixelFormat] = None
    ) -> "RasterFrame":
        """Wrap a NumPy image, inferring the layout from its shape if not given."""
        if pixel_format is None:
            if pixels.ndim == 2:
                pixel_format = PixelFormat.GRAY
            elif pixels.shape[2] == 4:
                pixel_format = PixelFormat.BGRA
            else:
                pixel_format = PixelFormat.BGR
        height, width = pixels.shape[:2]
        return cls(width=width, height=height, pixels=pixels, pixel_format=pixel_format)

    @property
    def is_empty(self) -> bool:
        return self.pixels is None or self.pixels.size == 0

    def __repr__(self) -> str:
        return (
            f"RasterFrame(width={self.width}, height={self.height}, "
            f"pixel_format={self.pixel_format})"
        )


@dataclass(frozen=True)
class DecodedPayload:
    """
    Text recovered from a machine-readable code.

    Attributes:
        text: Decoded payload text
        symbology: Recognized format reported by the decoder (e.g. "QRCODE")
    """

    text: str
    symbology: str = "QRCODE"


class QRDecoder:
    """
    Decoder adapter normalizing still and live decoding into one call.

    No side effects: the same pixels always produce the same result.

    Example:
        >>> decoder = QRDecoder()
        >>> payload = decoder.decode(frame, DecodeMode.STRICT_BEST)
        >>> payload.text if payload else None
        'tel:+12025550172'
    """

    def __init__(self, symbols: Optional[Iterable[str]] = None) -> None:
        """
        Initialize decoder.

        Args:
            symbols: pyzbar symbol names to look for (default: QR only)
        """
        names = list(symbols) if symbols else ["QRCODE"]
        self._symbols: List[ZBarSymbol] = []
        for name in names:
            try:
                self._symbols.append(ZBarSymbol[name.upper()])
            except KeyError:
                logger.warning(f"Unknown symbology ignored: {name}")
        if not self._symbols:
            self._symbols = [ZBarSymbol.QRCODE]

        logger.debug(f"Decoder created (symbols={[s.name for s in self._symbols]})")

    # =========================================================================
    # DECODING
    # =========================================================================

    def decode(
        self,
        frame: Optional[RasterFrame],
        mode: DecodeMode = DecodeMode.LIVE_TOLERANT
    ) -> Optional[DecodedPayload]:
        """
        Decode the first code found in a frame.

        Args:
            frame: Captured or loaded raster frame
            mode: LIVE_TOLERANT (single pass) or STRICT_BEST (normal + inverted)

        Returns:
            DecodedPayload, or None when no code is recognizable
        """
        if frame is None or frame.is_empty:
            return None

        gray = self._to_gray(frame)
        if gray is None:
            return None

        payload = self._decode_gray(gray)
        if payload is None and mode == DecodeMode.STRICT_BEST:
            payload = self._decode_gray(cv2.bitwise_not(gray))

        return payload

    def load_image(self, data: bytes) -> Optional[RasterFrame]:
        """
        Load an encoded image file (PNG, JPEG, ...) into a frame.

        Returns:
            RasterFrame in BGR order, or None if the bytes are not an image
        """
        if not data:
            return None

        buffer = np.frombuffer(data, np.uint8)
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)

        if image is None:
            logger.warning(f"Could not decode image bytes ({len(data)} bytes)")
            return None

        return RasterFrame.from_array(image, PixelFormat.BGR)

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _to_gray(frame: RasterFrame) -> Optional[np.ndarray]:
        """Convert a frame to an 8-bit luminance buffer."""
        pixels = frame.pixels
        if pixels.dtype != np.uint8:
            pixels = pixels.astype(np.uint8)

        if frame.pixel_format == PixelFormat.GRAY or pixels.ndim == 2:
            return pixels

        conversion = _GRAY_CONVERSIONS.get(frame.pixel_format)
        try:
            return cv2.cvtColor(pixels, conversion)
        except cv2.error as e:
            logger.error(f"Frame conversion error ({frame}): {e}")
            return None

    def _decode_gray(self, gray: np.ndarray) -> Optional[DecodedPayload]:
        """Run the pyzbar primitive once and keep the first symbol."""
        try:
            symbols = decode(gray, symbols=self._symbols)
        except Exception as e:
            logger.error(f"Decode error: {e}")
            return None

        for symbol in symbols:
            text = symbol.data.decode("utf-8", errors="replace").rstrip("\x00")
            if text:
                return DecodedPayload(text=text, symbology=symbol.type)

        return None
