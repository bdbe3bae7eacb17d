"""
==============================================================================
Capture Device Providers
==============================================================================

Concrete frame sources for the acquisition controller.

Providers:
----------
- OpenCVCaptureProvider: camera attached to the server (cv2.VideoCapture)
- PushedFrameProvider:   frames pushed in by a client (WebSocket), the
                         newest buffered frame is taken on each tick

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import cv2

from phonescan.core import exceptions
from phonescan.scanner.acquisition import CaptureDevice, CaptureProvider, PermissionState
from phonescan.scanner.decoder import PixelFormat, RasterFrame


# Module logger
logger = logging.getLogger(__name__)


# =============================================================================
# OPENCV CAMERA
# =============================================================================

class OpenCVCaptureDevice(CaptureDevice):
    """Wrapper around an opened cv2.VideoCapture."""

    def __init__(self, capture: cv2.VideoCapture, camera_index: int) -> None:
        self._capture = capture
        self._camera_index = camera_index

    def capture_frame(self) -> Optional[RasterFrame]:
        ok, frame = self._capture.read()
        if not ok or frame is None:
            logger.debug(f"No frame from camera {self._camera_index}")
            return None
        return RasterFrame.from_array(frame, PixelFormat.BGR)

    def close(self) -> None:
        self._capture.release()


class OpenCVCaptureProvider(CaptureProvider):
    """
    Server-attached camera provider.

    Opening a camera blocks, so acquire() runs it in a worker thread.

    Example:
        >>> provider = OpenCVCaptureProvider(camera_index=0)
        >>> device = await provider.acquire({"width": 1280, "height": 720})
        >>> frame = device.capture_frame()
        >>> provider.release(device)
    """

    def __init__(self, camera_index: int = 0) -> None:
        self._camera_index = camera_index

    @property
    def device_node(self) -> Optional[Path]:
        """V4L2 device node on Linux, None elsewhere."""
        if sys.platform.startswith("linux"):
            return Path(f"/dev/video{self._camera_index}")
        return None

    async def query_permission(self) -> PermissionState:
        node = self.device_node
        if node is not None and node.exists():
            if os.access(node, os.R_OK | os.W_OK):
                return PermissionState.GRANTED
            return PermissionState.DENIED
        return PermissionState.UNKNOWN

    async def acquire(self, constraints: Dict[str, Any]) -> CaptureDevice:
        return await asyncio.to_thread(self._open, constraints)

    def release(self, device: CaptureDevice) -> None:
        if isinstance(device, OpenCVCaptureDevice):
            device.close()
        logger.debug(f"Camera {self._camera_index} released")

    def _open(self, constraints: Dict[str, Any]) -> OpenCVCaptureDevice:
        """
        Open the indexed camera and apply the ideal width and height.

        facing_mode is ignored: the index already selects one physical camera.
        """
        node = self.device_node
        if node is not None and node.exists() and not os.access(node, os.R_OK | os.W_OK):
            raise exceptions.permission_denied()

        try:
            capture = cv2.VideoCapture(self._camera_index)
        except PermissionError:
            raise exceptions.permission_denied()
        except (cv2.error, OSError) as e:
            raise exceptions.device_failure(str(e))

        if not capture.isOpened():
            capture.release()
            logger.error(f"Cannot open camera {self._camera_index}")
            raise exceptions.device_not_found()

        width = constraints.get("width")
        height = constraints.get("height")
        if width:
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        if height:
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

        logger.info(f"📷 Camera {self._camera_index} opened")
        return OpenCVCaptureDevice(capture, self._camera_index)


# =============================================================================
# PUSHED FRAMES
# =============================================================================

class PushedFrameDevice(CaptureDevice):
    """Single-slot buffer: a newer pushed frame replaces an unread one."""

    def __init__(self) -> None:
        self._latest: Optional[RasterFrame] = None
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def push(self, frame: RasterFrame) -> bool:
        if self._closed:
            return False
        self._latest = frame
        return True

    def capture_frame(self) -> Optional[RasterFrame]:
        frame, self._latest = self._latest, None
        return frame

    def close(self) -> None:
        self._closed = True
        self._latest = None


class PushedFrameProvider(CaptureProvider):
    """
    Provider fed by a client that delivers its own frames.

    The client already holds its camera, so permission is always granted.
    """

    def __init__(self) -> None:
        self._device: Optional[PushedFrameDevice] = None

    async def query_permission(self) -> PermissionState:
        return PermissionState.GRANTED

    async def acquire(self, constraints: Dict[str, Any]) -> CaptureDevice:
        self._device = PushedFrameDevice()
        return self._device

    def release(self, device: CaptureDevice) -> None:
        if isinstance(device, PushedFrameDevice):
            device.close()
        if device is self._device:
            self._device = None

    def push(self, frame: RasterFrame) -> bool:
        """
        Hand a frame to the active device.

        Returns:
            False when no device is held (not scanning)
        """
        if self._device is None:
            return False
        return self._device.push(frame)
