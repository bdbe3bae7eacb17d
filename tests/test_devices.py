"""
==============================================================================
Capture Provider Tests
==============================================================================

Tests for the pushed-frame provider and the OpenCV camera provider.

==============================================================================
"""

import pytest

from conftest import blank_frame, run
from phonescan.core.exceptions import AppException
from phonescan.scanner.acquisition import PermissionState
from phonescan.scanner.devices import OpenCVCaptureProvider, PushedFrameProvider


class TestPushedFrameProvider:
    """Tests for client-pushed frames."""

    def test_always_granted(self):
        assert run(PushedFrameProvider().query_permission()) == PermissionState.GRANTED

    def test_push_without_device(self):
        assert PushedFrameProvider().push(blank_frame()) is False

    def test_newest_frame_wins(self):
        provider = PushedFrameProvider()
        device = run(provider.acquire({}))
        first, second = blank_frame(), blank_frame()

        assert provider.push(first)
        assert provider.push(second)

        assert device.capture_frame() is second
        assert device.capture_frame() is None

    def test_release_closes_device(self):
        provider = PushedFrameProvider()
        device = run(provider.acquire({}))

        provider.release(device)

        assert device.is_closed
        assert provider.push(blank_frame()) is False


class TestOpenCVCaptureProvider:
    """Tests for the server camera provider without a camera attached."""

    def test_missing_camera(self):
        provider = OpenCVCaptureProvider(camera_index=97)

        with pytest.raises(AppException) as exc_info:
            run(provider.acquire({"facing_mode": "user", "width": 1280, "height": 720}))

        assert exc_info.value.code in ("DEVICE_NOT_FOUND", "DEVICE_FAILURE")

    def test_permission_unknown_without_node(self):
        provider = OpenCVCaptureProvider(camera_index=97)
        assert run(provider.query_permission()) == PermissionState.UNKNOWN
