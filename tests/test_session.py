"""
==============================================================================
Scan Session Tests
==============================================================================

Tests for the session state machine commands and state transitions.

==============================================================================
"""

import asyncio
import threading
from typing import List

import pytest
from pydantic import ValidationError

from conftest import UNREADABLE, FakeProvider, ScriptedDecoder, run
from phonescan.config import Settings
from phonescan.core import exceptions
from phonescan.scanner.acquisition import OutcomeKind, PermissionState
from phonescan.scanner.decoder import DecodeMode
from phonescan.session import state as transitions
from phonescan.session.handoff import build_handoff_uri, is_mobile_user_agent
from phonescan.session.machine import ScanSession
from phonescan.session.state import SessionState


IPHONE = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15"
DESKTOP = "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0"


def upload(session: ScanSession, data: bytes = b"png-bytes", content_type: str = "image/png"):
    return run(session.upload_image("code.png", content_type, data))


class TestUploadImage:
    """Tests for still image decoding."""

    def test_non_image_never_decoded(self, session: ScanSession, decoder: ScriptedDecoder, notices: List[str]):
        state = upload(session, b"hello", "text/plain")

        assert decoder.loads == 0
        assert decoder.calls == []
        assert state.error == exceptions.invalid_file_type("text/plain").message
        assert notices == [state.error]
        assert not state.is_processing_file

    def test_missing_media_type(self, session: ScanSession, decoder: ScriptedDecoder):
        state = run(session.upload_image("code", None, b"png-bytes"))

        assert decoder.loads == 0
        assert state.error.startswith("Please select an image file")

    def test_found(self, session: ScanSession, decoder: ScriptedDecoder, notices: List[str]):
        decoder.script("tel:+12025550172")

        state = upload(session)

        assert state.phone_number == "+12025550172"
        assert state.last_payload == "tel:+12025550172"
        assert state.error is None
        assert not state.is_processing_file
        assert decoder.calls == [DecodeMode.STRICT_BEST]
        assert notices == []

    def test_no_code(self, session: ScanSession, decoder: ScriptedDecoder):
        state = upload(session)

        assert state.phone_number is None
        assert state.error == exceptions.decode_not_found().message

    def test_unreadable(self, session: ScanSession, decoder: ScriptedDecoder):
        state = upload(session, UNREADABLE)

        assert decoder.calls == []
        assert state.error == exceptions.file_load_failed().message
        assert not state.is_processing_file

    def test_empty_file(self, session: ScanSession, decoder: ScriptedDecoder):
        state = upload(session, b"")

        assert decoder.loads == 0
        assert state.error == exceptions.file_load_failed().message

    def test_no_phone_number(self, session: ScanSession, decoder: ScriptedDecoder):
        decoder.script("hello world")

        state = upload(session)

        assert state.phone_number is None
        assert state.last_payload == "hello world"
        assert state.error == (
            'QR code found but no valid phone number detected. Content: "hello world"'
        )

    def test_payload_preview_truncated(self, session: ScanSession, decoder: ScriptedDecoder):
        decoder.script("x" * 150)

        state = upload(session)

        assert f'"{"x" * 100}..."' in state.error

    def test_replaces_previous_number(self, session: ScanSession, decoder: ScriptedDecoder):
        session.enter_manual_number("5551234567")
        decoder.script("tel:+12025550172")

        assert upload(session).phone_number == "+12025550172"

    def test_found_ends_live_scan(self, session: ScanSession, provider: FakeProvider, decoder: ScriptedDecoder):
        decoder.still = "tel:+12025550172"

        async def scenario():
            await session.start_camera()
            state = await session.upload_image("code.png", "image/png", b"png")
            await asyncio.sleep(0.1)
            return state

        state = run(scenario())

        assert state.phone_number == "+12025550172"
        assert not state.is_scanning
        assert session.state.phone_number == "+12025550172"
        assert provider.held == []

    def test_no_phone_keeps_live_scan(self, session: ScanSession, provider: FakeProvider, decoder: ScriptedDecoder):
        decoder.still = "hello world"

        async def scenario():
            await session.start_camera()
            state = await session.upload_image("code.png", "image/png", b"png")
            session.stop_camera()
            return state

        state = run(scenario())

        assert state.is_scanning
        assert provider.held == []

    def test_reset_during_decode_discards_result(self, session: ScanSession, decoder: ScriptedDecoder, notices):
        decoder.script("tel:+12025550172")
        decoder.load_gate = threading.Event()

        async def scenario():
            task = asyncio.create_task(session.upload_image("code.png", "image/png", b"png"))
            await asyncio.sleep(0.05)
            assert session.state.is_processing_file

            session.reset()
            decoder.load_gate.set()
            await task

        run(scenario())

        assert session.state.phone_number is None
        assert not session.state.is_processing_file
        assert notices == []

    def test_close_during_decode_discards_result(self, session: ScanSession, decoder: ScriptedDecoder):
        decoder.script("tel:+12025550172")
        decoder.load_gate = threading.Event()

        async def scenario():
            task = asyncio.create_task(session.upload_image("code.png", "image/png", b"png"))
            await asyncio.sleep(0.05)
            session.close()
            decoder.load_gate.set()
            await task

        run(scenario())

        assert session.state.phone_number is None


class TestLiveScanning:
    """Tests for start_camera / stop_camera."""

    def test_found_stops_scanning(self, session: ScanSession, provider: FakeProvider, decoder: ScriptedDecoder, settings: Settings):
        decoder.script(None, "tel:+12025550172")
        seen = []
        session.outcome_listener = lambda outcome, state: seen.append((outcome.kind, state.phone_number))

        async def scenario():
            state = await session.start_camera()
            assert state.is_scanning
            assert state.permission == PermissionState.GRANTED
            await asyncio.sleep(0.3)

        run(scenario())

        assert session.state.phone_number == "+12025550172"
        assert not session.state.is_scanning
        assert provider.held == []
        assert provider.last_constraints == settings.capture_constraints
        assert seen == [(OutcomeKind.FOUND, "+12025550172")]

    def test_ambiguous_reported_while_scanning(self, session: ScanSession, provider: FakeProvider, decoder: ScriptedDecoder, notices):
        decoder.script("hello")

        async def scenario():
            await session.start_camera()
            await asyncio.sleep(0.1)
            return session.stop_camera()

        state = run(scenario())

        assert state.error.startswith("QR Code detected but no phone number found.")
        assert notices
        assert not state.is_scanning
        assert provider.held == []

    def test_stop_is_idempotent(self, session: ScanSession, provider: FakeProvider):
        session.stop_camera()
        state = session.stop_camera()

        assert not state.is_scanning
        assert provider.released == []

    def test_denied(self, session: ScanSession, provider: FakeProvider, notices):
        provider.error = exceptions.permission_denied()

        state = run(session.start_camera())

        assert not state.is_scanning
        assert state.permission == PermissionState.DENIED
        assert state.error == exceptions.permission_denied().message
        assert notices == [state.error]

    def test_denied_recovers_only_through_probe(self, session: ScanSession, provider: FakeProvider):
        provider.error = exceptions.permission_denied()
        run(session.start_camera())

        provider.error = None
        provider.permission = PermissionState.DENIED
        state = run(session.start_camera())

        assert state.permission == PermissionState.DENIED
        assert not state.is_scanning
        assert provider.acquired == []

        provider.permission = PermissionState.GRANTED

        async def scenario():
            started = await session.start_camera()
            session.stop_camera()
            return started

        state = run(scenario())

        assert state.is_scanning
        assert state.permission == PermissionState.GRANTED
        assert state.error is None
        assert provider.held == []

    def test_device_failure(self, session: ScanSession, provider: FakeProvider):
        provider.error = exceptions.device_failure("busy")

        state = run(session.start_camera())

        assert not state.is_scanning
        assert state.error == "Camera access failed: busy"

    def test_closed_session_ignores_start(self, session: ScanSession, provider: FakeProvider):
        session.close()

        state = run(session.start_camera())

        assert not state.is_scanning
        assert provider.acquired == []
        assert session.is_closed


class TestManualEntry:
    """Tests for enter_manual_number."""

    @pytest.mark.parametrize("text, expected", [
        ("(202) 555-0172", "2025550172"),
        ("+1 202 555 0172", "+12025550172"),
        ("tel:+44-20-7946-0958", "+442079460958"),
    ])
    def test_valid(self, session: ScanSession, text: str, expected: str):
        assert session.enter_manual_number(text).phone_number == expected

    def test_invalid(self, session: ScanSession, notices):
        state = session.enter_manual_number("12345")

        assert state.phone_number is None
        assert state.error == exceptions.invalid_manual_input().message
        assert notices == [state.error]

    def test_invalid_keeps_previous_number(self, session: ScanSession):
        session.enter_manual_number("5551234567")
        state = session.enter_manual_number("abc")

        assert state.phone_number == "5551234567"

    def test_stops_live_scan(self, session: ScanSession, provider: FakeProvider):
        async def scenario():
            await session.start_camera()
            return session.enter_manual_number("5551234567")

        state = run(scenario())

        assert not state.is_scanning
        assert provider.held == []


class TestHandoff:
    """Tests for compose_and_hand_off."""

    def test_no_phone_number(self, session: ScanSession, launched):
        state = session.compose_and_hand_off("Hello", IPHONE)

        assert state.error == "Failed to send SMS: Invalid phone number"
        assert not state.handoff_attempted
        assert launched == []

    @pytest.mark.parametrize("message", ["", "   "])
    def test_empty_message(self, session: ScanSession, launched, message: str):
        session.enter_manual_number("5551234567")

        state = session.compose_and_hand_off(message, IPHONE)

        assert state.error == "Failed to send SMS: Message cannot be empty"
        assert launched == []

    def test_mobile(self, session: ScanSession, launched):
        session.enter_manual_number("+1 202 555 0172")

        state = session.compose_and_hand_off("Hello there", IPHONE)

        assert launched == ["sms:+12025550172?body=Hello%20there"]
        assert state.handoff_attempted
        assert state.handoff_uri == launched[0]
        assert state.error is None

    def test_desktop_advisory(self, session: ScanSession, launched):
        session.enter_manual_number("5551234567")

        state = session.compose_and_hand_off("Hi", DESKTOP)

        assert launched == ["sms:5551234567?body=Hi"]
        assert state.handoff_attempted
        assert state.error == exceptions.handoff_unsupported_environment().message

    def test_launcher_failure(self, provider: FakeProvider, decoder: ScriptedDecoder, settings: Settings, notices):
        def broken(uri: str) -> None:
            raise OSError("no handler for sms:")

        session = ScanSession(provider, decoder=decoder, notifier=notices.append,
                              launcher=broken, settings=settings)
        session.enter_manual_number("5551234567")

        state = session.compose_and_hand_off("Hi", IPHONE)

        assert not state.handoff_attempted
        assert state.error == exceptions.handoff_failed("x").message
        session.close()


class TestReset:
    """Tests for reset."""

    def test_clears_session_state(self, session: ScanSession, decoder: ScriptedDecoder, launched):
        decoder.script("tel:+12025550172")
        upload(session)
        session.compose_and_hand_off("Hi", IPHONE)

        state = session.reset()

        assert state.phone_number is None
        assert state.last_payload is None
        assert not state.handoff_attempted
        assert state.error is None
        assert state.notices == ()

    def test_stops_camera_keeps_permission(self, session: ScanSession, provider: FakeProvider):
        async def scenario():
            await session.start_camera()
            return session.reset()

        state = run(scenario())

        assert not state.is_scanning
        assert state.permission == PermissionState.GRANTED
        assert provider.held == []


class TestStateTransitions:
    """Tests for the pure transition functions."""

    def test_frozen(self):
        with pytest.raises(ValidationError):
            SessionState().phone_number = "5551234567"

    def test_payload_echo_truncated(self):
        state = transitions.payload_decoded(SessionState(), "x" * 250, echo_chars=200)
        assert state.last_payload == "x" * 200 + "..."

    def test_notice_history_bounded(self):
        state = SessionState()
        for message in ("one", "two", "three"):
            state = transitions.error_reported(state, message, history=2)

        assert state.notices == ("two", "three")
        assert state.error == "three"

    def test_phone_found_clears_error(self):
        state = transitions.error_reported(SessionState(), "oops")
        state = transitions.phone_found(state, "5551234567")

        assert state.error is None
        assert state.scanned

    def test_reset_keeps_permission(self):
        state = SessionState(permission=PermissionState.GRANTED, phone_number="5551234567")
        assert transitions.reset_state(state) == SessionState(permission=PermissionState.GRANTED)

    def test_transitions_do_not_mutate(self):
        state = SessionState()
        transitions.scanning_started(state)
        assert not state.is_scanning


class TestHandoffHelpers:
    """Tests for hand-off URI building and user agent detection."""

    def test_uri_encoding(self):
        uri = build_handoff_uri("+12025550172", "Hi & bye? (ok)")
        assert uri == "sms:+12025550172?body=Hi%20%26%20bye%3F%20(ok)"

    def test_scheme(self):
        assert build_handoff_uri("5551234567", "x", "smsto").startswith("smsto:5551234567?")

    @pytest.mark.parametrize("agent, mobile", [
        (IPHONE, True),
        ("Mozilla/5.0 (Linux; Android 14; Pixel 8)", True),
        (DESKTOP, False),
        ("", False),
        (None, False),
    ])
    def test_mobile_detection(self, agent, mobile: bool):
        assert is_mobile_user_agent(agent) is mobile
