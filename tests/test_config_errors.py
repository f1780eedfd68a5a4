"""
Tests for configuration, error handling and the event bus.
"""
import logging

import pytest

from docframe.config import FlowConfig
from docframe.error_handlers import (
    BoundsViolation,
    CameraNotFoundError,
    CaptureError,
    DocFrameError,
    SessionStateError,
    error_response,
    handle_error,
)
from docframe.events import ErrorEvent, TraceSink, VerdictEvent
from docframe.layer2_alignment.evaluator import AlignmentVerdict, ToleranceMode


class TestFlowConfig:
    """Test defaults and environment overrides."""

    def test_defaults(self):
        """Test the documented defaults."""
        config = FlowConfig()
        assert config.alignment.min_area_ratio == 0.70
        assert config.alignment.max_area_ratio == 0.98
        assert config.alignment.edge_tolerance == 0.05
        assert config.stabilization_window == 1.0
        assert config.require_both_sides is True
        assert config.clear_on_save is False

    def test_empty_environment_keeps_defaults(self):
        """Test an empty environment yields the default config."""
        assert FlowConfig.from_env({}) == FlowConfig()

    def test_overrides(self):
        """Test DOCFRAME_* variables override the defaults."""
        config = FlowConfig.from_env({
            'DOCFRAME_MIN_AREA_RATIO': '0.6',
            'DOCFRAME_TOLERANCE_MODE': 'top_only',
            'DOCFRAME_STABILIZATION_WINDOW': '1.5',
            'DOCFRAME_REQUIRE_BOTH_SIDES': 'no',
            'DOCFRAME_CAMERA_INDEX': '2',
            'DOCFRAME_DEVICE': 'cuda:0',
        })
        assert config.alignment.min_area_ratio == 0.6
        assert config.alignment.tolerance_mode == ToleranceMode.TOP_ONLY
        assert config.stabilization_window == 1.5
        assert config.require_both_sides is False
        assert config.camera.camera_index == 2
        assert config.detector.device == 'cuda:0'

    @pytest.mark.parametrize("name, value", [
        ('DOCFRAME_AUTO_CAPTURE', 'maybe'),
        ('DOCFRAME_CAMERA_FPS', 'fast'),
        ('DOCFRAME_TOLERANCE_MODE', 'sideways'),
    ])
    def test_invalid_values(self, name, value):
        """Test malformed variables raise ValueError naming the variable."""
        with pytest.raises(ValueError) as exc_info:
            FlowConfig.from_env({name: value})
        assert name in str(exc_info.value)


class TestErrorHandlers:
    """Test error types and handle_error."""

    def test_library_error_dict(self):
        """Test a library error serializes with its code and details."""
        response = handle_error(CameraNotFoundError(camera_index=3))
        assert response['error_code'] == "CAMERA_NOT_FOUND"
        assert response['details']['camera_index'] == 3

    def test_unexpected_error_dict(self):
        """Test a foreign exception becomes UNEXPECTED_ERROR."""
        response = handle_error(RuntimeError("boom"))
        assert response['error_code'] == "UNEXPECTED_ERROR"
        assert response['details'] == {'error_type': 'RuntimeError', 'error_message': 'boom'}

    def test_error_response_does_not_log(self, caplog):
        """Test building the response dict writes no log records."""
        with caplog.at_level(logging.DEBUG):
            library = error_response(CaptureError("x"))
            unexpected = error_response(RuntimeError("boom"))

        assert library["error_code"] == "CAPTURE_FAILED"
        assert unexpected["error_code"] == "UNEXPECTED_ERROR"
        assert caplog.records == []

    def test_hierarchy(self):
        """Test all library errors share the base class."""
        for error in (CaptureError("x"), SessionStateError("save", "incomplete")):
            assert isinstance(error, DocFrameError)
            assert str(error) == error.message

    def test_bounds_violation_dict(self):
        """Test a clamp report serializes its rectangles."""
        violation = BoundsViolation(
            requested={'x': -5, 'y': 0, 'width': 10, 'height': 10},
            clamped={'x': 0, 'y': 0, 'width': 5, 'height': 10},
            image_size=(100, 100)
        )
        data = violation.to_dict()
        assert data['error_code'] == "CROP_CLAMPED"
        assert data['requested']['x'] == -5
        assert data['clamped']['width'] == 5


class TestEventBus:
    """Test event delivery."""

    def test_delivers_in_order(self, bus):
        """Test listeners receive events in subscription order."""
        calls = []
        bus.subscribe(lambda e: calls.append(('first', e)))
        bus.subscribe(lambda e: calls.append(('second', e)))
        event = VerdictEvent(verdict=AlignmentVerdict.not_found())

        bus.publish(event)

        assert calls == [('first', event), ('second', event)]

    def test_failing_listener_is_isolated(self, bus):
        """Test one listener raising does not stop the others."""
        received = []

        def broken(event):
            raise RuntimeError("listener bug")

        bus.subscribe(broken)
        bus.subscribe(received.append)
        bus.publish(ErrorEvent(error=CaptureError("x")))

        assert len(received) == 1

    def test_error_event_dict_is_silent(self, caplog):
        """Test serializing an error event does not log the error again."""
        event = ErrorEvent(error=RuntimeError("boom"))
        with caplog.at_level(logging.DEBUG):
            data = event.to_dict()

        assert data["details"] == {"error_type": "RuntimeError", "error_message": "boom"}
        assert caplog.records == []

    def test_unsubscribe(self, bus):
        """Test an unsubscribed listener receives nothing further."""
        received = []
        unsubscribe = bus.subscribe(received.append)
        unsubscribe()
        unsubscribe()
        bus.publish(VerdictEvent(verdict=AlignmentVerdict.not_found()))
        assert received == []


class TestTraceSink:
    """Test the logger-backed trace sink."""

    def test_verdict_is_logged(self, caplog):
        """Test verdicts are written to the trace logger at debug level."""
        sink = TraceSink()
        with caplog.at_level(logging.DEBUG, logger="docframe.trace"):
            sink.verdict(AlignmentVerdict.not_found())
        assert "status=not_found" in caplog.text

    def test_event_is_logged(self, caplog):
        """Test named trace events include their fields."""
        sink = TraceSink()
        with caplog.at_level(logging.INFO, logger="docframe.trace"):
            sink.event("capture", side="front")
        assert "capture" in caplog.text
        assert "front" in caplog.text

    def test_custom_logger(self):
        """Test a target logger can be supplied."""
        target = logging.getLogger("custom.trace")
        assert TraceSink(target).target is target
