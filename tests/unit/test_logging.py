"""Unit tests for docpipe logging and observability.

This module tests the logging infrastructure, stage timing,
and observability hooks.
"""

import json
import sys
import logging
from unittest.mock import MagicMock, patch

import pytest

from docpipe.pipeline_logging import (
    JsonFormatter,
    LOGGER_NAME,
    ObservabilityHooks,
    PerformanceMonitor,
    log_error_with_context,
    log_operation,
    log_performance,
    log_requirements_generation,
    log_specification_generation,
    observability_hooks,
    performance_monitor,
    setup_logging,
)


class TestJsonFormatter:
    """Test cases for JsonFormatter."""

    def test_json_formatter_basic(self):
        """Test basic JSON formatting."""
        formatter = JsonFormatter()
        record = logging.getLogger("test").makeRecord("test", logging.INFO, "stage.py", 1, "Wrote file", (), None)

        data = json.loads(formatter.format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Wrote file"
        assert "timestamp" in data
        assert "line" in data

    def test_json_formatter_with_exception(self):
        """Test JSON formatting with exception info."""
        formatter = JsonFormatter()
        try:
            raise ValueError("bad slug")
        except ValueError:
            record = logging.getLogger("test").makeRecord(
                "test", logging.ERROR, "stage.py", 1, "Failed", (), sys.exc_info()
            )

        data = json.loads(formatter.format(record))

        assert data["level"] == "ERROR"
        assert "ValueError" in data["exception"]

    def test_json_formatter_with_extra_fields(self):
        formatter = JsonFormatter()
        record = logging.getLogger("test").makeRecord("test", logging.INFO, "stage.py", 1, "Event", (), None)
        record.extra_fields = {"slug": "user-login", "stage": "requirements"}

        data = json.loads(formatter.format(record))

        assert data["slug"] == "user-login"
        assert data["stage"] == "requirements"


class TestPerformanceMonitor:
    """Test cases for PerformanceMonitor."""

    def test_record_and_get_metrics(self):
        """Test recording and reading metrics."""
        monitor = PerformanceMonitor()

        monitor.record_metric("refine_duration", 0.5, {"status": "success"})
        monitor.record_metric("design_duration", 0.2)
        monitor.record_metric("refine_duration", 0.7)

        assert len(monitor.get_metrics()) == 2
        assert [m["value"] for m in monitor.get_metrics("refine_duration")["refine_duration"]] == [0.5, 0.7]
        assert monitor.get_metrics("missing") == {"missing": []}

    def test_clear(self):
        monitor = PerformanceMonitor()
        monitor.record_metric("x", 1)

        monitor.clear()

        assert monitor.get_metrics() == {}


class TestLogPerformance:
    """Test cases for the log_performance decorator."""

    def test_records_success(self):
        @log_performance("sample_stage")
        def run():
            return "done"

        assert run() == "done"

        metrics = performance_monitor.get_metrics("sample_stage_duration")["sample_stage_duration"]
        assert len(metrics) == 1
        assert metrics[0]["value"] >= 0
        assert metrics[0]["tags"]["status"] == "success"

    def test_records_failure_and_reraises(self):
        @log_performance("sample_stage")
        def run():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            run()

        metrics = performance_monitor.get_metrics("sample_stage_duration")["sample_stage_duration"]
        assert metrics[0]["tags"] == {"status": "error", "error_type": "ValueError"}


class TestLogOperation:
    """Test cases for the log_operation context manager."""

    def test_log_operation_success(self):
        with patch("docpipe.pipeline_logging.std_logging.getLogger") as mock_logger:
            mock_logger.return_value = MagicMock()

            with log_operation("write_bundle", slug="user-login"):
                pass

            assert mock_logger.return_value.info.call_count == 2
            assert not mock_logger.return_value.error.called

    def test_log_operation_with_exception(self):
        """Test that failures are logged and re-raised."""
        with patch("docpipe.pipeline_logging.std_logging.getLogger") as mock_logger:
            mock_logger.return_value = MagicMock()

            with pytest.raises(OSError):
                with log_operation("write_bundle"):
                    raise OSError("disk full")

            assert mock_logger.return_value.error.called
            assert "disk full" in str(mock_logger.return_value.error.call_args)


class TestObservabilityHooks:
    """Test cases for ObservabilityHooks."""

    def test_register_and_trigger_hooks(self):
        hooks = ObservabilityHooks()
        received = []
        hooks.register_hook("document_written", lambda **data: received.append(data))

        hooks.trigger_hooks("document_written", path="docs/requirements/x.md")

        assert received == [{"path": "docs/requirements/x.md"}]

    def test_unregister_hook(self):
        hooks = ObservabilityHooks()
        received = []

        def callback(**data):
            received.append(data)

        hooks.register_hook("event", callback)
        hooks.unregister_hook("event", callback)
        hooks.trigger_hooks("event", value=1)

        assert received == []

    def test_log_workflow_event_passes_slug_to_hooks(self):
        hooks = ObservabilityHooks()
        received = []
        hooks.register_hook("stage_done", lambda **data: received.append(data))

        hooks.log_workflow_event("stage_done", slug="user-login", stage="requirements")

        assert received[0]["slug"] == "user-login"
        assert received[0]["stage"] == "requirements"
        assert "event_type" not in received[0]

    def test_hook_failure_does_not_propagate(self):
        """A failing hook is logged and the caller carries on."""
        hooks = ObservabilityHooks()

        def failing_callback(**data):
            raise ValueError("Hook failed")

        hooks.register_hook("event", failing_callback)

        hooks.trigger_hooks("event", param="value")


class TestLoggingFunctions:
    """Test cases for logging convenience functions."""

    def test_log_requirements_generation(self):
        with patch("docpipe.pipeline_logging.observability_hooks") as mock_hooks:
            log_requirements_generation("user-login", 3)

            mock_hooks.log_workflow_event.assert_called_once()
            args, kwargs = mock_hooks.log_workflow_event.call_args
            assert args == ("artifact_generated",)
            assert kwargs["slug"] == "user-login"
            assert kwargs["artifact_type"] == "requirements"
            assert kwargs["requirement_count"] == 3

    def test_log_specification_generation(self):
        received = []
        observability_hooks.register_hook("artifact_generated", lambda **data: received.append(data))

        log_specification_generation("user-login", file_count=4, failure_count=1)

        assert received[0]["artifact_type"] == "specification"
        assert received[0]["file_count"] == 4
        assert received[0]["failure_count"] == 1

    def test_log_error_with_context(self):
        with patch("docpipe.pipeline_logging.std_logging.getLogger") as mock_logger:
            error = ValueError("Unsupported language")
            context = {"operation": "specify", "slug": "user-login"}

            log_error_with_context(error, context, stage="specification")

            call_args = mock_logger.return_value.error.call_args
            assert "Unsupported language" in str(call_args)
            extra_fields = call_args[1]["extra"]["extra_fields"]
            assert extra_fields["context"]["operation"] == "specify"
            assert extra_fields["stage"] == "specification"
            assert extra_fields["error_type"] == "ValueError"


class TestLoggingIntegration:
    """Integration tests for logging functionality."""

    def test_setup_logging_writes_json_file(self, tmp_path):
        log_file = tmp_path / "logs" / "docpipe.log"

        setup_logging(log_level="WARNING", log_file=log_file)
        logging.getLogger(f"{LOGGER_NAME}.test").info("Test message")

        content = log_file.read_text()
        assert "Test message" in content
        for line in content.strip().split("\n"):
            json.loads(line)

    def test_setup_logging_replaces_handlers(self):
        setup_logging("INFO")
        setup_logging("DEBUG")

        logger = logging.getLogger(LOGGER_NAME)
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG

    def test_workflow_events_reach_log_file(self, tmp_path):
        log_file = tmp_path / "docpipe.log"
        setup_logging(log_level=logging.INFO, log_file=log_file)

        observability_hooks.log_workflow_event("document_written", slug="user-login", path="x.md")

        assert "document_written" in log_file.read_text()
