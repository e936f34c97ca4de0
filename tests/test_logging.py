"""
Tests for the logging module.

Tests verify:
- Query and transaction events are emitted with their fields
- LogContext binds and unbinds contextvars
- configure_logging picks the renderer and level, defaulting to settings
"""

import logging
from unittest.mock import patch

import pytest
import structlog
from structlog.testing import capture_logs

from seaquel.logging import LogContext, bind_context, configure_logging, unbind_context
from seaquel.settings import SeaquelSettings


class TestEvents:
    @pytest.mark.asyncio
    async def test_query_executed_event(self, client, users):
        with capture_logs() as logs:
            await users.select_all({"id": 1})
        (event,) = [e for e in logs if e["event"] == "query.executed"]
        assert event["log_level"] == "debug"
        assert event["param_count"] == 1
        assert event["in_transaction"] is False
        assert "duration_ms" in event

    @pytest.mark.asyncio
    async def test_transaction_events(self, db, users):
        async def work():
            await users.select_all()

        with capture_logs() as logs:
            await db.transaction(work)
        names = [e["event"] for e in logs if e["event"].startswith("transaction.")]
        assert names == ["transaction.begin", "transaction.commit"]

    @pytest.mark.asyncio
    async def test_rollback_event(self, db):
        async def work():
            raise RuntimeError("nope")

        with capture_logs() as logs:
            with pytest.raises(RuntimeError):
                await db.transaction(work)
        assert "transaction.rollback" in [e["event"] for e in logs]


class TestLogContext:
    def test_binds_and_unbinds(self):
        with LogContext(request_id="abc"):
            assert structlog.contextvars.get_contextvars()["request_id"] == "abc"
        assert "request_id" not in structlog.contextvars.get_contextvars()

    def test_bind_and_unbind(self):
        bind_context(table="users")
        assert structlog.contextvars.get_contextvars()["table"] == "users"
        unbind_context("table")
        assert "table" not in structlog.contextvars.get_contextvars()


class TestConfigureLogging:
    @patch("seaquel.logging.logging.basicConfig")
    @patch("seaquel.logging.structlog.configure")
    def test_json_renderer(self, mock_configure, mock_basic_config):
        configure_logging(level="debug", json_format=True)
        processors = mock_configure.call_args.kwargs["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        mock_basic_config.assert_called_once()
        assert mock_basic_config.call_args.kwargs["level"] == logging.DEBUG

    @patch("seaquel.logging.logging.basicConfig")
    @patch("seaquel.logging.structlog.configure")
    def test_console_renderer(self, mock_configure, mock_basic_config):
        configure_logging(json_format=False, add_timestamp=False)
        processors = mock_configure.call_args.kwargs["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
        assert not any(isinstance(p, structlog.processors.TimeStamper) for p in processors)

    @patch("seaquel.logging.logging.basicConfig")
    @patch("seaquel.logging.structlog.configure")
    def test_defaults_come_from_settings(self, mock_configure, mock_basic_config):
        settings = SeaquelSettings(_env_file=None, log_level="warning", log_json=True)
        with patch("seaquel.logging.get_settings", return_value=settings):
            configure_logging()
        processors = mock_configure.call_args.kwargs["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert mock_basic_config.call_args.kwargs["level"] == logging.WARNING

    @patch("seaquel.logging.logging.basicConfig")
    @patch("seaquel.logging.structlog.configure")
    def test_arguments_override_settings(self, mock_configure, mock_basic_config):
        settings = SeaquelSettings(_env_file=None, log_level="warning", log_json=True)
        with patch("seaquel.logging.get_settings", return_value=settings):
            configure_logging(level="error", json_format=False)
        processors = mock_configure.call_args.kwargs["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
        assert mock_basic_config.call_args.kwargs["level"] == logging.ERROR

    @patch("seaquel.logging.logging.basicConfig")
    @patch("seaquel.logging.structlog.configure")
    def test_service_name_added(self, mock_configure, mock_basic_config):
        configure_logging(level="info", json_format=True, service="orders")
        processors = mock_configure.call_args.kwargs["processors"]
        event = {"event": "query.executed"}
        for processor in processors:
            if getattr(processor, "__name__", "") == "_add_service_metadata":
                processor(None, "info", event)
        assert event["service"] == "orders"
