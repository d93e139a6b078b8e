"""Tests for folio.core.logging."""

from unittest.mock import patch

import pytest
import structlog

from folio.core import logging as folio_logging
from folio.core.logging import (
    _add_service_metadata,
    _elasticsearch_compatible,
    bind_context,
    configure_logging,
    unbind_context,
)


@pytest.fixture
def restore_structlog(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(folio_logging, "_SERVICE_NAME", folio_logging._SERVICE_NAME)
    with patch("folio.core.logging.logging.basicConfig"):
        yield
    structlog.reset_defaults()


class TestProcessors:
    def test_service_metadata(self):
        event = _add_service_metadata(None, "info", {"event": "pool_created"})
        assert event["service.name"] == "folio"

    def test_service_metadata_keeps_explicit_value(self):
        event = _add_service_metadata(None, "info", {"event": "x", "service.name": "api"})
        assert event["service.name"] == "api"

    def test_elasticsearch_field_names(self):
        event = _elasticsearch_compatible(
            None, "info", {"event": "x", "timestamp": "2024-01-01T00:00:00Z", "level": "info"}
        )
        assert event == {"event": "x", "@timestamp": "2024-01-01T00:00:00Z", "log.level": "info"}


class TestConfigureLogging:
    def test_json_renderer(self, restore_structlog):
        configure_logging(level="DEBUG", json_format=True, service="folio-test")

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert _elasticsearch_compatible in processors
        assert folio_logging._SERVICE_NAME == "folio-test"

    def test_console_renderer(self, restore_structlog):
        configure_logging(json_format=False, add_timestamp=False)

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
        assert _elasticsearch_compatible not in processors
        assert not any(isinstance(p, structlog.processors.TimeStamper) for p in processors)

    def test_stdlib_logger_factory(self, restore_structlog):
        configure_logging(json_format=True)
        config = structlog.get_config()
        assert isinstance(config["logger_factory"], structlog.stdlib.LoggerFactory)
        assert config["wrapper_class"] is structlog.stdlib.BoundLogger


class TestContextBinding:
    def test_bind_and_unbind(self):
        bind_context(request_id="abc123")
        try:
            assert structlog.contextvars.get_contextvars()["request_id"] == "abc123"
        finally:
            unbind_context("request_id")
        assert "request_id" not in structlog.contextvars.get_contextvars()
