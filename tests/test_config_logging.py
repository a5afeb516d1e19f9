"""Tests for environment-driven settings and the JSON log formatter."""

import io
import json
import logging

from jsonapi.config import Settings
from jsonapi.logging import JsonFormatter, configure_logging, request_extra


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("SERVICE_NAME", "LOG_LEVEL", "JSONAPI_ESCAPE_HTML"):
            monkeypatch.delenv(name, raising=False)
        s = Settings()
        assert s.service_name == "jsonapi"
        assert s.log_level == "INFO"
        assert s.json_escape_html is True

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("SERVICE_NAME", "users-api")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("JSONAPI_ESCAPE_HTML", "false")
        s = Settings()
        assert s.service_name == "users-api"
        assert s.log_level == "debug"
        assert s.json_escape_html is False


class TestJsonFormatter:
    def test_includes_structured_extras(self):
        record = logging.LogRecord(
            name="jsonapi.handler",
            level=logging.WARNING,
            pathname=__file__,
            lineno=1,
            msg="handled_error",
            args=(),
            exc_info=None,
        )
        record.method = "GET"
        record.path = "/api/user"
        record.code = 404

        payload = json.loads(JsonFormatter(service="users-api").format(record))
        assert payload["service"] == "users-api"
        assert payload["level"] == "WARNING"
        assert payload["logger"] == "jsonapi.handler"
        assert payload["message"] == "handled_error"
        assert payload["method"] == "GET"
        assert payload["path"] == "/api/user"
        assert payload["code"] == 404
        assert "pattern" not in payload


def test_request_extra_fields():
    extra = request_extra("POST", "/api/hello", code=400)
    assert extra == {"method": "POST", "path": "/api/hello", "code": 400}


class TestConfigureLogging:
    def setup_method(self):
        root = logging.getLogger()
        self._saved = (root.level, root.handlers[:])

    def teardown_method(self):
        root = logging.getLogger()
        root.setLevel(self._saved[0])
        root.handlers[:] = self._saved[1]

    def test_writes_json_lines(self):
        stream = io.StringIO()
        configure_logging(level="info", stream=stream)
        logging.getLogger("jsonapi.handler").info("registered", extra={"pattern": "/api/user"})
        payload = json.loads(stream.getvalue().splitlines()[-1])
        assert payload["message"] == "registered"
        assert payload["pattern"] == "/api/user"
        assert "service" in payload

    def test_second_call_keeps_handler_and_applies_level(self):
        first = configure_logging(level="INFO", stream=io.StringIO())
        second = configure_logging(level="DEBUG")
        root = logging.getLogger()
        assert second is first
        assert root.handlers == [first]
        assert root.level == logging.DEBUG
        assert first.level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        handler = configure_logging(level="verbose", stream=io.StringIO())
        assert handler.level == logging.INFO
        assert logging.getLogger().level == logging.INFO
