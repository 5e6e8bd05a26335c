"""Unit tests for logging setup."""

import json

import pytest
import structlog

from metaeval.core.logging import redact_sensitive, setup_logging


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


def test_redacts_credential_keys() -> None:
    event = {
        "event": "llm_request",
        "api_key": "sk-123",
        "Authorization": "Bearer abc",
        "db_password": "hunter2",
        "model": "ollama/mistral",
    }
    result = redact_sensitive(None, "info", event)

    assert result["api_key"] == "REDACTED"
    assert result["Authorization"] == "REDACTED"
    assert result["db_password"] == "REDACTED"
    assert result["model"] == "ollama/mistral"


def test_json_output(capsys) -> None:
    setup_logging(debug=False, log_level="INFO")
    structlog.get_logger().info("dimension_evaluated", score=0.8, api_key="secret")

    line = capsys.readouterr().out.strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["event"] == "dimension_evaluated"
    assert payload["score"] == 0.8
    assert payload["level"] == "info"
    assert payload["api_key"] == "REDACTED"
    assert "timestamp" in payload


def test_level_filtering(capsys) -> None:
    setup_logging(debug=False, log_level="WARNING")
    logger = structlog.get_logger()
    logger.info("hidden_event")
    logger.warning("shown_event")

    out = capsys.readouterr().out
    assert "hidden_event" not in out
    assert "shown_event" in out
