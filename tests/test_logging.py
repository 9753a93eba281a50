"""Tests for logging setup."""

import logging

import pytest
import structlog

from health_export.config import AppSettings
from health_export.logging import setup_logging


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()
    logging.getLogger("httpx").setLevel(logging.NOTSET)


def test_json_logging_to_stderr(capsys):
    setup_logging(AppSettings(log_level="INFO", log_format="json"))

    structlog.get_logger("test").info("export_indexed", samples=3)

    err = capsys.readouterr().err
    assert '"event": "export_indexed"' in err
    assert '"samples": 3' in err
    assert '"level": "info"' in err


def test_level_filters_debug(capsys):
    setup_logging(AppSettings(log_level="WARNING", log_format="console"))

    structlog.get_logger("test").info("hidden_event")
    structlog.get_logger("test").warning("shown_event")

    err = capsys.readouterr().err
    assert "hidden_event" not in err
    assert "shown_event" in err


def test_httpx_logger_quietened():
    setup_logging(AppSettings(log_level="DEBUG"))

    assert logging.getLogger("httpx").level == logging.WARNING
