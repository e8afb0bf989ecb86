"""
Tests for the exception hierarchy and the script logging setup.
"""

import logging

import pytest

from src.utils.errors import (
    AccessDeniedError,
    BlsError,
    CacheIOError,
    ConfigurationError,
    ContentDecodingFailure,
    FetchFailure,
    ParseFailure,
    ResourceNotFoundError,
    ServerError,
)
from src.utils.logging import configure_logging


def test_fetch_failures_share_a_base():
    for error in (ResourceNotFoundError, AccessDeniedError, ServerError, ContentDecodingFailure):
        assert issubclass(error, FetchFailure)
    for error in (FetchFailure, ParseFailure, ConfigurationError, CacheIOError):
        assert issubclass(error, BlsError)


def test_configuration_and_cache_errors_keep_builtin_bases():
    """Callers catching ValueError / OSError still see these."""
    assert issubclass(ConfigurationError, ValueError)
    assert issubclass(CacheIOError, OSError)


def test_fetch_failure_attributes():
    error = ServerError("boom", resource="https://x/y", status_code=503)

    assert str(error) == "boom"
    assert error.resource == "https://x/y"
    assert error.status_code == 503


def test_parse_failure_resource():
    assert ParseFailure("empty", resource="https://x/y").resource == "https://x/y"


def test_configure_logging_accepts_any_case(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    configure_logging("info")

    assert calls[0]["level"] == logging.INFO


def test_configure_logging_rejects_unknown_level():
    with pytest.raises(ValueError, match="Unknown log level"):
        configure_logging("CHATTY")
