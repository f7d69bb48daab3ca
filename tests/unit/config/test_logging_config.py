"""
Tests for tiered logging configuration
"""
import logging

import pytest

from salesagent.config.logging_config import TRACE, get_log_level, get_logger


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    for service in ("CONVERSATION", "CACHE", "STORE", "API"):
        monkeypatch.delenv(f"LOG_LEVEL_{service}", raising=False)


def test_default_level_is_info():
    assert get_log_level("salesagent.services.conversation_service") == logging.INFO


def test_global_level(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    assert get_log_level("salesagent.services.conversation_store") == logging.DEBUG


def test_service_override_beats_global(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
    monkeypatch.setenv("LOG_LEVEL_CACHE", "TRACE")

    assert get_log_level("salesagent.services.conversation_cache") == TRACE
    assert get_log_level("salesagent.services.conversation_service") == logging.ERROR


def test_unknown_level_falls_back_to_info(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "LOUD")
    assert get_log_level("salesagent.api.server") == logging.INFO


def test_logger_has_trace(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL_STORE", "TRACE")
    logger = get_logger("salesagent.services.conversation_store")

    assert logger.level == TRACE
    assert callable(logger.trace)
