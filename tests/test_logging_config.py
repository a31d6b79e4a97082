# tests/test_logging_config.py
import logging

from utils.logging_config import get_logger


def test_logger_reused_with_single_handler():
    first = get_logger("leetplan.test.reuse")
    second = get_logger("leetplan.test.reuse")
    assert first is second
    assert len(second.handlers) == 1


def test_level_from_environment(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    assert get_logger("leetplan.test.env").level == logging.DEBUG


def test_explicit_level_wins(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    assert get_logger("leetplan.test.explicit", logging.WARNING).level == logging.WARNING
