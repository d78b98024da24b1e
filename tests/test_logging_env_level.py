from __future__ import annotations

import io
import logging

import pytest

from segment_digits.logging import (
    _choose_formatter,
    _ConsoleFormatter,
    _JsonFormatter,
    get_logger,
    init_logging,
)


def test_env_level_mapping(monkeypatch: pytest.MonkeyPatch) -> None:
    logger = get_logger()
    old_handlers = list(logger.handlers)
    old_level = logger.level
    old_propagate = logger.propagate
    try:
        monkeypatch.setenv("SEGMENT_DIGITS_LOG_LEVEL", "warning")
        assert init_logging("json").level == logging.WARNING

        monkeypatch.setenv("SEGMENT_DIGITS_LOG_LEVEL", "DEBUG")
        assert init_logging("json").level == logging.DEBUG

        # Unknown levels fall back to INFO
        monkeypatch.setenv("SEGMENT_DIGITS_LOG_LEVEL", "chatty")
        assert init_logging("json").level == logging.INFO
    finally:
        logger.setLevel(old_level)
        logger.handlers = old_handlers
        logger.propagate = old_propagate


def test_init_logging_never_stacks_handlers(monkeypatch: pytest.MonkeyPatch) -> None:
    logger = get_logger()
    old_handlers = list(logger.handlers)
    old_propagate = logger.propagate
    try:
        monkeypatch.setenv("SEGMENT_DIGITS_LOG_PROPAGATE", "yes")
        init_logging("pretty")
        lg = init_logging("pretty")
        streams = [h for h in lg.handlers if isinstance(h, logging.StreamHandler)]
        assert len(streams) == 1
        assert isinstance(streams[0].formatter, _ConsoleFormatter)
        assert lg.propagate is True
    finally:
        logger.handlers = old_handlers
        logger.propagate = old_propagate


def test_auto_formatter_honors_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # A StringIO is not a tty, so auto picks JSON unless pretty is forced
    monkeypatch.setattr("sys.stdout", io.StringIO())
    monkeypatch.delenv("SEGMENT_DIGITS_LOG_JSON", raising=False)
    monkeypatch.delenv("SEGMENT_DIGITS_LOG_PRETTY", raising=False)
    assert isinstance(_choose_formatter("auto"), _JsonFormatter)

    monkeypatch.setenv("SEGMENT_DIGITS_LOG_PRETTY", "1")
    assert isinstance(_choose_formatter("auto"), _ConsoleFormatter)

    monkeypatch.setenv("SEGMENT_DIGITS_LOG_JSON", "true")
    assert isinstance(_choose_formatter("auto"), _JsonFormatter)
