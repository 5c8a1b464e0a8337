from __future__ import annotations

import logging

from rich.logging import RichHandler

from lockmanager.utils.logging import configure_logging, get_logger


def test_get_logger_is_namespaced_and_bare() -> None:
    logger = get_logger("redis")

    assert logger.name == "lockmanager.redis"
    assert logger.handlers == []


def test_configure_logging_attaches_rich_handler_once() -> None:
    first = configure_logging()
    second = configure_logging(logging.DEBUG)

    assert first is second
    assert len(first.handlers) == 1
    assert isinstance(first.handlers[0], RichHandler)
    assert first.level == logging.DEBUG


def test_configure_logging_plain_handler() -> None:
    logger = configure_logging("error", rich=False)

    (handler,) = logger.handlers
    assert not isinstance(handler, RichHandler)
    assert isinstance(handler, logging.StreamHandler)
    assert handler.level == logging.ERROR
    assert logger.level == logging.ERROR


def test_child_loggers_propagate_to_configured_root(caplog) -> None:
    configure_logging(logging.INFO, rich=False)

    with caplog.at_level(logging.INFO, logger="lockmanager"):
        get_logger("factory").info("Creating %s lock manager", "memory")

    assert "Creating memory lock manager" in caplog.text
