from __future__ import annotations

import logging

import pytest

from fx_bundesbank.utils.logger import get_logger, set_log_level


def test_get_logger_returns_namespaced_logger() -> None:
    logger = get_logger("fx_bundesbank.tests")

    assert logger.name == "fx_bundesbank.tests"


def test_set_log_level_applies_to_package_namespace() -> None:
    root = logging.getLogger("fx_bundesbank")
    previous = root.level
    try:
        set_log_level("debug")
        assert root.level == logging.DEBUG
        set_log_level(logging.WARNING)
        assert root.level == logging.WARNING
    finally:
        root.setLevel(previous)


def test_set_log_level_rejects_unknown_levels() -> None:
    with pytest.raises(ValueError):
        set_log_level("chatty")
