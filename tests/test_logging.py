"""Tests for dealsync.core.logging."""

import logging

import pytest

from dealsync.core import logging as dealsync_logging
from dealsync.core.logging import get_logger, setup_logging


@pytest.fixture
def fresh_logging(monkeypatch):
    """Unconfigured ``dealsync`` logger; restored afterwards."""
    root = logging.getLogger("dealsync")
    monkeypatch.setattr(dealsync_logging, "_CONFIGURED", False)
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(root, "propagate", root.propagate)
    previous_level = root.level
    yield root
    root.setLevel(previous_level)


def test_get_logger_namespaces_under_dealsync():
    assert get_logger("scheduler").name == "dealsync.scheduler"
    assert get_logger("dealsync.services.runner").name == "dealsync.services.runner"


def test_get_logger_does_not_configure_handlers(fresh_logging):
    get_logger("a")
    assert dealsync_logging._CONFIGURED is False
    assert fresh_logging.handlers == []


def test_setup_logging_honours_its_arguments(fresh_logging, tmp_path):
    setup_logging(level="debug", log_dir=str(tmp_path / "logs"))

    assert fresh_logging.level == logging.DEBUG
    assert fresh_logging.propagate is False
    kinds = sorted(type(h).__name__ for h in fresh_logging.handlers)
    assert kinds == ["StreamHandler", "TimedRotatingFileHandler"]
    assert (tmp_path / "logs").is_dir()


def test_setup_logging_runs_once(fresh_logging):
    setup_logging(log_dir="")
    setup_logging(log_dir="")
    assert len(fresh_logging.handlers) == 1
