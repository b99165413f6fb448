"""Tests for modbuild logging configuration."""

from __future__ import annotations

import logging
from pathlib import Path

from modbuild.logging import configure_logging, get_logger, level_for_verbosity


def test_loggers_share_the_modbuild_hierarchy() -> None:
    assert get_logger().name == "modbuild"
    assert get_logger("scanner").name == "modbuild.scanner"


def test_verbosity_levels() -> None:
    assert level_for_verbosity(0) == logging.WARNING
    assert level_for_verbosity(1) == logging.INFO
    assert level_for_verbosity(2) == logging.DEBUG
    assert level_for_verbosity(5) == logging.DEBUG


def test_configure_logging_replaces_handlers(tmp_path: Path) -> None:
    configure_logging(verbosity=1)
    logger = configure_logging(verbosity=2, log_file=tmp_path / "modbuild.log")

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2

    get_logger("build").debug("written to file")
    for handler in logger.handlers:
        handler.flush()
    assert "written to file" in (tmp_path / "modbuild.log").read_text(encoding="utf-8")
