"""Tests for the shared CLI logging setup."""
import logging
import sys

import pytest

from study_planner.cli import refine_plan, update_progress
from study_planner.cli.logging_config import configure_logging


@pytest.fixture
def basic_config(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
    return calls


@pytest.mark.parametrize(
    "verbose, debug, level",
    [
        (False, False, logging.WARNING),
        (True, False, logging.INFO),
        (False, True, logging.DEBUG),
        (True, True, logging.DEBUG),
    ],
)
def test_configure_logging_levels(basic_config, verbose: bool, debug: bool, level: int) -> None:
    configure_logging(verbose=verbose, debug=debug)

    (kwargs,) = basic_config
    assert kwargs["level"] == level
    (handler,) = kwargs["handlers"]
    assert handler.stream is sys.stdout


@pytest.mark.parametrize("cli", [refine_plan, update_progress])
def test_clis_use_shared_setup(basic_config, monkeypatch, tmp_path, cli) -> None:
    argv = ["prog", "1", "--state-dir", str(tmp_path), "--debug"]
    if cli is update_progress:
        argv.insert(2, "mastered Topic A")
    monkeypatch.setattr(sys, "argv", argv)

    # No stored plan: the CLI exits after logging is configured
    with pytest.raises(SystemExit):
        cli.main()

    (kwargs,) = basic_config
    assert kwargs["level"] == logging.DEBUG
