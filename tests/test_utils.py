"""Tests for shared helpers in :mod:`phrase_trainer.utils`.

The validators guard every path through which a meter, tempo or difficulty
enters the session, so they are checked directly here.
"""

from __future__ import annotations

import importlib
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

utils = importlib.import_module("phrase_trainer.utils")


@pytest.mark.parametrize(
    "value,expected",
    [("4/4", (4, 4)), (" 3 / 8 ", (3, 8)), ((6, 8), (6, 8)), (["2", "2"], (2, 2))],
)
def test_validate_time_signature_accepts_strings_and_pairs(value, expected):
    assert utils.validate_time_signature(value) == expected


@pytest.mark.parametrize("value", ["4", "4/4/4", "a/4", "0/4", "3/5", (4,), (4, 3)])
def test_validate_time_signature_rejects_malformed(value):
    """Malformed meters or unsupported denominators raise ``ValueError``."""
    with pytest.raises(ValueError):
        utils.validate_time_signature(value)


def test_validate_tempo():
    """Any positive integer is accepted; booleans and floats are not."""
    assert utils.validate_tempo(100) == 100
    assert utils.validate_tempo(137) == 137
    for bad in (0, -60, 80.0, True, "100"):
        with pytest.raises(ValueError):
            utils.validate_tempo(bad)


def test_validate_difficulty():
    assert [utils.validate_difficulty(level) for level in (1, 2, 3)] == [1, 2, 3]
    with pytest.raises(ValueError) as excinfo:
        utils.validate_difficulty(4)
    assert "1, 2, 3" in str(excinfo.value)


def test_practice_settings_defaults():
    settings = utils.PracticeSettings()
    assert settings.guard_interval == pytest.approx(0.05)
    assert settings.frame_interval == pytest.approx(1 / 60)
    assert settings.velocity == 80
    assert settings.preview_duration == pytest.approx(0.5)
    assert settings.auto_highlight is True


@pytest.mark.parametrize(
    "kwargs",
    [
        {"guard_interval": -0.1},
        {"frame_interval": 0},
        {"velocity": 0},
        {"velocity": 128},
        {"preview_duration": 0},
    ],
)
def test_practice_settings_validation(kwargs):
    """Out-of-range tunables are rejected."""
    with pytest.raises(ValueError):
        utils.PracticeSettings(**kwargs)


def test_practice_settings_share_module_defaults():
    """Settings, scheduler, pollers and backends read one set of defaults."""
    scheduler = importlib.import_module("phrase_trainer.scheduler")
    tracker = importlib.import_module("phrase_trainer.tracker")
    package = importlib.import_module("phrase_trainer")
    settings = utils.PracticeSettings()
    assert settings.guard_interval == scheduler.DEFAULT_GUARD_INTERVAL
    assert settings.frame_interval == tracker.DEFAULT_FRAME_INTERVAL
    assert settings.velocity == package.DEFAULT_VELOCITY
