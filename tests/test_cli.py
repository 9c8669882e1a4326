"""Tests for the Typer commands."""

from __future__ import annotations

import csv
import os
from pathlib import Path

import numpy as np
import pytest
from typer.testing import CliRunner

from ekko import cli, config
from ekko.data.models import SENSOR_COLUMNS
from ekko.utils.audio import write_wave

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("EKKO_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config, "_ENV_PATH", tmp_path / ".env")
    settings = config.Settings(
        sensor_frequency=10,
        base_dir=tmp_path / "sessions",
        database_path=tmp_path / "ekko.db",
    )
    monkeypatch.setattr(config, "_settings", settings)
    monkeypatch.setattr(cli, "configure_logging", lambda: None)
    return settings


def _write_session(directory: Path) -> tuple[Path, Path]:
    sensors = directory / "sensors_1000.csv"
    with open(sensors, "w", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(SENSOR_COLUMNS)
        for index in range(1000):
            gyro = 1.0 if 300 <= index < 600 else 0.0
            writer.writerow([1000 + index / 10, 0, 0, 0.1, gyro, 0, 0, 0, 0, 0, 0, 0, -1, -30.0, 0, 0])

    segment = directory / "rec_seg_1000.wav"
    write_wave(segment, np.zeros(100 * 200, dtype=np.float32), 200)
    return sensors, segment


def test_history_on_empty_store() -> None:
    result = runner.invoke(cli.app, ["history"])

    assert result.exit_code == 0
    assert "No reports saved yet." in result.output


def test_analyze_then_history(tmp_path: Path) -> None:
    sensors, segment = _write_session(tmp_path)

    result = runner.invoke(cli.app, ["analyze", str(sensors), str(segment), "--backend", "dummy"])

    assert result.exit_code == 0, result.output
    assert "Session party-" in result.output
    assert "Offline Track - EKKO" in result.output

    history = runner.invoke(cli.app, ["history"])
    assert history.exit_code == 0
    assert "Offline Track" in history.output


def test_analyze_rejects_unknown_backend(tmp_path: Path) -> None:
    sensors, segment = _write_session(tmp_path)

    result = runner.invoke(cli.app, ["analyze", str(sensors), str(segment), "--backend", "shazam"])

    assert result.exit_code != 0


def test_bpm_replay_of_still_log(tmp_path: Path) -> None:
    sensors, _ = _write_session(tmp_path)

    result = runner.invoke(cli.app, ["bpm", str(sensors)])

    assert result.exit_code == 0
    assert "Final BPM: 0" in result.output


def test_settings_set_and_unset(tmp_path: Path) -> None:
    listed = runner.invoke(cli.app, ["settings"])
    assert "EKKO_SENSOR_FREQUENCY=10.0" in listed.output

    assert runner.invoke(cli.app, ["set", "recognition_backend", "none"]).exit_code == 0
    assert "EKKO_RECOGNITION_BACKEND=none" in (tmp_path / ".env").read_text()

    assert runner.invoke(cli.app, ["unset", "recognition_backend"]).exit_code == 0
    assert not (tmp_path / ".env").exists()

    assert runner.invoke(cli.app, ["set", "no_such_setting", "1"]).exit_code != 0


def test_format_clock() -> None:
    assert cli._format_clock(3725.9) == "01:02:05"
