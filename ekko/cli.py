"""Typer CLI entry point for EKKO."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer

from .config import (
    EnvironmentSettingError,
    clear_environment_setting,
    get_settings,
    list_environment_settings,
    update_environment_setting,
)
from .core.analysis.rhythm import RhythmEstimator
from .core.pipeline.orchestrator import AnalysisOrchestrator, AnalysisRequest
from .core.sensors.reader import SensorLogError, read_sensor_log
from .data.storage import ReportStore
from .logging import configure_logging, get_logger
from .services.factory import ServiceConfigurationError, resolve_recognition_backend

app = typer.Typer(help="EKKO party highlight analyser")
LOGGER = get_logger(__name__)


def _format_clock(seconds: float) -> str:
    seconds = int(seconds)
    return f"{seconds // 3600:02d}:{seconds // 60 % 60:02d}:{seconds % 60:02d}"


@app.command()
def analyze(
    sensors: Path = typer.Argument(..., exists=True, dir_okay=False, help="Sensor CSV log"),
    segments: List[Path] = typer.Argument(..., help="Recorded audio segments (rec_seg_<epoch>.wav)"),
    backend: Optional[str] = typer.Option(None, help="Recognition backend: none/dummy/acrcloud"),
    archive: bool = typer.Option(False, "--archive/--no-archive", help="Zip the session files"),
) -> None:
    """Find the highlight moments of a captured session."""

    configure_logging()
    settings = get_settings()
    try:
        recognizer = resolve_recognition_backend(backend or settings.recognition_backend)
    except ServiceConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    orchestrator = AnalysisOrchestrator()
    request = AnalysisRequest(sensors_path=sensors, segments=segments, archive=archive)
    outcome = orchestrator.analyze(request, recognizer=recognizer)

    for warning in outcome.warnings:
        typer.echo(f"warning: {warning}", err=True)
    typer.echo(f"Session {outcome.session_id}: {_format_clock(outcome.duration)}")
    if outcome.report is not None:
        if not outcome.report.moments:
            typer.echo("No highlight moment recognized.")
        for moment in outcome.report.moments:
            typer.echo(
                f"  {_format_clock(moment.timestamp)}  {moment.title} - {moment.artist or '?'}"
                f"  (score {moment.score:.1f}, {moment.user_bpm} BPM, {moment.average_db:.1f} dB)"
            )
    if outcome.archive_path is not None:
        typer.echo(f"Archive written to {outcome.archive_path}")


@app.command()
def history() -> None:
    """List saved party reports, newest first."""

    configure_logging()
    store = ReportStore(get_settings().database_path)
    store.initialize()
    reports = store.list_reports()
    if not reports:
        typer.echo("No reports saved yet.")
        return
    for report in reports:
        date = datetime.fromtimestamp(report.date).strftime("%Y-%m-%d %H:%M")
        titles = ", ".join(moment.title for moment in report.moments) or "-"
        typer.echo(f"{report.id[:8]}  {date}  {_format_clock(report.duration)}  {titles}")


@app.command()
def bpm(sensors: Path = typer.Argument(..., exists=True, dir_okay=False, help="Sensor CSV log")) -> None:
    """Replay a sensor log through the live rhythm estimator."""

    configure_logging()
    try:
        log = read_sensor_log(sensors)
    except SensorLogError as exc:
        raise typer.BadParameter(str(exc)) from exc

    estimator = RhythmEstimator.from_settings()
    peak = 0
    for sample in log.samples:
        peak = max(peak, estimator.process(*sample.accel))
    typer.echo(f"Final BPM: {estimator.bpm}  Peak BPM: {peak}")


@app.command("settings")
def show_settings() -> None:
    """Show every setting with its environment variable."""

    for entry in list_environment_settings():
        typer.echo(f"{entry.env_name}={entry.value}")


@app.command("set")
def set_setting(field: str, value: str) -> None:
    """Persist an override in the .env file."""

    try:
        update_environment_setting(field, value)
    except EnvironmentSettingError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"{field} updated")


@app.command("unset")
def unset_setting(field: str) -> None:
    """Remove an override from the .env file."""

    try:
        clear_environment_setting(field)
    except EnvironmentSettingError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"{field} reset to default")


if __name__ == "__main__":  # pragma: no cover
    app()
