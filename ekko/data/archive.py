"""Zip bundling of a finished session's files."""

from __future__ import annotations

import zipfile
from datetime import datetime
from pathlib import Path
from typing import Iterable


def archive_name(start: datetime, end: datetime) -> str:
    return f"EKKO_{start:%Y%m%d}_{start:%H%M}_{end:%H%M}.zip"


def archive_session(files: Iterable[Path], destination: Path, start: datetime, end: datetime) -> Path:
    """Write ``files`` into a zip named after the session's start and end times.

    Missing files are left out. An existing archive with the same name is replaced.
    """

    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)
    zip_path = destination / archive_name(start, end)
    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path in files:
            path = Path(path)
            if path.exists():
                archive.write(path, arcname=path.name)
    return zip_path


__all__ = ["archive_name", "archive_session"]
