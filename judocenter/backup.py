"""Zip backups of the data directory.

A backup holds every record directory plus ``config.yaml`` and a ``manifest.json``.
Restore moves the current data aside first and moves it back if extraction fails.
"""

from __future__ import annotations

from datetime import date
import json
import logging
from pathlib import Path, PurePosixPath
import shutil
import tempfile
from typing import Optional
import zipfile

from . import __version__
from .storage import SCHEMA_VERSION, now_iso

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"
APP_NAME = "judocenter"
DATA_DIRS = ("athletes", "clubs", "rulesets", "tournaments", "history", "dossier")
DATA_FILES = ("config.yaml",)


def default_backup_filename(on: Optional[date] = None) -> str:
    return f"judo_manager_backup_{(on or date.today()).isoformat()}.zip"


def _managed_paths(data_dir: Path) -> list[Path]:
    return [data_dir / name for name in (*DATA_DIRS, *DATA_FILES)]


def create_backup(data_dir: Path, out_path: Optional[Path] = None) -> Path:
    data_dir = Path(data_dir)
    if out_path is None:
        out_path = Path.cwd() / default_backup_filename()
    out_path = Path(out_path)
    if out_path.is_dir():
        out_path = out_path / default_backup_filename()
    out_path.parent.mkdir(parents=True, exist_ok=True)

    files: list[str] = []
    with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in _managed_paths(data_dir):
            if path.is_file():
                candidates = [path]
            elif path.is_dir():
                candidates = sorted(p for p in path.rglob("*") if p.is_file())
            else:
                continue
            for item in candidates:
                arcname = item.relative_to(data_dir).as_posix()
                zf.write(item, arcname)
                files.append(arcname)
        manifest = {
            "app": APP_NAME,
            "version": __version__,
            "schema_version": SCHEMA_VERSION,
            "created_at": now_iso(),
            "files": files,
        }
        zf.writestr(MANIFEST_NAME, json.dumps(manifest, indent=2))

    logger.info("Backed up %d files from %s to %s", len(files), data_dir, out_path)
    return out_path


def read_manifest(archive: Path) -> dict:
    archive = Path(archive)
    if not archive.is_file() or not zipfile.is_zipfile(archive):
        raise ValueError(f"Not a backup archive: {archive}")
    with zipfile.ZipFile(archive) as zf:
        try:
            manifest = json.loads(zf.read(MANIFEST_NAME).decode("utf-8"))
        except KeyError as exc:
            raise ValueError(f"Backup archive has no {MANIFEST_NAME}: {archive}") from exc
        names = zf.namelist()
    if not isinstance(manifest, dict) or manifest.get("app") != APP_NAME:
        raise ValueError(f"Backup archive was not written by {APP_NAME}: {archive}")
    for name in names:
        if name == MANIFEST_NAME:
            continue
        parts = PurePosixPath(name).parts
        if PurePosixPath(name).is_absolute() or ".." in parts or not parts:
            raise ValueError(f"Unsafe path in backup archive: {name}")
        if parts[0] not in DATA_DIRS and name not in DATA_FILES:
            raise ValueError(f"Unexpected entry in backup archive: {name}")
    return manifest


def restore_backup(archive: Path, data_dir: Path) -> dict:
    """Replace the data directory contents with ``archive``; returns its manifest."""
    manifest = read_manifest(archive)
    data_dir = Path(data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)

    snapshot_dir = Path(tempfile.mkdtemp(prefix="judocenter-restore-"))
    moved: list[str] = []
    for path in _managed_paths(data_dir):
        if path.exists():
            shutil.move(str(path), str(snapshot_dir / path.name))
            moved.append(path.name)

    try:
        with zipfile.ZipFile(archive) as zf:
            for name in zf.namelist():
                if name == MANIFEST_NAME:
                    continue
                zf.extract(name, data_dir)
    except Exception as exc:
        logger.error("Restore from %s failed (%s); rolling back", archive, exc)
        for path in _managed_paths(data_dir):
            if path.is_dir():
                shutil.rmtree(path)
            elif path.exists():
                path.unlink()
        for name in moved:
            shutil.move(str(snapshot_dir / name), str(data_dir / name))
        shutil.rmtree(snapshot_dir, ignore_errors=True)
        if isinstance(exc, OSError):
            raise
        raise ValueError(f"Backup archive is corrupt: {archive} ({exc})") from exc

    shutil.rmtree(snapshot_dir, ignore_errors=True)
    logger.info("Restored %d files from %s into %s", len(manifest.get("files", [])), archive, data_dir)
    return manifest
