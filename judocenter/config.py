from __future__ import annotations

from dataclasses import asdict, dataclass, fields
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV = "JUDOCENTER_CONFIG"
HOME_ENV = "JUDOCENTER_HOME"
CONFIG_FILENAME = "config.yaml"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def default_data_dir() -> Path:
    env = os.environ.get(HOME_ENV, "").strip()
    if env:
        return Path(env).expanduser()
    return Path.home() / ".judocenter"


@dataclass
class AppConfig:
    data_dir: Path
    log_level: str = "WARNING"
    reference_year: Optional[int] = None
    organization_name: Optional[str] = None
    export_dir: Optional[Path] = None

    def normalize(self) -> None:
        self.data_dir = Path(self.data_dir).expanduser()
        self.log_level = str(self.log_level or "WARNING").strip().upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of: {', '.join(LOG_LEVELS)}")
        if self.reference_year is not None:
            self.reference_year = int(self.reference_year)
        if self.export_dir is not None:
            self.export_dir = Path(self.export_dir).expanduser()
        if self.organization_name is not None:
            self.organization_name = str(self.organization_name).strip() or None

    @property
    def output_dir(self) -> Path:
        return self.export_dir or self.data_dir / "exports"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["data_dir"] = str(self.data_dir)
        data["export_dir"] = str(self.export_dir) if self.export_dir is not None else None
        return data


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        return {}
    return data


def load_app_config(path: Optional[Path] = None, data_dir: Optional[Path] = None) -> AppConfig:
    """Resolve config from ``path``, then ``$JUDOCENTER_CONFIG``, then ``<data_dir>/config.yaml``."""
    base_dir = Path(data_dir).expanduser() if data_dir is not None else default_data_dir()
    if path is None:
        env = os.environ.get(CONFIG_ENV, "").strip()
        path = Path(env).expanduser() if env else base_dir / CONFIG_FILENAME
    raw = _read_config_file(Path(path))

    known = {f.name for f in fields(AppConfig)}
    values = {key: value for key, value in raw.items() if key in known and value is not None}
    if data_dir is not None or "data_dir" not in values:
        values["data_dir"] = base_dir
    config = AppConfig(**values)
    try:
        config.normalize()
    except (TypeError, ValueError) as exc:
        logger.warning("Invalid config %s, using defaults: %s", path, exc)
        config = AppConfig(data_dir=base_dir)
        config.normalize()
    return config


def save_app_config(config: AppConfig, path: Optional[Path] = None) -> Path:
    config.normalize()
    target = Path(path) if path is not None else config.data_dir / CONFIG_FILENAME
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(yaml.safe_dump(config.to_dict(), sort_keys=False), encoding="utf-8")
    return target
