"""Validated, read-only settings loaded once from settings.yaml."""
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .hours import PreferredHours
from .patterns import GlobPattern

DEFAULT_SETTINGS_PATH = Path("settings.yaml")
EXPORT_FORMATS = ("json", "md", "html")

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$")
_SIZE_UNITS = {
    "": 1,
    "b": 1,
    "k": 1000, "kb": 1000,
    "m": 1000 ** 2, "mb": 1000 ** 2,
    "g": 1000 ** 3, "gb": 1000 ** 3,
    "t": 1000 ** 4, "tb": 1000 ** 4,
    "kib": 1024, "mib": 1024 ** 2, "gib": 1024 ** 3, "tib": 1024 ** 4,
}


class ConfigError(Exception):
    """Settings are missing or malformed. Fatal at startup."""


def parse_size(value) -> int:
    """Parse ``1048576``, ``"50MB"`` or ``"1 MiB"`` into bytes."""
    if isinstance(value, bool):
        raise ValueError("size must be a number or a string like '50MB'")
    if isinstance(value, int):
        if value < 0:
            raise ValueError("size must be >= 0")
        return value
    if not isinstance(value, str):
        raise ValueError("size must be a number or a string like '50MB'")
    m = _SIZE_RE.match(value)
    if not m:
        raise ValueError(f"unrecognised size: {value!r}")
    unit = m.group(2).lower()
    if unit not in _SIZE_UNITS:
        raise ValueError(f"unknown size unit: {m.group(2)!r}")
    return int(float(m.group(1)) * _SIZE_UNITS[unit])


def _default_concurrency() -> int:
    return os.cpu_count() or 1


class Configuration(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    # === Traversal ===
    scan_roots: Tuple[Path, ...] = Field(default_factory=lambda: (Path.home(),))
    excludes: Tuple[GlobPattern, ...] = ()
    skip_hidden: bool = False
    skip_larger_than: Optional[int] = None
    follow_symlinks: bool = False

    # === Scanning ===
    concurrency: int = Field(default_factory=_default_concurrency, ge=1)
    update_path: Path = Path("yara_rules")
    scan_timeout_s: int = Field(default=20, ge=1)

    # === Scheduling ===
    preferred_hours: Optional[PreferredHours] = None
    skip_on_battery: bool = False
    scan_interval_hours: Optional[float] = Field(default=None, gt=0)
    tick_seconds: float = Field(default=60.0, gt=0)

    # === Output ===
    workspace_path: Path = Path("workspace")
    export_formats: Tuple[str, ...] = ("json",)
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @field_validator("scan_roots", mode="before")
    @classmethod
    def _expand_roots(cls, value):
        if isinstance(value, (str, Path)):
            value = [value]
        roots: List[Path] = []
        for raw in value or []:
            p = Path(os.path.abspath(Path(raw).expanduser()))
            if p not in roots:
                roots.append(p)
        if not roots:
            raise ValueError("at least one scan root is required")
        return tuple(roots)

    @field_validator("excludes", mode="before")
    @classmethod
    def _compile_excludes(cls, value):
        if isinstance(value, str):
            value = [value]
        compiled = []
        for raw in value or []:
            if isinstance(raw, GlobPattern):
                compiled.append(raw)
            elif isinstance(raw, str):
                compiled.append(GlobPattern(os.path.expanduser(raw)))
            else:
                raise ValueError(f"exclude must be a string, got {raw!r}")
        return tuple(compiled)

    @field_validator("skip_larger_than", mode="before")
    @classmethod
    def _parse_size(cls, value):
        if value is None:
            return None
        return parse_size(value)

    @field_validator("preferred_hours", mode="before")
    @classmethod
    def _parse_hours(cls, value):
        if value is None or isinstance(value, PreferredHours):
            return value
        if not isinstance(value, str):
            raise ValueError("preferred_hours must look like '19:00:00-09:00:00'")
        return PreferredHours.parse(value)

    @field_validator("update_path", "workspace_path", "log_file", mode="before")
    @classmethod
    def _expand_path(cls, value):
        if value is None:
            return None
        return Path(value).expanduser()

    @field_validator("export_formats", mode="before")
    @classmethod
    def _check_formats(cls, value):
        if isinstance(value, str):
            value = [value]
        for fmt in value or []:
            if fmt not in EXPORT_FORMATS:
                raise ValueError(f"unsupported export format: {fmt!r}")
        return tuple(value or ())

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {value!r}")
        return level

    # ---------------------------
    # Derived helpers
    # ---------------------------

    def is_excluded(self, path) -> bool:
        return any(p.matches(path) for p in self.excludes)

    @property
    def state_path(self) -> Path:
        return self.workspace_path / "state.json"

    @property
    def reports_dir(self) -> Path:
        return self.workspace_path / "reports"

    @property
    def cache_dir(self) -> Path:
        return self.workspace_path / ".cache"


def load_settings(path: str | Path | None = None) -> Configuration:
    """
    Read and validate settings. Any problem raises ConfigError; the caller
    must not scan with an unvalidated configuration.
    """
    if path is None:
        path = os.environ.get("YARAWATCH_SETTINGS") or DEFAULT_SETTINGS_PATH
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"settings file not found: {path}") from None
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to read settings {path}: {e}") from e
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"settings {path} must be a mapping, got {type(raw).__name__}")
    try:
        return Configuration.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"invalid settings {path}: {e}") from e
