"""Shared fixtures: file trees, a scripted scanner, a fake power gate, a settable clock."""

from __future__ import annotations

import threading
from datetime import datetime
from pathlib import Path

import pytest

from yarawatch_core.config import Configuration
from yarawatch_core.models import Clean, Failed, Infected, RuleStatus


class FakeScanner:
    """Verdicts keyed by file name; unknown names are clean."""

    def __init__(self, infected=None, failing=None, unavailable=None):
        self.infected = dict(infected or {})
        self.failing = dict(failing or {})
        self.unavailable = unavailable
        self.loads = 0
        self.scanned: list[Path] = []
        self.on_scan = None
        self._lock = threading.Lock()

    def load(self) -> RuleStatus:
        self.loads += 1
        if self.unavailable is not None:
            raise self.unavailable
        return RuleStatus(compiled=True, count=3, digest="feedbeef00000000")

    def scan_file(self, path):
        path = Path(path)
        with self._lock:
            self.scanned.append(path)
        if self.on_scan is not None:
            self.on_scan(path)
        if path.name in self.failing:
            raise OSError(self.failing[path.name])
        if path.name in self.infected:
            return Infected(self.infected[path.name])
        return Clean()


class FakePower:
    def __init__(self, on_battery: bool = False):
        self.on_battery = on_battery
        self.battery_queries = 0
        self.priority_calls = 0
        self._lock = threading.Lock()

    def is_on_battery(self) -> bool:
        self.battery_queries += 1
        return self.on_battery

    def lower_priority(self) -> None:
        with self._lock:
            self.priority_calls += 1


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def write_file(path: Path, size: int = 16, content: bytes | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        if content is not None:
            f.write(content)
        else:
            f.truncate(size)
    return path


@pytest.fixture
def tree(tmp_path: Path):
    """Factory: tree({"a/b.txt": 10, ...}) creates files under tmp_path/root."""
    root = tmp_path / "root"
    root.mkdir()

    def _make(files: dict[str, int | bytes]) -> Path:
        for rel, spec in files.items():
            if isinstance(spec, bytes):
                write_file(root / rel, content=spec)
            else:
                write_file(root / rel, size=spec)
        return root

    return _make


@pytest.fixture
def make_config(tmp_path: Path):
    def _make(**overrides) -> Configuration:
        values = {
            "scan_roots": [tmp_path / "root"],
            "workspace_path": tmp_path / "ws",
            "concurrency": 2,
            "export_formats": [],
        }
        values.update(overrides)
        return Configuration.model_validate(values)

    return _make


@pytest.fixture
def fake_scanner():
    return FakeScanner


@pytest.fixture
def fake_power():
    return FakePower


@pytest.fixture
def clock():
    return Clock(datetime(2024, 3, 14, 21, 0, 0))
