from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional, Tuple, Union
from datetime import datetime, timedelta


@dataclass(frozen=True)
class ScanCandidate:
    path: Path
    size: int
    mtime: float


# ---------------------------
# Verdicts
# ---------------------------

@dataclass(frozen=True)
class Clean:
    pass


@dataclass(frozen=True)
class Infected:
    signature: str


@dataclass(frozen=True)
class Failed:
    cause: str


Verdict = Union[Clean, Infected, Failed]


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def _parse_iso(value) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


# ---------------------------
# Report
# ---------------------------

@dataclass(frozen=True)
class InfectedEntry:
    path: Path
    signature: str


@dataclass(frozen=True)
class ErrorEntry:
    path: Path
    cause: str


@dataclass(frozen=True)
class ScanReport:
    started_at: datetime
    finished_at: datetime
    examined: int = 0
    clean: int = 0
    skipped: int = 0
    infected: Tuple[InfectedEntry, ...] = ()
    errors: Tuple[ErrorEntry, ...] = ()
    rules_digest: str = ""
    signature_count: int = 0
    signatures_updated_at: Optional[datetime] = None

    @property
    def duration(self) -> timedelta:
        return self.finished_at - self.started_at

    @property
    def infected_count(self) -> int:
        return len(self.infected)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_s": round(self.duration.total_seconds(), 3),
            "examined": self.examined,
            "clean": self.clean,
            "skipped": self.skipped,
            "infected": [{"path": str(e.path), "signature": e.signature} for e in self.infected],
            "errors": [{"path": str(e.path), "cause": e.cause} for e in self.errors],
            "rules_digest": self.rules_digest,
            "signature_count": self.signature_count,
            "signatures_updated_at": _iso(self.signatures_updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ScanReport":
        """Inverse of to_dict. Malformed input raises TypeError, ValueError or KeyError."""
        if not isinstance(data, dict):
            raise TypeError(f"expected an object, got {type(data).__name__}")
        return cls(
            started_at=datetime.fromisoformat(data["started_at"]),
            finished_at=datetime.fromisoformat(data["finished_at"]),
            examined=int(data["examined"]),
            clean=int(data["clean"]),
            skipped=int(data["skipped"]),
            infected=tuple(InfectedEntry(Path(e["path"]), str(e["signature"])) for e in data["infected"]),
            errors=tuple(ErrorEntry(Path(e["path"]), str(e["cause"])) for e in data["errors"]),
            rules_digest=str(data.get("rules_digest", "")),
            signature_count=int(data.get("signature_count", 0)),
            signatures_updated_at=_parse_iso(data.get("signatures_updated_at")),
        )


@dataclass
class RuleStatus:
    compiled: bool
    count: int
    digest: str
    errors: List[str] = field(default_factory=list)
    updated_at: Optional[datetime] = None


# ---------------------------
# Persisted scheduler state
# ---------------------------

@dataclass(frozen=True)
class ScheduleState:
    last_completed: Optional[datetime] = None
    in_progress: bool = False
    last_report: Optional[ScanReport] = None

    def started(self) -> "ScheduleState":
        return replace(self, in_progress=True)

    def completed(self, at: datetime, report: Optional[ScanReport] = None) -> "ScheduleState":
        return replace(self, in_progress=False, last_completed=at, last_report=report or self.last_report)

    def abandoned(self) -> "ScheduleState":
        return replace(self, in_progress=False)
