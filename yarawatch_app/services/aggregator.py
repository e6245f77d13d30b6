import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from yarawatch_core.models import (
    Clean, ErrorEntry, Failed, Infected, InfectedEntry, RuleStatus, ScanReport, Verdict,
)

logger = logging.getLogger(__name__)


class Aggregator:
    """
    Folds the verdict stream of one cycle into a ScanReport.

    Only the thread draining the dispatcher calls `add`, so no locking.
    """

    def __init__(self, started_at: Optional[datetime] = None, rules: Optional[RuleStatus] = None):
        self.started_at = started_at or datetime.now()
        self.rules = rules
        self.examined = 0
        self.clean = 0
        self.skipped = 0
        self.infected: List[InfectedEntry] = []
        self.errors: List[ErrorEntry] = []
        self._report: Optional[ScanReport] = None

    def add(self, path: Path, verdict: Verdict) -> None:
        if self._report is not None:
            raise RuntimeError("report already finished")
        if isinstance(verdict, Clean):
            self.clean += 1
        elif isinstance(verdict, Infected):
            logger.warning("Found threat: %s (%s)", path, verdict.signature)
            self.infected.append(InfectedEntry(Path(path), verdict.signature))
        elif isinstance(verdict, Failed):
            self.errors.append(ErrorEntry(Path(path), verdict.cause))
        else:
            raise TypeError(f"not a verdict: {verdict!r}")
        self.examined += 1

    def add_skipped(self, count: int) -> None:
        if self._report is not None:
            raise RuntimeError("report already finished")
        self.skipped += count

    def finish(self, finished_at: Optional[datetime] = None) -> ScanReport:
        if self._report is not None:
            raise RuntimeError("report already finished")
        self._report = ScanReport(
            started_at=self.started_at,
            finished_at=finished_at or datetime.now(),
            examined=self.examined,
            clean=self.clean,
            skipped=self.skipped,
            infected=tuple(self.infected),
            errors=tuple(self.errors),
            rules_digest=self.rules.digest if self.rules else "",
            signature_count=self.rules.count if self.rules else 0,
            signatures_updated_at=self.rules.updated_at if self.rules else None,
        )
        logger.info(
            "Scan finished: %d examined, %d threat(s), %d error(s)",
            self._report.examined, self._report.infected_count, self._report.error_count,
        )
        return self._report
