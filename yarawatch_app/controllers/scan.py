import logging
from datetime import datetime
from pathlib import Path
from threading import Event
from typing import Optional, Protocol

from yarawatch_core.config import Configuration
from yarawatch_core.models import RuleStatus, ScanReport, Verdict
from yarawatch_core.state import AppState
from yarawatch_app.services import export
from yarawatch_app.services.aggregator import Aggregator
from yarawatch_app.services.dispatcher import dispatch
from yarawatch_app.services.power import NullPowerGate, PowerGate
from yarawatch_app.services.scanner import YaraScanner
from yarawatch_app.services.walker import Walker

logger = logging.getLogger(__name__)


class CycleAborted(Exception):
    """A stop signal interrupted the cycle; its partial results are discarded."""


class Scanner(Protocol):
    def load(self) -> RuleStatus: ...

    def scan_file(self, path: Path) -> Verdict: ...


class ScanController:
    def __init__(self, config: Configuration, scanner: Optional[Scanner] = None,
                 power: Optional[PowerGate] = None):
        self.config = config
        self.scanner = scanner or YaraScanner(
            config.update_path, config.cache_dir, timeout=config.scan_timeout_s,
        )
        self.power = power or NullPowerGate()
        self.state = AppState()

    def run_cycle(self, stop: Optional[Event] = None) -> ScanReport:
        """
        Walk, scan and aggregate once. SignaturesUnavailable from the
        scanner and CycleAborted on a stop signal abandon the cycle;
        per-file failures only land in the report.
        """
        self.state.rules = self.scanner.load()

        walker = Walker(self.config, stop=stop)
        aggregator = Aggregator(started_at=datetime.now(), rules=self.state.rules)
        for path, verdict in dispatch(
            walker,
            self.scanner.scan_file,
            self.config.concurrency,
            stop=stop,
            on_worker_start=self.power.lower_priority,
        ):
            aggregator.add(path, verdict)

        if stop is not None and stop.is_set():
            raise CycleAborted(f"stopped after {aggregator.examined} file(s)")

        aggregator.add_skipped(walker.skipped)
        report = aggregator.finish()
        self.state.last_report = report
        self.export(report)
        return report

    def export(self, report: ScanReport) -> Optional[Path]:
        """Write the report in every configured format. Failures are logged only."""
        if not self.config.export_formats:
            return None
        out_dir = self.config.reports_dir / report.started_at.strftime("%Y%m%d-%H%M%S")
        try:
            for fmt in self.config.export_formats:
                export.export_report(report, out_dir, fmt=fmt)
        except (OSError, ValueError) as e:
            logger.error("Failed to export report to %s: %s", out_dir, e)
            return None
        logger.info("Exported report to %s (%s)", out_dir, ", ".join(self.config.export_formats))
        return out_dir
