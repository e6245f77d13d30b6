"""Control loop deciding when a scan cycle may start."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from yarawatch_core.config import Configuration
from yarawatch_core.models import ScanReport, ScheduleState
from yarawatch_app.controllers.scan import CycleAborted, ScanController
from yarawatch_app.services.power import NullPowerGate, PowerGate
from yarawatch_app.services.scanner import SignaturesUnavailable
from yarawatch_app.services.state_store import StateStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = timedelta(hours=24)
RETRY_DELAY = timedelta(hours=1)


class Phase(str, Enum):
    IDLE = "idle"
    AWAITING_WINDOW = "awaiting_window"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Decision:
    start: bool
    phase: Phase
    reason: str


@dataclass(frozen=True)
class SchedulerStatus:
    phase: Phase
    reason: str
    state: ScheduleState
    last_report: Optional[ScanReport]
    last_error: Optional[str]
    until_window: Optional[timedelta]
    until_window_close: Optional[timedelta] = None


def _due(last: datetime, config: Configuration, now: datetime) -> bool:
    if config.scan_interval_hours is not None:
        return now - last >= timedelta(hours=config.scan_interval_hours)
    if config.preferred_hours is not None:
        # one completed cycle per window occurrence
        return last < config.preferred_hours.occurrence_start(now)
    return now - last >= DEFAULT_INTERVAL


def decide(
    state: ScheduleState,
    config: Configuration,
    now: datetime,
    on_battery: bool = False,
    not_before: Optional[datetime] = None,
) -> Decision:
    """Pure transition test evaluated on every tick from Idle."""
    hours = config.preferred_hours
    if hours is not None and not hours.contains(now.time()):
        return Decision(False, Phase.AWAITING_WINDOW, f"outside preferred hours {hours}")
    if config.skip_on_battery and on_battery:
        return Decision(False, Phase.AWAITING_WINDOW, "running on battery")
    if not_before is not None and now < not_before:
        return Decision(False, Phase.IDLE, f"retry deferred until {not_before:%Y-%m-%d %H:%M}")
    if state.in_progress:
        return Decision(True, Phase.RUNNING, "previous cycle was interrupted")
    if state.last_completed is None:
        return Decision(True, Phase.RUNNING, "never scanned")
    if not _due(state.last_completed, config, now):
        return Decision(False, Phase.IDLE, "scanned recently")
    return Decision(True, Phase.RUNNING, "scan due")


def retry_after(config: Configuration, now: datetime) -> datetime:
    """Earliest automatic retry after an abandoned cycle: the next window occurrence."""
    hours = config.preferred_hours
    if hours is None:
        return now + RETRY_DELAY
    return hours.occurrence_start(now) + timedelta(days=1)


class Scheduler:
    """
    Owns ScheduleState. Ticks on its own thread, runs cycles through the
    ScanController and persists every transition through the StateStore.
    """

    def __init__(
        self,
        config: Configuration,
        controller: ScanController,
        store: StateStore,
        power: Optional[PowerGate] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config
        self.controller = controller
        self.store = store
        self.power = power or NullPowerGate()
        self.clock = clock

        self.state = store.load()
        if self.state.in_progress:
            logger.warning("Previous scan cycle did not complete; it will be repeated")
        self.phase = Phase.IDLE
        self.reason = "starting"
        self.not_before: Optional[datetime] = None
        self.last_report: Optional[ScanReport] = self.state.last_report
        self.last_error: Optional[str] = None

        self._lock = threading.Lock()
        self._wake = threading.Event()
        self._abort = threading.Event()
        self._shutdown = threading.Event()
        self._force = False
        self._thread: Optional[threading.Thread] = None

    # ---------------------------
    # Transitions
    # ---------------------------

    def tick(self, force: bool = False) -> Decision:
        now = self.clock()
        if force:
            decision = Decision(True, Phase.RUNNING, "manual trigger")
        else:
            on_battery = self.config.skip_on_battery and self.power.is_on_battery()
            decision = decide(self.state, self.config, now, on_battery, self.not_before)
        if decision.start:
            self.run_cycle(decision.reason)
        else:
            with self._lock:
                self.phase = decision.phase
                self.reason = decision.reason
        return decision

    def run_cycle(self, reason: str = "") -> Optional[ScanReport]:
        if not self._shutdown.is_set():
            self._abort.clear()
        with self._lock:
            self.phase = Phase.RUNNING
            self.reason = reason
        self._persist(self.state.started())
        logger.info("Starting scan cycle (%s)", reason)
        self.power.lower_priority()

        try:
            report = self.controller.run_cycle(stop=self._abort)
        except (SignaturesUnavailable, CycleAborted) as e:
            self._abandon(str(e))
            return None
        except Exception as e:
            logger.exception("Scan cycle failed")
            self._abandon(f"{type(e).__name__}: {e}")
            return None

        finished = self.clock()
        with self._lock:
            self.phase = Phase.COMPLETED
            self.last_report = report
            self.last_error = None
            self.not_before = None
        self._persist(self.state.completed(finished, report))
        logger.info(
            "Scan cycle completed in %s: %d threat(s) found",
            report.duration, report.infected_count,
        )
        with self._lock:
            self.phase = Phase.IDLE
            self.reason = "scan completed"
        return report

    def _abandon(self, cause: str) -> None:
        now = self.clock()
        logger.error("Scan cycle abandoned: %s", cause)
        with self._lock:
            self.last_error = cause
            self.not_before = retry_after(self.config, now)
            self.phase = Phase.IDLE
            self.reason = "cycle abandoned"
        self._persist(self.state.abandoned())

    def _persist(self, state: ScheduleState) -> None:
        # in-memory state stays authoritative when the write fails
        self.state = state
        self.store.store(state)

    # ---------------------------
    # Loop
    # ---------------------------

    def serve_forever(self) -> None:
        logger.info("Scheduler started, checking every %ss", self.config.tick_seconds)
        while not self._shutdown.is_set():
            with self._lock:
                force, self._force = self._force, False
            try:
                self.tick(force=force)
            except Exception:
                logger.exception("Scheduler tick failed")
            if self._shutdown.is_set():
                break
            self._wake.wait(self.config.tick_seconds)
            self._wake.clear()
        logger.info("Scheduler stopped")

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self.serve_forever, name="yarawatch-scheduler", daemon=True)
        self._thread.start()
        return self._thread

    # ---------------------------
    # Front-end surface
    # ---------------------------

    def run_now(self) -> bool:
        with self._lock:
            if self.phase is Phase.RUNNING:
                return False
            self._force = True
        self._wake.set()
        return True

    def stop(self) -> bool:
        """Abort the running cycle; in-flight file scans are allowed to finish."""
        with self._lock:
            running = self.phase is Phase.RUNNING
        if running:
            logger.info("Stop requested, abandoning current cycle")
            self._abort.set()
        return running

    def shutdown(self, timeout: Optional[float] = None) -> None:
        self._shutdown.set()
        self._abort.set()
        self._wake.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def status(self) -> SchedulerStatus:
        now = self.clock()
        hours = self.config.preferred_hours
        until_open = until_close = None
        if hours is not None:
            until_open = hours.until_next_start(now)
            if not until_open and hours.start != hours.end:
                until_close = hours.until_next_end(now)
        with self._lock:
            return SchedulerStatus(
                phase=self.phase,
                reason=self.reason,
                state=self.state,
                last_report=self.last_report,
                last_error=self.last_error,
                until_window=until_open,
                until_window_close=until_close,
            )
