"""Thin adapters over host power-source and scheduling-priority facilities."""
from __future__ import annotations

import logging
import sys
import threading
from typing import Protocol

import psutil

logger = logging.getLogger(__name__)

IDLE_NICE = 19


class PowerGate(Protocol):
    def is_on_battery(self) -> bool: ...

    def lower_priority(self) -> None: ...


class NullPowerGate:
    """Fallback for platforms and tests without host support."""

    def is_on_battery(self) -> bool:
        return False

    def lower_priority(self) -> None:
        pass


class HostPowerGate:
    """psutil-backed gate. Nothing is cached; every call asks the host."""

    def is_on_battery(self) -> bool:
        sensors_battery = getattr(psutil, "sensors_battery", None)
        if sensors_battery is None:
            return False
        try:
            battery = sensors_battery()
        except (psutil.Error, OSError) as e:
            logger.debug("Battery query failed: %s", e)
            return False
        if battery is None:
            return False
        return battery.power_plugged is False

    def lower_priority(self) -> None:
        """Best effort: idle CPU niceness and idle I/O class for the calling thread."""
        try:
            proc = self._target()
        except (psutil.Error, OSError) as e:
            logger.warning("Failed to lower priority: %s", e)
            return
        self._nice(proc)
        self._ionice(proc)

    def _target(self) -> psutil.Process:
        # linux schedules threads individually; address the calling thread by tid
        if sys.platform.startswith("linux"):
            return psutil.Process(threading.get_native_id())
        return psutil.Process()

    def _nice(self, proc: psutil.Process) -> None:
        if sys.platform == "win32":
            value = psutil.IDLE_PRIORITY_CLASS
        else:
            value = IDLE_NICE
        logger.debug("Setting idle CPU priority")
        try:
            proc.nice(value)
        except (psutil.Error, OSError, AttributeError, ValueError) as e:
            logger.warning("Failed to set process priority: %s", e)

    def _ionice(self, proc: psutil.Process) -> None:
        if not hasattr(proc, "ionice"):
            logger.debug("I/O priority not supported on %s", sys.platform)
            return
        logger.debug("Setting idle I/O priority")
        try:
            if sys.platform == "win32":
                proc.ionice(psutil.IOPRIO_VERYLOW)
            else:
                proc.ionice(psutil.IOPRIO_CLASS_IDLE)
        except (psutil.Error, OSError, AttributeError, ValueError) as e:
            logger.warning("Failed to set I/O priority: %s", e)


def default_gate() -> PowerGate:
    if sys.platform.startswith(("linux", "darwin", "win32", "freebsd")):
        return HostPowerGate()
    return NullPowerGate()
