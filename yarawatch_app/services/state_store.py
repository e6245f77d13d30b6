import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

from yarawatch_core.models import ScanReport, ScheduleState

logger = logging.getLogger(__name__)


class StateStore:
    """
    Durable ScheduleState record, including the summary of the last completed
    cycle so status survives a restart. Unreadable state means "never run".
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> ScheduleState:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return ScheduleState()
        except (OSError, ValueError) as e:
            logger.warning("Failed to open existing state %s, starting fresh: %s", self.path, e)
            return ScheduleState()
        try:
            return _from_dict(raw)
        except (TypeError, ValueError, KeyError) as e:
            logger.warning("Corrupt state in %s, starting fresh: %s", self.path, e)
            return ScheduleState()

    def store(self, state: ScheduleState) -> bool:
        data = json.dumps(_to_dict(state), indent=2)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".state.", suffix=".tmp", dir=self.path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            logger.error("Failed to write state %s: %s", self.path, e)
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
            return False
        logger.debug("Wrote state to %s", self.path)
        return True


def _to_dict(state: ScheduleState) -> dict:
    return {
        "last_completed": state.last_completed.isoformat() if state.last_completed else None,
        "in_progress": state.in_progress,
        "last_report": state.last_report.to_dict() if state.last_report else None,
    }


def _from_dict(raw) -> ScheduleState:
    if not isinstance(raw, dict):
        raise TypeError(f"expected an object, got {type(raw).__name__}")
    last = raw.get("last_completed")
    in_progress = raw.get("in_progress", False)
    if not isinstance(in_progress, bool):
        raise TypeError("in_progress must be a boolean")
    if last is not None and not isinstance(last, str):
        raise TypeError("last_completed must be a timestamp string")
    report = raw.get("last_report")
    return ScheduleState(
        last_completed=datetime.fromisoformat(last) if last else None,
        in_progress=in_progress,
        last_report=ScanReport.from_dict(report) if report is not None else None,
    )
