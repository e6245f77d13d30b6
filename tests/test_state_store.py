import json
from datetime import datetime
from pathlib import Path

from yarawatch_app.services.state_store import StateStore
from yarawatch_core.models import ErrorEntry, InfectedEntry, ScanReport, ScheduleState


def test_missing_file_means_never_run(tmp_path):
    assert StateStore(tmp_path / "state.json").load() == ScheduleState()


def test_round_trip(tmp_path):
    store = StateStore(tmp_path / "nested" / "state.json")
    state = ScheduleState(last_completed=datetime(2024, 3, 14, 21, 5, 30), in_progress=True)
    assert store.store(state) is True
    assert store.load() == state


def test_file_format(tmp_path):
    path = tmp_path / "state.json"
    StateStore(path).store(ScheduleState(last_completed=datetime(2024, 1, 2, 3, 4, 5)))
    assert json.loads(path.read_text()) == {
        "last_completed": "2024-01-02T03:04:05",
        "in_progress": False,
        "last_report": None,
    }


def test_corrupt_file_starts_fresh(tmp_path, caplog):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")
    assert StateStore(path).load() == ScheduleState()
    assert "starting fresh" in caplog.text


def test_wrong_types_start_fresh(tmp_path):
    path = tmp_path / "state.json"
    for payload in (
        [1, 2],
        {"last_completed": 12, "in_progress": False},
        {"last_completed": "yesterday", "in_progress": False},
        {"last_completed": None, "in_progress": "yes"},
    ):
        path.write_text(json.dumps(payload), encoding="utf-8")
        assert StateStore(path).load() == ScheduleState()


def test_failed_write_reports_false(tmp_path, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    store = StateStore(blocker / "state.json")
    assert store.store(ScheduleState(in_progress=True)) is False
    assert "Failed to write state" in caplog.text


def test_replace_leaves_no_temporary_files(tmp_path):
    store = StateStore(tmp_path / "state.json")
    for i in range(3):
        store.store(ScheduleState(in_progress=bool(i % 2)))
    assert [p.name for p in tmp_path.iterdir()] == ["state.json"]
    assert store.load() == ScheduleState(in_progress=False)


def _report():
    return ScanReport(
        started_at=datetime(2024, 3, 14, 21, 0, 0),
        finished_at=datetime(2024, 3, 14, 21, 7, 0),
        examined=3,
        clean=1,
        skipped=4,
        infected=(InfectedEntry(Path("/home/u/evil.exe"), "EICAR"),),
        errors=(ErrorEntry(Path("/home/u/locked"), "permission denied"),),
        rules_digest="abc123",
        signature_count=12,
        signatures_updated_at=datetime(2024, 3, 1, 8, 0, 0),
    )


def test_last_report_survives_reload(tmp_path):
    store = StateStore(tmp_path / "state.json")
    state = ScheduleState(last_completed=datetime(2024, 3, 14, 21, 7), last_report=_report())
    assert store.store(state) is True
    restored = StateStore(tmp_path / "state.json").load()
    assert restored == state
    assert restored.last_report.infected[0].signature == "EICAR"


def test_state_without_report_key_still_loads(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps({"last_completed": "2024-01-02T03:04:05", "in_progress": False}))
    assert StateStore(path).load() == ScheduleState(last_completed=datetime(2024, 1, 2, 3, 4, 5))


def test_malformed_report_starts_fresh(tmp_path, caplog):
    path = tmp_path / "state.json"
    path.write_text(json.dumps({
        "last_completed": None,
        "in_progress": False,
        "last_report": {"started_at": "2024-01-02T03:04:05"},
    }))
    assert StateStore(path).load() == ScheduleState()
    assert "Corrupt state" in caplog.text
