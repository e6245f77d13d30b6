from datetime import datetime, timedelta
from typing import Optional

from rich.markup import escape
from textual.widgets import Static


def format_datetime(dt: Optional[datetime], now: Optional[datetime] = None) -> str:
    if dt is None:
        return "-"
    now = now or datetime.now()
    return f"{dt:%Y-%m-%d %H:%M:%S} ({format_duration(now - dt)} ago)"


def format_duration(delta: timedelta) -> str:
    seconds = max(int(delta.total_seconds()), 0)
    hours, rest = divmod(seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours}h {minutes}m {seconds}s"


def status_lines(status, rules=None, now: Optional[datetime] = None) -> list[str]:
    lines = [f"[b]Scheduler:[/b] {status.phase.value} ({status.reason})"]
    lines.append(f"Last scan: {format_datetime(status.state.last_completed, now)}")
    if status.state.in_progress:
        lines.append("[yellow]A scan cycle is in progress or was interrupted.[/yellow]")
    if status.until_window is not None:
        if status.until_window:
            lines.append(f"Preferred hours open in {format_duration(status.until_window)}")
        elif status.until_window_close is not None:
            lines.append(f"Inside preferred hours, closing in {format_duration(status.until_window_close)}")
        else:
            lines.append("Inside preferred hours")
    if rules:
        lines.append(f"[b]Rules:[/b] {rules.count}  |  [b]Digest:[/b] {rules.digest}"
                     f"  |  [b]Updated:[/b] {format_datetime(rules.updated_at, now)}")
    elif status.last_report is not None and status.last_report.rules_digest:
        report = status.last_report
        lines.append(f"[b]Rules (last scan):[/b] {report.signature_count}  |  [b]Digest:[/b] {report.rules_digest}"
                     f"  |  [b]Updated:[/b] {format_datetime(report.signatures_updated_at, now)}")
    else:
        lines.append("Rules not loaded.")
    if status.last_error:
        lines.append(f"[red]Last cycle abandoned:[/red] {escape(status.last_error)}")
    return lines


class StatusView(Static):
    def update_status(self, status, rules=None):
        if status is None:
            self.update("Scheduler not running.")
            return
        self.update("\n".join(status_lines(status, rules)))
