import logging
import sys

from textual.app import App, ComposeResult
from textual.widgets import Header, Footer, Button
from textual.containers import Horizontal, Vertical

from yarawatch_core.config import ConfigError, Configuration, load_settings
from yarawatch_core.logger import PACKAGE_LOGGERS, setup_logging
from yarawatch_app.controllers.scan import ScanController
from yarawatch_app.controllers.scheduler import Scheduler
from yarawatch_app.services.power import default_gate
from yarawatch_app.services.state_store import StateStore
from yarawatch_app.views.log import LogView, LogViewHandler
from yarawatch_app.views.report import ReportView
from yarawatch_app.views.status import StatusView

logger = logging.getLogger("yarawatch_app.tui")

SHUTDOWN_TIMEOUT_S = 10


def build_scheduler(config: Configuration) -> Scheduler:
    power = default_gate()
    controller = ScanController(config, power=power)
    store = StateStore(config.state_path)
    return Scheduler(config, controller, store, power=power)


# ─────────────────────────────────────────
# App
# ─────────────────────────────────────────
class YaraWatchTUI(App):
    CSS = """
    Screen { layout: vertical; }
    #toolbar { height: 3; }
    #status { height: auto; padding: 0 1; }
    #report { height: 1fr; }
    #log { height: 8; border-top: solid $surface; }
    """
    BINDINGS = [
        ("r", "run_now", "Run now"),
        ("s", "stop", "Stop"),
        ("q", "quit", "Quit"),
    ]

    def __init__(self, config: Configuration):
        super().__init__()
        self.config = config
        self.scheduler = build_scheduler(config)
        self._log_handler = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Horizontal(id="toolbar"):
            yield Button("Run now", id="btn_run_now")
            yield Button("Stop", id="btn_stop")
        with Vertical():
            self.status_view = StatusView(id="status")
            yield self.status_view
            self.report_view = ReportView(id="report")
            yield self.report_view
            self.log_panel = LogView(id="log")
            yield self.log_panel
        yield Footer()

    def on_mount(self):
        self._log_handler = LogViewHandler(self, self.log_panel)
        setup_logging(
            self.config.log_level,
            self.config.log_file,
            extra_handlers=[self._log_handler],
            console=False,
        )
        self.scheduler.start()
        self.refresh_status()
        self.set_interval(1.0, self.refresh_status)

    def refresh_status(self):
        status = self.scheduler.status()
        self.status_view.update_status(status, self.scheduler.controller.state.rules)
        self.report_view.update_report(status.last_report)

    # ─────────────────────────────────────
    # Actions
    # ─────────────────────────────────────
    def on_button_pressed(self, event: Button.Pressed):
        if event.button.id == "btn_run_now":
            self.action_run_now()
        elif event.button.id == "btn_stop":
            self.action_stop()

    def action_run_now(self):
        if self.scheduler.run_now():
            self.log_panel.log("Scan requested.")
        else:
            self.log_panel.log("[yellow]A scan is already running.[/yellow]")

    def action_stop(self):
        if not self.scheduler.stop():
            self.log_panel.log("[yellow]No scan is running.[/yellow]")

    async def action_quit(self):
        # detach first: the scheduler thread must not block on this loop while we join it
        for name in PACKAGE_LOGGERS:
            logging.getLogger(name).removeHandler(self._log_handler)
        self.scheduler.shutdown(timeout=SHUTDOWN_TIMEOUT_S)
        self.exit()


def main() -> int:
    try:
        config = load_settings()
    except ConfigError as e:
        print(f"yarawatch: {e}", file=sys.stderr)
        return 2
    YaraWatchTUI(config).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
