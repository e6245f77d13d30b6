# yarawatch_app/views/log.py
import logging
import threading

from textual.widgets import Static
from rich.markup import escape

MAX_LINES = 200


class LogView(Static):
    """Tail of recent log records."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._lines: list[str] = []

    def log(self, text: str) -> None:
        """Append a line, keeping the last MAX_LINES."""
        self._lines.append(text)
        del self._lines[:-MAX_LINES]
        self.update("\n".join(self._lines))


class LogViewHandler(logging.Handler):
    """Forwards records from any thread onto the app's event loop."""

    _STYLES = {
        logging.WARNING: "yellow",
        logging.ERROR: "red",
        logging.CRITICAL: "bold red",
    }

    def __init__(self, app, view: LogView, level: int = logging.INFO):
        super().__init__(level)
        self.app = app
        self.view = view
        # created on mount, i.e. on the app thread
        self._app_thread = threading.get_ident()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            text = escape(self.format(record))
            style = self._STYLES.get(record.levelno)
            if style:
                text = f"[{style}]{text}[/{style}]"
            if threading.get_ident() == self._app_thread:
                self.view.log(text)
            else:
                self.app.call_from_thread(self.view.log, text)
        except Exception:
            self.handleError(record)
