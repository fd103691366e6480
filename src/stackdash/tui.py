"""
Textual TUI for Stackdash.

The dashboard loop runs on a thread worker and owns all state. The App
only draws the DashboardSnapshot values it is handed via call_from_thread
and forwards keys, clicks, wheel and resize events into the loop's inbox.
"""

import sys
from pathlib import Path
from typing import Optional

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.widgets import Header
from textual.worker import get_current_worker

from . import __version__
from .config import DashboardConfig
from .implementations import RealDockerEngine
from .logging_config import get_logger, setup_tui_logging
from .reconciler import Dashboard, DashboardSnapshot
from .tui_widgets import HelpBar, LogPane, PopupOverlay, TargetList

logger = get_logger("tui")

# Every key the dashboard understands; all of them go straight to the loop
FORWARDED_KEYS = (
    "q", "ctrl+c", "tab", "escape", "enter",
    "up", "down", "pageup", "pagedown", "home", "end",
    "r", "s", "t", "p", "u", "k", "d", "i", "x", "c", "o", "y", "n",
)


class StackDashTUI(App):
    """Stackdash dashboard TUI"""

    AUTO_FOCUS = None
    ENABLE_COMMAND_PALETTE = False

    # Load CSS from external file
    CSS_PATH = "tui.tcss"

    BINDINGS = [
        Binding(key, f"forward({key!r})", show=False, priority=True)
        for key in FORWARDED_KEYS
    ]

    def __init__(self, dashboard: Dashboard):
        super().__init__()
        self.dashboard = dashboard
        self._last_snapshot: Optional[DashboardSnapshot] = None

    def compose(self) -> ComposeResult:
        """Create child widgets"""
        yield Header()
        with Horizontal(id="body"):
            yield TargetList(id="targets")
            yield LogPane(id="logs")
        yield HelpBar(id="help-bar")
        yield PopupOverlay(id="popup")

    def on_mount(self) -> None:
        """Called when app starts"""
        self.title = f"Stackdash v{__version__}"
        self.sub_title = f"profile: {self.dashboard.config.profile}"
        self._run_dashboard()

    @work(thread=True, exclusive=True, group="dashboard")
    def _run_dashboard(self) -> None:
        """Run the dashboard loop off the main thread until it quits."""
        worker = get_current_worker()
        self.dashboard.run(self._post_snapshot, should_stop=lambda: worker.is_cancelled)
        if not worker.is_cancelled:
            self.call_from_thread(self.exit)

    def _post_snapshot(self, snapshot: DashboardSnapshot) -> None:
        """Render callback, called on the worker thread."""
        if snapshot == self._last_snapshot:
            return
        self._last_snapshot = snapshot
        try:
            self.call_from_thread(self.apply_snapshot, snapshot)
        except RuntimeError:
            # App is shutting down
            logger.debug("Dropped snapshot during shutdown")

    def apply_snapshot(self, snapshot: DashboardSnapshot) -> None:
        """Draw one snapshot (main thread)."""
        self.query_one("#targets", TargetList).set_state(
            snapshot.rows,
            snapshot.selected,
            snapshot.focus_on_list,
            snapshot.engine_available,
            snapshot.updated_at,
        )
        self.query_one("#logs", LogPane).set_state(
            snapshot.log_lines,
            snapshot.log_scroll,
            snapshot.target_label,
            focused=not snapshot.focus_on_list,
        )
        self.query_one("#help-bar", HelpBar).set_text(snapshot.help_text)
        self.query_one("#popup", PopupOverlay).set_popup(snapshot.popup)

    def action_forward(self, key: str) -> None:
        self.dashboard.submit_key(key)

    def on_target_list_row_clicked(self, message: TargetList.RowClicked) -> None:
        self.dashboard.submit_click(message.index)

    def on_log_pane_scrolled(self, message: LogPane.Scrolled) -> None:
        self.dashboard.submit_scroll(message.lines)

    def on_log_pane_resized(self, message: LogPane.Resized) -> None:
        self.dashboard.submit_resize(message.height)

    def on_log_pane_clicked(self, message: LogPane.Clicked) -> None:
        self.dashboard.submit_focus(False)


def run_tui(config: DashboardConfig, log_file: Optional[Path] = None) -> None:
    """Run the dashboard TUI"""
    # Ensure we're using a proper terminal
    if not sys.stdout.isatty():
        print("Error: Must run in a TTY terminal", file=sys.stderr)
        sys.exit(1)

    setup_tui_logging(log_file)

    engine = RealDockerEngine(config.cwd, docker_bin=config.docker_bin, env=config.env)
    engine.detect()

    app = StackDashTUI(Dashboard(config, engine))
    app.run()
