"""
The dashboard loop.

Dashboard owns the supervisor, the log multiplexer, the refresh
coordinator and the view state, and is the only code that mutates them.
Other threads talk to it through the inbox: reader threads and the
refresh thread post results, the front end posts input events, and the
loop picks them up one at a time between drains.

Each iteration: render, drain background output, then wait (bounded) for
the next refresh tick, refresh result or input event.
"""

import queue
import time
import webbrowser
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from .config import DashboardConfig
from .docker_engine import EngineError, format_container_info, pick_best_public_port
from .log_multiplexer import LogMultiplexer
from .logging_config import get_logger
from .process_supervisor import ProcessSupervisor
from .protocols import ContainerEngineInterface, TaskSpawnerInterface
from .refresh_coordinator import RefreshCoordinator, RefreshResult
from .targets import ContainerTarget, TaskTarget
from .view_state import (
    POPUP_ACCEPT,
    ConfirmComposeRestartPopup,
    ConfirmResetPopup,
    DisplayRow,
    InspectPopup,
    Popup,
    ViewState,
    build_rows,
    help_for_selected,
    popup_outcome,
)

logger = get_logger("dashboard")

# Upper bound on how long the loop waits for input before draining again
POLL_INTERVAL = 0.05

UNAVAILABLE_HINT = "Docker unavailable. Colima: colima start ; docker context use colima ; docker ps"


# =============================================================================
# Inbox events
# =============================================================================

@dataclass(frozen=True)
class KeyEvent:
    key: str


@dataclass(frozen=True)
class ScrollEvent:
    """Mouse wheel over the log pane; negative scrolls up."""

    lines: int


@dataclass(frozen=True)
class ResizeEvent:
    log_height: int


@dataclass(frozen=True)
class RowClickEvent:
    index: int


@dataclass(frozen=True)
class FocusEvent:
    on_list: bool


@dataclass(frozen=True)
class DashboardSnapshot:
    """Read-only view of the dashboard for one render."""

    rows: Tuple[DisplayRow, ...]
    selected: int
    focus_on_list: bool
    log_lines: Tuple[str, ...]
    log_scroll: int
    stick_to_bottom: bool
    target_label: str
    popup: Optional[Popup]
    help_text: str
    engine_available: bool
    updated_at: datetime


# Container verbs bound to single keys: key -> (docker verb, progress word)
CONTAINER_KEYS = {
    "p": ("pause", "Pausing"),
    "u": ("unpause", "Unpausing"),
    "k": ("kill", "Killing"),
}


class Dashboard:
    """Single-threaded owner of all dashboard state."""

    def __init__(
        self,
        config: DashboardConfig,
        engine: ContainerEngineInterface,
        spawner: Optional[TaskSpawnerInterface] = None,
        clock: Callable[[], float] = time.monotonic,
        open_url: Callable[[str], Any] = webbrowser.open,
    ):
        self.config = config
        self.engine = engine
        self.inbox: "queue.Queue" = queue.Queue()
        self.supervisor = ProcessSupervisor(config, spawner)
        self.logs = LogMultiplexer(
            self.supervisor, engine, config.max_log_lines, config.log_tail, clock=clock
        )
        self.refresh = RefreshCoordinator(engine, self.inbox)
        self.view = ViewState()
        self.quit_requested = False
        self.updated_at = datetime.now()
        self._clock = clock
        self._open_url = open_url
        self._next_tick: Optional[float] = None
        self._refresh_failing = False

        self._actions: Dict[str, Callable[[], None]] = {
            "r": self.restart_selected,
            "t": self.start_selected,
            "s": self.stop_selected,
            "d": self.remove_selected,
            "i": self.inspect_selected,
            "x": self.confirm_reset_selected,
            "c": self.confirm_compose,
            "o": self.open_selected_in_browser,
        }

    # -------------------------------------------------------------------------
    # Thread-safe entry points (front end -> loop)
    # -------------------------------------------------------------------------

    def submit_key(self, key: str) -> None:
        self.inbox.put(KeyEvent(key))

    def submit_scroll(self, lines: int) -> None:
        self.inbox.put(ScrollEvent(lines))

    def submit_resize(self, log_height: int) -> None:
        self.inbox.put(ResizeEvent(log_height))

    def submit_click(self, index: int) -> None:
        self.inbox.put(RowClickEvent(index))

    def submit_focus(self, on_list: bool) -> None:
        self.inbox.put(FocusEvent(on_list))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def engine_available(self) -> bool:
        return self.engine.available

    def start(self) -> None:
        """Initial population: first snapshot, first selection, startup lines."""
        meta = self.engine.meta
        info = [
            f"Profile: {self.config.profile}",
            f"Docker backend: {meta.backend} | Context: {meta.context_name}",
            f"Post-up tasks: {', '.join(self.config.task_names) or '(none)'}",
        ]

        if self.engine_available:
            error = self.refresh.refresh_now()
            self.rebuild_rows()
            self.select(0)
            for line in info:
                self.logs.push_current(line)
            if error is not None:
                self.logs.push_current(f"Refresh failed: {error}")
            if self.config.auto_compose_up:
                self.view.popup = ConfirmComposeRestartPopup(infra_running=self.infra_running())
        else:
            for line in info:
                self.logs.push_current(line)
            self.logs.push_current(UNAVAILABLE_HINT)
            self.rebuild_rows()

        self._next_tick = self._clock() + self.config.refresh_interval
        logger.info("Dashboard started: %d tasks, engine available=%s", len(self.config.tasks), self.engine_available)

    def run(
        self,
        render: Callable[[DashboardSnapshot], None],
        should_stop: Callable[[], bool] = lambda: False,
    ) -> None:
        """Run until quit. Always kills tasks and the follower on the way out."""
        if self._next_tick is None:
            self.start()
        try:
            while not self.quit_requested and not should_stop():
                render(self.snapshot())
                self.step()
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        self.logs.shutdown()
        self.supervisor.stop_all()
        logger.info("Dashboard stopped")

    def step(self, timeout: float = POLL_INTERVAL) -> None:
        """One loop iteration after render: drain, then handle one event."""
        self.logs.drain()
        self.rebuild_rows()

        now = self._clock()
        if self._next_tick is not None and now >= self._next_tick:
            self._next_tick = now + self.config.refresh_interval
            self.refresh.on_tick(self.engine_available, self.view.popup_open)
            return

        wait = timeout
        if self._next_tick is not None:
            wait = min(wait, self._next_tick - now)
        try:
            item = self.inbox.get(timeout=max(0.0, wait))
        except queue.Empty:
            return
        self.dispatch(item)

    def dispatch(self, item: Any) -> None:
        """Handle one inbox item. Handler errors are logged, never raised."""
        try:
            if isinstance(item, RefreshResult):
                self._apply_refresh(item)
            elif isinstance(item, KeyEvent):
                self.handle_key(item.key)
            elif isinstance(item, ScrollEvent):
                self._handle_scroll(item.lines)
            elif isinstance(item, ResizeEvent):
                self.logs.view.last_height = max(0, item.log_height)
            elif isinstance(item, RowClickEvent):
                self._handle_click(item.index)
            elif isinstance(item, FocusEvent):
                if not self.view.popup_open:
                    self.view.focus_on_list = item.on_list
            else:
                logger.warning("Unknown inbox item: %r", item)
        except Exception:
            logger.exception("Error handling %r", item)

    def snapshot(self) -> DashboardSnapshot:
        log_view = self.logs.view
        return DashboardSnapshot(
            rows=tuple(self.view.rows),
            selected=self.view.selected,
            focus_on_list=self.view.focus_on_list,
            log_lines=tuple(log_view.lines),
            log_scroll=log_view.effective_scroll,
            stick_to_bottom=log_view.stick_to_bottom,
            target_label=self.logs.target_label,
            popup=self.view.popup,
            help_text=help_for_selected(self.view.selected_row, self.view.focus_on_list),
            engine_available=self.engine_available,
            updated_at=self.updated_at,
        )

    # -------------------------------------------------------------------------
    # Rows and selection
    # -------------------------------------------------------------------------

    def rebuild_rows(self) -> None:
        self.view.set_rows(build_rows(self.supervisor.runtimes(), self.refresh.last_snapshot))

    def select(self, index: int) -> None:
        """Select a row and make it the log target."""
        if not self.view.rows:
            return
        self.view.selected = self.view.clamp(index)
        row = self.view.rows[self.view.selected]
        if row.is_task:
            self.logs.switch_to(TaskTarget(row.id))
        else:
            self.logs.switch_to(ContainerTarget(row.id, row.name))

    def reselect(self) -> None:
        self.select(self.view.selected)

    def follow_selection(self) -> None:
        """Switch targets only if the selected row now points somewhere else."""
        row = self.view.selected_row
        if row is None:
            return
        target = self.logs.target
        if row.is_task and target == TaskTarget(row.id):
            return
        if row.is_container and isinstance(target, ContainerTarget) and target.id == row.id:
            return
        self.select(self.view.selected)

    def infra_running(self) -> bool:
        names = {summary.name for summary, _ in self.refresh.last_snapshot}
        return self.config.db_container in names or self.config.storage_container in names

    def _apply_refresh(self, result: RefreshResult) -> None:
        error = self.refresh.apply(result)
        if error is not None:
            if not self._refresh_failing:
                self.logs.push_current(f"Refresh failed: {error}")
            self._refresh_failing = True
            return
        self._refresh_failing = False
        self.updated_at = datetime.now()
        self.rebuild_rows()

    def _refresh_and_rebuild(self) -> None:
        error = self.refresh.refresh_now()
        if error is not None:
            self.logs.push_current(f"Refresh failed: {error}")
        else:
            self.updated_at = datetime.now()
        self.rebuild_rows()

    # -------------------------------------------------------------------------
    # Input
    # -------------------------------------------------------------------------

    def handle_key(self, key: str) -> None:
        if key == "ctrl+c":
            self.quit_requested = True
            return

        popup = self.view.popup
        # q closes an inspect popup; everywhere else it quits
        if key == "q" and not isinstance(popup, InspectPopup):
            self.quit_requested = True
            return
        if popup is not None:
            outcome = popup_outcome(popup, key)
            if outcome is None:
                return
            self.view.popup = None
            if outcome == POPUP_ACCEPT:
                self._accept_popup(popup)
            return

        if key == "tab":
            self.view.toggle_focus()
            return

        if self.view.focus_on_list:
            if key == "up":
                self.view.move(-1)
            elif key == "down":
                self.view.move(1)
            elif key == "enter":
                self.reselect()
        else:
            log_view = self.logs.view
            scroll_keys = {
                "up": log_view.scroll_up,
                "down": log_view.scroll_down,
                "pageup": log_view.page_up,
                "pagedown": log_view.page_down,
                "home": log_view.home,
                "end": log_view.end,
            }
            if key in scroll_keys:
                scroll_keys[key]()

        if key in CONTAINER_KEYS:
            verb, progress = CONTAINER_KEYS[key]
            self._simple_container_action(verb, progress)
        elif key in self._actions:
            self._actions[key]()

    def _handle_scroll(self, lines: int) -> None:
        if self.view.popup_open:
            return
        if lines > 0:
            self.logs.view.scroll_down(lines)
        elif lines < 0:
            self.logs.view.scroll_up(-lines)

    def _handle_click(self, index: int) -> None:
        if self.view.popup_open:
            return
        self.view.focus_on_list = True
        if 0 <= index < len(self.view.rows):
            self.select(index)

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def _selected_container(self) -> Optional[DisplayRow]:
        row = self.view.selected_row
        if row is None or not row.is_container or not self.engine_available:
            return None
        return row

    def _container_action(self, verb: str, row: DisplayRow, progress: str) -> bool:
        self.logs.push_current(f"{progress} container {row.name}...")
        try:
            self.engine.container_action(verb, row.id)
        except EngineError as e:
            logger.warning("%s %s failed: %s", verb, row.name, e)
            self.logs.push_current(f"{verb} failed: {e}")
            return False
        self._refresh_and_rebuild()
        return True

    def _simple_container_action(self, verb: str, progress: str) -> None:
        row = self._selected_container()
        if row is not None:
            self._container_action(verb, row, progress)

    def _run_task(self, name: str) -> None:
        self.supervisor.restart(name)
        self.rebuild_rows()
        self.reselect()

    def restart_selected(self) -> None:
        row = self.view.selected_row
        if row is None:
            return
        if row.is_task:
            self._run_task(row.id)
        elif self.engine_available and self._container_action("restart", row, "Restarting"):
            self.reselect()

    def start_selected(self) -> None:
        row = self.view.selected_row
        if row is None:
            return
        if row.is_task:
            self._run_task(row.id)
        elif self.engine_available and self._container_action("start", row, "Starting"):
            self.reselect()

    def stop_selected(self) -> None:
        row = self.view.selected_row
        if row is None:
            return
        if row.is_task:
            self.supervisor.stop(row.id)
            self.rebuild_rows()
            self.reselect()
        elif self.engine_available:
            self._container_action("stop", row, "Stopping")

    def remove_selected(self) -> None:
        row = self._selected_container()
        if row is not None:
            self.logs.push_current(f"Removing container {row.name} (force)...")
            try:
                self.engine.remove_force(row.id)
            except EngineError as e:
                self.logs.push_current(f"rm failed: {e}")
                return
            self._refresh_and_rebuild()

    def inspect_selected(self) -> None:
        row = self._selected_container()
        if row is None:
            return
        try:
            data = self.engine.inspect(row.id)
        except EngineError as e:
            self.logs.push_current(f"inspect failed: {e}")
            return
        self.view.popup = InspectPopup(title=f"Inspect: {row.name}", content=format_container_info(data))

    def confirm_reset_selected(self) -> None:
        row = self._selected_container()
        if row is not None:
            self.view.popup = ConfirmResetPopup(id=row.id, name=row.name)

    def confirm_compose(self) -> None:
        if self.engine_available:
            self.view.popup = ConfirmComposeRestartPopup(infra_running=self.infra_running())

    def open_selected_in_browser(self) -> None:
        row = self.view.selected_row
        if row is None or not row.is_container:
            return
        port = pick_best_public_port(list(row.ports))
        if port is None:
            self.logs.push_current(f"No public tcp port for {row.name}")
            return
        host = self.engine.meta.remote_host or "localhost"
        url = f"http://{host}:{port}"
        logger.info("Opening %s", url)
        self._open_url(url)

    def _accept_popup(self, popup: Popup) -> None:
        if isinstance(popup, ConfirmResetPopup):
            self.reset_container(popup.id, popup.name)
        elif isinstance(popup, ConfirmComposeRestartPopup):
            self.compose_up_or_restart(popup.infra_running)

    def reset_container(self, container_id: str, name: str) -> None:
        self.logs.push_current(f"🔥 RESETTING {name} (Stop+Rm+VolRm)...")
        try:
            messages = self.engine.reset_container(container_id)
        except EngineError as e:
            logger.warning("Reset of %s failed: %s", name, e)
            self.logs.push_current(f"reset failed: {e}")
        else:
            for message in messages:
                self.logs.push_current(message)
        self._refresh_and_rebuild()
        self.follow_selection()

    def compose_up_or_restart(self, restart: bool) -> None:
        profile = self.config.compose_profile
        push = self.logs.push_current
        if restart:
            push(f"Restarting services (profile: {profile})...")
            code = self.engine.compose(profile, ["restart"])
            if code == 0:
                push("Compose restart OK")
            else:
                push(f"Restart failed (exit {code}) → fallback: up -d")
                code = self.engine.compose(profile, ["up", "-d"])
                push("Compose up OK" if code == 0 else f"Compose up failed (exit {code})")
        else:
            push(f"Starting services (profile: {profile})...")
            code = self.engine.compose(profile, ["up", "-d"])
            push("Compose up OK" if code == 0 else f"Compose up FAILED (exit {code})")

        self._refresh_and_rebuild()
        self.follow_selection()
