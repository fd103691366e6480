"""
View state: display rows, selection, focus, the visible log buffer's
scroll position, and the modal popup state machine.

Everything here is plain data mutated only by the dashboard loop.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Iterable, List, Optional, Tuple, Union

from .docker_engine import Port, Snapshot
from .process_supervisor import TaskRuntime
from .status_constants import get_container_badge, get_task_badge, get_task_status_label

ROW_TASK = "task"
ROW_CONTAINER = "container"

# Lines scrolled per mouse wheel notch
WHEEL_STEP = 3


# =============================================================================
# Popups
# =============================================================================

@dataclass(frozen=True)
class InspectPopup:
    title: str
    content: str


@dataclass(frozen=True)
class ConfirmResetPopup:
    id: str
    name: str


@dataclass(frozen=True)
class ConfirmComposeRestartPopup:
    infra_running: bool


Popup = Union[InspectPopup, ConfirmResetPopup, ConfirmComposeRestartPopup]

POPUP_ACCEPT = "accept"
POPUP_CLOSE = "close"

_POPUP_KEYS = {
    InspectPopup: (set(), {"escape", "enter", "q"}),
    ConfirmResetPopup: ({"y", "enter"}, {"n", "escape"}),
    ConfirmComposeRestartPopup: ({"r", "enter"}, {"k", "escape"}),
}


def popup_outcome(popup: Popup, key: str) -> Optional[str]:
    """What a key does to an open popup.

    Returns POPUP_ACCEPT, POPUP_CLOSE, or None when the popup ignores the key.
    """
    accept_keys, close_keys = _POPUP_KEYS[type(popup)]
    if key in accept_keys:
        return POPUP_ACCEPT
    if key in close_keys:
        return POPUP_CLOSE
    return None


def popup_title(popup: Popup) -> str:
    if isinstance(popup, InspectPopup):
        return popup.title
    if isinstance(popup, ConfirmResetPopup):
        return "⚠️  RESET CONTAINER"
    return "Docker compose"


def popup_body(popup: Popup) -> str:
    if isinstance(popup, InspectPopup):
        return popup.content
    if isinstance(popup, ConfirmResetPopup):
        return (
            f"RESET {popup.name}?\n"
            "This will STOP it, REMOVE it, and DELETE its volumes.\n\n"
            "[y/Enter]=Reset, [n/Esc]=Cancel"
        )
    if popup.infra_running:
        return "Detected running stack containers.\n\n[r/Enter]=Restart services, [k]=Keep, [Esc]=Cancel"
    return "Start services now?\n\n[r/Enter]=docker compose up -d, [Esc]=Cancel"


# =============================================================================
# Rows
# =============================================================================

@dataclass(frozen=True)
class DisplayRow:
    kind: str
    id: str
    name: str
    label: str
    status: str
    ports: Tuple[Port, ...] = ()

    @property
    def is_task(self) -> bool:
        return self.kind == ROW_TASK

    @property
    def is_container(self) -> bool:
        return self.kind == ROW_CONTAINER


def task_row(runtime: TaskRuntime) -> DisplayRow:
    label = "{badge} task: {name:<14}  [{status:<4}]  logs:{count:>4}".format(
        badge=get_task_badge(runtime.status),
        name=runtime.name,
        status=get_task_status_label(runtime.status),
        count=len(runtime.lines),
    )
    return DisplayRow(kind=ROW_TASK, id=runtime.name, name=runtime.name, label=label, status=runtime.status)


def container_row(summary, ports: List[Port]) -> DisplayRow:
    name = summary.name
    status_text = " ".join(summary.status.split())
    label = f"{get_container_badge(summary.state)} {name:<22} {status_text}"
    return DisplayRow(
        kind=ROW_CONTAINER,
        id=summary.id,
        name=name,
        label=label,
        status=summary.state.lower(),
        ports=tuple(ports),
    )


def build_rows(runtimes: Iterable[TaskRuntime], snapshot: Snapshot) -> List[DisplayRow]:
    """Task rows in configuration order, then containers in snapshot order."""
    rows = [task_row(rt) for rt in runtimes]
    rows.extend(container_row(summary, ports) for summary, ports in snapshot)
    return rows


def help_for_selected(row: Optional[DisplayRow], focus_on_list: bool) -> str:
    if row is None:
        return " q:Quit "
    common = "Ent:Log r:Rest s:Stop t:Start tab:Focus q:Quit"
    extra = "" if focus_on_list else " ↑/↓:Scroll "
    if row.is_container:
        return f"{common} p:Paus u:Unp k:Kill d:Rm i:Insp o:Web x:Reset c:Compose{extra}"
    return f"{common}{extra}"


# =============================================================================
# Log view
# =============================================================================

class LogView:
    """The single visible log buffer.

    `scroll` is the index of the first visible line. While stick_to_bottom
    is set the effective scroll tracks the tail; scrolling up releases it
    and scrolling back to the end re-engages it.
    """

    def __init__(self, max_lines: int):
        self.lines: Deque[str] = deque(maxlen=max_lines)
        self.scroll = 0
        self.stick_to_bottom = True
        self.last_height = 0

    def push(self, line: str) -> None:
        self.lines.append(line)

    def replace(self, lines: Iterable[str]) -> None:
        self.lines.clear()
        self.lines.extend(lines)
        self.scroll = 0
        self.stick_to_bottom = True

    @property
    def max_scroll(self) -> int:
        return max(0, len(self.lines) - self.last_height)

    @property
    def effective_scroll(self) -> int:
        if self.stick_to_bottom:
            return self.max_scroll
        return min(self.scroll, self.max_scroll)

    def _page(self) -> int:
        return max(1, self.last_height)

    def scroll_up(self, n: int = 1) -> None:
        self.scroll = max(0, self.effective_scroll - n)
        self.stick_to_bottom = False

    def scroll_down(self, n: int = 1) -> None:
        self.scroll = self.effective_scroll + n
        if self.scroll + self.last_height >= len(self.lines):
            self.stick_to_bottom = True

    def page_up(self) -> None:
        self.scroll_up(self._page())

    def page_down(self) -> None:
        self.scroll_down(self._page())

    def home(self) -> None:
        self.scroll = 0
        self.stick_to_bottom = False

    def end(self) -> None:
        self.stick_to_bottom = True


# =============================================================================
# Selection / focus / popup
# =============================================================================

@dataclass
class ViewState:
    rows: List[DisplayRow] = field(default_factory=list)
    selected: int = 0
    focus_on_list: bool = True
    popup: Optional[Popup] = None

    @property
    def selected_row(self) -> Optional[DisplayRow]:
        if not self.rows:
            return None
        return self.rows[self.selected]

    @property
    def popup_open(self) -> bool:
        return self.popup is not None

    def set_rows(self, rows: List[DisplayRow]) -> None:
        self.rows = rows
        if self.selected >= len(rows):
            self.selected = max(0, len(rows) - 1)

    def clamp(self, index: int) -> int:
        return max(0, min(index, len(self.rows) - 1))

    def move(self, delta: int) -> None:
        if self.rows:
            self.selected = self.clamp(self.selected + delta)

    def toggle_focus(self) -> None:
        self.focus_on_list = not self.focus_on_list
