"""
Log pane widget for TUI.

Draws the slice of the visible log buffer chosen by the dashboard. The
pane does no scrolling of its own: wheel events and size changes are
reported to the dashboard, which owns the scroll position.
"""

from typing import Tuple

from textual import events
from textual.message import Message
from textual.widgets import Static
from rich.text import Text

from ..tui_render import render_log_lines, render_log_title
from ..view_state import WHEEL_STEP


class LogPane(Static):
    """Right-hand pane showing the active target's log lines"""

    class Scrolled(Message):
        """Mouse wheel over the pane; negative lines scroll up."""
        def __init__(self, lines: int):
            super().__init__()
            self.lines = lines

    class Resized(Message):
        """Number of log lines that fit in the pane changed."""
        def __init__(self, height: int):
            super().__init__()
            self.height = height

    class Clicked(Message):
        """Pane was clicked (moves focus to the logs)."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.lines: Tuple[str, ...] = ()
        self.scroll = 0
        self.target_label = ""
        self._reported_height = -1

    def set_state(self, lines: Tuple[str, ...], scroll: int, target_label: str, focused: bool) -> None:
        self.lines = lines
        self.scroll = scroll
        self.target_label = target_label
        self.border_title = render_log_title(target_label)
        self.set_class(focused, "focused")
        self.refresh()

    def render(self) -> Text:
        return render_log_lines(self.lines, self.scroll, self.content_size.height)

    def on_resize(self, event: events.Resize) -> None:
        height = self.content_size.height
        if height != self._reported_height:
            self._reported_height = height
            self.post_message(self.Resized(height))

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        self.post_message(self.Scrolled(-WHEEL_STEP))
        event.stop()

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        self.post_message(self.Scrolled(WHEEL_STEP))
        event.stop()

    def on_click(self, event: events.Click) -> None:
        self.post_message(self.Clicked())
