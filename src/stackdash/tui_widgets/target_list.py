"""
Target list widget for TUI.

Shows task rows followed by container rows, with the selected row
highlighted. Clicking a row asks the dashboard to select it.
"""

from datetime import datetime
from typing import Tuple

from textual import events
from textual.message import Message
from textual.widgets import Static
from rich.text import Text

from ..tui_render import render_list_title, render_rows, visible_window
from ..view_state import DisplayRow


class TargetList(Static):
    """Left-hand list of tasks and containers"""

    class RowClicked(Message):
        """Message sent when the user clicks a row."""
        def __init__(self, index: int):
            super().__init__()
            self.index = index

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.rows: Tuple[DisplayRow, ...] = ()
        self.selected = 0
        self.focus_on_list = True
        self.engine_available = True
        self._first = 0

    def set_state(
        self,
        rows: Tuple[DisplayRow, ...],
        selected: int,
        focus_on_list: bool,
        engine_available: bool,
        updated_at: datetime,
    ) -> None:
        self.rows = rows
        self.selected = selected
        self.focus_on_list = focus_on_list
        self.engine_available = engine_available
        self.border_title = render_list_title(updated_at)
        self.set_class(focus_on_list, "focused")
        self.refresh()

    def render(self) -> Text:
        height = self.content_size.height
        self._first = visible_window(len(self.rows), self.selected, height)
        return render_rows(
            self.rows,
            self.selected,
            self.focus_on_list,
            self.engine_available,
            first=self._first,
            height=height or None,
        )

    def on_click(self, event: events.Click) -> None:
        offset = event.get_content_offset(self)
        if offset is None:
            return
        self.post_message(self.RowClicked(self._first + offset.y))
