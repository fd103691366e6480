"""
Pure render functions for TUI components.

These functions are extracted from TUI widgets to enable unit testing
without requiring the full Textual framework.

All functions are pure - they take data as input and return Rich Text objects.
"""

from datetime import datetime
from typing import Optional, Sequence

from rich.text import Text

from .view_state import DisplayRow, Popup, popup_body, popup_title

SELECTED_MARKER = "▶ "
UNSELECTED_MARKER = "  "


def visible_window(total: int, selected: int, height: int) -> int:
    """First row index to show so that `selected` stays on screen."""
    if height <= 0 or total <= height:
        return 0
    first = max(0, selected - height + 1)
    return min(first, total - height)


def render_rows(
    rows: Sequence[DisplayRow],
    selected: int,
    focus_on_list: bool,
    engine_available: bool,
    first: int = 0,
    height: Optional[int] = None,
) -> Text:
    """Render the target list.

    Args:
        rows: All display rows
        selected: Index of the selected row
        focus_on_list: Whether the list has focus (brighter highlight)
        engine_available: Whether docker answered at startup
        first: Index of the first row to draw
        height: Maximum number of rows to draw (None = all)
    """
    content = Text()
    if not rows:
        content.append("(docker not available)" if not engine_available else "(nothing to show)", style="dim italic")
        return content

    last = len(rows) if height is None else min(len(rows), first + height)
    for index in range(first, last):
        row = rows[index]
        if index == selected:
            style = "black on blue" if focus_on_list else "black on grey50"
            content.append(SELECTED_MARKER + row.label, style=style)
        else:
            content.append(UNSELECTED_MARKER + row.label)
        if index < last - 1:
            content.append("\n")
    return content


def render_log_lines(lines: Sequence[str], scroll: int, height: int) -> Text:
    """Render the visible slice of the log buffer, honouring ANSI colours."""
    content = Text()
    if height <= 0:
        window = lines[scroll:]
    else:
        window = lines[scroll:scroll + height]
    for i, line in enumerate(window):
        content.append(Text.from_ansi(line))
        if i < len(window) - 1:
            content.append("\n")
    return content


def render_log_title(target_label: str) -> str:
    if not target_label:
        return "Logs"
    return f"Logs — {target_label}"


def render_list_title(updated_at: datetime) -> str:
    return f"Containers + Tasks (upd: {updated_at.strftime('%H:%M:%S')})"


def render_help(help_text: str) -> Text:
    return Text(help_text, style="black on white")


def render_popup(popup: Popup) -> Text:
    content = Text()
    content.append(popup_title(popup), style="bold")
    content.append("\n\n")
    content.append(popup_body(popup))
    return content
