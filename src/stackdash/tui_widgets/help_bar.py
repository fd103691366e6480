"""
Help bar widget for TUI: the key hints for the selected row.
"""

from textual.widgets import Static
from rich.text import Text

from ..tui_render import render_help


class HelpBar(Static):
    """Single-line key reference at the bottom of the screen"""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.help_text = ""

    def set_text(self, help_text: str) -> None:
        if help_text != self.help_text:
            self.help_text = help_text
            self.refresh()

    def render(self) -> Text:
        return render_help(self.help_text)
