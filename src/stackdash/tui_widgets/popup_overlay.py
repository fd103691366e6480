"""
Popup overlay widget for TUI.

Shows the dashboard's open popup (inspect output or a confirmation) over
the main layout. Keys are still handled by the dashboard; this widget
only displays.
"""

from typing import Optional

from textual.widgets import Static
from rich.text import Text

from ..tui_render import render_popup
from ..view_state import InspectPopup, Popup


class PopupOverlay(Static):
    """Modal-looking overlay; visible while the dashboard has a popup"""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.popup: Optional[Popup] = None

    def set_popup(self, popup: Optional[Popup]) -> None:
        if popup == self.popup:
            return
        self.popup = popup
        self.set_class(popup is not None, "visible")
        self.set_class(isinstance(popup, InspectPopup), "large")
        self.refresh()

    def render(self) -> Text:
        if self.popup is None:
            return Text()
        return render_popup(self.popup)
