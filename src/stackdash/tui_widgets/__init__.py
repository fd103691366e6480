"""
TUI Widget components for Stackdash.

This package contains the individual widget classes used by tui.py.
"""

from .target_list import TargetList
from .log_pane import LogPane
from .help_bar import HelpBar
from .popup_overlay import PopupOverlay

__all__ = [
    "TargetList",
    "LogPane",
    "HelpBar",
    "PopupOverlay",
]
