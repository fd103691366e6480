"""
Log targets: what the visible log buffer is currently showing.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class TaskTarget:
    """A configured shell task, identified by name."""

    name: str

    @property
    def label(self) -> str:
        return self.name


@dataclass(frozen=True)
class ContainerTarget:
    """A container, identified by id (name kept for banners and titles)."""

    id: str
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or self.id[:12]


Target = Union[TaskTarget, ContainerTarget]
