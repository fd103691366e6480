"""
Single-flight periodic container snapshot.

A tick starts at most one background fetch; its result comes back through
the dashboard's inbox as a RefreshResult and is applied by the loop.
"""

import queue
import threading
from dataclasses import dataclass
from typing import Optional

from .docker_engine import EngineError, Snapshot
from .logging_config import get_logger
from .protocols import ContainerEngineInterface

logger = get_logger("refresh")


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of one background fetch: a snapshot or an error."""

    generation: int
    snapshot: Optional[Snapshot] = None
    error: Optional[Exception] = None


class RefreshCoordinator:
    def __init__(self, engine: ContainerEngineInterface, inbox: "queue.Queue"):
        self._engine = engine
        self._inbox = inbox
        self.in_flight = False
        self.last_snapshot: Snapshot = []
        self.fetch_count = 0
        # Bumped by refresh_now() so an older in-flight result is not applied
        # over a newer synchronous one
        self._generation = 0

    def on_tick(self, engine_available: bool, popup_open: bool) -> bool:
        """Start a background fetch if allowed. Returns True if one started."""
        if not engine_available or popup_open or self.in_flight:
            return False
        self.in_flight = True
        self.fetch_count += 1
        threading.Thread(
            target=self._fetch,
            args=(self._generation,),
            name="stackdash-refresh",
            daemon=True,
        ).start()
        return True

    def _fetch(self, generation: int) -> None:
        """Fetch thread body. Posts exactly one RefreshResult."""
        try:
            snapshot = self._engine.list_containers()
        except EngineError as e:
            self._inbox.put(RefreshResult(generation=generation, error=e))
        except Exception as e:
            logger.exception("Unexpected error during container refresh")
            self._inbox.put(RefreshResult(generation=generation, error=e))
        else:
            self._inbox.put(RefreshResult(generation=generation, snapshot=snapshot))

    def apply(self, result: RefreshResult) -> Optional[Exception]:
        """Apply a fetch result on the loop thread.

        Returns:
            The fetch error, if any, for the caller to report
        """
        if not self.in_flight:
            logger.warning("Ignoring refresh result with no fetch in flight")
            return None
        self.in_flight = False

        if result.generation != self._generation:
            logger.debug("Discarding stale refresh result")
            return None
        if result.error is not None:
            logger.debug("Refresh failed: %s", result.error)
            return result.error
        self.last_snapshot = result.snapshot or []
        return None

    def refresh_now(self) -> Optional[Exception]:
        """Synchronous fetch after a user action. Keeps the cache on failure."""
        self._generation += 1
        try:
            self.last_snapshot = self._engine.list_containers()
        except EngineError as e:
            logger.warning("Refresh after action failed: %s", e)
            return e
        return None
