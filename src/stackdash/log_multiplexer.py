"""
Log multiplexer: per-task history plus the single visible buffer.

The visible buffer always shows one target. Switching targets kills the
container log follower (if any), drops its channel unread, and replaces
the buffer in one step, so lines from two targets are never mixed.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .docker_engine import EngineError
from .logging_config import get_logger
from .process_supervisor import OutputChannel, ProcessSupervisor, TaskRuntime
from .protocols import ContainerEngineInterface
from .status_constants import follower_banner
from .targets import ContainerTarget, Target, TaskTarget
from .view_state import LogView

logger = get_logger("logs")

# Seconds to keep waiting for a dead task's pipes to reach EOF. A grandchild
# that inherited stdout can hold the pipe open indefinitely.
EXIT_GRACE = 0.5


@dataclass
class ExternalFollower:
    """A running `docker logs -f` for the active container target."""

    target: ContainerTarget
    handle: Any
    channel: OutputChannel


class LogMultiplexer:
    def __init__(
        self,
        supervisor: ProcessSupervisor,
        engine: ContainerEngineInterface,
        max_lines: int,
        log_tail: int,
        clock: Callable[[], float] = time.monotonic,
        exit_grace: float = EXIT_GRACE,
    ):
        self.supervisor = supervisor
        self.engine = engine
        self.log_tail = log_tail
        self.view = LogView(max_lines)
        self.target: Optional[Target] = None
        self.follower: Optional[ExternalFollower] = None
        self._clock = clock
        self._exit_grace = exit_grace

    @property
    def target_label(self) -> str:
        return self.target.label if self.target is not None else ""

    def is_active_task(self, name: str) -> bool:
        return isinstance(self.target, TaskTarget) and self.target.name == name

    def stop_follower(self) -> None:
        """Kill the follower and forget its channel, queued lines included."""
        follower, self.follower = self.follower, None
        if follower is not None:
            self.engine.kill_follower(follower.handle)
            logger.debug("Follower for %s stopped", follower.target.label)

    def switch_to(self, target: Target) -> None:
        """Make target the visible stream."""
        self.stop_follower()
        self.target = target

        if isinstance(target, TaskTarget):
            runtime = self.supervisor.get(target.name)
            self.view.replace(runtime.lines if runtime is not None else [])
            return

        self.view.replace([follower_banner(target.label)])
        try:
            handle, channel = self.engine.follow_logs(target.id, self.log_tail)
        except EngineError as e:
            logger.warning("Could not follow logs for %s: %s", target.label, e)
            self.view.push(f"Log follower failed: {e}")
            return
        self.follower = ExternalFollower(target=target, handle=handle, channel=channel)

    def push_current(self, line: str) -> None:
        self.view.push(line)

    def drain(self) -> None:
        """Move every queued line to where it belongs. Never blocks.

        Follower lines go straight to the visible buffer; task lines go to
        the task's history and, for the active task only, to the buffer.
        """
        if self.follower is not None:
            for line in self.follower.channel.drain():
                self.view.push(line)

        for runtime in self.supervisor.runtimes():
            self._drain_task(runtime)

    def _pull(self, runtime: TaskRuntime, channel: OutputChannel) -> None:
        active = self.is_active_task(runtime.name)
        for line in channel.drain():
            full = f"[{runtime.name}] {line}"
            runtime.append(full)
            if active:
                self.view.push(full)

    def _drain_task(self, runtime: TaskRuntime) -> None:
        channel = runtime.channel
        if channel is None:
            return
        self._pull(runtime, channel)

        code = self.supervisor.poll_exit(runtime)
        if code is None:
            return

        if not channel.closed:
            now = self._clock()
            if runtime.exit_seen_at is None:
                runtime.exit_seen_at = now
                return
            if now - runtime.exit_seen_at < self._exit_grace:
                return

        # Last lines, then the marker, with nothing in between
        self._pull(runtime, channel)
        self.supervisor.complete(runtime, code)
        if self.is_active_task(runtime.name):
            self.view.replace(runtime.lines)

    def shutdown(self) -> None:
        self.stop_follower()
