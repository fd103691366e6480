"""
Process supervisor for background shell tasks.

Each task runs as `sh -lc <cmd>` in a new session (and therefore a new
process group) so that stopping it takes the whole subtree down. Output is
read by one thread per stream and delivered through an OutputChannel; the
dashboard loop drains channels without blocking and polls for exit.

Nothing here waits on a child: kill is fire-and-forget and termination is
observed later through poll_exit().
"""

import contextlib
import os
import queue
import signal
import subprocess
import threading
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Deque, Dict, Iterable, List, Mapping, Optional, Tuple

from .config import DashboardConfig, TaskSpec
from .logging_config import get_logger, get_structured_logger
from .protocols import TaskSpawnerInterface
from .status_constants import (
    MARKER_OK,
    MARKER_STOPPED,
    STDERR_TAG,
    STDOUT_TAG,
    TASK_FAIL,
    TASK_OK,
    TASK_PENDING,
    TASK_RUN,
    TASK_STOP,
    marker_fail,
    marker_restart,
    marker_spawn_failed,
)

logger = get_logger("supervisor")

# Process-group signalling is POSIX only. Elsewhere only the shell itself is
# terminated and its descendants may outlive a stop.
GROUP_KILL_SUPPORTED = hasattr(os, "killpg")


class OutputChannel:
    """Unbounded FIFO of output lines with a non-blocking drain.

    Any number of writer threads may send; a single consumer drains.
    The channel is closed once every writer has finished and the queue
    has been emptied.
    """

    def __init__(self, writers: int = 1):
        self._queue: "queue.Queue[str]" = queue.Queue()
        self._lock = threading.Lock()
        self._open_writers = writers

    def send(self, line: str) -> None:
        self._queue.put(line)

    def writer_done(self) -> None:
        with self._lock:
            self._open_writers = max(0, self._open_writers - 1)

    @property
    def writers_done(self) -> bool:
        with self._lock:
            return self._open_writers == 0

    @property
    def closed(self) -> bool:
        """End of stream: no writers left and nothing queued."""
        return self.writers_done and self._queue.empty()

    def drain(self) -> List[str]:
        """Return every line queued right now, oldest first. Never blocks."""
        lines = []
        while True:
            try:
                lines.append(self._queue.get_nowait())
            except queue.Empty:
                return lines


def _pump(stream: IO[str], channel: OutputChannel, tag: str, skip_blank: bool) -> None:
    """Reader thread body: copy lines from a pipe into the channel."""
    try:
        for raw in iter(stream.readline, ""):
            line = raw.rstrip()
            if skip_blank and not line.strip():
                continue
            channel.send(f"{tag} {line}" if tag else line)
    except (OSError, ValueError):
        # Pipe closed underneath us (process killed); end of stream
        pass
    finally:
        with contextlib.suppress(OSError):
            stream.close()
        channel.writer_done()


def start_readers(
    proc: subprocess.Popen,
    tags: Tuple[str, str] = (STDOUT_TAG, STDERR_TAG),
    skip_blank: bool = True,
) -> OutputChannel:
    """Attach reader threads to a process's stdout and stderr.

    Lines from both pipes land in one channel, each stream in its own
    order; there is no ordering guarantee across the two streams.
    """
    streams = [(s, tag) for s, tag in zip((proc.stdout, proc.stderr), tags) if s is not None]
    channel = OutputChannel(writers=len(streams))
    for stream, tag in streams:
        threading.Thread(
            target=_pump,
            args=(stream, channel, tag, skip_blank),
            name=f"stackdash-reader-{proc.pid}",
            daemon=True,
        ).start()
    return channel


def shell_command(cmd: str) -> List[str]:
    if os.name == "posix":
        return ["sh", "-lc", cmd]
    return ["cmd", "/C", cmd]


def popen_piped(argv: List[str], cwd: Optional[Path] = None, env: Optional[Mapping[str, str]] = None) -> subprocess.Popen:
    """Start argv with stdout/stderr piped, detached into its own session."""
    return subprocess.Popen(
        argv,
        cwd=str(cwd) if cwd is not None else None,
        env=dict(env) if env is not None else None,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
        bufsize=1,
        start_new_session=(os.name == "posix"),
    )


def spawn_task(cmd: str, cwd: Path, env: Mapping[str, str]) -> Tuple[subprocess.Popen, OutputChannel]:
    """Start a shell task; lines are tagged [OUT] / [ERR].

    Raises:
        OSError: if the shell could not be started (bad cwd, no sh, ...)
    """
    proc = popen_piped(shell_command(cmd), cwd=cwd, env=env)
    logger.info("Spawned pid=%s: %s", proc.pid, cmd)
    return proc, start_readers(proc)


def kill_process_group(proc: subprocess.Popen, sig: int = signal.SIGTERM) -> None:
    """Best-effort SIGTERM to the process group led by proc. Does not wait.

    The group is signalled even after the leader has exited: children that
    outlived the shell still belong to it.
    """
    if GROUP_KILL_SUPPORTED:
        with contextlib.suppress(OSError):
            os.killpg(proc.pid, sig)
            return
    if proc.returncode is not None:
        return
    with contextlib.suppress(OSError):
        proc.terminate()


def poll_exit(proc: subprocess.Popen) -> Optional[int]:
    """Exit code, or None while running. Killed-by-signal codes are negative."""
    return proc.poll()


class ShellSpawner:
    """Production implementation of TaskSpawnerInterface"""

    def spawn(self, cmd: str, cwd: Path, env: Mapping[str, str]) -> Tuple[Any, OutputChannel]:
        return spawn_task(cmd, cwd, env)

    def kill(self, handle: Any) -> None:
        kill_process_group(handle)

    def poll_exit(self, handle: Any) -> Optional[int]:
        return poll_exit(handle)


@dataclass
class TaskRuntime:
    """Runtime state of one configured task; lives as long as the dashboard."""

    spec: TaskSpec
    max_lines: int
    status: str = TASK_PENDING
    handle: Optional[Any] = None
    channel: Optional[OutputChannel] = None
    # When poll_exit first reported an exit while output was still in flight
    exit_seen_at: Optional[float] = None
    lines: Deque[str] = field(init=False)

    def __post_init__(self) -> None:
        self.lines = deque(maxlen=self.max_lines)

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def is_live(self) -> bool:
        return self.handle is not None

    def append(self, line: str) -> None:
        self.lines.append(line)

    def detach(self) -> None:
        self.handle = None
        self.channel = None
        self.exit_seen_at = None


class ProcessSupervisor:
    """Owns every TaskRuntime and drives the per-task state machine.

    Pending -> Run (spawn) -> Ok | Fail (exit code); Run -> Stop (operator);
    any state -> Run on restart, which always clears history first.
    """

    def __init__(self, config: DashboardConfig, spawner: Optional[TaskSpawnerInterface] = None):
        self.cwd = config.cwd
        self.env = config.env
        self._spawner = spawner or ShellSpawner()
        self._log = get_structured_logger("supervisor")
        self._tasks: Dict[str, TaskRuntime] = {}
        for spec in config.tasks:
            self._tasks[spec.name] = TaskRuntime(spec=spec, max_lines=config.max_log_lines)

    def __contains__(self, name: str) -> bool:
        return name in self._tasks

    def get(self, name: str) -> Optional[TaskRuntime]:
        return self._tasks.get(name)

    def runtimes(self) -> Iterable[TaskRuntime]:
        """All task runtimes, in configuration order."""
        return self._tasks.values()

    def restart(self, name: str) -> Optional[TaskRuntime]:
        """(Re)start a task from a clean history.

        A live process is killed first. If the spawn fails the task is left
        Pending with an error line instead of entering Run.
        """
        runtime = self._tasks.get(name)
        if runtime is None:
            return None

        if runtime.handle is not None:
            self._spawner.kill(runtime.handle)
        runtime.detach()

        runtime.lines.clear()
        runtime.append(marker_restart(runtime.spec.cmd))

        try:
            handle, channel = self._spawner.spawn(runtime.spec.cmd, self.cwd, self.env)
        except OSError as e:
            self._log.warning("Spawn failed", task=name, error=e)
            runtime.status = TASK_PENDING
            runtime.append(marker_spawn_failed(str(e)))
            return runtime

        runtime.handle = handle
        runtime.channel = channel
        runtime.status = TASK_RUN
        return runtime

    def stop(self, name: str) -> bool:
        """Operator stop. Returns True if a live process was signalled."""
        runtime = self._tasks.get(name)
        if runtime is None:
            return False

        was_live = runtime.handle is not None
        if was_live:
            self._spawner.kill(runtime.handle)
            runtime.status = TASK_STOP
            runtime.append(MARKER_STOPPED)
            self._log.info("Stopped by user", task=name)
        runtime.detach()
        return was_live

    def poll_exit(self, runtime: TaskRuntime) -> Optional[int]:
        if runtime.handle is None:
            return None
        return self._spawner.poll_exit(runtime.handle)

    def complete(self, runtime: TaskRuntime, code: int) -> None:
        """Record a finished process: drop handle/channel, set status, add marker."""
        runtime.detach()
        if code == 0:
            runtime.status = TASK_OK
            runtime.append(MARKER_OK)
        else:
            runtime.status = TASK_FAIL
            runtime.append(marker_fail(code))
        self._log.info("Exited", task=runtime.name, code=code)

    def stop_all(self) -> None:
        """Signal every live task (dashboard shutdown)."""
        for runtime in self._tasks.values():
            if runtime.handle is not None:
                self._spawner.kill(runtime.handle)
                runtime.detach()
