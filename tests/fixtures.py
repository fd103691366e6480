"""
Test fixtures and factories for stackdash unit tests.

Fakes for the two external collaborators (task spawner and container
engine) so the supervisor, multiplexer and dashboard loop can be driven
deterministically without real processes or a docker daemon.
"""

import itertools
import os
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple

from stackdash.config import DashboardConfig, TaskSpec
from stackdash.docker_engine import ContainerSummary, DockerMeta, EngineError, Port
from stackdash.process_supervisor import OutputChannel

_pids = itertools.count(1000)


class FakeProcess:
    """Stands in for subprocess.Popen: a pid and a settable returncode."""

    def __init__(self):
        self.pid = next(_pids)
        self.returncode: Optional[int] = None
        self.killed = False

    def finish(self, code: int) -> None:
        self.returncode = code


@dataclass
class SpawnRecord:
    cmd: str
    cwd: Path
    handle: FakeProcess
    channel: OutputChannel

    def emit(self, *lines: str) -> None:
        for line in lines:
            self.channel.send(line)

    def exit(self, code: int) -> None:
        """Close the output and set the exit code, like a real process ending."""
        self.channel.writer_done()
        self.handle.finish(code)


class FakeSpawner:
    """TaskSpawnerInterface fake. spawn_error makes the next spawns fail."""

    def __init__(self):
        self.spawned: List[SpawnRecord] = []
        self.spawn_error: Optional[OSError] = None

    def spawn(self, cmd, cwd, env) -> Tuple[FakeProcess, OutputChannel]:
        if self.spawn_error is not None:
            raise self.spawn_error
        record = SpawnRecord(cmd=cmd, cwd=cwd, handle=FakeProcess(), channel=OutputChannel(writers=1))
        self.spawned.append(record)
        return record.handle, record.channel

    def kill(self, handle: FakeProcess) -> None:
        handle.killed = True
        if handle.returncode is None:
            handle.returncode = -15

    def poll_exit(self, handle: FakeProcess) -> Optional[int]:
        return handle.returncode

    @property
    def last(self) -> SpawnRecord:
        return self.spawned[-1]


@dataclass
class FakeFollower:
    container_id: str
    tail: int
    handle: FakeProcess
    channel: OutputChannel

    @property
    def alive(self) -> bool:
        return not self.handle.killed


class FakeEngine:
    """ContainerEngineInterface fake with recorded calls."""

    def __init__(self, containers=None, available: bool = True):
        self.meta = DockerMeta(backend="docker", context_name="default", available=available)
        self.containers = list(containers or [])
        self.followers: List[FakeFollower] = []
        self.actions: List[Tuple[str, str]] = []
        self.compose_calls: List[Tuple[str, List[str]]] = []
        self.compose_codes: List[int] = []
        self.inspect_data: Dict[str, object] = {}
        self.list_calls = 0
        self.list_error: Optional[EngineError] = None
        self.action_error: Optional[EngineError] = None
        self.follow_error: Optional[EngineError] = None

    @property
    def available(self) -> bool:
        return self.meta.available

    def list_containers(self):
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return list(self.containers)

    def follow_logs(self, container_id: str, tail: int):
        if self.follow_error is not None:
            raise self.follow_error
        follower = FakeFollower(container_id, tail, FakeProcess(), OutputChannel(writers=1))
        self.followers.append(follower)
        return follower.handle, follower.channel

    def kill_follower(self, handle: FakeProcess) -> None:
        handle.killed = True

    def container_action(self, verb: str, container_id: str) -> None:
        if self.action_error is not None:
            raise self.action_error
        self.actions.append((verb, container_id))

    def remove_force(self, container_id: str) -> None:
        if self.action_error is not None:
            raise self.action_error
        self.actions.append(("rm", container_id))

    def inspect(self, container_id: str):
        if self.action_error is not None:
            raise self.action_error
        return self.inspect_data.get(container_id, [{"Id": container_id}])

    def reset_container(self, container_id: str) -> List[str]:
        if self.action_error is not None:
            raise self.action_error
        self.actions.append(("reset", container_id))
        return [f"Inspecting {container_id}...", f"✅ Reset complete for {container_id}"]

    def compose(self, profile: str, args: List[str]) -> int:
        self.compose_calls.append((profile, list(args)))
        return self.compose_codes.pop(0) if self.compose_codes else 0

    def alive_followers(self) -> List[FakeFollower]:
        return [f for f in self.followers if f.alive]


def make_container(
    id: str,
    name: str,
    state: str = "running",
    status: str = "Up 5 minutes",
    ports: Optional[List[Port]] = None,
):
    """One (ContainerSummary, ports) snapshot entry."""
    return ContainerSummary(id=id, names=name, state=state, status=status), list(ports or [])


def make_config(
    cwd: Path,
    tasks: Optional[List[Tuple[str, str]]] = None,
    **kwargs,
) -> DashboardConfig:
    """A DashboardConfig with the real environment (so PATH works)."""
    specs = tuple(TaskSpec(name=name, cmd=cmd) for name, cmd in (tasks or []))
    kwargs.setdefault("env", MappingProxyType(dict(os.environ)))
    kwargs.setdefault("auto_compose_up", False)
    return DashboardConfig(cwd=Path(cwd), tasks=specs, **kwargs)
