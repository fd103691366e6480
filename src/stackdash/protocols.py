"""
Protocol definitions for external dependencies.

These interfaces allow dependency injection for testing, enabling us to
swap real implementations (subprocess calls to docker, real shell
processes) with fakes in tests.
"""

from pathlib import Path
from typing import Any, List, Mapping, Optional, Protocol, Tuple, runtime_checkable, TYPE_CHECKING

if TYPE_CHECKING:
    from .docker_engine import ContainerSummary, DockerMeta, Port
    from .process_supervisor import OutputChannel


@runtime_checkable
class TaskSpawnerInterface(Protocol):
    """Interface for starting and terminating shell tasks"""

    def spawn(self, cmd: str, cwd: Path, env: Mapping[str, str]) -> Tuple[Any, "OutputChannel"]:
        """Start a shell command in its own process group.

        Returns immediately with the process handle and a channel that
        receives the tagged stdout/stderr lines.

        Raises:
            OSError: if the process could not be started
        """
        ...

    def kill(self, handle: Any) -> None:
        """Signal the handle's whole process group. Never waits, never raises."""
        ...

    def poll_exit(self, handle: Any) -> Optional[int]:
        """Exit code if the process has finished, else None. Never blocks."""
        ...


@runtime_checkable
class ContainerEngineInterface(Protocol):
    """Interface for the container engine (docker CLI)"""

    meta: "DockerMeta"

    @property
    def available(self) -> bool:
        """Whether the engine answered at startup."""
        ...

    def list_containers(self) -> List[Tuple["ContainerSummary", List["Port"]]]:
        """Snapshot of all containers with their port mappings.

        Raises:
            EngineError: if the listing command failed
        """
        ...

    def follow_logs(self, container_id: str, tail: int) -> Tuple[Any, "OutputChannel"]:
        """Start tailing a container's logs; returns (handle, channel)."""
        ...

    def kill_follower(self, handle: Any) -> None:
        """Stop a log follower started by follow_logs. Never raises."""
        ...

    def container_action(self, verb: str, container_id: str) -> None:
        """Run start/stop/pause/unpause/kill/restart on a container."""
        ...

    def remove_force(self, container_id: str) -> None:
        """docker rm -f"""
        ...

    def inspect(self, container_id: str) -> Any:
        """Parsed docker inspect output."""
        ...

    def reset_container(self, container_id: str) -> List[str]:
        """Stop, remove, and delete the named volumes of a container.

        Returns:
            Progress messages, in order
        """
        ...

    def compose(self, profile: str, args: List[str]) -> int:
        """Run docker compose --profile <profile> <args>; returns exit code."""
        ...
