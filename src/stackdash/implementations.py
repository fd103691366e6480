"""
Real implementations of protocol interfaces.

RealDockerEngine drives the docker CLI through subprocess. All methods are
synchronous; the dashboard decides which thread calls them.
"""

import json
import subprocess
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple

from .docker_engine import (
    DockerMeta,
    EngineError,
    Snapshot,
    assemble_snapshot,
    classify_backend,
    parse_context_inspect,
    parse_inspect_ports,
    parse_ps_output,
    remote_host_from_endpoint,
    volume_names,
)
from .logging_config import get_logger
from .process_supervisor import OutputChannel, kill_process_group, popen_piped, start_readers

logger = get_logger("engine")

# Seconds before a one-shot docker command is considered hung
COMMAND_TIMEOUT = 30
# Compose up/restart can pull images
COMPOSE_TIMEOUT = 600

LIFECYCLE_VERBS = {"start", "stop", "pause", "unpause", "kill", "restart"}


class RealDockerEngine:
    """Production implementation of ContainerEngineInterface"""

    def __init__(self, cwd: Path, docker_bin: str = "docker", env: Optional[Mapping[str, str]] = None):
        self.cwd = Path(cwd)
        self.env = dict(env) if env is not None else None
        self.meta = DockerMeta(docker_bin=docker_bin)

    @property
    def available(self) -> bool:
        return self.meta.available

    def _run(self, args: List[str], timeout: int = COMMAND_TIMEOUT) -> subprocess.CompletedProcess:
        cmd = [self.meta.docker_bin, *args]
        try:
            return subprocess.run(
                cmd,
                cwd=str(self.cwd),
                env=self.env,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise EngineError(f"{' '.join(cmd[:3])}: {e}") from e

    def _output(self, args: List[str]) -> str:
        result = self._run(args)
        if result.returncode != 0:
            detail = (result.stderr or "").strip().splitlines()
            raise EngineError(f"docker {' '.join(args[:2])} failed" + (f": {detail[-1]}" if detail else ""))
        return result.stdout.rstrip()

    def detect(self) -> DockerMeta:
        """Fill in backend/context/remote host and probe availability.

        The context lookup and `docker info` run concurrently.
        """
        def context_info() -> Tuple[str, str, str]:
            try:
                ctx = self._output(["context", "show"]).strip()
            except EngineError:
                return "default", "unknown", ""
            try:
                host = parse_context_inspect(self._output(["context", "inspect", ctx]))
            except EngineError:
                return ctx, "unknown", ""
            return ctx, classify_backend(ctx, host), host

        def probe() -> bool:
            try:
                return self._run(["info"]).returncode == 0
            except EngineError:
                return False

        with ThreadPoolExecutor(max_workers=2) as executor:
            ctx_future = executor.submit(context_info)
            probe_future = executor.submit(probe)
            ctx, backend, host = ctx_future.result()
            available = probe_future.result()

        self.meta.context_name = ctx
        self.meta.backend = backend
        self.meta.socket_path = host
        self.meta.remote_host = remote_host_from_endpoint(host)
        self.meta.available = available
        logger.info("Docker backend=%s context=%s available=%s", backend, ctx, available)
        return self.meta

    def list_containers(self) -> Snapshot:
        output = self._output(["ps", "-a", "--no-trunc", "--format", "{{json .}}"])
        summaries = parse_ps_output(output)
        ports_map = {}
        if summaries:
            try:
                ports_map = parse_inspect_ports(self._output(["inspect", *[c.id for c in summaries]]))
            except EngineError as e:
                # Containers can vanish between ps and inspect
                logger.debug("Batch inspect failed, ports omitted: %s", e)
        return assemble_snapshot(summaries, ports_map)

    def follow_logs(self, container_id: str, tail: int) -> Tuple[Any, OutputChannel]:
        argv = [self.meta.docker_bin, "logs", "-f", "--tail", str(tail), container_id]
        try:
            proc = popen_piped(argv, cwd=self.cwd, env=self.env)
        except OSError as e:
            raise EngineError(f"docker logs: {e}") from e
        return proc, start_readers(proc, tags=("", ""), skip_blank=False)

    def kill_follower(self, handle: Any) -> None:
        kill_process_group(handle)

    def container_action(self, verb: str, container_id: str) -> None:
        if verb not in LIFECYCLE_VERBS:
            raise ValueError(f"unsupported container action: {verb}")
        self._output([verb, container_id])

    def remove_force(self, container_id: str) -> None:
        self._output(["rm", "-f", container_id])

    def inspect(self, container_id: str) -> Any:
        output = self._output(["inspect", container_id])
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise EngineError(f"unparseable docker inspect output: {e}") from e

    def reset_container(self, container_id: str) -> List[str]:
        log = [f"Inspecting {container_id}..."]
        volumes = volume_names(self.inspect(container_id))

        try:
            self.container_action("stop", container_id)
        except EngineError as e:
            logger.debug("Stop before reset failed (continuing): %s", e)

        log.append(f"Removing container {container_id}...")
        self.remove_force(container_id)

        for volume in volumes:
            log.append(f"Removing volume {volume}...")
            try:
                self._output(["volume", "rm", volume])
            except EngineError as e:
                log.append(f"Failed to remove volume {volume}: {e}")

        log.append(f"✅ Reset complete for {container_id}")
        return log

    def compose(self, profile: str, args: List[str]) -> int:
        try:
            result = self._run(["compose", "--profile", profile, *args], timeout=COMPOSE_TIMEOUT)
        except EngineError as e:
            logger.warning("docker compose %s: %s", " ".join(args), e)
            return 1
        return result.returncode
