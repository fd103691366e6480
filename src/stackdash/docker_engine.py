"""
Docker data models and pure parsing/formatting helpers.

The subprocess-backed engine lives in implementations.RealDockerEngine;
everything here works on already-captured command output so it can be
tested without a docker daemon.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .logging_config import get_logger

logger = get_logger("docker")

# Private ports that usually carry a web UI, most interesting first
PREFERRED_PRIVATE_PORTS = [3000, 8025, 54323, 5678, 5173, 4173, 8080, 80, 1337]
PREFERRED_PUBLIC_PORTS = [80, 3000, 8080, 54324]


class EngineError(Exception):
    """A docker command failed or produced unusable output."""


@dataclass
class DockerMeta:
    """What we learned about the docker endpoint at startup."""

    docker_bin: str = "docker"
    backend: str = "unknown"
    context_name: str = "default"
    socket_path: str = ""
    remote_host: str = "localhost"
    available: bool = False


@dataclass(frozen=True)
class Port:
    ip: Optional[str] = None
    private_port: Optional[int] = None
    public_port: Optional[int] = None
    port_type: str = "tcp"


@dataclass(frozen=True)
class ContainerSummary:
    """One row of `docker ps -a --format '{{json .}}'`."""

    id: str
    names: str
    state: str
    status: str
    ports: str = ""

    @property
    def name(self) -> str:
        return container_name(self.names)


Snapshot = List[Tuple[ContainerSummary, List[Port]]]


def container_name(raw_names: str) -> str:
    """First name from docker's comma-separated .Names, without leading '/'."""
    return raw_names.split(",")[0].strip().lstrip("/")


def classify_backend(context_name: str, host: str) -> str:
    if "colima" in f"{context_name} {host}".lower():
        return "colima"
    return "docker"


def remote_host_from_endpoint(host: str) -> str:
    """ssh://user@box:22 -> box; unix sockets -> localhost."""
    if not (host.startswith("ssh://") or host.startswith("tcp://")):
        return "localhost"
    rest = host.split("//", 1)[1]
    rest = rest.split("@")[-1]
    hostname = rest.split(":")[0]
    return hostname or "localhost"


def parse_context_inspect(output: str) -> str:
    """Endpoints.docker.Host from `docker context inspect`, or ""."""
    try:
        data = json.loads(output)
    except json.JSONDecodeError:
        return ""
    if isinstance(data, list):
        data = data[0] if data else {}
    if not isinstance(data, dict):
        return ""
    host = ((data.get("Endpoints") or {}).get("docker") or {}).get("Host", "")
    return host if isinstance(host, str) else ""


def parse_ps_line(line: str) -> Optional[ContainerSummary]:
    """Parse one JSON line of docker ps; None if the record is unusable."""
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        logger.debug("Skipping unparseable ps record: %s", line[:200])
        return None
    if not isinstance(data, dict):
        return None
    container_id = data.get("ID")
    if not isinstance(container_id, str) or not container_id:
        logger.debug("Skipping ps record without ID: %s", line[:200])
        return None

    state = str(data.get("State") or "").strip() or "unknown"
    return ContainerSummary(
        id=container_id,
        names=str(data.get("Names") or ""),
        state=state,
        status=str(data.get("Status") or ""),
        ports=str(data.get("Ports") or ""),
    )


def parse_ps_output(output: str) -> List[ContainerSummary]:
    """All usable records; malformed lines are skipped, not fatal."""
    summaries = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        summary = parse_ps_line(line)
        if summary is not None:
            summaries.append(summary)
    return summaries


def _parse_port_number(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def ports_from_settings(ports_obj: Any) -> List[Port]:
    """Convert NetworkSettings.Ports ({"3000/tcp": [..] | null}) to Ports."""
    ports: List[Port] = []
    if not isinstance(ports_obj, dict):
        return ports
    for key, bindings in ports_obj.items():
        private, _, proto = str(key).partition("/")
        private_port = _parse_port_number(private)
        port_type = proto or "tcp"
        if bindings is None:
            ports.append(Port(private_port=private_port, port_type=port_type))
        elif isinstance(bindings, list):
            for binding in bindings:
                if not isinstance(binding, dict):
                    continue
                ports.append(Port(
                    ip=binding.get("HostIp"),
                    private_port=private_port,
                    public_port=_parse_port_number(binding.get("HostPort")),
                    port_type=port_type,
                ))
    return ports


def parse_inspect_ports(output: str) -> Dict[str, List[Port]]:
    """Map container id -> ports from a batched `docker inspect`."""
    try:
        data = json.loads(output)
    except json.JSONDecodeError as e:
        raise EngineError(f"unparseable docker inspect output: {e}") from e
    result: Dict[str, List[Port]] = {}
    if not isinstance(data, list):
        return result
    for item in data:
        if not isinstance(item, dict):
            continue
        container_id = item.get("Id")
        if not isinstance(container_id, str):
            continue
        settings = item.get("NetworkSettings") or {}
        result[container_id] = ports_from_settings(settings.get("Ports"))
    return result


def _ports_for(container_id: str, ports_map: Dict[str, List[Port]]) -> List[Port]:
    # ps --no-trunc gives full ids, but tolerate short ids as a prefix
    if container_id in ports_map:
        return ports_map[container_id]
    for full_id, ports in ports_map.items():
        if full_id.startswith(container_id):
            return ports
    return []


def assemble_snapshot(summaries: List[ContainerSummary], ports_map: Dict[str, List[Port]]) -> Snapshot:
    """Pair summaries with their ports, sorted by display name."""
    snapshot = [(c, list(_ports_for(c.id, ports_map))) for c in summaries]
    snapshot.sort(key=lambda pair: pair[0].name.lower())
    return snapshot


def volume_names(inspect_data: Any) -> List[str]:
    """Named volumes mounted by an inspected container."""
    info = inspect_data[0] if isinstance(inspect_data, list) and inspect_data else inspect_data
    if not isinstance(info, dict):
        return []
    names = []
    for mount in info.get("Mounts") or []:
        if isinstance(mount, dict) and mount.get("Type") == "volume" and mount.get("Name"):
            names.append(mount["Name"])
    return names


def pick_best_public_port(ports: List[Port]) -> Optional[int]:
    """Choose the published tcp port most likely to be a web UI."""
    tcp_ports = [p for p in ports if p.public_port is not None and (p.port_type or "tcp") == "tcp"]

    for private in PREFERRED_PRIVATE_PORTS:
        for port in tcp_ports:
            if port.private_port == private:
                return port.public_port

    for public in PREFERRED_PUBLIC_PORTS:
        for port in tcp_ports:
            if port.public_port == public:
                return port.public_port

    return tcp_ports[0].public_port if tcp_ports else None


def format_container_info(inspect_data: Any) -> str:
    """Human-readable summary of `docker inspect` for the Inspect popup."""
    info = inspect_data[0] if isinstance(inspect_data, list) and inspect_data else inspect_data
    if not isinstance(info, dict):
        info = {}

    state = info.get("State") or {}
    cfg = info.get("Config") or {}
    mounts = info.get("Mounts") or []
    ports_obj = (info.get("NetworkSettings") or {}).get("Ports")

    out = [
        f"ID: {str(info.get('Id', ''))[:12]}",
        f"Image: {cfg.get('Image', '')}",
        f"Status: {state.get('Status', 'unknown')} (Pid: {state.get('Pid', 0)}, Exit: {state.get('ExitCode', 0)})",
        f"Created: {info.get('Created', '')}",
        "",
        "PORTS:",
    ]

    if isinstance(ports_obj, dict):
        for key, bindings in ports_obj.items():
            if bindings is None:
                out.append(f"  {key} (not exposed)")
            elif isinstance(bindings, list):
                mapped = ", ".join(
                    f"{b.get('HostIp') or '0.0.0.0'}:{b['HostPort']}"
                    for b in bindings
                    if isinstance(b, dict) and b.get("HostPort")
                )
                out.append(f"  {key} -> {mapped}")
    else:
        out.append("  (none)")

    out.extend(["", "MOUNTS:"])
    if not mounts:
        out.append("  (none)")
    for mount in mounts:
        if isinstance(mount, dict):
            out.append(f"  {mount.get('Type', '')}: {mount.get('Source', '')} -> {mount.get('Destination', '')}")

    out.extend(["", "ENV VARIABLES:"])
    env = [e for e in (cfg.get("Env") or []) if isinstance(e, str)]
    if not env:
        out.append("  (none)")
    for entry in sorted(env):
        out.append(f"  {entry}")

    return "\n".join(out)
