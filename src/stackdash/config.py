"""
Configuration for Stackdash.

Everything the dashboard needs is resolved once at startup into an
immutable DashboardConfig that is passed to each component. Sources, in
order of precedence:

1. Explicit overrides (CLI options)
2. Environment: the process environment overlaid with the project's
   .env and .env.<profile> files, with ${VAR} / ${VAR:-default} expansion
3. ~/.stackdash/config.yaml
4. Built-in defaults
"""

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from dotenv import dotenv_values

from .logging_config import get_logger

logger = get_logger("config")

CONFIG_DIR = Path.home() / ".stackdash"
CONFIG_PATH = CONFIG_DIR / "config.yaml"

DEFAULT_PROFILE = "local"
DEFAULT_MAX_LOG_LINES = 1200
DEFAULT_REFRESH_MS = 1000
DEFAULT_LOG_TAIL = 200
DEFAULT_DOCKER_BIN = "docker"
DEFAULT_DB_CONTAINER = "supabase-db"
DEFAULT_STORAGE_CONTAINER = "supabase-storage"

# How far up the tree we look for docker-compose.yml
ROOT_SEARCH_DEPTH = 12
# Passes of ${VAR} expansion (values may reference other expanded values)
EXPANSION_PASSES = 5

_VAR_PATTERN = re.compile(r"\$\{([^}]*)\}")


@dataclass(frozen=True)
class TaskSpec:
    """A configured background shell task."""

    name: str
    cmd: str


@dataclass(frozen=True)
class DashboardConfig:
    """Immutable dashboard configuration, built once by build_config()."""

    cwd: Path
    profile: str = DEFAULT_PROFILE
    docker_bin: str = DEFAULT_DOCKER_BIN
    auto_compose_up: bool = True
    compose_profile: str = DEFAULT_PROFILE
    db_container: str = DEFAULT_DB_CONTAINER
    storage_container: str = DEFAULT_STORAGE_CONTAINER
    tasks: Tuple[TaskSpec, ...] = ()
    max_log_lines: int = DEFAULT_MAX_LOG_LINES
    refresh_ms: int = DEFAULT_REFRESH_MS
    log_tail: int = DEFAULT_LOG_TAIL
    env: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    loaded_env_files: Tuple[str, ...] = ()

    @property
    def refresh_interval(self) -> float:
        """Refresh period in seconds."""
        return self.refresh_ms / 1000.0

    @property
    def task_names(self) -> List[str]:
        return [t.name for t in self.tasks]


# =============================================================================
# YAML settings file
# =============================================================================

def load_config() -> dict:
    """Load ~/.stackdash/config.yaml.

    Returns an empty dict when the file is missing, unreadable, invalid, or
    its root is not a mapping.
    """
    if not CONFIG_PATH.exists():
        return {}
    try:
        with open(CONFIG_PATH) as f:
            data = yaml.safe_load(f)
    except (yaml.YAMLError, OSError) as e:
        logger.warning("Ignoring unreadable config %s: %s", CONFIG_PATH, e)
        return {}
    if not isinstance(data, dict):
        return {}
    return data


# =============================================================================
# Project root and .env files
# =============================================================================

def find_project_root(start_dir: Path) -> Path:
    """Walk up from start_dir looking for docker-compose.yml.

    A directory holding package.json is remembered as a fallback, but the
    search keeps going in case a compose file lives further up.
    """
    start_dir = Path(start_dir)
    current = start_dir
    fallback: Optional[Path] = None

    for _ in range(ROOT_SEARCH_DEPTH):
        if (current / "docker-compose.yml").exists():
            return current
        if fallback is None and (current / "package.json").exists():
            fallback = current
        parent = current.parent
        if parent == current:
            break
        current = parent

    return fallback if fallback is not None else start_dir


def expand_value(key: str, value: str, env: Mapping[str, str]) -> str:
    """Expand ${NAME} and ${NAME:-default} references in value.

    Unset or empty variables fall back to the default (or to ""). A variable
    never expands a reference to itself.
    """
    def _replace(match: "re.Match") -> str:
        inner = match.group(1)
        if ":-" in inner:
            name, default = inner.split(":-", 1)
        else:
            name, default = inner, None
        if name != key:
            resolved = env.get(name)
            if resolved:
                return resolved
        return default if default is not None else ""

    return _VAR_PATTERN.sub(_replace, value)


def _expand_env(env: Dict[str, str]) -> None:
    for _ in range(EXPANSION_PASSES):
        changes = 0
        for key in list(env):
            value = env[key]
            if "${" not in value:
                continue
            new_value = expand_value(key, value, env)
            if new_value != value:
                env[key] = new_value
                changes += 1
        if changes == 0:
            break


def load_env(
    root: Path,
    profile: Optional[str],
    base_env: Mapping[str, str],
) -> Tuple[Dict[str, str], List[str]]:
    """Overlay .env and .env.<profile> onto a copy of base_env.

    Values from .env never replace variables that are already set; values
    from .env.<profile> always do.

    Returns:
        Tuple of (expanded environment, names of files that were loaded)
    """
    env = dict(base_env)
    loaded: List[str] = []

    base_file = Path(root) / ".env"
    if base_file.exists():
        for key, value in dotenv_values(base_file, interpolate=False).items():
            if value is not None and key not in env:
                env[key] = value
        loaded.append(".env")

    prof = (profile or "").strip()
    if prof:
        profile_file = Path(root) / f".env.{prof}"
        if profile_file.exists():
            for key, value in dotenv_values(profile_file, interpolate=False).items():
                if value is not None:
                    env[key] = value
            loaded.append(f".env.{prof}")

    _expand_env(env)
    return env, loaded


# =============================================================================
# Profiles and task lists
# =============================================================================

def key_for_profile(base_key: str, profile: str) -> str:
    """POST_UP_TASKS + 'my-prof' -> POST_UP_TASKS_MY_PROF."""
    suffix = "".join(c if c.isascii() and c.isalnum() else "_" for c in profile.strip().upper())
    if not suffix:
        return base_key
    return f"{base_key}_{suffix}"


def get_profile_value(env: Mapping[str, str], base_key: str, profile: str) -> str:
    """Profile-specific value, falling back to the unsuffixed key."""
    value = env.get(key_for_profile(base_key, profile))
    if value is None:
        value = env.get(base_key, "")
    return value


def parse_post_up_tasks(raw: str) -> List[TaskSpec]:
    """Parse a POST_UP_TASKS value.

    One task per line in the form ``name::command``. Blank lines and lines
    starting with # are ignored. Lines without ``::`` become a task named
    "task".
    """
    tasks: List[TaskSpec] = []
    for line in raw.strip().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "::" in line:
            name, cmd = line.split("::", 1)
            name, cmd = name.strip(), cmd.strip()
            if cmd:
                tasks.append(TaskSpec(name=name or "task", cmd=cmd))
        else:
            tasks.append(TaskSpec(name="task", cmd=line))
    return tasks


def load_package_json_tasks(root: Path) -> List[TaskSpec]:
    """Tasks from the "scripts" section of package.json, sorted by name."""
    pkg_path = Path(root) / "package.json"
    if not pkg_path.exists():
        return []
    try:
        with open(pkg_path) as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Ignoring unreadable %s: %s", pkg_path, e)
        return []

    scripts = data.get("scripts") if isinstance(data, dict) else None
    if not isinstance(scripts, dict):
        return []
    tasks = [
        TaskSpec(name=name, cmd=cmd)
        for name, cmd in scripts.items()
        if isinstance(cmd, str)
    ]
    tasks.sort(key=lambda t: t.name)
    return tasks


def resolve_tasks(env: Mapping[str, str], profile: str, root: Path) -> List[TaskSpec]:
    """Profile tasks (or the legacy POST_UP_CMD) merged with package.json scripts."""
    tasks = parse_post_up_tasks(get_profile_value(env, "POST_UP_TASKS", profile))
    if not tasks:
        single = get_profile_value(env, "POST_UP_CMD", profile)
        if single.strip():
            tasks = [TaskSpec(name="postup", cmd=single)]

    known = {t.name for t in tasks}
    for pkg_task in load_package_json_tasks(root):
        if pkg_task.name not in known:
            tasks.append(pkg_task)
            known.add(pkg_task.name)

    tasks.sort(key=lambda t: t.name)
    return tasks


def resolve_profile(env: Mapping[str, str], requested: Optional[str] = None) -> str:
    for candidate in (requested, env.get("DOCKER_PROFILE"), env.get("COMPOSE_PROFILE")):
        if candidate and candidate.strip():
            return candidate.strip()
    return DEFAULT_PROFILE


# =============================================================================
# Building the configuration
# =============================================================================

def _int_setting(env: Mapping[str, str], file_cfg: dict, env_key: str, file_key: str, default: int) -> int:
    for raw in (env.get(env_key), file_cfg.get(file_key)):
        if raw is None:
            continue
        try:
            value = int(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-integer %s=%r", env_key, raw)
            continue
        if value > 0:
            return value
    return default


def _str_setting(env: Mapping[str, str], file_cfg: dict, env_key: str, file_key: str, default: str) -> str:
    value = env.get(env_key)
    if value:
        return value
    value = file_cfg.get(file_key)
    if isinstance(value, str) and value:
        return value
    return default


def build_config(
    profile: Optional[str] = None,
    start_dir: Optional[Path] = None,
    base_env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> DashboardConfig:
    """Resolve the full dashboard configuration.

    Args:
        profile: Profile requested on the command line (None = from env)
        start_dir: Directory to start the project-root search from
        base_env: Starting environment (defaults to a copy of os.environ)
        overrides: Explicit values for max_log_lines, refresh_ms,
            log_tail, auto_compose_up
    """
    if base_env is None:
        base_env = dict(os.environ)
    overrides = overrides or {}
    root = find_project_root(Path(start_dir) if start_dir else Path.cwd())
    file_cfg = load_config()

    # Base .env may itself choose the profile
    pre_env, _ = load_env(root, None, base_env)
    chosen = resolve_profile(pre_env, profile)

    env, loaded = load_env(root, chosen, base_env)
    env["DOCKER_PROFILE"] = chosen
    env["COMPOSE_PROFILES"] = chosen

    auto_compose_up = overrides.get("auto_compose_up")
    if auto_compose_up is None:
        auto_compose_up = bool(file_cfg.get("auto_compose_up", True))

    config = DashboardConfig(
        cwd=root,
        profile=chosen,
        docker_bin=_str_setting(env, file_cfg, "DOCKER_BIN", "docker_bin", DEFAULT_DOCKER_BIN),
        auto_compose_up=auto_compose_up,
        compose_profile=chosen,
        db_container=_str_setting(env, file_cfg, "DB_CONTAINER", "db_container", DEFAULT_DB_CONTAINER),
        storage_container=_str_setting(
            env, file_cfg, "STORAGE_CONTAINER", "storage_container", DEFAULT_STORAGE_CONTAINER
        ),
        tasks=tuple(resolve_tasks(env, chosen, root)),
        max_log_lines=overrides.get("max_log_lines") or _int_setting(
            env, file_cfg, "MAX_LOG_LINES", "max_log_lines", DEFAULT_MAX_LOG_LINES
        ),
        refresh_ms=overrides.get("refresh_ms") or _int_setting(
            env, file_cfg, "REFRESH_MS", "refresh_ms", DEFAULT_REFRESH_MS
        ),
        log_tail=overrides.get("log_tail") or _int_setting(
            env, file_cfg, "LOG_TAIL", "log_tail", DEFAULT_LOG_TAIL
        ),
        env=MappingProxyType(env),
        loaded_env_files=tuple(loaded),
    )
    logger.info(
        "Config resolved: root=%s profile=%s tasks=%d env_files=%s",
        root, chosen, len(config.tasks), ",".join(loaded) or "-",
    )
    return config
