"""
Status constants and mappings for Stackdash.

Centralizes task/container status values, badges, and the marker lines
written into task histories.
"""


# =============================================================================
# Task Status Values
# =============================================================================

TASK_PENDING = "pending"
TASK_RUN = "run"
TASK_OK = "ok"
TASK_FAIL = "fail"
TASK_STOP = "stop"  # Stopped by the operator

ALL_TASK_STATUSES = [
    TASK_PENDING,
    TASK_RUN,
    TASK_OK,
    TASK_FAIL,
    TASK_STOP,
]


# =============================================================================
# Task Status Display
# =============================================================================

TASK_STATUS_LABELS = {
    TASK_PENDING: "…",
    TASK_RUN: "RUN",
    TASK_OK: "OK",
    TASK_FAIL: "FAIL",
    TASK_STOP: "STOP",
}

TASK_STATUS_BADGES = {
    TASK_RUN: "🟢",
    TASK_FAIL: "🔴",
}


def get_task_status_label(status: str) -> str:
    """Get the short label shown in brackets on a task row."""
    return TASK_STATUS_LABELS.get(status, "?")


def get_task_badge(status: str) -> str:
    """Get the badge emoji for a task status."""
    return TASK_STATUS_BADGES.get(status, "⚪")


# =============================================================================
# Container State Display
# =============================================================================

CONTAINER_STATE_BADGES = {
    "running": "🟢",
    "paused": "🟡",
    "restarting": "🔵",
    "created": "⚪",
    "exited": "🔴",
    "dead": "🔴",
}


def get_container_badge(state: str) -> str:
    """Get the badge emoji for a container lifecycle state."""
    return CONTAINER_STATE_BADGES.get(state.lower(), "⚪")


# =============================================================================
# Stream Tags and Marker Lines
# =============================================================================

STDOUT_TAG = "[OUT]"
STDERR_TAG = "[ERR]"

MARKER_OK = "==> OK"
MARKER_STOPPED = "==> STOPPED (user)"


def marker_fail(code: int) -> str:
    return f"==> FAIL (exit {code})"


def marker_restart(cmd: str) -> str:
    return f"==> RESTART: {cmd}"


def marker_spawn_failed(error: str) -> str:
    return f"==> SPAWN FAILED: {error}"


def follower_banner(name: str) -> str:
    return f"--- streaming logs for {name} ---"
