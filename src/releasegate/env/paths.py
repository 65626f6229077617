from __future__ import annotations

import os
from pathlib import Path

# ---------------------------------------------------------------------
# Workspace root
# ---------------------------------------------------------------------


def workspace_root() -> Path:
    """
    Root of the repository being released.

    RELEASEGATE_WORKSPACE wins, then the CI host's checkout dir, then cwd.
    """
    raw = os.environ.get("RELEASEGATE_WORKSPACE") or os.environ.get(
        "GITHUB_WORKSPACE"
    )
    return Path(raw).expanduser().resolve() if raw else Path.cwd().resolve()


# ---------------------------------------------------------------------
# Base directories (override-friendly)
# ---------------------------------------------------------------------


def _resolve_dir(env_var: str, default: Path) -> Path:
    """
    Resolve a directory path from an environment variable or default.
    Ensures the directory exists.
    """
    raw = os.environ.get(env_var)
    path = Path(raw).expanduser().resolve() if raw else default
    path.mkdir(parents=True, exist_ok=True)
    return path


def logs_dir() -> Path:
    return _resolve_dir("RELEASEGATE_LOGS_DIR", workspace_root() / "logs")


def out_dir() -> Path:
    """Captured collaborator output (validation / test JSON, run summary)."""
    return _resolve_dir("RELEASEGATE_OUT_DIR", workspace_root() / "out")


def out_file(name: str) -> Path:
    return out_dir() / name


# ---------------------------------------------------------------------
# Log layout helpers
# ---------------------------------------------------------------------


def command_logs_dir(command: str) -> Path:
    path = logs_dir() / command
    path.mkdir(parents=True, exist_ok=True)
    return path
