"""bootstrap.py

Process bootstrap for Releasegate.

Rules:
1) Only bootstrap mutates os.environ for shared run context.
2) Call bootstrap_base_env() once at the true entrypoint.
3) Call bootstrap_run_context() after argparse parsing, before init_logging().

Everything else treats environment variables as the source of truth.
"""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from releasegate.env import reset_env_caches, workspace_root


_BOOTSTRAPPED = False


def bootstrap_base_env(env_file: str | Path | None = None) -> None:
    """
    Load the optional .env file and stamp a run id.

    Existing process variables always win over the file (CI secrets stay
    authoritative).
    """
    global _BOOTSTRAPPED
    if _BOOTSTRAPPED:
        return

    dotenv_path = Path(
        env_file or os.environ.get("RELEASEGATE_ENV_FILE") or workspace_root() / ".env"
    )
    if dotenv_path.exists():
        load_dotenv(dotenv_path, override=False)

    os.environ.setdefault(
        "RELEASEGATE_RUN_ID",
        datetime.now().strftime("%Y-%m-%d_%H-%M-%S"),
    )

    reset_env_caches()
    _BOOTSTRAPPED = True


def bootstrap_run_context(
    *,
    command: str,
    verbose: bool | None = None,
    quiet: bool | None = None,
) -> None:
    """Establish run-scoped context used by logging + pipeline stages."""

    os.environ["RELEASEGATE_COMMAND"] = command

    if verbose is not None:
        os.environ["RELEASEGATE_VERBOSE"] = "1" if verbose else "0"
    if quiet is not None:
        os.environ["RELEASEGATE_QUIET"] = "1" if quiet else "0"

    # Context changes must invalidate cached env views.
    reset_env_caches()
