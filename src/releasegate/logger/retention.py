from __future__ import annotations

from pathlib import Path


def enforce_retention(log_dir: Path, keep: int) -> None:
    """Keep the newest `keep` run logs in log_dir; keep <= 0 disables pruning."""
    if keep <= 0:
        return

    logs = sorted(
        log_dir.glob("*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    for old in logs[keep:]:
        # Another process may prune the same directory.
        old.unlink(missing_ok=True)
