"""
CI host workflow commands.

Outputs, step summaries and annotations are files / stdout lines the host
reads back after a step ends. Everything here is a no-op outside the host.
"""

from __future__ import annotations

import os
import uuid
from pathlib import Path


def _escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def format_annotation(kind: str, message: str) -> str:
    return f"::{kind}::{_escape_data(message)}"


def write_output(name: str, value: str) -> bool:
    """Append name=value to GITHUB_OUTPUT. Returns False when not on the host."""
    target = os.environ.get("GITHUB_OUTPUT")
    if not target:
        return False

    with Path(target).open("a", encoding="utf-8") as f:
        if "\n" in value:
            delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
            f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
        else:
            f.write(f"{name}={value}\n")
    return True


def append_step_summary(markdown: str) -> bool:
    target = os.environ.get("GITHUB_STEP_SUMMARY")
    if not target:
        return False

    with Path(target).open("a", encoding="utf-8") as f:
        f.write(markdown.rstrip("\n") + "\n")
    return True
