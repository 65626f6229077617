from __future__ import annotations

import argparse
import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping

from releasegate.env import Environment, logs_dir
from releasegate.errors import EventError
from releasegate.pipeline import (
    PipelineParameters,
    normalize_event,
    parse_event,
)


# ----------------------------
# Help dispatch (subparser-local)
# ----------------------------


def dispatch_subparser_help(
    parser: argparse.ArgumentParser, path: list[str] | None
) -> int:
    """
    Implements consistent `X help [subcmd ...]` behavior for a subtree parser.
    """
    if not path:
        parser.print_help()
        return 0

    try:
        parser.parse_args(path + ["--help"])
    except SystemExit:
        pass
    return 0


# ----------------------------
# Trigger resolution (run / plan)
# ----------------------------


def add_trigger_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--event-name",
        help="Trigger name: push, pull_request_review, workflow_dispatch "
        "(default: GITHUB_EVENT_NAME)",
    )
    p.add_argument(
        "--event-path",
        help="Path to the event payload JSON (default: GITHUB_EVENT_PATH)",
    )

    manual = p.add_argument_group("manual dispatch overrides")
    manual.add_argument(
        "--test-level",
        help="RunLocalTests, RunSpecifiedTests or RunAllTestsInOrg",
    )
    manual.add_argument(
        "--tests",
        action="append",
        help="Test class(es) for RunSpecifiedTests; repeat or comma-separate",
    )
    manual.add_argument("--target-org", help="Target org alias")
    manual.add_argument("--target-branch", help="Target branch")


def load_event_payload(path: str | None) -> Mapping[str, Any]:
    if not path:
        return {}

    p = Path(path).expanduser()
    if not p.is_file():
        raise EventError(f"Event payload not found: {p}")

    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise EventError(f"Event payload is not valid JSON ({p}): {e.msg}") from e

    if not isinstance(data, dict):
        raise EventError(f"Event payload must be a JSON object: {p}")
    return data


def resolve_params(args: argparse.Namespace, env: Environment) -> PipelineParameters:
    """Trigger event (flags, then host env) -> normalized parameters."""
    event_name = getattr(args, "event_name", None) or env.event_name
    if not event_name:
        raise EventError("No trigger event: pass --event-name or set GITHUB_EVENT_NAME")

    payload = load_event_payload(getattr(args, "event_path", None) or env.event_path)

    tests = getattr(args, "tests", None)
    inputs = {
        "test_level": getattr(args, "test_level", None),
        "specified_tests": ",".join(tests) if tests else None,
        "target_org_alias": getattr(args, "target_org", None),
        "target_branch": getattr(args, "target_branch", None),
    }

    event = parse_event(
        event_name,
        payload,
        ref_name=env.ref_name or None,
        sha=env.sha or None,
        inputs=inputs,
    )
    return normalize_event(event, env.defaults)


# ----------------------------
# Logs filesystem helpers
# ----------------------------


def resolve_log_dir(*, command: str | None, explicit: str | None) -> Path:
    if explicit:
        return Path(explicit).expanduser().resolve()

    base = logs_dir()
    return (base / command).resolve() if command else base


def iter_log_files(log_dir: Path) -> Iterable[Path]:
    if not log_dir.exists():
        return []
    return (p for p in log_dir.rglob("*.log") if p.is_file())


def find_log_file(log_dir: Path, name: str) -> Path | None:
    if not log_dir.exists():
        return None

    for p in (log_dir / name, log_dir / f"{name}.log"):
        if p.exists() and p.is_file():
            return p

    for p in log_dir.rglob("*.log"):
        if p.stem == name or p.name == name:
            return p

    return None


def read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="replace")


def print_tail(path: Path, lines: int) -> None:
    data = read_text(path).splitlines()
    tail = data[-lines:] if lines > 0 else data
    for line in tail:
        print(line)


# ----------------------------
# Run status inference (log-driven)
# ----------------------------


def infer_run_status(path: Path) -> str:
    """
    Last RUN_STATUS=<value> marker in the log: success | failure | cancelled.
    A log without one belongs to a run that never finished.
    """
    try:
        text = read_text(path)
    except OSError:
        return "unknown"

    status = "unknown"
    for line in text.splitlines():
        idx = line.find("RUN_STATUS=")
        if idx >= 0:
            status = line[idx + len("RUN_STATUS=") :].strip() or "unknown"
    return status


# ----------------------------
# Run listing models
# ----------------------------


@dataclass(frozen=True)
class RunFile:
    run_id: str
    path: Path
    mtime: float
    size: int


def list_run_files(log_dir: Path) -> list[RunFile]:
    items: list[RunFile] = []
    for p in iter_log_files(log_dir):
        try:
            st = p.stat()
        except OSError:
            continue
        items.append(RunFile(run_id=p.stem, path=p, mtime=st.st_mtime, size=st.st_size))

    items.sort(key=lambda r: r.mtime, reverse=True)
    return items


def format_mtime(ts: float) -> str:
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


# ----------------------------
# CLI output helpers
# ----------------------------


def print_table(headers: list[str], rows: list[list[str]]) -> None:
    """
    Simple fixed-width table printer for CLI output.
    """
    if not rows:
        print("(no results)")
        return

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(str(cell)))

    fmt = "  ".join(f"{{:{w}}}" for w in widths)

    print(fmt.format(*headers))
    print(fmt.format(*("-" * w for w in widths)))

    for row in rows:
        print(fmt.format(*(str(c) for c in row)))
