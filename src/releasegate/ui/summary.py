"""
End-of-run reporting.

Three renderings of the same RunOutcome:
- a rich table + verdict panel on the console
- run_summary.json in the output directory
- a markdown table for the CI step summary
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from releasegate.env import out_file
from releasegate.pipeline.model import OutcomeKind, StageOutcome
from releasegate.runner import RunOutcome

RUN_SUMMARY_FILE = "run_summary.json"

_STYLE = {
    OutcomeKind.SUCCESS: "green",
    OutcomeKind.FAILURE: "bold red",
    OutcomeKind.SKIPPED: "dim",
    OutcomeKind.BLOCKED: "yellow",
}

_EMOJI = {
    OutcomeKind.SUCCESS: ":white_check_mark:",
    OutcomeKind.FAILURE: ":x:",
    OutcomeKind.SKIPPED: ":fast_forward:",
    OutcomeKind.BLOCKED: ":no_entry:",
}

DETAIL_MAX_LINES = 30


def _clip(text: str, max_lines: int = DETAIL_MAX_LINES) -> str:
    lines = text.splitlines()
    if len(lines) <= max_lines:
        return text
    return "\n".join(["...", *lines[-max_lines:]])


def _diagnostics(outcome: RunOutcome) -> list[StageOutcome]:
    return [o for o in outcome.outcomes.values() if o.is_failure and o.detail]


# ------------------------------------------------------------
# Console
# ------------------------------------------------------------


def build_summary(outcome: RunOutcome) -> Group:
    table = Table(title="Pipeline stages", expand=False)
    table.add_column("Stage")
    table.add_column("Result")
    table.add_column("Reason", overflow="fold")

    for stage_outcome in outcome.outcomes.values():
        table.add_row(
            stage_outcome.stage.title,
            Text(stage_outcome.kind.value, style=_STYLE[stage_outcome.kind]),
            stage_outcome.reason or "",
        )

    parts: list = [table]

    for failed in _diagnostics(outcome):
        parts.append(
            Panel(
                Text(_clip(failed.detail or "")),
                title=f"{failed.stage.title} diagnostics",
                border_style="red",
            )
        )

    if outcome.cancelled:
        border, heading = "yellow", "CANCELLED"
    elif outcome.verdict.success:
        border, heading = "green", "SUCCESS"
    else:
        border, heading = "red", "FAILURE"

    parts.append(
        Panel(Text(outcome.verdict.message, justify="center"), title=heading, border_style=border)
    )
    return Group(*parts)


def render_summary(outcome: RunOutcome, console: Optional[Console] = None) -> None:
    (console or Console()).print(build_summary(outcome))


# ------------------------------------------------------------
# Files
# ------------------------------------------------------------


def summary_dict(outcome: RunOutcome) -> dict:
    return {
        "status": outcome.status,
        "result": outcome.verdict.result,
        "message": outcome.verdict.message,
        "cancelled": outcome.cancelled,
        "parameters": outcome.params.as_dict(),
        "stages": [o.as_dict() for o in outcome.outcomes.values()],
    }


def write_run_summary(outcome: RunOutcome, path: Optional[Path] = None) -> Path:
    target = path or out_file(RUN_SUMMARY_FILE)
    target.write_text(json.dumps(summary_dict(outcome), indent=2) + "\n", encoding="utf-8")
    return target


def step_summary_markdown(outcome: RunOutcome) -> str:
    lines = [
        "## Salesforce CI/CD Pipeline",
        "",
        f"**{outcome.status.upper()}**: {outcome.verdict.message}",
        "",
        "| Stage | Result | Reason |",
        "|---|---|---|",
    ]
    for o in outcome.outcomes.values():
        reason = (o.reason or "").replace("|", "\\|")
        lines.append(f"| {o.stage.title} | {_EMOJI[o.kind]} {o.kind.value} | {reason} |")

    for failed in _diagnostics(outcome):
        lines += [
            "",
            f"<details><summary>{failed.stage.title} diagnostics</summary>",
            "",
            "```",
            _clip(failed.detail or ""),
            "```",
            "</details>",
        ]
    return "\n".join(lines) + "\n"
