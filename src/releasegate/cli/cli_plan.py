"""
`releasegate plan`: show which stages a trigger would run.

Every stage the gates allow is assumed to succeed; no collaborator is
invoked.
"""

from __future__ import annotations

import argparse

from rich.console import Console
from rich.table import Table

from releasegate.cli.common import add_trigger_arguments, resolve_params
from releasegate.errors import ConfigurationError
from releasegate.pipeline import (
    STAGE_ORDER,
    GateAction,
    GateDecision,
    OutcomeLedger,
    PipelineParameters,
    StageConfig,
    StageOutcome,
    aggregate,
    evaluate_gate,
)


def build_plan_parser(subparsers: argparse._SubParsersAction) -> None:
    plan = subparsers.add_parser(
        "plan", help="Show the gate decisions for a trigger without running anything"
    )
    add_trigger_arguments(plan)


def plan_run(
    params: PipelineParameters, config: StageConfig
) -> tuple[list[GateDecision], OutcomeLedger]:
    ledger = OutcomeLedger()
    decisions: list[GateDecision] = []
    for stage in STAGE_ORDER:
        decision = evaluate_gate(stage, config, params, ledger)
        decisions.append(decision)
        if decision.action == GateAction.RUN:
            ledger.record(StageOutcome.success(stage))
        else:
            ledger.record(decision.skipped_outcome())
    return decisions, ledger


def handle_plan(args: argparse.Namespace) -> int:
    from releasegate.env import get_env
    from releasegate.runner import EXIT_CONFIG

    console = Console()
    try:
        env = get_env()
        params = resolve_params(args, env)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return EXIT_CONFIG

    decisions, ledger = plan_run(params, env.stage_config)

    table = Table(title=f"Plan for {params.event_type.value}")
    table.add_column("Stage")
    table.add_column("Decision")
    table.add_column("Reason")
    for d in decisions:
        style = "green" if d.action == GateAction.RUN else "dim"
        table.add_row(d.stage.title, f"[{style}]{d.action.value}[/{style}]", d.reason)

    console.print(table)
    console.print(
        f"Target: [bold]{params.target_org_alias}[/bold] / {params.target_branch} "
        f"({params.test_level.value})"
    )
    verdict = aggregate(ledger, params.event_type, env.stage_config)
    console.print(f"Expected verdict if every stage succeeds: {verdict.message}")
    return 0
