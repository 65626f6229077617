from __future__ import annotations

import argparse

from releasegate.errors import Cancelled, ConfigurationError
from releasegate.github.actions import append_step_summary, write_output
from releasegate.logger import get_logger
from releasegate.cli.common import add_trigger_arguments, resolve_params

log = get_logger("releasegate")


# ------------------------------------------------------------
# Parser
# ------------------------------------------------------------


def build_run_parser(subparsers: argparse._SubParsersAction) -> None:
    run = subparsers.add_parser(
        "run", help="Run the release pipeline for the current trigger event"
    )
    add_trigger_arguments(run)
    run.add_argument("--verbose", action="store_true")
    run.add_argument("--quiet", action="store_true")


# ------------------------------------------------------------
# Handler
# ------------------------------------------------------------


def _write_outputs(outcome) -> None:
    params = outcome.params
    write_output("status", outcome.status)
    write_output("result", outcome.verdict.message)
    write_output("event_type", params.event_type.value)
    write_output("test_level", params.test_level.value)
    write_output("target_org", params.target_org_alias)
    write_output("target_branch", params.target_branch)
    write_output("pr_number", str(params.pr_number or 0))
    write_output("pr_approved", "true" if params.pr_approved else "false")


def handle_run(args: argparse.Namespace) -> int:
    from releasegate.env import get_env
    from releasegate.notify import Notification, build_sinks, dispatch
    from releasegate.runner import (
        EXIT_CANCELLED,
        EXIT_CONFIG,
        cancel_on_signals,
        run_pipeline,
    )
    from releasegate.stages import build_executors
    from releasegate.ui.summary import (
        render_summary,
        step_summary_markdown,
        write_run_summary,
    )

    log.info("Releasegate starting")
    log.info("Command: run")

    # Config and trigger errors surface before any stage runs
    try:
        env = get_env()
        params = resolve_params(args, env)
    except ConfigurationError as e:
        log.error(f"Configuration error: {e}")
        write_output("status", "failure")
        write_output("result", str(e))
        log.info("RUN_STATUS=failure")
        return EXIT_CONFIG

    log.info(f"Trigger: {params.event_type.value}")
    log.info(f"Branch: {params.source_branch or 'n/a'} -> {params.target_branch}")
    log.info(f"Org: {params.target_org_alias}")
    log.info(f"Test level: {params.test_level.value}")
    if params.specified_tests:
        log.info(f"Tests: {', '.join(params.specified_tests)}")
    if params.pr_number is not None:
        log.info(
            f"Pull request #{params.pr_number} "
            f"({'approved' if params.pr_approved else 'not approved'})"
        )

    executors = build_executors(env)

    try:
        with cancel_on_signals():
            outcome = run_pipeline(
                params, env.stage_config, executors, quiet=env.quiet
            )
    except (Cancelled, KeyboardInterrupt):
        log.warning("Run cancelled before a verdict was reached")
        write_output("status", "cancelled")
        log.info("RUN_STATUS=cancelled")
        return EXIT_CANCELLED

    if not env.quiet:
        render_summary(outcome)

    saved = write_run_summary(outcome)
    log.debug(f"Run summary saved to {saved}")

    _write_outputs(outcome)
    append_step_summary(step_summary_markdown(outcome))

    dispatch(
        Notification(
            verdict=outcome.verdict,
            params=params,
            repository=env.github_repository,
            run_url=env.run_url,
            cancelled=outcome.cancelled,
        ),
        build_sinks(env),
    )

    return outcome.exit_code
