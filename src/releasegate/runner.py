"""
runner.py

Drives one pipeline run: gate each stage in order, execute the ones that
may run, record every outcome once, then reduce the outcomes to a verdict.

Executors are untrusted: whatever they raise or return is mapped to a
Failure here, never to Skipped.
"""

from __future__ import annotations

import signal
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Mapping, Optional

from releasegate.branding import (
    RELEASEGATE_HEADER,
    RELEASEGATE_SECTION_END,
    SYMBOLS,
)
from releasegate.errors import Cancelled, ConfigurationError, ExternalToolFailure
from releasegate.logger import get_logger
from releasegate.pipeline.gates import GateAction, evaluate_gate
from releasegate.pipeline.model import (
    STAGE_ORDER,
    ErrorKind,
    OutcomeKind,
    OutcomeLedger,
    PipelineParameters,
    PipelineVerdict,
    StageConfig,
    StageName,
    StageOutcome,
)
from releasegate.pipeline.verdict import aggregate
from releasegate.stages.base import StageExecutor

log = get_logger("releasegate.runner")

EXIT_SUCCESS = 0
EXIT_FAILURE = 20
EXIT_CONFIG = 30
EXIT_CANCELLED = 130

CANCELLED_REASON = "cancelled"

_SYMBOL_FOR_KIND = {
    OutcomeKind.SUCCESS: SYMBOLS.OK,
    OutcomeKind.FAILURE: SYMBOLS.FAIL,
    OutcomeKind.SKIPPED: SYMBOLS.SKIPPED,
    OutcomeKind.BLOCKED: SYMBOLS.BLOCKED,
}


@dataclass(frozen=True)
class RunOutcome:
    params: PipelineParameters
    outcomes: Mapping[StageName, StageOutcome]
    verdict: PipelineVerdict
    cancelled: bool = False

    @property
    def status(self) -> str:
        return CANCELLED_REASON if self.cancelled else self.verdict.result

    @property
    def exit_code(self) -> int:
        if self.cancelled:
            return EXIT_CANCELLED
        return EXIT_SUCCESS if self.verdict.success else EXIT_FAILURE


# ------------------------------------------------------------
# Cancellation
# ------------------------------------------------------------


def _raise_cancelled(signum, frame) -> None:
    raise Cancelled(f"received {signal.Signals(signum).name}")


@contextmanager
def cancel_on_signals() -> Iterator[None]:
    """
    Turn SIGTERM (the CI host's cancel) into Cancelled for the duration of
    the block. SIGINT already arrives as KeyboardInterrupt.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = signal.signal(signal.SIGTERM, _raise_cancelled)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------


def _log_header(title: str) -> None:
    log.info(RELEASEGATE_HEADER(title).rstrip("\n"))


def _log_footer() -> None:
    log.info(RELEASEGATE_SECTION_END())


def _describe(outcome: StageOutcome) -> str:
    symbol = _SYMBOL_FOR_KIND[outcome.kind]
    text = f"{symbol} {outcome.stage.title}: {outcome.kind.value}"
    return f"{text} ({outcome.reason})" if outcome.reason else text


def _execute(
    executor: StageExecutor,
    stage: StageName,
    params: PipelineParameters,
    prior: Mapping[StageName, StageOutcome],
) -> StageOutcome:
    """
    Run one executor and normalize whatever it does into a StageOutcome.

    Cancelled and KeyboardInterrupt propagate to the caller.
    """
    try:
        outcome = executor.execute(params, prior)
    except (Cancelled, KeyboardInterrupt):
        raise
    except ConfigurationError as e:
        log.error(f"{stage.title}: configuration error: {e}")
        return StageOutcome.failure(stage, str(e), error=ErrorKind.CONFIGURATION)
    except ExternalToolFailure as e:
        log.error(f"{stage.title}: {e.reason}")
        return StageOutcome.failure(
            stage,
            e.reason,
            detail=e.diagnostic,
            error=ErrorKind.TIMEOUT if e.timed_out else ErrorKind.EXTERNAL_TOOL,
        )
    except Exception as e:
        log.exception(f"{stage.title}: executor crashed")
        return StageOutcome.failure(
            stage, f"executor crashed: {e}", error=ErrorKind.CRASH
        )

    if not isinstance(outcome, StageOutcome):
        return StageOutcome.failure(
            stage,
            f"malformed result: expected StageOutcome, got {type(outcome).__name__}",
            error=ErrorKind.CRASH,
        )
    if outcome.stage != stage:
        return StageOutcome.failure(
            stage,
            f"malformed result: outcome for {outcome.stage.value}",
            error=ErrorKind.CRASH,
        )
    if outcome.kind == OutcomeKind.BLOCKED:
        return StageOutcome.failure(
            stage,
            "malformed result: executors cannot report blocked",
            error=ErrorKind.CRASH,
        )
    return outcome


# ------------------------------------------------------------
# Core execution
# ------------------------------------------------------------


def _run_stage(
    index: int,
    stage: StageName,
    params: PipelineParameters,
    config: StageConfig,
    executors: Mapping[StageName, StageExecutor],
    ledger: OutcomeLedger,
    quiet: bool,
) -> None:
    decision = evaluate_gate(stage, config, params, ledger)
    if decision.action != GateAction.RUN:
        outcome = ledger.record(decision.skipped_outcome())
        log.info(_describe(outcome))
        return

    executor = executors.get(stage)
    if executor is None:
        outcome = ledger.record(
            StageOutcome.failure(
                stage, "no executor configured", error=ErrorKind.CONFIGURATION
            )
        )
        log.error(_describe(outcome))
        return

    if not quiet:
        _log_header(f"Stage {index}/{len(STAGE_ORDER)}: {stage.title}")

    outcome = ledger.record(_execute(executor, stage, params, ledger.snapshot()))
    log.info(_describe(outcome))
    if not quiet:
        _log_footer()


def _aggregate(
    ledger: OutcomeLedger, params: PipelineParameters, config: StageConfig
) -> tuple[PipelineVerdict, bool]:
    """Aggregate, absorbing a cancel that lands mid-way. Returns (verdict, interrupted)."""
    interrupted = False
    while True:
        try:
            return aggregate(ledger, params.event_type, config), interrupted
        except (Cancelled, KeyboardInterrupt):
            interrupted = True


def run_pipeline(
    params: PipelineParameters,
    config: StageConfig,
    executors: Mapping[StageName, StageExecutor],
    *,
    cancel: Optional[threading.Event] = None,
    quiet: bool = False,
) -> RunOutcome:
    """
    Execute the pipeline once.

    `cancel` is checked before every stage. Once it is set, or once a
    cancel arrives anywhere during a stage's turn (gate, executor, logging),
    the in-flight stage and every remaining stage without an outcome are
    recorded as Skipped("cancelled"). A verdict is still produced.
    """
    ledger = OutcomeLedger()
    cancelled = False

    for index, stage in enumerate(STAGE_ORDER, start=1):
        if not cancelled and cancel is not None and cancel.is_set():
            cancelled = True

        if not cancelled:
            try:
                _run_stage(index, stage, params, config, executors, ledger, quiet)
                continue
            except (Cancelled, KeyboardInterrupt) as e:
                cancelled = True
                log.warning(f"{stage.title}: run cancelled ({str(e) or 'interrupt'})")

        if stage not in ledger:
            ledger.record(StageOutcome.skipped(stage, CANCELLED_REASON))

    verdict, interrupted = _aggregate(ledger, params, config)
    result = RunOutcome(
        params=params,
        outcomes=ledger.snapshot(),
        verdict=verdict,
        cancelled=cancelled or interrupted,
    )

    if result.cancelled:
        log.warning(f"{SYMBOLS.CANCELLED} Run cancelled (verdict: {verdict.message})")
    elif verdict.success:
        log.info(f"{SYMBOLS.OK} {verdict.message}")
    else:
        log.error(f"{SYMBOLS.FAIL} {verdict.message}")
    log.info(f"RUN_STATUS={result.status}")
    return result
