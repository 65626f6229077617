"""
Stage gating.

evaluate_gate() decides whether a stage runs, is skipped, or is blocked,
from three inputs only: the stage switches, the run parameters, and the
outcomes already recorded for earlier stages. It has no side effects.

Blocking only ever comes from a Failure (or a Blocked stage, which is how a
failure echoes downstream). A Skipped predecessor lets work continue.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping

from releasegate.pipeline.model import (
    EventType,
    OutcomeKind,
    PipelineParameters,
    StageConfig,
    StageName,
    StageOutcome,
)


class GateAction(str, Enum):
    RUN = "run"
    SKIP = "skip"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class GateDecision:
    stage: StageName
    action: GateAction
    reason: str

    def skipped_outcome(self) -> StageOutcome:
        if self.action == GateAction.BLOCKED:
            return StageOutcome.blocked(self.stage, self.reason)
        return StageOutcome.skipped(self.stage, self.reason)


Outcomes = Mapping[StageName, StageOutcome]

# Stage -> the predecessor whose outcome its gate reads.
UPSTREAM: dict[StageName, StageName] = {
    StageName.VALIDATE_METADATA: StageName.CHECK_CONFLICTS,
    StageName.RUN_TESTS: StageName.VALIDATE_METADATA,
    StageName.CREATE_PULL_REQUEST: StageName.RUN_TESTS,
    StageName.DEPLOY: StageName.RUN_TESTS,
}

_FAILED = frozenset({OutcomeKind.FAILURE, OutcomeKind.BLOCKED})
_PASSABLE = frozenset({OutcomeKind.SUCCESS, OutcomeKind.SKIPPED})


def _upstream(stage: StageName, outcomes: Outcomes) -> StageOutcome:
    parent = UPSTREAM[stage]
    if parent not in outcomes:
        raise ValueError(
            f"{parent.value} must be evaluated before {stage.value}"
        )
    return outcomes[parent]


def _run(stage: StageName) -> GateDecision:
    return GateDecision(stage, GateAction.RUN, "eligible")


def _skip(stage: StageName, reason: str) -> GateDecision:
    return GateDecision(stage, GateAction.SKIP, reason)


def _blocked(stage: StageName, parent: StageOutcome) -> GateDecision:
    return GateDecision(stage, GateAction.BLOCKED, f"blocked_by_{parent.stage.value}")


# ------------------------------------------------------------
# Per-stage rules
# ------------------------------------------------------------


def _gate_check_conflicts(
    config: StageConfig, params: PipelineParameters, outcomes: Outcomes
) -> GateDecision:
    stage = StageName.CHECK_CONFLICTS
    if not config.is_enabled(stage):
        return _skip(stage, "disabled")
    if params.event_type not in (EventType.PUSH, EventType.MANUAL_DISPATCH):
        return _skip(stage, f"not run on {params.event_type.value}")
    return _run(stage)


def _gate_after_predecessor(stage: StageName) -> Callable[..., GateDecision]:
    """validate_metadata and run_tests share one shape: run unless upstream failed."""

    def gate(
        config: StageConfig, params: PipelineParameters, outcomes: Outcomes
    ) -> GateDecision:
        parent = _upstream(stage, outcomes)
        if config.is_enabled(stage) and parent.kind in _PASSABLE:
            return _run(stage)
        if parent.kind in _FAILED:
            return _blocked(stage, parent)
        return _skip(stage, "disabled")

    return gate


def _gate_create_pull_request(
    config: StageConfig, params: PipelineParameters, outcomes: Outcomes
) -> GateDecision:
    stage = StageName.CREATE_PULL_REQUEST
    tests = _upstream(stage, outcomes)
    if not config.is_enabled(stage):
        return _skip(stage, "disabled")
    if params.event_type != EventType.PUSH:
        return _skip(stage, f"not run on {params.event_type.value}")
    if tests.kind != OutcomeKind.SUCCESS:
        return _skip(stage, f"{tests.stage.value} was {tests.kind.value}")
    return _run(stage)


def _gate_deploy(
    config: StageConfig, params: PipelineParameters, outcomes: Outcomes
) -> GateDecision:
    stage = StageName.DEPLOY
    tests = _upstream(stage, outcomes)
    if not config.is_enabled(stage):
        return _skip(stage, "disabled")
    if params.event_type != EventType.REVIEW_SUBMITTED:
        return _skip(stage, f"not run on {params.event_type.value}")
    if not params.pr_approved:
        return _skip(stage, "pull request not approved")
    if tests.kind not in _PASSABLE:
        return _skip(stage, f"{tests.stage.value} was {tests.kind.value}")
    return _run(stage)


_GATES: dict[StageName, Callable[..., GateDecision]] = {
    StageName.CHECK_CONFLICTS: _gate_check_conflicts,
    StageName.VALIDATE_METADATA: _gate_after_predecessor(StageName.VALIDATE_METADATA),
    StageName.RUN_TESTS: _gate_after_predecessor(StageName.RUN_TESTS),
    StageName.CREATE_PULL_REQUEST: _gate_create_pull_request,
    StageName.DEPLOY: _gate_deploy,
}


def evaluate_gate(
    stage: StageName,
    config: StageConfig,
    params: PipelineParameters,
    outcomes: Outcomes,
) -> GateDecision:
    return _GATES[stage](config, params, outcomes)
