from __future__ import annotations

from typing import Mapping

from releasegate.pipeline.model import (
    EventType,
    OutcomeKind,
    PipelineVerdict,
    StageConfig,
    StageName,
    StageOutcome,
)

MSG_CONFLICTS = "Merge conflicts detected"
MSG_METADATA = "Metadata validation failed"
MSG_TESTS = "Tests failed"
MSG_PR_FAILED = "Pull request creation failed"
MSG_DEPLOY_FAILED = "Deployment failed"
MSG_PR_CREATED = "PR created successfully, waiting for approval"
MSG_DEPLOYED = "Changes deployed successfully after PR approval"
MSG_COMPLETED = "Pipeline completed successfully"


def _is(outcomes: Mapping[StageName, StageOutcome], stage: StageName, kind: OutcomeKind) -> bool:
    outcome = outcomes.get(stage)
    return outcome is not None and outcome.kind == kind


def aggregate(
    outcomes: Mapping[StageName, StageOutcome],
    event_type: EventType,
    config: StageConfig,
) -> PipelineVerdict:
    """
    Reduce stage outcomes to the single run verdict.

    First matching rule wins. Only Failure matches a failure rule; Skipped and
    Blocked outcomes fall through (a Blocked stage always sits behind a
    failure that an earlier rule already reports).
    """
    failed = OutcomeKind.FAILURE
    ok = OutcomeKind.SUCCESS

    if _is(outcomes, StageName.CHECK_CONFLICTS, failed):
        return PipelineVerdict(MSG_CONFLICTS, success=False)

    if _is(outcomes, StageName.VALIDATE_METADATA, failed):
        return PipelineVerdict(MSG_METADATA, success=False)

    if _is(outcomes, StageName.RUN_TESTS, failed):
        return PipelineVerdict(MSG_TESTS, success=False)

    if (
        _is(outcomes, StageName.CREATE_PULL_REQUEST, failed)
        and config.is_enabled(StageName.CREATE_PULL_REQUEST)
        and event_type == EventType.PUSH
    ):
        return PipelineVerdict(MSG_PR_FAILED, success=False)

    if (
        _is(outcomes, StageName.DEPLOY, failed)
        and config.is_enabled(StageName.DEPLOY)
        and event_type == EventType.REVIEW_SUBMITTED
    ):
        return PipelineVerdict(MSG_DEPLOY_FAILED, success=False)

    if event_type == EventType.PUSH and _is(outcomes, StageName.CREATE_PULL_REQUEST, ok):
        return PipelineVerdict(MSG_PR_CREATED, success=True)

    if event_type == EventType.REVIEW_SUBMITTED and _is(outcomes, StageName.DEPLOY, ok):
        return PipelineVerdict(MSG_DEPLOYED, success=True)

    return PipelineVerdict(MSG_COMPLETED, success=True)
