import threading

import pytest

from releasegate.errors import Cancelled, ConfigurationError, ExternalToolFailure
from releasegate.pipeline import (
    EventType,
    ErrorKind,
    OutcomeKind,
    PipelineParameters,
    StageConfig,
    StageName,
    StageOutcome,
    TestLevel,
)
from releasegate.pipeline.verdict import (
    MSG_COMPLETED,
    MSG_CONFLICTS,
    MSG_DEPLOYED,
    MSG_PR_CREATED,
    MSG_TESTS,
)
from releasegate.runner import (
    EXIT_CANCELLED,
    EXIT_FAILURE,
    EXIT_SUCCESS,
    run_pipeline,
)
from releasegate.stages.tests import TestRunner

S = StageName


class FakeExecutor:
    def __init__(self, stage, result=None, exc=None):
        self.stage = stage
        self.result = result
        self.exc = exc
        self.calls = []

    def execute(self, params, prior):
        self.calls.append(dict(prior))
        if self.exc is not None:
            raise self.exc
        if self.result is not None:
            return self.result
        return StageOutcome.success(self.stage)


def _executors(**overrides):
    ex = {stage: FakeExecutor(stage) for stage in S}
    for name, executor in overrides.items():
        ex[S(name)] = executor
    return ex


def _params(event_type=EventType.PUSH, **kw):
    base = dict(
        event_type=event_type,
        test_level=TestLevel.RUN_LOCAL_TESTS,
        specified_tests=(),
        target_org_alias="dev",
        target_branch="main",
        source_branch="feature/x",
    )
    base.update(kw)
    return PipelineParameters(**base)


# ------------------------------------------------------------
# Scenarios
# ------------------------------------------------------------


def test_push_all_green_opens_pull_request():
    executors = _executors()
    result = run_pipeline(_params(), StageConfig.all_enabled(), executors, quiet=True)

    kinds = {s: o.kind for s, o in result.outcomes.items()}
    assert kinds == {
        S.CHECK_CONFLICTS: OutcomeKind.SUCCESS,
        S.VALIDATE_METADATA: OutcomeKind.SUCCESS,
        S.RUN_TESTS: OutcomeKind.SUCCESS,
        S.CREATE_PULL_REQUEST: OutcomeKind.SUCCESS,
        S.DEPLOY: OutcomeKind.SKIPPED,
    }
    assert result.verdict.message == MSG_PR_CREATED
    assert result.exit_code == EXIT_SUCCESS
    assert executors[S.DEPLOY].calls == []


def test_approved_review_with_tests_disabled_deploys():
    config = StageConfig({S.RUN_TESTS: False})
    params = _params(EventType.REVIEW_SUBMITTED, pr_number=9, pr_approved=True)
    executors = _executors()

    result = run_pipeline(params, config, executors, quiet=True)

    assert result.outcomes[S.CHECK_CONFLICTS].is_skipped
    assert result.outcomes[S.RUN_TESTS].is_skipped
    assert result.outcomes[S.DEPLOY].is_success
    assert result.verdict.message == MSG_DEPLOYED
    assert executors[S.RUN_TESTS].calls == []


def test_commented_review_never_deploys():
    params = _params(EventType.REVIEW_SUBMITTED, pr_number=9, pr_approved=False)
    for tests_kind in (None, ConfigurationError("boom")):
        executors = _executors(run_tests=FakeExecutor(S.RUN_TESTS, exc=tests_kind))
        result = run_pipeline(params, StageConfig.all_enabled(), executors, quiet=True)

        assert result.outcomes[S.DEPLOY].is_skipped
        assert executors[S.DEPLOY].calls == []


def test_specified_tests_without_tests_fail_before_the_tool(tmp_path):
    class ExplodingCli:
        def run_apex_tests(self, params):
            raise AssertionError("collaborator must not be invoked")

    params = _params(
        EventType.MANUAL_DISPATCH, test_level=TestLevel.RUN_SPECIFIED_TESTS
    )
    executors = _executors(run_tests=TestRunner(ExplodingCli()))

    result = run_pipeline(params, StageConfig.all_enabled(), executors, quiet=True)

    tests = result.outcomes[S.RUN_TESTS]
    assert tests.is_failure
    assert tests.reason == "no tests specified"
    assert tests.error == ErrorKind.CONFIGURATION
    assert result.verdict.message == MSG_TESTS
    assert result.exit_code == EXIT_FAILURE


# ------------------------------------------------------------
# Failure propagation
# ------------------------------------------------------------


def test_conflict_failure_blocks_everything_downstream():
    executors = _executors(
        check_conflicts=FakeExecutor(
            S.CHECK_CONFLICTS,
            result=StageOutcome.failure(S.CHECK_CONFLICTS, "merge conflicts detected"),
        )
    )
    result = run_pipeline(_params(), StageConfig.all_enabled(), executors, quiet=True)

    assert result.outcomes[S.VALIDATE_METADATA].is_blocked
    assert result.outcomes[S.RUN_TESTS].is_blocked
    assert result.outcomes[S.CREATE_PULL_REQUEST].is_skipped
    assert result.verdict.message == MSG_CONFLICTS
    for stage in (S.VALIDATE_METADATA, S.RUN_TESTS, S.CREATE_PULL_REQUEST):
        assert executors[stage].calls == []


def test_tool_failure_carries_diagnostic():
    executors = _executors(
        check_conflicts=FakeExecutor(
            S.CHECK_CONFLICTS,
            exc=ExternalToolFailure("git fetch failed (exit 128)", diagnostic="fatal: no remote"),
        )
    )
    result = run_pipeline(_params(), StageConfig.all_enabled(), executors, quiet=True)

    outcome = result.outcomes[S.CHECK_CONFLICTS]
    assert outcome.is_failure
    assert outcome.reason == "git fetch failed (exit 128)"
    assert outcome.detail == "fatal: no remote"
    assert outcome.error == ErrorKind.EXTERNAL_TOOL


def test_timeout_maps_to_timeout_failure():
    executors = _executors(
        validate_metadata=FakeExecutor(
            S.VALIDATE_METADATA, exc=ExternalToolFailure("timeout", timed_out=True)
        )
    )
    result = run_pipeline(_params(), StageConfig.all_enabled(), executors, quiet=True)

    outcome = result.outcomes[S.VALIDATE_METADATA]
    assert outcome.reason == "timeout"
    assert outcome.error == ErrorKind.TIMEOUT


def test_crashing_executor_becomes_failure_not_skip():
    executors = _executors(run_tests=FakeExecutor(S.RUN_TESTS, exc=KeyError("summary")))
    result = run_pipeline(_params(), StageConfig.all_enabled(), executors, quiet=True)

    outcome = result.outcomes[S.RUN_TESTS]
    assert outcome.is_failure
    assert outcome.error == ErrorKind.CRASH
    assert result.verdict.message == MSG_TESTS


@pytest.mark.parametrize(
    "bad",
    [
        None,
        "ok",
        StageOutcome.success(S.DEPLOY),
        StageOutcome.blocked(S.RUN_TESTS, "nope"),
    ],
)
def test_malformed_results_become_failures(bad):
    class Weird:
        stage = S.RUN_TESTS

        def execute(self, params, prior):
            return bad

    result = run_pipeline(
        _params(), StageConfig.all_enabled(), _executors(run_tests=Weird()), quiet=True
    )
    outcome = result.outcomes[S.RUN_TESTS]
    assert outcome.is_failure
    assert outcome.reason.startswith("malformed result")


def test_missing_executor_is_a_configuration_failure():
    executors = _executors()
    del executors[S.CHECK_CONFLICTS]
    result = run_pipeline(_params(), StageConfig.all_enabled(), executors, quiet=True)

    outcome = result.outcomes[S.CHECK_CONFLICTS]
    assert outcome.is_failure
    assert outcome.error == ErrorKind.CONFIGURATION


def test_executors_see_prior_outcomes_in_order():
    executors = _executors()
    run_pipeline(_params(), StageConfig.all_enabled(), executors, quiet=True)

    seen = executors[S.RUN_TESTS].calls[0]
    assert list(seen) == [S.CHECK_CONFLICTS, S.VALIDATE_METADATA]


# ------------------------------------------------------------
# Cancellation
# ------------------------------------------------------------


def test_cancel_mid_stage_skips_the_rest():
    executors = _executors(validate_metadata=FakeExecutor(S.VALIDATE_METADATA, exc=Cancelled("SIGTERM")))
    result = run_pipeline(_params(), StageConfig.all_enabled(), executors, quiet=True)

    assert result.cancelled is True
    assert result.status == "cancelled"
    assert result.exit_code == EXIT_CANCELLED
    assert result.outcomes[S.CHECK_CONFLICTS].is_success
    for stage in (S.VALIDATE_METADATA, S.RUN_TESTS, S.CREATE_PULL_REQUEST, S.DEPLOY):
        assert result.outcomes[stage].kind == OutcomeKind.SKIPPED
        assert result.outcomes[stage].reason == "cancelled"
    assert result.verdict.message == MSG_COMPLETED


def test_keyboard_interrupt_cancels():
    executors = _executors(check_conflicts=FakeExecutor(S.CHECK_CONFLICTS, exc=KeyboardInterrupt()))
    result = run_pipeline(_params(), StageConfig.all_enabled(), executors, quiet=True)

    assert result.cancelled is True
    assert all(o.reason == "cancelled" for o in result.outcomes.values())


def test_preset_cancel_event_runs_nothing():
    cancel = threading.Event()
    cancel.set()
    executors = _executors()

    result = run_pipeline(_params(), StageConfig.all_enabled(), executors, cancel=cancel, quiet=True)

    assert result.cancelled is True
    assert all(e.calls == [] for e in executors.values())
    assert len(result.outcomes) == len(S)


def test_cancel_between_stages_still_produces_a_verdict(monkeypatch):
    from releasegate import runner

    real_gate = runner.evaluate_gate

    def gate(stage, config, params, outcomes):
        if stage == S.VALIDATE_METADATA:
            raise Cancelled("received SIGTERM")
        return real_gate(stage, config, params, outcomes)

    monkeypatch.setattr(runner, "evaluate_gate", gate)
    executors = _executors()

    result = run_pipeline(_params(), StageConfig.all_enabled(), executors, quiet=True)

    assert result.cancelled is True
    assert result.exit_code == EXIT_CANCELLED
    assert result.outcomes[S.CHECK_CONFLICTS].is_success
    for stage in (S.VALIDATE_METADATA, S.RUN_TESTS, S.CREATE_PULL_REQUEST, S.DEPLOY):
        assert result.outcomes[stage].reason == "cancelled"
    assert executors[S.VALIDATE_METADATA].calls == []
    assert result.verdict.message == MSG_COMPLETED


def test_cancel_after_outcome_is_recorded_keeps_that_outcome(monkeypatch):
    from releasegate import runner

    real_describe = runner._describe

    def describe(outcome):
        if outcome.stage == S.CHECK_CONFLICTS:
            raise KeyboardInterrupt()
        return real_describe(outcome)

    monkeypatch.setattr(runner, "_describe", describe)

    result = run_pipeline(_params(), StageConfig.all_enabled(), _executors(), quiet=True)

    assert result.cancelled is True
    assert result.outcomes[S.CHECK_CONFLICTS].is_success
    assert result.outcomes[S.VALIDATE_METADATA].reason == "cancelled"
    assert len(result.outcomes) == len(S)


def test_cancel_during_aggregation_still_produces_a_verdict(monkeypatch):
    from releasegate import runner

    real_aggregate = runner.aggregate
    calls = []

    def aggregate(outcomes, event_type, config):
        calls.append(1)
        if len(calls) == 1:
            raise Cancelled("received SIGTERM")
        return real_aggregate(outcomes, event_type, config)

    monkeypatch.setattr(runner, "aggregate", aggregate)

    result = run_pipeline(_params(), StageConfig.all_enabled(), _executors(), quiet=True)

    assert result.cancelled is True
    assert result.verdict.message == MSG_PR_CREATED


def test_run_status_marker_is_logged(caplog):
    caplog.set_level("INFO")
    run_pipeline(_params(), StageConfig.all_enabled(), _executors(), quiet=True)
    assert "RUN_STATUS=success" in caplog.text
