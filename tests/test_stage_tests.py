import json

import pytest

from releasegate.errors import ConfigurationError
from releasegate.pipeline import EventType, PipelineParameters, TestLevel
from releasegate.stages.tests import TEST_RESULTS_FILE, TestRunner, summarize
from releasegate.stages.tooling import ToolResult


def _params(level=TestLevel.RUN_LOCAL_TESTS, tests=()):
    return PipelineParameters(
        event_type=EventType.MANUAL_DISPATCH,
        test_level=level,
        specified_tests=tests,
        target_org_alias="dev",
        target_branch="main",
    )


def _report(outcome, tests=()):
    return {
        "status": 0 if outcome == "Passed" else 100,
        "result": {
            "summary": {
                "outcome": outcome,
                "testsRan": len(tests) or 3,
                "passing": sum(1 for t in tests if t["Outcome"] == "Pass") or 3,
                "failing": sum(1 for t in tests if t["Outcome"] == "Fail"),
                "passRate": "100%" if outcome == "Passed" else "50%",
            },
            "tests": list(tests),
        },
    }


class FakeCli:
    def __init__(self, doc, exit_code=0):
        self.doc = doc
        self.exit_code = exit_code
        self.calls = 0

    def run_apex_tests(self, params):
        self.calls += 1
        return ToolResult(argv=("sf",), exit_code=self.exit_code, stdout=json.dumps(self.doc))


def test_passed_outcome_is_success(tmp_path):
    outcome = TestRunner(FakeCli(_report("Passed"))).execute(_params(), {})

    assert outcome.is_success
    assert outcome.data["tests_ran"] == 3
    assert (tmp_path / "out" / TEST_RESULTS_FILE).exists()


def test_failed_outcome_lists_failing_tests():
    tests = [
        {"FullName": "AccountTest.testCreate", "Outcome": "Pass"},
        {"FullName": "AccountTest.testDelete", "Outcome": "Fail"},
    ]
    outcome = TestRunner(FakeCli(_report("Failed", tests), exit_code=100)).execute(_params(), {})

    assert outcome.is_failure
    assert outcome.data["failed_tests"] == ["AccountTest.testDelete"]
    assert outcome.detail == "AccountTest.testDelete"
    assert "Failed" in outcome.reason


def test_specified_level_without_tests_never_calls_the_cli():
    cli = FakeCli(_report("Passed"))
    with pytest.raises(ConfigurationError, match="^no tests specified$"):
        TestRunner(cli).execute(_params(TestLevel.RUN_SPECIFIED_TESTS), {})
    assert cli.calls == 0


def test_specified_tests_run():
    cli = FakeCli(_report("Passed"))
    outcome = TestRunner(cli).execute(_params(TestLevel.RUN_SPECIFIED_TESTS, ("AccountTest",)), {})
    assert outcome.is_success
    assert cli.calls == 1


def test_summarize_accepts_bare_result_document():
    summary = summarize({"summary": {"outcome": "Passed", "testsRan": "4"}, "tests": []})
    assert summary.passed
    assert summary.tests_ran == 4


def test_summarize_missing_summary_is_not_passed():
    summary = summarize({"result": {}})
    assert not summary.passed
    assert summary.failed_tests == ()
