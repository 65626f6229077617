"""
Apex test stage.

The CLI's JSON report is the source of truth: the run passes only when the
summary outcome says so, regardless of the process exit code.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from releasegate.errors import ConfigurationError
from releasegate.logger import get_logger
from releasegate.pipeline.model import (
    PipelineParameters,
    StageName,
    StageOutcome,
    TestLevel,
)
from releasegate.stages.metadata import save_raw
from releasegate.stages.salesforce import SalesforceCli, parse_cli_json

log = get_logger(__name__)

TEST_RESULTS_FILE = "test_results.json"
PASSED = "Passed"


@dataclass(frozen=True)
class TestSummary:
    __test__ = False  # not a pytest class

    outcome: str
    tests_ran: int
    passing: int
    failing: int
    pass_rate: str
    failed_tests: tuple[str, ...]

    @property
    def passed(self) -> bool:
        return self.outcome == PASSED


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def summarize(doc: Mapping[str, Any]) -> TestSummary:
    """Read the summary and failing tests from an `sf apex run test` report."""
    result = doc.get("result") if isinstance(doc.get("result"), dict) else doc
    summary = result.get("summary") if isinstance(result.get("summary"), dict) else {}
    tests = result.get("tests") if isinstance(result.get("tests"), list) else []

    failed = tuple(
        str(t.get("FullName") or t.get("fullName") or t.get("MethodName") or "?")
        for t in tests
        if isinstance(t, dict) and str(t.get("Outcome", "")).lower() == "fail"
    )

    return TestSummary(
        outcome=str(summary.get("outcome", "")),
        tests_ran=_as_int(summary.get("testsRan")),
        passing=_as_int(summary.get("passing")),
        failing=_as_int(summary.get("failing")),
        pass_rate=str(summary.get("passRate", "")),
        failed_tests=failed,
    )


class TestRunner:
    __test__ = False  # not a pytest class

    stage = StageName.RUN_TESTS

    def __init__(self, cli: SalesforceCli) -> None:
        self.cli = cli

    def execute(
        self,
        params: PipelineParameters,
        prior: Mapping[StageName, StageOutcome],
    ) -> StageOutcome:
        if params.test_level == TestLevel.RUN_SPECIFIED_TESTS and not params.specified_tests:
            raise ConfigurationError("no tests specified")

        log.info(
            f"Running Apex tests in {params.target_org_alias} ({params.test_level.value})"
        )

        result = self.cli.run_apex_tests(params)
        if result.timed_out:
            result.require_ok("apex tests")

        saved = save_raw(TEST_RESULTS_FILE, result)
        doc = parse_cli_json(result.stdout, what="apex test run")
        summary = summarize(doc)

        log.info(
            f"Tests ran: {summary.tests_ran} | passing: {summary.passing} | "
            f"failing: {summary.failing} | pass rate: {summary.pass_rate or 'n/a'}"
        )

        data = {
            "outcome": summary.outcome,
            "tests_ran": summary.tests_ran,
            "passing": summary.passing,
            "failing": summary.failing,
            "pass_rate": summary.pass_rate,
            "output": str(saved),
        }

        if summary.passed:
            return StageOutcome.success(self.stage, **data)

        for name in summary.failed_tests:
            log.error(f"Failed: {name}")

        return StageOutcome.failure(
            self.stage,
            f"test run outcome: {summary.outcome or 'unknown'}",
            detail="\n".join(summary.failed_tests) or None,
            failed_tests=list(summary.failed_tests),
            **data,
        )
