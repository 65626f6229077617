from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional


class EventType(str, Enum):
    PUSH = "push"
    REVIEW_SUBMITTED = "pull_request_review"
    MANUAL_DISPATCH = "workflow_dispatch"


class TestLevel(str, Enum):
    __test__ = False  # not a pytest class

    RUN_LOCAL_TESTS = "RunLocalTests"
    RUN_SPECIFIED_TESTS = "RunSpecifiedTests"
    RUN_ALL_TESTS_IN_ORG = "RunAllTestsInOrg"

    @classmethod
    def parse(cls, value: "str | TestLevel") -> "TestLevel":
        if isinstance(value, TestLevel):
            return value
        raw = (value or "").strip()
        for level in cls:
            if level.value.lower() == raw.lower():
                return level
        choices = ", ".join(level.value for level in cls)
        raise ValueError(f"Unknown test level {value!r} (expected one of: {choices})")


class StageName(str, Enum):
    CHECK_CONFLICTS = "check_conflicts"
    VALIDATE_METADATA = "validate_metadata"
    RUN_TESTS = "run_tests"
    CREATE_PULL_REQUEST = "create_pull_request"
    DEPLOY = "deploy"

    @property
    def title(self) -> str:
        return _STAGE_TITLES[self]


_STAGE_TITLES: dict[StageName, str] = {
    StageName.CHECK_CONFLICTS: "Check for Merge Conflicts",
    StageName.VALIDATE_METADATA: "Validate Metadata",
    StageName.RUN_TESTS: "Run Apex Tests",
    StageName.CREATE_PULL_REQUEST: "Create Pull Request",
    StageName.DEPLOY: "Deploy to Org",
}

# Topological order. create_pull_request and deploy both hang off run_tests.
STAGE_ORDER: tuple[StageName, ...] = (
    StageName.CHECK_CONFLICTS,
    StageName.VALIDATE_METADATA,
    StageName.RUN_TESTS,
    StageName.CREATE_PULL_REQUEST,
    StageName.DEPLOY,
)


# ------------------------------------------------------------
# Configuration
# ------------------------------------------------------------


@dataclass(frozen=True)
class StageConfig:
    """Process-wide stage enable switches. Unlisted stages are enabled."""

    enabled: Mapping[StageName, bool] = field(default_factory=dict)

    def __post_init__(self) -> None:
        flags = {stage: bool(self.enabled.get(stage, True)) for stage in StageName}
        object.__setattr__(self, "enabled", MappingProxyType(flags))

    def is_enabled(self, stage: StageName) -> bool:
        return self.enabled[stage]

    @classmethod
    def all_enabled(cls) -> "StageConfig":
        return cls({stage: True for stage in StageName})


@dataclass(frozen=True)
class PipelineDefaults:
    test_level: TestLevel = TestLevel.RUN_LOCAL_TESTS
    target_org_alias: str = "dev"
    target_branch: str = "main"


# ------------------------------------------------------------
# Run parameters
# ------------------------------------------------------------


@dataclass(frozen=True)
class PipelineParameters:
    event_type: EventType
    test_level: TestLevel
    specified_tests: tuple[str, ...]
    target_org_alias: str
    target_branch: str
    pr_number: Optional[int] = None
    pr_approved: bool = False
    source_branch: str = ""
    commit_sha: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "test_level": self.test_level.value,
            "specified_tests": list(self.specified_tests),
            "target_org_alias": self.target_org_alias,
            "target_branch": self.target_branch,
            "pr_number": self.pr_number,
            "pr_approved": self.pr_approved,
            "source_branch": self.source_branch,
            "commit_sha": self.commit_sha,
        }


# ------------------------------------------------------------
# Outcomes
# ------------------------------------------------------------


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"
    BLOCKED = "blocked"


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    EXTERNAL_TOOL = "external_tool"
    TIMEOUT = "timeout"
    CRASH = "crash"


@dataclass(frozen=True)
class StageOutcome:
    stage: StageName
    kind: OutcomeKind
    reason: Optional[str] = None
    detail: Optional[str] = None
    error: Optional[ErrorKind] = None
    data: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def success(
        cls,
        stage: StageName,
        *,
        detail: str | None = None,
        **data: Any,
    ) -> "StageOutcome":
        return cls(stage=stage, kind=OutcomeKind.SUCCESS, detail=detail, data=data)

    @classmethod
    def failure(
        cls,
        stage: StageName,
        reason: str,
        *,
        detail: str | None = None,
        error: ErrorKind = ErrorKind.EXTERNAL_TOOL,
        **data: Any,
    ) -> "StageOutcome":
        return cls(
            stage=stage,
            kind=OutcomeKind.FAILURE,
            reason=reason,
            detail=detail,
            error=error,
            data=data,
        )

    @classmethod
    def skipped(cls, stage: StageName, reason: str) -> "StageOutcome":
        return cls(stage=stage, kind=OutcomeKind.SKIPPED, reason=reason)

    @classmethod
    def blocked(cls, stage: StageName, reason: str) -> "StageOutcome":
        return cls(stage=stage, kind=OutcomeKind.BLOCKED, reason=reason)

    @property
    def is_success(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    @property
    def is_failure(self) -> bool:
        return self.kind == OutcomeKind.FAILURE

    @property
    def is_skipped(self) -> bool:
        return self.kind == OutcomeKind.SKIPPED

    @property
    def is_blocked(self) -> bool:
        return self.kind == OutcomeKind.BLOCKED

    def as_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "result": self.kind.value,
            "reason": self.reason,
            "error": self.error.value if self.error else None,
            "detail": self.detail,
            "data": dict(self.data),
        }


class OutcomeLedger(Mapping[StageName, StageOutcome]):
    """
    Write-once record of stage outcomes for a single run.

    Iteration follows recording order, which the runner keeps topological.
    """

    def __init__(self) -> None:
        self._outcomes: dict[StageName, StageOutcome] = {}

    def record(self, outcome: StageOutcome) -> StageOutcome:
        if outcome.stage in self._outcomes:
            raise ValueError(f"Outcome for {outcome.stage.value} already recorded")
        self._outcomes[outcome.stage] = outcome
        return outcome

    def __getitem__(self, stage: StageName) -> StageOutcome:
        return self._outcomes[stage]

    def __iter__(self) -> Iterator[StageName]:
        return iter(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)

    def snapshot(self) -> Mapping[StageName, StageOutcome]:
        return MappingProxyType(dict(self._outcomes))


@dataclass(frozen=True)
class PipelineVerdict:
    message: str
    success: bool

    @property
    def result(self) -> str:
        return "success" if self.success else "failure"
