"""
Trigger events and their normalization into PipelineParameters.

Three trigger shapes reach the pipeline:

- PushEvent              code pushed to a working branch
- ReviewSubmittedEvent   a pull-request review was submitted
- ManualDispatchEvent    an operator started the pipeline by hand

parse_event() maps the CI host's raw event JSON onto one of them;
normalize_event() maps a typed event onto the canonical parameter record.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from releasegate.errors import EventError
from releasegate.pipeline.approval import evaluate_approval
from releasegate.pipeline.model import (
    EventType,
    PipelineDefaults,
    PipelineParameters,
    TestLevel,
)


@dataclass(frozen=True)
class PushEvent:
    source_branch: str = ""
    commit_sha: Optional[str] = None


@dataclass(frozen=True)
class ReviewSubmittedEvent:
    pr_number: Optional[int]
    base_branch: str
    review: Mapping[str, Any] = field(default_factory=dict)
    head_branch: str = ""
    commit_sha: Optional[str] = None


@dataclass(frozen=True)
class ManualDispatchEvent:
    test_level: Optional[TestLevel] = None
    specified_tests: tuple[str, ...] = ()
    target_org_alias: str = ""
    target_branch: str = ""
    source_branch: str = ""
    commit_sha: Optional[str] = None


TriggerEvent = Union[PushEvent, ReviewSubmittedEvent, ManualDispatchEvent]


# ------------------------------------------------------------
# Normalization
# ------------------------------------------------------------


def normalize_event(
    event: TriggerEvent, defaults: PipelineDefaults
) -> PipelineParameters:
    """
    Map a typed trigger event onto PipelineParameters.

    Shape mapping only: cross-field consistency (RunSpecifiedTests without
    tests) is left to the test stage.
    """
    if isinstance(event, ManualDispatchEvent):
        return PipelineParameters(
            event_type=EventType.MANUAL_DISPATCH,
            test_level=event.test_level or TestLevel.RUN_LOCAL_TESTS,
            specified_tests=tuple(event.specified_tests),
            target_org_alias=event.target_org_alias or defaults.target_org_alias,
            target_branch=event.target_branch or defaults.target_branch,
            pr_number=None,
            pr_approved=False,
            source_branch=event.source_branch,
            commit_sha=event.commit_sha,
        )

    if isinstance(event, ReviewSubmittedEvent):
        return PipelineParameters(
            event_type=EventType.REVIEW_SUBMITTED,
            test_level=defaults.test_level,
            specified_tests=(),
            target_org_alias=defaults.target_org_alias,
            target_branch=event.base_branch or defaults.target_branch,
            pr_number=event.pr_number,
            pr_approved=evaluate_approval(event.review),
            source_branch=event.head_branch,
            commit_sha=event.commit_sha,
        )

    return PipelineParameters(
        event_type=EventType.PUSH,
        test_level=defaults.test_level,
        specified_tests=(),
        target_org_alias=defaults.target_org_alias,
        target_branch=defaults.target_branch,
        pr_number=None,
        pr_approved=False,
        source_branch=event.source_branch,
        commit_sha=event.commit_sha,
    )


# ------------------------------------------------------------
# Raw payload parsing
# ------------------------------------------------------------

_EVENT_ALIASES: dict[str, EventType] = {
    "push": EventType.PUSH,
    "pull_request_review": EventType.REVIEW_SUBMITTED,
    "review": EventType.REVIEW_SUBMITTED,
    "workflow_dispatch": EventType.MANUAL_DISPATCH,
    "manual": EventType.MANUAL_DISPATCH,
}


def split_tests(raw: Any) -> tuple[str, ...]:
    """Comma-separated (or list) test identifiers -> tuple, blanks dropped."""
    if raw is None:
        return ()
    if isinstance(raw, str):
        parts = raw.split(",")
    else:
        parts = [str(p) for p in raw]
    return tuple(p.strip() for p in parts if p and p.strip())


def branch_from_ref(ref: str | None) -> str:
    ref = (ref or "").strip()
    for prefix in ("refs/heads/", "refs/tags/"):
        if ref.startswith(prefix):
            return ref[len(prefix) :]
    return ref


def _mapping(value: Any, what: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise EventError(f"Malformed event payload: {what} is not an object")
    return value


def _as_pr_number(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise EventError(f"Malformed pull request number: {value!r}") from e
    return number if number > 0 else None


def _parse_test_level(value: Any) -> Optional[TestLevel]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return TestLevel.parse(value)
    except ValueError as e:
        raise EventError(str(e)) from e


def resolve_event_type(event_name: str) -> EventType:
    key = (event_name or "").strip().lower()
    if key not in _EVENT_ALIASES:
        raise EventError(f"Unsupported trigger event: {event_name!r}")
    return _EVENT_ALIASES[key]


def parse_event(
    event_name: str,
    payload: Mapping[str, Any] | None = None,
    *,
    ref_name: str | None = None,
    sha: str | None = None,
    inputs: Mapping[str, Any] | None = None,
) -> TriggerEvent:
    """
    Build a typed trigger event from the CI host's raw event.

    `inputs` overrides workflow_dispatch inputs found in the payload (used by
    the CLI so an operator can start a manual run without an event file).
    Raises EventError for unknown triggers and malformed payloads.
    """
    event_type = resolve_event_type(event_name)
    payload = _mapping(payload, "event")

    if event_type == EventType.REVIEW_SUBMITTED:
        pr = _mapping(payload.get("pull_request"), "pull_request")
        base = _mapping(pr.get("base"), "pull_request.base")
        head = _mapping(pr.get("head"), "pull_request.head")
        review = payload.get("review")
        return ReviewSubmittedEvent(
            pr_number=_as_pr_number(pr.get("number")),
            base_branch=str(base.get("ref") or ""),
            review=review if isinstance(review, Mapping) else {},
            head_branch=str(head.get("ref") or ""),
            commit_sha=head.get("sha") or sha,
        )

    source_branch = ref_name or branch_from_ref(payload.get("ref"))
    commit_sha = sha or payload.get("after")

    if event_type == EventType.MANUAL_DISPATCH:
        merged: dict[str, Any] = dict(_mapping(payload.get("inputs"), "inputs"))
        for k, v in (inputs or {}).items():
            if v is not None:
                merged[k] = v

        return ManualDispatchEvent(
            test_level=_parse_test_level(merged.get("test_level")),
            specified_tests=split_tests(merged.get("specified_tests")),
            target_org_alias=str(merged.get("target_org_alias") or "").strip(),
            target_branch=str(merged.get("target_branch") or "").strip(),
            source_branch=source_branch,
            commit_sha=commit_sha,
        )

    return PushEvent(source_branch=source_branch, commit_sha=commit_sha)
