"""
Pipeline core: data model, event normalization, stage gating and verdicts.

Everything in this package is pure. Collaborators (git, sf, the host API,
notification transports) live in releasegate.stages / github / notify.
"""
from __future__ import annotations

from releasegate.pipeline.approval import evaluate_approval
from releasegate.pipeline.events import (
    ManualDispatchEvent,
    PushEvent,
    ReviewSubmittedEvent,
    TriggerEvent,
    normalize_event,
    parse_event,
)
from releasegate.pipeline.gates import GateAction, GateDecision, evaluate_gate
from releasegate.pipeline.model import (
    STAGE_ORDER,
    ErrorKind,
    EventType,
    OutcomeKind,
    OutcomeLedger,
    PipelineDefaults,
    PipelineParameters,
    PipelineVerdict,
    StageConfig,
    StageName,
    StageOutcome,
    TestLevel,
)
from releasegate.pipeline.verdict import aggregate

__all__ = [
    "STAGE_ORDER",
    "ErrorKind",
    "EventType",
    "GateAction",
    "GateDecision",
    "ManualDispatchEvent",
    "OutcomeKind",
    "OutcomeLedger",
    "PipelineDefaults",
    "PipelineParameters",
    "PipelineVerdict",
    "PushEvent",
    "ReviewSubmittedEvent",
    "StageConfig",
    "StageName",
    "StageOutcome",
    "TestLevel",
    "TriggerEvent",
    "aggregate",
    "evaluate_approval",
    "evaluate_gate",
    "normalize_event",
    "parse_event",
]
