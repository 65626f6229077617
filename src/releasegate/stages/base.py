from __future__ import annotations

from typing import Mapping, Protocol

from releasegate.pipeline.model import (
    PipelineParameters,
    StageName,
    StageOutcome,
)


class StageExecutor(Protocol):
    """
    Executor interface. Keep it minimal.

    - `stage` names the pipeline stage this executor performs
    - execute() does the work and reports an outcome; it may raise
      ConfigurationError / ExternalToolFailure instead of returning a Failure
    """

    stage: StageName

    def execute(
        self,
        params: PipelineParameters,
        prior: Mapping[StageName, StageOutcome],
    ) -> StageOutcome: ...
