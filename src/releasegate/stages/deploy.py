from __future__ import annotations

from typing import Callable, Mapping

from releasegate.errors import ReleasegateError
from releasegate.github.client import GitHubClient, GitHubError
from releasegate.logger import get_logger
from releasegate.pipeline.model import (
    PipelineParameters,
    StageName,
    StageOutcome,
)
from releasegate.stages.salesforce import SalesforceCli

log = get_logger(__name__)


def deployment_comment(params: PipelineParameters) -> str:
    return (
        "## Deployment Successful\n\n"
        f"Changes from this pull request were deployed to `{params.target_org_alias}`.\n\n"
        f"- **Test level:** {params.test_level.value}\n"
        f"- **Commit:** {params.commit_sha or 'unknown'}\n"
    )


class Deployer:
    stage = StageName.DEPLOY

    def __init__(
        self,
        cli: SalesforceCli,
        client_factory: Callable[[], GitHubClient],
    ) -> None:
        self.cli = cli
        self._client_factory = client_factory

    def execute(
        self,
        params: PipelineParameters,
        prior: Mapping[StageName, StageOutcome],
    ) -> StageOutcome:
        log.info(
            f"Deploying to {params.target_org_alias} ({params.test_level.value})"
        )
        self.cli.deploy(params).require_ok("deployment failed")
        log.info(f"Deployment to {params.target_org_alias} succeeded")

        commented = self._comment(params)
        return StageOutcome.success(self.stage, commented=commented)

    def _comment(self, params: PipelineParameters) -> bool:
        if params.pr_number is None:
            log.debug("No pull request number; skipping deployment comment")
            return False
        try:
            self._client_factory().create_comment(
                params.pr_number, deployment_comment(params)
            )
        except (GitHubError, ReleasegateError) as e:
            log.warning(f"Could not comment on pull request #{params.pr_number}: {e}")
            return False
        return True
