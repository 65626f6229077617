from __future__ import annotations

from typing import Callable, Mapping, Optional

from releasegate.github.client import GitHubClient, GitHubError
from releasegate.logger import get_logger
from releasegate.pipeline.model import (
    PipelineParameters,
    StageName,
    StageOutcome,
)

log = get_logger(__name__)

PR_LABELS = ("automated", "salesforce", "pending-review")

PR_BODY_TEMPLATE = """\
## Automated Pull Request

This pull request was opened by the release pipeline after all checks passed.

- **Source branch:** `{source}`
- **Target branch:** `{target}`
- **Test level:** {test_level}
- **Commit:** {commit}

Deployment to `{org}` starts automatically once this pull request is approved.
"""


def pull_request_title(params: PipelineParameters) -> str:
    return f"[Pending Review] {params.source_branch} to {params.target_branch}"


def pull_request_body(params: PipelineParameters) -> str:
    return PR_BODY_TEMPLATE.format(
        source=params.source_branch,
        target=params.target_branch,
        test_level=params.test_level.value,
        commit=params.commit_sha or "unknown",
        org=params.target_org_alias,
    )


def _already_exists(error: GitHubError) -> bool:
    return error.status_code == 422 and "already exists" in str(error).lower()


class PullRequestCreator:
    stage = StageName.CREATE_PULL_REQUEST

    def __init__(self, client_factory: Callable[[], GitHubClient]) -> None:
        self._client_factory = client_factory

    def _existing_pull_request(
        self, client: GitHubClient, params: PipelineParameters
    ) -> Optional[dict]:
        """Refresh the pull request already open for this branch, if the host finds it."""
        try:
            pr = client.find_open_pull_request(
                head=params.source_branch, base=params.target_branch
            )
        except GitHubError as e:
            log.error(f"Could not look up the open pull request: {e}")
            return None
        if pr is None:
            return None

        number = pr.get("number")
        if not isinstance(number, int):
            return pr
        log.info(f"Pull request #{number} already open; updating it")
        try:
            pr = client.update_pull_request(
                number, title=pull_request_title(params), body=pull_request_body(params)
            ) or pr
        except GitHubError as e:
            log.warning(f"Could not update pull request #{number}: {e}")
        return pr

    def execute(
        self,
        params: PipelineParameters,
        prior: Mapping[StageName, StageOutcome],
    ) -> StageOutcome:
        if not params.source_branch:
            return StageOutcome.failure(
                self.stage, "source branch unknown; cannot open a pull request"
            )

        client = self._client_factory()
        title = pull_request_title(params)
        log.info(f"Opening pull request: {title}")

        try:
            pr = client.create_pull_request(
                title=title,
                body=pull_request_body(params),
                head=params.source_branch,
                base=params.target_branch,
            )
        except GitHubError as e:
            pr = self._existing_pull_request(client, params) if _already_exists(e) else None
            if pr is None:
                log.error(f"Pull request creation failed: {e}")
                return StageOutcome.failure(
                    self.stage, "pull request creation failed", detail=str(e)
                )

        number = pr.get("number")
        url = pr.get("html_url", "")
        if not isinstance(number, int):
            return StageOutcome.failure(
                self.stage, "host returned no pull request number", detail=str(pr)[:2000]
            )

        try:
            client.add_labels(number, PR_LABELS)
        except GitHubError as e:
            log.warning(f"Could not label pull request #{number}: {e}")

        log.info(f"Pull request #{number} ready for review: {url}")
        return StageOutcome.success(self.stage, pr_number=number, url=url)
