"""
Stage executors.

Each executor performs one pipeline stage against an external collaborator
(git, the Salesforce CLI, the host API) and reports a StageOutcome.
"""

from __future__ import annotations

from releasegate.env import Environment, workspace_root
from releasegate.github.client import client_from_env
from releasegate.pipeline.model import StageName
from releasegate.stages.base import StageExecutor
from releasegate.stages.conflicts import ConflictChecker
from releasegate.stages.deploy import Deployer
from releasegate.stages.metadata import MetadataValidator
from releasegate.stages.pull_request import PullRequestCreator
from releasegate.stages.salesforce import SalesforceCli
from releasegate.stages.tests import TestRunner


def build_executors(env: Environment) -> dict[StageName, StageExecutor]:
    root = workspace_root()
    cli = SalesforceCli(
        sf_bin=env.sf_bin,
        source_dir=env.source_dir,
        test_wait_minutes=env.test_wait_minutes,
        timeout=env.tool_timeout,
        auth_url=env.sfdx_auth_url,
        cwd=root,
    )

    def github():
        return client_from_env(env)

    executors: list[StageExecutor] = [
        ConflictChecker(cwd=root, timeout=env.tool_timeout),
        MetadataValidator(cli),
        TestRunner(cli),
        PullRequestCreator(github),
        Deployer(cli, github),
    ]
    return {e.stage: e for e in executors}


__all__ = [
    "ConflictChecker",
    "Deployer",
    "MetadataValidator",
    "PullRequestCreator",
    "SalesforceCli",
    "StageExecutor",
    "TestRunner",
    "build_executors",
]
