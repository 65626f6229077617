"""
salesforce.py

Salesforce CLI (`sf`) command construction and invocation.

Responsibilities:
- Org login from an SFDX auth URL (once per run)
- Validate / deploy / apex test command lines
- Decoding the CLI's JSON output

Does NOT:
- Decide stage outcomes (the stage executors interpret results)
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

from releasegate.errors import ExternalToolFailure
from releasegate.logger import get_logger
from releasegate.pipeline.model import PipelineParameters, TestLevel
from releasegate.stages.tooling import ToolResult, run_tool

log = get_logger(__name__)

ToolRunner = Callable[..., ToolResult]


def parse_cli_json(text: str, *, what: str) -> dict[str, Any]:
    """
    Decode a CLI JSON document. Anything before the first "{" (update
    banners, warnings printed to stdout) is ignored.
    """
    start = text.find("{")
    if start < 0:
        raise ExternalToolFailure(f"{what}: no JSON in CLI output", diagnostic=text[-2000:])
    try:
        data = json.loads(text[start:])
    except json.JSONDecodeError as e:
        raise ExternalToolFailure(
            f"{what}: malformed JSON from CLI ({e.msg})", diagnostic=text[-2000:]
        ) from e
    if not isinstance(data, dict):
        raise ExternalToolFailure(f"{what}: unexpected JSON shape", diagnostic=text[-2000:])
    return data


def level_args(params: PipelineParameters) -> list[str]:
    args = ["--test-level", params.test_level.value]
    if params.test_level == TestLevel.RUN_SPECIFIED_TESTS:
        for test in params.specified_tests:
            args += ["--tests", test]
    return args


class SalesforceCli:
    def __init__(
        self,
        *,
        sf_bin: str = "sf",
        source_dir: str = "force-app/main/default",
        test_wait_minutes: int = 10,
        timeout: Optional[float] = None,
        auth_url: Optional[str] = None,
        cwd: Optional[Path] = None,
        runner: ToolRunner = run_tool,
    ) -> None:
        self.sf_bin = sf_bin
        self.source_dir = source_dir
        self.test_wait_minutes = test_wait_minutes
        self.timeout = timeout or None
        self.auth_url = auth_url
        self.cwd = cwd
        self._run = runner
        self._logged_in: set[str] = set()

    def _sf(self, *args: str, echo: bool = True) -> ToolResult:
        return self._run(
            [self.sf_bin, *args], cwd=self.cwd, timeout=self.timeout, echo=echo
        )

    # ------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------

    def ensure_login(self, alias: str) -> None:
        """
        Log in to `alias` with the SFDX auth URL, once per alias per run.

        Without an auth URL the CLI is assumed to be authenticated already.
        The auth file never outlives the login call.
        """
        if alias in self._logged_in:
            return
        if not self.auth_url:
            log.debug("SFDX_AUTH_URL not set; assuming org %s is already authorized", alias)
            self._logged_in.add(alias)
            return

        fd, path = tempfile.mkstemp(prefix="sfdx-auth-", suffix=".txt")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(self.auth_url)
            result = self._sf(
                "org", "login", "sfdx-url", "--sfdx-url-file", path, "--alias", alias,
                echo=False,
            )
        finally:
            Path(path).unlink(missing_ok=True)

        result.require_ok(f"Salesforce login for org {alias} failed")
        log.info(f"Authorized Salesforce org {alias}")
        self._logged_in.add(alias)

    # ------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------

    def validate_deploy(self, params: PipelineParameters) -> ToolResult:
        self.ensure_login(params.target_org_alias)
        return self._sf(
            "project", "deploy", "validate",
            "--source-dir", self.source_dir,
            "--target-org", params.target_org_alias,
            *level_args(params),
            "--json",
            echo=False,
        )

    def run_apex_tests(self, params: PipelineParameters) -> ToolResult:
        self.ensure_login(params.target_org_alias)
        if params.test_level == TestLevel.RUN_SPECIFIED_TESTS:
            selection: list[str] = []
            for test in params.specified_tests:
                selection += ["--tests", test]
        else:
            selection = ["--test-level", params.test_level.value]

        return self._sf(
            "apex", "run", "test",
            "--target-org", params.target_org_alias,
            *selection,
            "--result-format", "json",
            "--wait", str(self.test_wait_minutes),
            echo=False,
        )

    def deploy(self, params: PipelineParameters) -> ToolResult:
        self.ensure_login(params.target_org_alias)
        return self._sf(
            "project", "deploy", "start",
            "--source-dir", self.source_dir,
            "--target-org", params.target_org_alias,
            *level_args(params),
        )
