from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from releasegate.env import out_file
from releasegate.errors import ExternalToolFailure
from releasegate.logger import get_logger
from releasegate.pipeline.model import (
    PipelineParameters,
    StageName,
    StageOutcome,
)
from releasegate.stages.salesforce import SalesforceCli, parse_cli_json
from releasegate.stages.tooling import ToolResult

log = get_logger(__name__)

VALIDATION_FILE = "deployment_validation.json"


def save_raw(name: str, result: ToolResult) -> Path:
    """Keep the collaborator's raw output next to the run summary."""
    path = out_file(name)
    path.write_text(result.stdout or "", encoding="utf-8")
    return path


def _component_errors(doc: Mapping[str, Any]) -> str:
    result = doc.get("result")
    if not isinstance(result, dict):
        return ""
    details = result.get("details")
    failures = details.get("componentFailures") if isinstance(details, dict) else None
    if isinstance(failures, dict):
        failures = [failures]
    if not isinstance(failures, list):
        return ""

    lines = []
    for f in failures:
        if not isinstance(f, dict):
            continue
        lines.append(
            f"{f.get('componentType', '?')} {f.get('fullName', '?')}: {f.get('problem', '')}".rstrip()
        )
    return "\n".join(lines)


class MetadataValidator:
    stage = StageName.VALIDATE_METADATA

    def __init__(self, cli: SalesforceCli) -> None:
        self.cli = cli

    def execute(
        self,
        params: PipelineParameters,
        prior: Mapping[StageName, StageOutcome],
    ) -> StageOutcome:
        log.info(
            f"Validating metadata against {params.target_org_alias} "
            f"({params.test_level.value})"
        )

        result = self.cli.validate_deploy(params)
        if result.timed_out:
            result.require_ok("metadata validation")

        saved = save_raw(VALIDATION_FILE, result)
        log.debug(f"Validation output saved to {saved}")

        try:
            doc = parse_cli_json(result.stdout, what="metadata validation")
        except ExternalToolFailure:
            # No usable JSON: the exit code is all there is.
            result.require_ok("metadata validation failed")
            raise

        status = doc.get("status")
        if status == 0:
            log.info("Metadata validation passed")
            return StageOutcome.success(self.stage, output=str(saved))

        message = str(doc.get("message") or "metadata validation failed")
        detail = _component_errors(doc) or json.dumps(doc, indent=2)[-4000:]
        log.error(f"Metadata validation failed: {message}")
        return StageOutcome.failure(
            self.stage, message, detail=detail, output=str(saved)
        )
