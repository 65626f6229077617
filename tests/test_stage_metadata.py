import json

import pytest

from releasegate.errors import ExternalToolFailure
from releasegate.pipeline import EventType, PipelineParameters, TestLevel
from releasegate.stages.metadata import VALIDATION_FILE, MetadataValidator
from releasegate.stages.tooling import ToolResult

PARAMS = PipelineParameters(
    event_type=EventType.PUSH,
    test_level=TestLevel.RUN_LOCAL_TESTS,
    specified_tests=(),
    target_org_alias="dev",
    target_branch="main",
)


class FakeCli:
    def __init__(self, exit_code, stdout, timed_out=False):
        self.result = ToolResult(
            argv=("sf",), exit_code=exit_code, stdout=stdout, timed_out=timed_out
        )

    def validate_deploy(self, params):
        return self.result


def test_status_zero_is_success(tmp_path):
    cli = FakeCli(0, json.dumps({"status": 0, "result": {"success": True}}))
    outcome = MetadataValidator(cli).execute(PARAMS, {})

    assert outcome.is_success
    saved = tmp_path / "out" / VALIDATION_FILE
    assert json.loads(saved.read_text())["status"] == 0


def test_nonzero_status_fails_with_component_errors():
    doc = {
        "status": 1,
        "message": "Deploy failed.",
        "result": {
            "details": {
                "componentFailures": [
                    {
                        "componentType": "ApexClass",
                        "fullName": "AccountService",
                        "problem": "Variable does not exist: foo",
                    }
                ]
            }
        },
    }
    outcome = MetadataValidator(FakeCli(1, json.dumps(doc))).execute(PARAMS, {})

    assert outcome.is_failure
    assert outcome.reason == "Deploy failed."
    assert "ApexClass AccountService: Variable does not exist: foo" in outcome.detail


def test_exit_zero_but_nonzero_status_still_fails():
    outcome = MetadataValidator(FakeCli(0, json.dumps({"status": 1}))).execute(PARAMS, {})
    assert outcome.is_failure


def test_garbage_output_with_failed_exit_raises_tool_failure():
    with pytest.raises(ExternalToolFailure) as exc:
        MetadataValidator(FakeCli(2, "Error: org not found")).execute(PARAMS, {})
    assert "exit 2" in exc.value.reason


def test_garbage_output_with_clean_exit_is_malformed():
    with pytest.raises(ExternalToolFailure) as exc:
        MetadataValidator(FakeCli(0, "not json")).execute(PARAMS, {})
    assert "no JSON" in exc.value.reason


def test_timeout_raises_timed_out_failure():
    with pytest.raises(ExternalToolFailure) as exc:
        MetadataValidator(FakeCli(-9, "", timed_out=True)).execute(PARAMS, {})
    assert exc.value.timed_out is True
