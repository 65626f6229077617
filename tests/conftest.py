import logging

import pytest

from releasegate.env import STAGE_FLAG_VARS


def _drop_root_handlers() -> None:
    # pytest attaches its own capture handlers to the root logger; keep those.
    root = logging.getLogger()
    for h in list(root.handlers):
        if type(h).__module__.startswith("_pytest"):
            continue
        root.removeHandler(h)
        h.close()


@pytest.fixture(autouse=True)
def clean_env_and_state(monkeypatch, tmp_path):
    """
    Ensure tests don't leak env, logger state, or cached environment views,
    and never pick up the CI host's own variables.
    """

    keys = [
        "RELEASEGATE_WORKSPACE",
        "RELEASEGATE_LOGS_DIR",
        "RELEASEGATE_OUT_DIR",
        "RELEASEGATE_COMMAND",
        "RELEASEGATE_RUN_ID",
        "RELEASEGATE_VERBOSE",
        "RELEASEGATE_QUIET",
        "RELEASEGATE_ENV_FILE",
        "RELEASEGATE_SF_BIN",
        "RELEASEGATE_SOURCE_DIR",
        "RELEASEGATE_TEST_WAIT",
        "RELEASEGATE_TOOL_TIMEOUT",
        "RELEASEGATE_NOTIFY_SLACK",
        "RELEASEGATE_NOTIFY_EMAIL",
        "RELEASEGATE_NO_ANNOTATIONS",
        "DEFAULT_TEST_LEVEL",
        "DEFAULT_TARGET_ORG",
        "DEFAULT_TARGET_BRANCH",
        "SFDX_AUTH_URL",
        "SLACK_WEBHOOK_URL",
        "NOTIFICATION_EMAIL",
        "MAIL_SERVER",
        "MAIL_FROM",
        "LOG_LEVEL",
        "LOG_RETENTION",
        "GITHUB_ACTIONS",
        "GITHUB_TOKEN",
        "GITHUB_REPOSITORY",
        "GITHUB_RUN_ID",
        "GITHUB_REF_NAME",
        "GITHUB_SHA",
        "GITHUB_EVENT_NAME",
        "GITHUB_EVENT_PATH",
        "GITHUB_OUTPUT",
        "GITHUB_STEP_SUMMARY",
        "GITHUB_WORKSPACE",
        *STAGE_FLAG_VARS.values(),
    ]
    for k in keys:
        monkeypatch.delenv(k, raising=False)

    # Everything a test writes lands in its own tmp dir
    monkeypatch.setenv("RELEASEGATE_WORKSPACE", str(tmp_path))

    from releasegate import bootstrap
    from releasegate.env import reset_env_caches
    import releasegate.logger.state as state

    reset_env_caches()
    bootstrap._BOOTSTRAPPED = False

    state.INITIALIZED = False
    state.RUN_ID = None
    state.LOG_DIR = None
    state.LOG_FILE_PATH = None
    state.FILE_HANDLER = None
    state.HANDLERS = []

    _drop_root_handlers()

    yield

    _drop_root_handlers()
    reset_env_caches()
