from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from releasegate.errors import ConfigurationError
from releasegate.pipeline.model import (
    PipelineDefaults,
    StageConfig,
    StageName,
    TestLevel,
)

# ------------------------------------------------------------
# Errors / helpers
# ------------------------------------------------------------


def _as_bool(v: str) -> bool:
    return v.strip().lower() in {"1", "true", "yes", "on"}


def _as_int(v: str, default: int) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _as_float(v: str, default: float) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return default


def _flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return _as_bool(raw)


def _mask(value: Optional[str]) -> str:
    return "set" if value else "unset"


# Stage switch -> environment variable. Names match the workflow env block.
STAGE_FLAG_VARS: dict[StageName, str] = {
    StageName.CHECK_CONFLICTS: "STAGE_CHECK_CONFLICTS",
    StageName.VALIDATE_METADATA: "STAGE_VALIDATE_METADATA",
    StageName.RUN_TESTS: "STAGE_RUN_TESTS",
    StageName.CREATE_PULL_REQUEST: "STAGE_CREATE_PR",
    StageName.DEPLOY: "STAGE_DEPLOY",
}


# ------------------------------------------------------------
# Logging environment (SAFE ANYWHERE)
# ------------------------------------------------------------


@dataclass(frozen=True)
class LoggingEnvironment:
    log_level: str
    log_retention: int
    verbose: bool
    quiet: bool
    annotations: bool


def get_logging_env() -> LoggingEnvironment:
    log_level = os.environ.get("LOG_LEVEL", "INFO")
    log_retention = _as_int(os.environ.get("LOG_RETENTION", "30"), 30)

    verbose = _as_bool(os.environ.get("RELEASEGATE_VERBOSE", "0"))
    quiet = _as_bool(os.environ.get("RELEASEGATE_QUIET", "0"))

    # Workflow annotations only make sense inside the CI host.
    annotations = _as_bool(os.environ.get("GITHUB_ACTIONS", "false")) and not _as_bool(
        os.environ.get("RELEASEGATE_NO_ANNOTATIONS", "0")
    )

    return LoggingEnvironment(
        log_level=log_level,
        log_retention=log_retention,
        verbose=verbose,
        quiet=quiet,
        annotations=annotations,
    )


# ------------------------------------------------------------
# Full runtime environment (PIPELINE ONLY)
# ------------------------------------------------------------


class Environment:
    def __init__(self):
        # Logging snapshot (immutable)
        self._logging = get_logging_env()

        # ---- STAGE SWITCHES ----
        self.stage_config = StageConfig(
            {stage: _flag(var, True) for stage, var in STAGE_FLAG_VARS.items()}
        )

        # ---- DEFAULTS ----
        raw_level = os.environ.get("DEFAULT_TEST_LEVEL", "RunLocalTests")
        try:
            test_level = TestLevel.parse(raw_level)
        except ValueError as e:
            raise ConfigurationError(f"DEFAULT_TEST_LEVEL: {e}") from e

        self.defaults = PipelineDefaults(
            test_level=test_level,
            target_org_alias=os.environ.get("DEFAULT_TARGET_ORG", "dev").strip() or "dev",
            target_branch=os.environ.get("DEFAULT_TARGET_BRANCH", "main").strip() or "main",
        )

        # ---- SALESFORCE CLI ----
        self.sf_bin = os.environ.get("RELEASEGATE_SF_BIN", "sf")
        self.source_dir = os.environ.get(
            "RELEASEGATE_SOURCE_DIR", "force-app/main/default"
        )
        self.test_wait_minutes = _as_int(os.environ.get("RELEASEGATE_TEST_WAIT", "10"), 10)
        self.tool_timeout = _as_float(os.environ.get("RELEASEGATE_TOOL_TIMEOUT", "0"), 0.0)
        self.sfdx_auth_url = os.environ.get("SFDX_AUTH_URL") or None

        # ---- HOST (CI / VCS) ----
        self.github_token = os.environ.get("GITHUB_TOKEN") or None
        self.github_repository = os.environ.get("GITHUB_REPOSITORY", "")
        self.github_api_url = os.environ.get(
            "GITHUB_API_URL", "https://api.github.com"
        ).rstrip("/")
        self.github_server_url = os.environ.get(
            "GITHUB_SERVER_URL", "https://github.com"
        ).rstrip("/")
        self.github_run_id = os.environ.get("GITHUB_RUN_ID", "")
        self.ref_name = os.environ.get("GITHUB_REF_NAME", "")
        self.sha = os.environ.get("GITHUB_SHA", "")
        self.event_name = os.environ.get("GITHUB_EVENT_NAME", "")
        self.event_path = os.environ.get("GITHUB_EVENT_PATH", "")
        self.http_timeout = _as_int(os.environ.get("RELEASEGATE_HTTP_TIMEOUT", "30"), 30)
        self.http_max_retries = _as_int(
            os.environ.get("RELEASEGATE_HTTP_MAX_RETRIES", "3"), 3
        )

        # ---- NOTIFICATIONS (off by default) ----
        self.notify_slack = _flag("RELEASEGATE_NOTIFY_SLACK", False)
        self.slack_webhook_url = os.environ.get("SLACK_WEBHOOK_URL") or None

        self.notify_email = _flag("RELEASEGATE_NOTIFY_EMAIL", False)
        self.mail_server = os.environ.get("MAIL_SERVER", "")
        self.mail_port = _as_int(os.environ.get("MAIL_PORT", "587"), 587)
        self.mail_username = os.environ.get("MAIL_USERNAME") or None
        self.mail_password = os.environ.get("MAIL_PASSWORD") or None
        self.mail_from = os.environ.get("MAIL_FROM", "")
        self.notification_email = os.environ.get("NOTIFICATION_EMAIL", "")

        # ---- RUN CONTEXT ----
        self.command = os.environ.get("RELEASEGATE_COMMAND", "bootstrap")
        self.run_id = os.environ.get("RELEASEGATE_RUN_ID", "")

    @property
    def run_url(self) -> Optional[str]:
        if not (self.github_repository and self.github_run_id):
            return None
        return (
            f"{self.github_server_url}/{self.github_repository}"
            f"/actions/runs/{self.github_run_id}"
        )

    def as_dict(self) -> dict:
        return {
            "Logging": {
                "log_level": self.log_level,
                "log_retention": self.log_retention,
                "verbose": self.verbose,
                "quiet": self.quiet,
                "annotations": self.annotations,
            },
            "Stages": {
                stage.value: self.stage_config.is_enabled(stage) for stage in StageName
            },
            "Defaults": {
                "test_level": self.defaults.test_level.value,
                "target_org": self.defaults.target_org_alias,
                "target_branch": self.defaults.target_branch,
            },
            "Salesforce": {
                "sf_bin": self.sf_bin,
                "source_dir": self.source_dir,
                "test_wait_minutes": self.test_wait_minutes,
                "tool_timeout": self.tool_timeout or "none",
                "sfdx_auth_url": _mask(self.sfdx_auth_url),
            },
            "Host": {
                "repository": self.github_repository,
                "api_url": self.github_api_url,
                "token": _mask(self.github_token),
                "event_name": self.event_name,
                "ref_name": self.ref_name,
                "run_url": self.run_url or "",
            },
            "Notifications": {
                "slack": self.notify_slack,
                "slack_webhook": _mask(self.slack_webhook_url),
                "email": self.notify_email,
                "mail_server": self.mail_server,
                "notification_email": self.notification_email,
            },
        }

    # ---- logging passthrough ----
    @property
    def log_level(self) -> str:
        return self._logging.log_level

    @property
    def log_retention(self) -> int:
        return self._logging.log_retention

    @property
    def verbose(self) -> bool:
        return self._logging.verbose

    @property
    def quiet(self) -> bool:
        return self._logging.quiet

    @property
    def annotations(self) -> bool:
        return self._logging.annotations


_ENV: Optional[Environment] = None


def reset_env_caches() -> None:
    """Invalidate cached views of environment variables."""
    global _ENV
    _ENV = None


def get_env() -> Environment:
    global _ENV
    if _ENV is None:
        _ENV = Environment()
    return _ENV
