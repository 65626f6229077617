import pytest

from releasegate.env import get_env, get_logging_env, reset_env_caches
from releasegate.errors import ConfigurationError
from releasegate.pipeline import StageName, TestLevel


def test_env_defaults():
    env = get_env()

    assert env.verbose is False
    assert env.quiet is False
    assert all(env.stage_config.is_enabled(s) for s in StageName)
    assert env.defaults.test_level == TestLevel.RUN_LOCAL_TESTS
    assert env.defaults.target_org_alias == "dev"
    assert env.defaults.target_branch == "main"
    assert env.notify_slack is False
    assert env.notify_email is False
    assert env.tool_timeout == 0


def test_stage_switches_from_env(monkeypatch):
    monkeypatch.setenv("STAGE_RUN_TESTS", "false")
    monkeypatch.setenv("STAGE_CREATE_PR", "0")
    monkeypatch.setenv("STAGE_DEPLOY", "")

    config = get_env().stage_config
    assert config.is_enabled(StageName.RUN_TESTS) is False
    assert config.is_enabled(StageName.CREATE_PULL_REQUEST) is False
    assert config.is_enabled(StageName.DEPLOY) is True


def test_default_overrides(monkeypatch):
    monkeypatch.setenv("DEFAULT_TEST_LEVEL", "runalltestsinorg")
    monkeypatch.setenv("DEFAULT_TARGET_ORG", "uat")
    monkeypatch.setenv("DEFAULT_TARGET_BRANCH", "develop")

    defaults = get_env().defaults
    assert defaults.test_level == TestLevel.RUN_ALL_TESTS_IN_ORG
    assert defaults.target_org_alias == "uat"
    assert defaults.target_branch == "develop"


def test_invalid_default_test_level(monkeypatch):
    monkeypatch.setenv("DEFAULT_TEST_LEVEL", "RunEverything")
    with pytest.raises(ConfigurationError):
        get_env()


def test_env_is_cached_until_reset(monkeypatch):
    first = get_env()
    monkeypatch.setenv("DEFAULT_TARGET_ORG", "uat")
    assert get_env() is first

    reset_env_caches()
    assert get_env().defaults.target_org_alias == "uat"


def test_secrets_are_masked(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_secret")
    monkeypatch.setenv("SFDX_AUTH_URL", "force://secret")

    dumped = repr(get_env().as_dict())
    assert "ghp_secret" not in dumped
    assert "force://secret" not in dumped


def test_run_url(monkeypatch):
    monkeypatch.setenv("GITHUB_REPOSITORY", "acme/app")
    monkeypatch.setenv("GITHUB_RUN_ID", "99")
    assert get_env().run_url == "https://github.com/acme/app/actions/runs/99"


def test_annotations_only_inside_actions(monkeypatch):
    assert get_logging_env().annotations is False
    monkeypatch.setenv("GITHUB_ACTIONS", "true")
    assert get_logging_env().annotations is True
    monkeypatch.setenv("RELEASEGATE_NO_ANNOTATIONS", "1")
    assert get_logging_env().annotations is False
