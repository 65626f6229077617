from releasegate.env import get_env
from releasegate.notify import Notification, build_sinks, dispatch
from releasegate.notify.mail import build_message
from releasegate.notify.slack import SlackSink, slack_payload
from releasegate.pipeline import EventType, PipelineParameters, PipelineVerdict, TestLevel

PARAMS = PipelineParameters(
    event_type=EventType.PUSH,
    test_level=TestLevel.RUN_LOCAL_TESTS,
    specified_tests=(),
    target_org_alias="dev",
    target_branch="main",
    source_branch="feature/x",
)

NOTE = Notification(
    verdict=PipelineVerdict("Tests failed", success=False),
    params=PARAMS,
    repository="acme/app",
    run_url="https://github.com/acme/app/actions/runs/1",
)


class FakeResponse:
    def __init__(self, status):
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise RuntimeError(f"HTTP {self.status}")


class FakeSession:
    def __init__(self, status=200):
        self.status = status
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json))
        return FakeResponse(self.status)


class BrokenSink:
    name = "broken"

    def send(self, notification):
        raise ConnectionError("smtp down")


def test_sinks_off_by_default():
    assert build_sinks(get_env()) == []


def test_slack_enabled_needs_webhook(monkeypatch):
    monkeypatch.setenv("RELEASEGATE_NOTIFY_SLACK", "true")
    assert build_sinks(get_env()) == []


def test_slack_and_email_sinks(monkeypatch):
    monkeypatch.setenv("RELEASEGATE_NOTIFY_SLACK", "true")
    monkeypatch.setenv("SLACK_WEBHOOK_URL", "https://hooks.slack.test/x")
    monkeypatch.setenv("RELEASEGATE_NOTIFY_EMAIL", "true")
    monkeypatch.setenv("MAIL_SERVER", "smtp.test")
    monkeypatch.setenv("MAIL_FROM", "ci@acme.test")
    monkeypatch.setenv("NOTIFICATION_EMAIL", "team@acme.test")

    names = [s.name for s in build_sinks(get_env())]
    assert names == ["slack", "email"]


def test_slack_posts_verdict():
    session = FakeSession()
    SlackSink("https://hooks.slack.test/x", session=session).send(NOTE)

    url, body = session.posts[0]
    assert url == "https://hooks.slack.test/x"
    assert body == slack_payload(NOTE)
    assert "Tests failed" in body["attachments"][0]["text"]
    assert body["attachments"][0]["color"] == "danger"


def test_email_message():
    msg = build_message(NOTE, sender="ci@acme.test", recipient="team@acme.test")
    assert msg["To"] == "team@acme.test"
    assert "failure" in msg["Subject"]
    assert "https://github.com/acme/app/actions/runs/1" in msg.get_content()


def test_dispatch_survives_failing_sinks():
    session = FakeSession(status=500)
    delivered = dispatch(NOTE, [BrokenSink(), SlackSink("https://x", session=session)])
    assert delivered == 0

    ok = FakeSession()
    assert dispatch(NOTE, [BrokenSink(), SlackSink("https://x", session=ok)]) == 1
