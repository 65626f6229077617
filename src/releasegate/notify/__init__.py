"""
Run-completion notifications.

Sinks are opt-in. A sink that fails is logged and skipped; delivery never
changes the run verdict.
"""

from __future__ import annotations

from typing import Iterable

from releasegate.env import Environment
from releasegate.logger import get_logger
from releasegate.notify.base import Notification, NotificationSink
from releasegate.notify.mail import EmailSink
from releasegate.notify.slack import SlackSink

log = get_logger(__name__)


def build_sinks(env: Environment) -> list[NotificationSink]:
    sinks: list[NotificationSink] = []

    if env.notify_slack:
        if env.slack_webhook_url:
            sinks.append(SlackSink(env.slack_webhook_url, timeout=env.http_timeout))
        else:
            log.warning("Slack notifications enabled but SLACK_WEBHOOK_URL is not set")

    if env.notify_email:
        if env.mail_server and env.mail_from and env.notification_email:
            sinks.append(
                EmailSink(
                    server=env.mail_server,
                    port=env.mail_port,
                    sender=env.mail_from,
                    recipient=env.notification_email,
                    username=env.mail_username,
                    password=env.mail_password,
                )
            )
        else:
            log.warning(
                "Email notifications enabled but MAIL_SERVER / MAIL_FROM / "
                "NOTIFICATION_EMAIL are incomplete"
            )

    return sinks


def dispatch(notification: Notification, sinks: Iterable[NotificationSink]) -> int:
    """Deliver to every sink. Returns how many deliveries succeeded."""
    delivered = 0
    for sink in sinks:
        try:
            sink.send(notification)
        except Exception as e:
            log.warning(f"Notification via {sink.name} failed: {e}")
            continue
        delivered += 1
        log.info(f"Notification sent via {sink.name}")
    return delivered


__all__ = [
    "EmailSink",
    "Notification",
    "NotificationSink",
    "SlackSink",
    "build_sinks",
    "dispatch",
]
