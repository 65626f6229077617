from __future__ import annotations

from typing import Any, Optional

import requests

from releasegate.notify.base import Notification

_COLORS = {"success": "good", "failure": "danger", "cancelled": "warning"}


def slack_payload(notification: Notification) -> dict[str, Any]:
    return {
        "text": notification.subject,
        "attachments": [
            {
                "color": _COLORS.get(notification.status, "warning"),
                "text": "\n".join(notification.lines()),
            }
        ],
    }


class SlackSink:
    name = "slack"

    def __init__(
        self,
        webhook_url: str,
        *,
        timeout: int = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, notification: Notification) -> None:
        response = self.session.post(
            self.webhook_url, json=slack_payload(notification), timeout=self.timeout
        )
        response.raise_for_status()
