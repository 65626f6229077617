from __future__ import annotations

import smtplib
from email.message import EmailMessage
from typing import Optional

from releasegate.notify.base import Notification


def build_message(notification: Notification, *, sender: str, recipient: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = notification.subject
    msg["From"] = sender
    msg["To"] = recipient
    msg.set_content("\n".join(notification.lines()) + "\n")
    return msg


class EmailSink:
    name = "email"

    def __init__(
        self,
        *,
        server: str,
        port: int,
        sender: str,
        recipient: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: int = 30,
    ) -> None:
        self.server = server
        self.port = port
        self.sender = sender
        self.recipient = recipient
        self.username = username
        self.password = password
        self.timeout = timeout

    def send(self, notification: Notification) -> None:
        msg = build_message(notification, sender=self.sender, recipient=self.recipient)
        with smtplib.SMTP(self.server, self.port, timeout=self.timeout) as smtp:
            smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(msg)
