from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from releasegate.pipeline.model import PipelineParameters, PipelineVerdict


@dataclass(frozen=True)
class Notification:
    verdict: PipelineVerdict
    params: PipelineParameters
    repository: str = ""
    run_url: Optional[str] = None
    cancelled: bool = False

    @property
    def status(self) -> str:
        return "cancelled" if self.cancelled else self.verdict.result

    @property
    def subject(self) -> str:
        return (
            f"Salesforce pipeline {self.status}: {self.params.source_branch or 'HEAD'} "
            f"-> {self.params.target_org_alias}"
        )

    def lines(self) -> list[str]:
        out = [
            f"Status: {self.status}",
            f"Message: {self.verdict.message}",
            f"Trigger: {self.params.event_type.value}",
            f"Branch: {self.params.source_branch or 'n/a'} -> {self.params.target_branch}",
            f"Org: {self.params.target_org_alias}",
        ]
        if self.repository:
            out.append(f"Repository: {self.repository}")
        if self.run_url:
            out.append(f"Run: {self.run_url}")
        return out


class NotificationSink(Protocol):
    name: str

    def send(self, notification: Notification) -> None: ...
