"""
client.py

Minimal REST client for the version-control host.

Responsibilities:
- Authenticated JSON requests against the host API
- Retry with exponential backoff on transient statuses
- HTTP -> domain error translation (GitHubError)

Does NOT:
- Decide whether a pull request should be opened or a comment posted
"""

from __future__ import annotations

import time
from typing import Any, Dict, Iterable, Optional

import requests

from releasegate.env import Environment
from releasegate.errors import ConfigurationError
from releasegate.logger import get_logger

logger = get_logger(__name__)

BACKOFF_BASE_SEC = 1.0


class GitHubError(Exception):
    """Non-transient host API failure."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def is_transient_status(status_code: int) -> bool:
    return status_code in (429, 500, 502, 503, 504)


def _error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:500] or response.reason or ""

    message = str(data.get("message") or "")
    details = [
        e.get("message") or e.get("code")
        for e in data.get("errors") or []
        if isinstance(e, dict)
    ]
    if details:
        message = f"{message} ({'; '.join(str(d) for d in details if d)})"
    return message


class GitHubClient:
    def __init__(
        self,
        token: str | None,
        repository: str,
        *,
        api_url: str = "https://api.github.com",
        timeout: int = 30,
        max_retries: int = 3,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not token:
            raise ConfigurationError("GITHUB_TOKEN is required to talk to the host API")
        if not repository or "/" not in repository:
            raise ConfigurationError(
                f"GITHUB_REPOSITORY must look like owner/name (got {repository!r})"
            )

        self.repository = repository
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)

        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )

    # ------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        *,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = f"{self.api_url}/repos/{self.repository}{path}"
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                response = self.session.request(
                    method, url, json=payload, params=params, timeout=self.timeout
                )
            except requests.RequestException as e:
                last_error = e
            else:
                if not is_transient_status(response.status_code):
                    if response.status_code >= 400:
                        raise GitHubError(
                            f"{method} {path} failed with HTTP {response.status_code}: "
                            f"{_error_message(response)}",
                            status_code=response.status_code,
                        )
                    return response.json() if response.content else {}

                last_error = GitHubError(
                    f"Transient HTTP {response.status_code}",
                    status_code=response.status_code,
                )

            if attempt == self.max_retries - 1:
                break

            sleep_time = BACKOFF_BASE_SEC * (2**attempt)
            logger.warning(
                f"{method} {path} failed (attempt {attempt + 1}/{self.max_retries}), "
                f"retrying in {sleep_time}s: {last_error}"
            )
            time.sleep(sleep_time)

        raise GitHubError(f"{method} {path} gave up: {last_error}") from last_error

    # ------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------

    def create_pull_request(
        self, *, title: str, body: str, head: str, base: str
    ) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/pulls",
            {"title": title, "body": body, "head": head, "base": base},
        )

    def find_open_pull_request(self, *, head: str, base: str) -> Optional[Dict[str, Any]]:
        """Open pull request from `head` into `base`, if any."""
        owner = self.repository.split("/", 1)[0]
        pulls = self._request(
            "GET",
            "/pulls",
            params={"state": "open", "head": f"{owner}:{head}", "base": base},
        )
        for pr in pulls or []:
            if isinstance(pr, dict):
                return pr
        return None

    def update_pull_request(self, number: int, *, title: str, body: str) -> Dict[str, Any]:
        return self._request("PATCH", f"/pulls/{number}", {"title": title, "body": body})

    def add_labels(self, issue_number: int, labels: Iterable[str]) -> Dict[str, Any]:
        return self._request(
            "POST", f"/issues/{issue_number}/labels", {"labels": list(labels)}
        )

    def create_comment(self, issue_number: int, body: str) -> Dict[str, Any]:
        return self._request("POST", f"/issues/{issue_number}/comments", {"body": body})


def client_from_env(env: Environment) -> GitHubClient:
    return GitHubClient(
        env.github_token,
        env.github_repository,
        api_url=env.github_api_url,
        timeout=env.http_timeout,
        max_retries=env.http_max_retries,
    )
