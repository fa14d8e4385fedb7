"""GitHub Actions runner registration service.

Uses httpx against the GitHub REST API: issues registration tokens,
looks runners up by label, and removes them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger

from skyrunner.constants import RUNNER_ONLINE, RUNNERS_PAGE_SIZE
from skyrunner.exceptions import GitHubAPIError, RunnerNotFoundError
from skyrunner.types import PENDING, READY, Failed, ReadinessState, RegistrationToken

if TYPE_CHECKING:
    from skyrunner.config import GitHubConfig

log = logger.bind(component="github")

# Credentials or repository are wrong; polling will not fix these.
_FATAL_STATUSES = (401, 403, 404)


class GitHubRegistrationService:
    """Self-hosted runner registry of one repository.

    Args:
        config: Repository and token.
        client: Pre-built httpx client. Created from ``config`` when omitted.
    """

    def __init__(self, config: GitHubConfig, client: httpx.Client | None = None) -> None:
        self.config = config
        self._client = client or httpx.Client(
            base_url=config.api_url,
            timeout=config.request_timeout,
        )

    def __enter__(self) -> GitHubRegistrationService:
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    @property
    def _runners_path(self) -> str:
        return f"/repos/{self.config.owner}/{self.config.repo}/actions/runners"

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Execute HTTP request and return the JSON response."""
        try:
            resp = self._client.request(method, path, headers=self._headers(), params=params)
            resp.raise_for_status()
            return resp.json() if resp.content else None
        except httpx.HTTPStatusError as e:
            raise GitHubAPIError(
                f"GitHub API error {e.response.status_code}: {e.response.text}",
                status=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise GitHubAPIError(f"GitHub request failed: {e}") from e

    # =========================================================================
    # Runners
    # =========================================================================

    def list_runners(self) -> list[dict[str, Any]]:
        """All self-hosted runners of the repository, across pages."""
        runners: list[dict[str, Any]] = []
        page = 1
        while True:
            data = self._request(
                "GET",
                self._runners_path,
                params={"per_page": RUNNERS_PAGE_SIZE, "page": page},
            ) or {}
            batch = data.get("runners", [])
            runners.extend(batch)
            if len(batch) < RUNNERS_PAGE_SIZE:
                return runners
            page += 1

    def find_runner(self, label: str) -> dict[str, Any] | None:
        for runner in self.list_runners():
            names = {lbl.get("name") for lbl in runner.get("labels", [])}
            if label in names:
                return runner
        return None

    # =========================================================================
    # RegistrationService
    # =========================================================================

    def issue_token(self) -> RegistrationToken:
        data = self._request("POST", f"{self._runners_path}/registration-token")
        log.info("GitHub registration token issued for {repo}", repo=self.config.repository)
        return RegistrationToken(value=data["token"], expires_at=data.get("expires_at"))

    def is_registered(self, label: str) -> ReadinessState:
        try:
            runner = self.find_runner(label)
        except GitHubAPIError as e:
            if e.status in _FATAL_STATUSES:
                return Failed(str(e))
            log.warning("Runner lookup for {label} failed, retrying: {err}", label=label, err=e)
            return PENDING

        if runner is None:
            return PENDING
        if runner.get("status") == RUNNER_ONLINE:
            log.info("GitHub runner {name} is registered", name=runner.get("name"))
            return READY
        log.debug("GitHub runner {name} is {status}", name=runner.get("name"), status=runner.get("status"))
        return PENDING

    def remove(self, label: str) -> None:
        runner = self.find_runner(label)
        if runner is None:
            raise RunnerNotFoundError(label)
        self._request("DELETE", f"{self._runners_path}/{runner['id']}")
        log.info("GitHub runner {name} is removed", name=runner.get("name"))
