from __future__ import annotations

import httpx
import pytest

from skyrunner.config import GitHubConfig
from skyrunner.exceptions import GitHubAPIError, RunnerNotFoundError
from skyrunner.providers.github import GitHubRegistrationService
from skyrunner.types import PENDING, READY, Failed

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]

API = "https://api.github.test"
RUNNERS = "/repos/acme/widgets/actions/runners"


def runner(id: int, label: str, status: str = "online") -> dict:
    return {
        "id": id,
        "name": f"skyrunner-{label}",
        "status": status,
        "labels": [{"name": "self-hosted"}, {"name": label}],
    }


class FakeGitHub:
    """In-memory runners endpoint served through httpx.MockTransport."""

    def __init__(self, runners: list[dict] | None = None, status: int = 200) -> None:
        self.runners = runners or []
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status != 200:
            return httpx.Response(self.status, json={"message": "nope"})

        path = request.url.path
        if request.method == "POST" and path == f"{RUNNERS}/registration-token":
            return httpx.Response(201, json={"token": "AABBCC", "expires_at": "2026-01-01T00:00:00Z"})
        if request.method == "GET" and path == RUNNERS:
            per_page = int(request.url.params["per_page"])
            page = int(request.url.params["page"])
            batch = self.runners[(page - 1) * per_page : page * per_page]
            return httpx.Response(200, json={"total_count": len(self.runners), "runners": batch})
        if request.method == "DELETE" and path.startswith(f"{RUNNERS}/"):
            runner_id = int(path.rsplit("/", 1)[1])
            self.runners = [r for r in self.runners if r["id"] != runner_id]
            return httpx.Response(204)
        return httpx.Response(404, json={"message": "Not Found"})


@pytest.fixture
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def service(github: FakeGitHub):
    config = GitHubConfig(token="ghp_secret", owner="acme", repo="widgets", api_url=API)
    client = httpx.Client(base_url=API, transport=httpx.MockTransport(github))
    with GitHubRegistrationService(config, client=client) as svc:
        yield svc


class TestIssueToken:
    def test_returns_token(self, service, github):
        token = service.issue_token()

        assert token.value == "AABBCC"
        assert token.expires_at == "2026-01-01T00:00:00Z"
        [request] = github.requests
        assert request.method == "POST"
        assert request.headers["Authorization"] == "Bearer ghp_secret"
        assert request.headers["Accept"] == "application/vnd.github+json"

    def test_token_hidden_from_repr(self, service):
        assert "AABBCC" not in repr(service.issue_token())

    def test_http_error_carries_status(self, service, github):
        github.status = 403
        with pytest.raises(GitHubAPIError) as exc_info:
            service.issue_token()
        assert exc_info.value.status == 403

    def test_transport_error(self, github):
        def broken(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        config = GitHubConfig(token="t", owner="acme", repo="widgets", api_url=API)
        client = httpx.Client(base_url=API, transport=httpx.MockTransport(broken))
        with GitHubRegistrationService(config, client=client) as svc:
            with pytest.raises(GitHubAPIError, match="connection refused") as exc_info:
                svc.issue_token()
        assert exc_info.value.status is None


class TestFindRunner:
    def test_matches_on_label(self, service, github):
        github.runners = [runner(1, "other"), runner(2, "abc123")]
        assert service.find_runner("abc123")["id"] == 2

    def test_absent(self, service, github):
        github.runners = [runner(1, "other")]
        assert service.find_runner("abc123") is None

    def test_walks_every_page(self, service, github):
        github.runners = [runner(i, f"label-{i}") for i in range(150)]
        github.runners.append(runner(999, "abc123"))

        assert service.find_runner("abc123")["id"] == 999
        pages = [r.url.params["page"] for r in github.requests]
        assert pages == ["1", "2"]


class TestIsRegistered:
    def test_online(self, service, github):
        github.runners = [runner(7, "abc123")]
        assert service.is_registered("abc123") == READY

    def test_offline_is_pending(self, service, github):
        github.runners = [runner(7, "abc123", status="offline")]
        assert service.is_registered("abc123") == PENDING

    def test_absent_is_pending(self, service):
        assert service.is_registered("abc123") == PENDING

    @pytest.mark.parametrize("status", [401, 403, 404])
    def test_auth_and_repo_errors_fail(self, service, github, status):
        github.status = status
        result = service.is_registered("abc123")
        assert isinstance(result, Failed)
        assert str(status) in result.reason

    def test_server_errors_keep_polling(self, service, github):
        github.status = 502
        assert service.is_registered("abc123") == PENDING


class TestRemove:
    def test_deletes_by_runner_id(self, service, github):
        github.runners = [runner(1, "other"), runner(7, "abc123")]

        service.remove("abc123")

        delete = github.requests[-1]
        assert delete.method == "DELETE"
        assert delete.url.path == f"{RUNNERS}/7"
        assert [r["id"] for r in github.runners] == [1]

    def test_missing_runner(self, service, github):
        github.runners = [runner(1, "other")]
        with pytest.raises(RunnerNotFoundError, match="abc123"):
            service.remove("abc123")
        assert all(r.method == "GET" for r in github.requests)

    def test_second_remove_reports_not_found(self, service, github):
        github.runners = [runner(7, "abc123")]
        service.remove("abc123")
        with pytest.raises(RunnerNotFoundError):
            service.remove("abc123")
