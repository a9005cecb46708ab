"""
Pytest configuration and fixtures.

GitHub and Telegram are replaced by `FakeAPI`, an httpx.MockTransport
handler that serves canned responses per (method, path) and records every
request it receives.
"""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest
import pytest_asyncio

from release_notifier.config import Settings
from release_notifier.github_app import GitHubClient
from release_notifier.startup import Services, build_services
from release_notifier.telegram import TelegramClient

GITHUB_BASE = "https://api.github.test"
TELEGRAM_BASE = "https://telegram.test"
BOT_TOKEN = "123:abc"
WEBHOOK_SECRET = "test-secret"
DEFAULT_CHAT = "-1001"

Handler = Callable[[httpx.Request], httpx.Response]
Spec = Union[Handler, Tuple[int, Any, Dict[str, str]]]


class FakeAPI:
    """Canned HTTP responses keyed by method and path"""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Spec]] = {}
        self.calls: List[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        status: int = 200,
        json_body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> "FakeAPI":
        """Queue a response. The last queued response is repeated once the queue drains."""
        self.routes.setdefault((method, path), []).append((status, json_body, headers or {}))
        return self

    def add_handler(self, method: str, path: str, handler: Handler) -> "FakeAPI":
        self.routes.setdefault((method, path), []).append(handler)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": "Not Found"})
        spec = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(spec):
            return spec(request)
        status, body, headers = spec
        return httpx.Response(status, json=body, headers=headers)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def requests(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.calls if r.method == method and r.url.path == path]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content)


def make_settings(tmp_path, **overrides) -> Settings:
    values = {
        "GITHUB_WEBHOOK_SECRET": WEBHOOK_SECRET,
        "GITHUB_API_TOKEN": "ghp_test",
        "TELEGRAM_BOT_TOKEN": BOT_TOKEN,
        "TELEGRAM_CHAT_ID": DEFAULT_CHAT,
        "MONITORED_PROFILES": "https://github.com/octo-org",
        "WEBHOOK_BASE_URL": "https://notifier.example.com",
        "DB_PATH": str(tmp_path / "releases.db"),
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def github_repo(name: str, owner: str = "octo-org", repo_id: int = 1, **fields) -> dict:
    data = {
        "id": repo_id,
        "name": name,
        "full_name": f"{owner}/{name}",
        "owner": {"login": owner, "type": "Organization"},
        "description": f"{name} description",
        "private": False,
        "fork": False,
        "archived": False,
        "disabled": False,
        "default_branch": "main",
        "html_url": f"https://github.com/{owner}/{name}",
        "created_at": "2023-01-01T00:00:00Z",
        "updated_at": "2024-01-01T00:00:00Z",
        "pushed_at": "2024-01-02T00:00:00Z",
    }
    data.update(fields)
    return data


def github_release(release_id: int, tag: str, body: Optional[str] = "Notes", **fields) -> dict:
    data = {
        "id": release_id,
        "tag_name": tag,
        "name": f"Release {tag}",
        "body": body,
        "html_url": f"https://github.com/octo-org/widgets/releases/tag/{tag}",
        "draft": False,
        "prerelease": False,
        "published_at": "2024-03-05T12:00:00Z",
        "author": {"login": "octocat"},
    }
    data.update(fields)
    return data


def telegram_ok(message_id: int = 1) -> dict:
    return {"ok": True, "result": {"message_id": message_id, "chat": {"id": -1001}}}


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def github_api() -> FakeAPI:
    return FakeAPI()


@pytest.fixture
def telegram_api() -> FakeAPI:
    api = FakeAPI()
    api.add("POST", f"/bot{BOT_TOKEN}/sendMessage", json_body=telegram_ok())
    return api


@pytest.fixture
def github_client(github_api) -> GitHubClient:
    return GitHubClient(token="ghp_test", base_url=GITHUB_BASE, client=github_api.client(), page_delay=0)


@pytest.fixture
def telegram_client(telegram_api) -> TelegramClient:
    return TelegramClient(
        BOT_TOKEN,
        DEFAULT_CHAT,
        client=telegram_api.client(),
        base_url=TELEGRAM_BASE,
        retry_delay=0,
        part_delay=0,
    )


@pytest_asyncio.fixture
async def services(settings, github_client, telegram_client) -> Services:
    services = build_services(settings, github=github_client, telegram=telegram_client)
    services.discovery.profile_delay = 0
    services.synchronizer.repo_delay = 0
    services.poller.release_delay = 0
    services.poller.repo_delay = 0
    await services.db.connect()
    yield services
    await services.poller.stop()
    await services.tasks.shutdown()
    await services.github.aclose()
    await services.telegram.aclose()
    await services.db.close()
