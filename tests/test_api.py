import json

import httpx
import pytest
import pytest_asyncio

from release_notifier.core.security import compute_signature, verify_signature
from release_notifier.main import create_app
from release_notifier.models import WebhookStatus
from release_notifier.schemas.repository import RepositoryInput

from tests.conftest import BOT_TOKEN, WEBHOOK_SECRET, github_release, github_repo

SEND_PATH = f"/bot{BOT_TOKEN}/sendMessage"
WEBHOOK = "/webhook/github/releases"


@pytest_asyncio.fixture
async def client(services):
    app = create_app(services=services, run_bootstrap=False)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        yield client


def release_payload(action="published", release_id=500, tag="v3.0.0") -> dict:
    return {
        "action": action,
        "release": github_release(release_id, tag, body="Shiny"),
        "repository": github_repo("widgets"),
        "sender": {"login": "octocat"},
    }


async def deliver(client, payload, event="release", secret=WEBHOOK_SECRET, body=None):
    raw = body if body is not None else json.dumps(payload).encode()
    return await client.post(
        WEBHOOK,
        content=raw,
        headers={
            "Content-Type": "application/json",
            "X-GitHub-Event": event,
            "X-GitHub-Delivery": "delivery-1",
            "X-Hub-Signature-256": compute_signature(raw, secret),
        },
    )


class TestSignature:
    def test_valid_signature(self):
        body = b'{"a": 1}'
        assert verify_signature(body, compute_signature(body, "s3cret"), "s3cret") is True

    def test_changed_body_is_rejected(self):
        body = b'{"a": 1}'
        assert verify_signature(b'{"a": 2}', compute_signature(body, "s3cret"), "s3cret") is False

    def test_missing_or_malformed_header(self):
        assert verify_signature(b"x", None, "s3cret") is False
        assert verify_signature(b"x", "sha256=abc", "s3cret") is False
        assert verify_signature(b"x", "sha1=" + "0" * 40, "s3cret") is False


class TestReleaseWebhook:
    @pytest.mark.asyncio
    async def test_published_release_is_delivered(self, client, services, telegram_api):
        response = await deliver(client, release_payload())

        assert response.status_code == 200
        assert response.json() == {"message": "Release notification sent successfully"}
        assert len(telegram_api.requests("POST", SEND_PATH)) == 1
        assert await services.ledger.is_processed(500, "octo-org/widgets")

    @pytest.mark.asyncio
    async def test_redelivery_is_a_duplicate(self, client, services, telegram_api):
        await deliver(client, release_payload())
        response = await deliver(client, release_payload())

        assert response.status_code == 200
        assert "Duplicate" in response.json()["message"]
        assert len(telegram_api.requests("POST", SEND_PATH)) == 1
        assert await services.ledger.count() == 1

    @pytest.mark.asyncio
    async def test_tampered_body_is_rejected(self, client, telegram_api):
        raw = json.dumps(release_payload()).encode()
        signature = compute_signature(raw, WEBHOOK_SECRET)
        tampered = raw[:-2] + bytes([raw[-2] ^ 1]) + raw[-1:]

        response = await client.post(
            WEBHOOK,
            content=tampered,
            headers={"X-GitHub-Event": "release", "X-Hub-Signature-256": signature},
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid signature"}
        assert telegram_api.calls == []

    @pytest.mark.asyncio
    async def test_wrong_secret_is_rejected(self, client):
        response = await deliver(client, release_payload(), secret="not-the-secret")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_signature_is_rejected(self, client):
        response = await client.post(WEBHOOK, content=b"{}", headers={"X-GitHub-Event": "release"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_json(self, client):
        response = await deliver(client, None, body=b"{not json")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_other_events_are_ignored(self, client, telegram_api):
        response = await deliver(client, {"zen": "Keep it simple"}, event="ping")
        assert response.status_code == 202
        assert telegram_api.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["created", "edited", "deleted", "prereleased"])
    async def test_other_release_actions_are_ignored(self, client, telegram_api, action):
        response = await deliver(client, release_payload(action=action))
        assert response.status_code == 202
        assert telegram_api.calls == []

    @pytest.mark.asyncio
    async def test_payload_without_repository(self, client):
        payload = release_payload()
        del payload["repository"]
        response = await deliver(client, payload)
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid payload"}

    @pytest.mark.asyncio
    async def test_delivery_failure_returns_500_and_stays_eligible(self, client, services, telegram_api):
        telegram_api.routes[("POST", SEND_PATH)] = [(500, {"ok": False}, {})]

        response = await deliver(client, release_payload())

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        assert not await services.ledger.is_processed(500, "octo-org/widgets")


class TestAdmin:
    @pytest.mark.asyncio
    async def test_stats(self, client, services):
        await services.directory.upsert(
            RepositoryInput(
                github_repo_id=1, full_name="octo-org/widgets", owner="octo-org", name="widgets", profile_owner="octo-org"
            )
        )
        await services.directory.update_webhook_status("octo-org/widgets", 9, WebhookStatus.ACTIVE)
        await services.ledger.record(1, "octo-org/widgets", "v1.0.0")

        response = await client.get("/admin/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["profiles"] == [{"owner": "octo-org", "url": "https://github.com/octo-org"}]
        assert data["total_repositories"] == 1
        assert data["webhook_stats"] == {"active": 1}
        assert data["total_releases"] == 1
        assert data["recent_releases"][0]["tag_name"] == "v1.0.0"
        assert data["config"] == {"polling_enabled": True, "polling_interval_minutes": 15}

    @pytest.mark.asyncio
    async def test_repositories_filtered_by_status(self, client, services):
        for repo_id, name in enumerate(["a", "b"], start=1):
            await services.directory.upsert(
                RepositoryInput(
                    github_repo_id=repo_id, full_name=f"octo-org/{name}", owner="octo-org", name=name, profile_owner="octo-org"
                )
            )
        await services.directory.update_webhook_status("octo-org/b", None, WebhookStatus.UNSUPPORTED)

        everything = (await client.get("/admin/repositories")).json()
        unsupported = (await client.get("/admin/repositories", params={"status": "unsupported"})).json()

        assert everything["count"] == 2
        assert unsupported["count"] == 1
        assert unsupported["repositories"][0]["full_name"] == "octo-org/b"
        assert unsupported["repositories"][0]["webhook_status"] == "unsupported"

    @pytest.mark.asyncio
    async def test_invalid_status_filter(self, client):
        response = await client.get("/admin/repositories", params={"status": "bogus"})
        assert response.status_code == 422
        assert response.json()["error"] == "Invalid request"

    @pytest.mark.asyncio
    async def test_discover_runs_in_background(self, client, services, github_api):
        github_api.add("GET", "/users/octo-org", json_body={"login": "octo-org", "type": "Organization"})
        github_api.add("GET", "/orgs/octo-org/repos", json_body=[github_repo("widgets"), github_repo("gadgets", repo_id=2)])

        response = await client.post("/admin/discover")

        assert response.status_code == 202
        task_id = response.json()["task_id"]
        await services.tasks.wait()

        task = (await client.get(f"/admin/tasks/{task_id}")).json()
        assert task["status"] == "completed"
        assert task["result"] == {"repositories": 2}
        assert await services.directory.count() == 2

        listing = (await client.get("/admin/tasks")).json()
        assert [t["task_id"] for t in listing["tasks"]] == [task_id]

    @pytest.mark.asyncio
    async def test_sync_webhooks_runs_in_background(self, client, services, github_api):
        await services.directory.upsert(
            RepositoryInput(
                github_repo_id=1, full_name="octo-org/widgets", owner="octo-org", name="widgets", profile_owner="octo-org"
            )
        )
        github_api.add("GET", "/repos/octo-org/widgets/hooks", json_body=[])
        github_api.add("POST", "/repos/octo-org/widgets/hooks", status=201, json_body={"id": 3, "events": ["release"]})

        response = await client.post("/admin/sync-webhooks")

        assert response.status_code == 202
        assert response.json()["repositories"] == 1
        await services.tasks.wait()
        repo = await services.directory.get("octo-org/widgets")
        assert (repo.webhook_status, repo.webhook_id) == (WebhookStatus.ACTIVE, 3)

    @pytest.mark.asyncio
    async def test_unknown_task(self, client):
        response = await client.get("/admin/tasks/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "Task not found"}


class TestHealth:
    @pytest.mark.asyncio
    async def test_healthz(self, client):
        response = await client.get("/healthz")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    @pytest.mark.asyncio
    async def test_index(self, client):
        data = (await client.get("/")).json()
        assert data["status"] == "running"
        assert data["endpoints"]["webhook"] == WEBHOOK

    @pytest.mark.asyncio
    async def test_unknown_route(self, client):
        response = await client.get("/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}
