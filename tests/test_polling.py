import pytest

from release_notifier.models import WebhookStatus
from release_notifier.schemas.repository import RepositoryInput

from tests.conftest import BOT_TOKEN, github_release

SEND_PATH = f"/bot{BOT_TOKEN}/sendMessage"


async def add_repo(services, name, status, repo_id, chat_id=None):
    await services.directory.upsert(
        RepositoryInput(
            github_repo_id=repo_id,
            full_name=f"octo-org/{name}",
            owner="octo-org",
            name=name,
            profile_owner="octo-org",
            chat_id=chat_id,
        )
    )
    await services.directory.update_webhook_status(f"octo-org/{name}", None, status)


@pytest.mark.asyncio
async def test_only_unsupported_repositories_are_polled(services, github_api, telegram_api):
    await add_repo(services, "legacy", WebhookStatus.UNSUPPORTED, 1, chat_id="-77")
    await add_repo(services, "hooked", WebhookStatus.ACTIVE, 2)
    await add_repo(services, "broken", WebhookStatus.FAILED, 3)
    await services.ledger.record(10, "octo-org/legacy", "v1.0.0")
    github_api.add(
        "GET",
        "/repos/octo-org/legacy/releases",
        json_body=[
            github_release(12, "v1.2.0-draft", draft=True),
            github_release(11, "v1.1.0"),
            github_release(10, "v1.0.0"),
        ],
    )

    result = await services.poller.run_cycle()

    assert (result.repositories, result.new_releases, result.errors) == (1, 1, 0)
    assert not github_api.requests("GET", "/repos/octo-org/hooked/releases")
    assert not github_api.requests("GET", "/repos/octo-org/broken/releases")
    [listing] = github_api.requests("GET", "/repos/octo-org/legacy/releases")
    assert listing.url.params["per_page"] == "5"

    [sent] = telegram_api.requests("POST", SEND_PATH)
    assert telegram_api.body(sent)["chat_id"] == "-77"
    assert "<code>v1.1.0</code>" in telegram_api.body(sent)["text"]

    assert await services.ledger.is_processed(11, "octo-org/legacy")
    assert not await services.ledger.is_processed(12, "octo-org/legacy")
    [latest] = await services.ledger.recent(limit=1)
    assert latest.source == "poll"


@pytest.mark.asyncio
async def test_second_cycle_sends_nothing(services, github_api, telegram_api):
    await add_repo(services, "legacy", WebhookStatus.UNSUPPORTED, 1)
    github_api.add("GET", "/repos/octo-org/legacy/releases", json_body=[github_release(11, "v1.1.0")])

    await services.poller.run_cycle()
    second = await services.poller.run_cycle()

    assert second.new_releases == 0
    assert len(telegram_api.requests("POST", SEND_PATH)) == 1


@pytest.mark.asyncio
async def test_listing_error_is_counted_and_cycle_continues(services, github_api, telegram_api):
    await add_repo(services, "a-missing", WebhookStatus.UNSUPPORTED, 1)
    await add_repo(services, "b-legacy", WebhookStatus.UNSUPPORTED, 2)
    github_api.add("GET", "/repos/octo-org/a-missing/releases", status=404, json_body={"message": "Not Found"})
    github_api.add("GET", "/repos/octo-org/b-legacy/releases", json_body=[github_release(21, "v2.1.0")])

    result = await services.poller.run_cycle()

    assert (result.repositories, result.new_releases, result.errors) == (2, 1, 1)


@pytest.mark.asyncio
async def test_failed_delivery_stays_eligible(services, github_api, telegram_api):
    await add_repo(services, "legacy", WebhookStatus.UNSUPPORTED, 1)
    github_api.add("GET", "/repos/octo-org/legacy/releases", json_body=[github_release(11, "v1.1.0")])
    telegram_api.routes[("POST", SEND_PATH)] = [(500, {"ok": False}, {})]

    result = await services.poller.run_cycle()

    assert (result.new_releases, result.errors) == (0, 1)
    assert not await services.ledger.is_processed(11, "octo-org/legacy")


@pytest.mark.asyncio
async def test_cycle_prunes_ledger(services, github_api):
    await add_repo(services, "legacy", WebhookStatus.UNSUPPORTED, 1)
    github_api.add("GET", "/repos/octo-org/legacy/releases", json_body=[])
    for i in range(5):
        await services.ledger.record(i, "octo-org/other", f"v{i}")
    services.poller.ledger_retention = 3

    await services.poller.run_cycle()

    assert await services.ledger.count() == 3


@pytest.mark.asyncio
async def test_start_and_stop(services):
    services.poller.startup_delay = 3600

    services.poller.start()
    assert services.poller.running

    await services.poller.stop()
    assert not services.poller.running
