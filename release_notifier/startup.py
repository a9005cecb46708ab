"""
Startup and shutdown wiring for the release notifier
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from release_notifier.config import Profile, Settings, load_profiles
from release_notifier.core.database import Database
from release_notifier.core.tasks import TaskRunner
from release_notifier.github_app import GitHubClient
from release_notifier.models import WebhookStatus
from release_notifier.schemas.repository import RepositoryInput
from release_notifier.services.changelog import ChangelogEnricher
from release_notifier.services.discovery import RepositoryDiscovery
from release_notifier.services.notification import ReleaseNotifier
from release_notifier.services.polling import ReleasePoller
from release_notifier.services.webhooks import WebhookSynchronizer
from release_notifier.storage import ReleaseLedger, RepositoryDirectory
from release_notifier.telegram import TelegramClient

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    profiles: List[Profile]
    db: Database
    github: GitHubClient
    telegram: TelegramClient
    directory: RepositoryDirectory
    ledger: ReleaseLedger
    discovery: RepositoryDiscovery
    synchronizer: WebhookSynchronizer
    notifier: ReleaseNotifier
    poller: ReleasePoller
    tasks: TaskRunner


def build_services(
    settings: Settings,
    github: Optional[GitHubClient] = None,
    telegram: Optional[TelegramClient] = None,
) -> Services:
    """
    Construct every component from the settings.

    Raises:
        ConfigError: if the profile configuration is invalid
    """
    profiles = load_profiles(settings)
    db = Database(settings.database_url)
    github = github or GitHubClient(token=settings.github_api_token)
    telegram = telegram or TelegramClient(settings.telegram_bot_token, settings.telegram_chat_id)

    directory = RepositoryDirectory(db)
    ledger = ReleaseLedger(db)
    notifier = ReleaseNotifier(
        directory,
        ledger,
        ChangelogEnricher(github),
        telegram,
        default_chat_id=settings.telegram_chat_id,
        max_changelog_length=settings.max_changelog_length,
    )

    return Services(
        settings=settings,
        profiles=profiles,
        db=db,
        github=github,
        telegram=telegram,
        directory=directory,
        ledger=ledger,
        discovery=RepositoryDiscovery(github, settings),
        synchronizer=WebhookSynchronizer(github, directory, settings),
        notifier=notifier,
        poller=ReleasePoller(
            github,
            directory,
            ledger,
            notifier,
            interval_minutes=settings.poll_interval_minutes,
            ledger_retention=settings.ledger_retention,
        ),
        tasks=TaskRunner(),
    )


async def mark_unsupported(services: Services, repos: List[RepositoryInput]) -> None:
    for repo in repos:
        try:
            await services.directory.update_webhook_status(repo.full_name, None, WebhookStatus.UNSUPPORTED)
        except Exception:
            logger.exception(f"{repo.full_name}: failed to flag repository for polling fallback")


async def discover_and_store(services: Services) -> List[RepositoryInput]:
    """
    Run discovery for every profile and upsert the result.

    Without a GitHub API token webhooks cannot be managed, so every discovered
    repository is flagged `unsupported` and handled by the poller.
    """
    repos = await services.discovery.discover_all(services.profiles)
    stored = await services.directory.upsert_many(repos)
    logger.info(f"Repository discovery stored {stored} of {len(repos)} repositories")

    if not services.github.can_manage_webhooks:
        logger.warning("No GitHub API token configured, repositories will be polled")
        await mark_unsupported(services, repos)
    return repos


async def bootstrap(services: Services) -> None:
    """Initial discovery and webhook setup, then start polling"""
    logger.info("Running initial repository discovery...")
    repos = await discover_and_store(services)

    if services.github.can_manage_webhooks:
        logger.info("Syncing webhooks for discovered repositories...")
        summary = await services.synchronizer.sync_all(repos)
        logger.info(f"Initial webhook sync completed: {summary.model_dump()}")

    if services.settings.enable_polling:
        services.poller.start()
    else:
        logger.info("Polling is disabled")


async def startup_tasks(services: Services, run_bootstrap: bool = True) -> None:
    logger.info("Running startup tasks...")
    await services.db.connect()
    if run_bootstrap:
        services.tasks.submit("bootstrap", lambda: bootstrap(services))
    logger.info("Startup tasks completed")


async def shutdown_tasks(services: Services) -> None:
    logger.info("Running shutdown tasks...")
    await services.poller.stop()
    await services.tasks.shutdown()
    await services.github.aclose()
    await services.telegram.aclose()
    await services.db.close()
    logger.info("Shutdown tasks completed")
