"""Poll fallback for repositories without a working webhook"""

import asyncio
import logging
from typing import Optional, Tuple

from pydantic import BaseModel

from release_notifier.github_app import GitHubClient, status_of
from release_notifier.models import DeliverySource, WebhookStatus
from release_notifier.schemas.release import Release, ReleaseEvent, RepositoryRef
from release_notifier.schemas.repository import RepositoryRecord
from release_notifier.services.notification import ReleaseNotifier
from release_notifier.storage import ReleaseLedger, RepositoryDirectory

logger = logging.getLogger(__name__)

RELEASES_PER_POLL = 5
STARTUP_DELAY = 5.0


class PollResult(BaseModel):
    repositories: int = 0
    new_releases: int = 0
    errors: int = 0


class ReleasePoller:
    """
    Periodically scans `unsupported` repositories for undelivered releases.

    Repositories in any other webhook state are left to the webhook path,
    so a release is not delivered twice once the webhook works again.
    """

    def __init__(
        self,
        github: GitHubClient,
        directory: RepositoryDirectory,
        ledger: ReleaseLedger,
        notifier: ReleaseNotifier,
        interval_minutes: int = 15,
        ledger_retention: int = 1000,
        startup_delay: float = STARTUP_DELAY,
        release_delay: float = 0.5,
        repo_delay: float = 1.0,
    ):
        self.github = github
        self.directory = directory
        self.ledger = ledger
        self.notifier = notifier
        self.interval = interval_minutes * 60
        self.ledger_retention = ledger_retention
        self.startup_delay = startup_delay
        self.release_delay = release_delay
        self.repo_delay = repo_delay
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            logger.warning("Polling task already running")
            return
        logger.info(f"Starting polling scheduler (every {self.interval // 60} minutes)")
        self._task = asyncio.create_task(self._run(), name="release-poller")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Polling scheduler stopped")

    async def _run(self) -> None:
        await asyncio.sleep(self.startup_delay)
        while True:
            try:
                await self.run_cycle()
            except Exception:
                logger.exception("Error in polling cycle")
            await asyncio.sleep(self.interval)

    async def run_cycle(self) -> PollResult:
        repositories = await self.directory.list_by_status(WebhookStatus.UNSUPPORTED)
        result = PollResult(repositories=len(repositories))

        if not repositories:
            logger.info("No repositories need polling")
            return result

        logger.info(f"Polling {len(repositories)} repositories without webhooks")
        for index, repo in enumerate(repositories):
            try:
                new_releases, errors = await self.check_repository(repo)
                result.new_releases += new_releases
                result.errors += errors
            except Exception as e:
                logger.error(f"{repo.full_name}: error checking for new releases (status={status_of(e)}): {e}")
                result.errors += 1

            if index < len(repositories) - 1:
                await asyncio.sleep(self.repo_delay)

        await self.ledger.prune(self.ledger_retention)

        logger.info(
            f"Polling cycle completed: {result.repositories} repositories, "
            f"{result.new_releases} new releases, {result.errors} errors"
        )
        return result

    async def check_repository(self, repo: RepositoryRecord) -> Tuple[int, int]:
        """Deliver every undelivered release among the latest few. Returns (sent, errors)."""
        releases = await self.github.list_releases(repo.owner, repo.name, per_page=RELEASES_PER_POLL)
        sent = errors = 0

        for release in releases:
            if release.draft:
                continue
            if await self.ledger.is_processed(release.id, repo.full_name):
                continue

            logger.info(f"{repo.full_name}: new release {release.tag_name} ({release.id}) detected via polling")
            event = ReleaseEvent(
                repository=RepositoryRef(full_name=repo.full_name, owner=repo.owner, name=repo.name),
                release=Release.from_github(release),
            )
            try:
                if await self.notifier.notify(event, repo.chat_id, DeliverySource.POLL):
                    sent += 1
            except Exception:
                # Ledger stays unwritten, the next cycle retries this release
                errors += 1

            await asyncio.sleep(self.release_delay)

        return sent, errors
