"""Release notification pipeline: enrich, format, deliver, record"""

import asyncio
import logging
from typing import Optional, Set, Tuple

from release_notifier.models import DeliverySource
from release_notifier.schemas.release import ReleaseEvent, ReleaseMessage
from release_notifier.services.changelog import ChangelogEnricher
from release_notifier.storage import ReleaseLedger, RepositoryDirectory
from release_notifier.telegram import TelegramClient, format_release_message

logger = logging.getLogger(__name__)

GENERATED_PREFIX = "Auto-generated changelog:\n\n"


class ReleaseNotifier:
    """
    Delivers one release notification and records it in the ledger.

    Callers check the ledger before calling `notify`. Releases currently being
    delivered by another task are claimed in memory, so a webhook and a poll
    cycle racing on the same release deliver it only once. The claim is
    released whether delivery succeeds or fails; only a successful delivery
    writes the ledger.
    """

    def __init__(
        self,
        directory: RepositoryDirectory,
        ledger: ReleaseLedger,
        enricher: ChangelogEnricher,
        telegram: TelegramClient,
        default_chat_id: str,
        max_changelog_length: int = 2500,
    ):
        self.directory = directory
        self.ledger = ledger
        self.enricher = enricher
        self.telegram = telegram
        self.default_chat_id = default_chat_id
        self.max_changelog_length = max_changelog_length
        self._in_flight: Set[Tuple[int, str]] = set()
        self._lock = asyncio.Lock()

    async def resolve_chat_id(self, full_name: str, override: Optional[str] = None) -> str:
        if override:
            return override
        repo = await self.directory.get(full_name)
        if repo and repo.chat_id:
            return repo.chat_id
        return self.default_chat_id

    async def _claim(self, key: Tuple[int, str]) -> bool:
        async with self._lock:
            if key in self._in_flight:
                return False
            self._in_flight.add(key)
            return True

    async def _release(self, key: Tuple[int, str]) -> None:
        async with self._lock:
            self._in_flight.discard(key)

    async def notify(
        self,
        event: ReleaseEvent,
        chat_id: Optional[str] = None,
        source: DeliverySource = DeliverySource.PUSH,
    ) -> bool:
        """
        Send the notification for a release.

        Returns:
            True if the notification was sent, False if the same release is
            already being delivered by another task

        Raises:
            Any error raised before the ledger entry is written, so the
            release stays eligible for a retry
        """
        repository, release = event.repository, event.release
        key = (release.id, repository.full_name)

        if not await self._claim(key):
            logger.warning(f"{repository.full_name}: release {release.id} is already being delivered, skipping")
            return False

        try:
            await self._deliver(event, chat_id, source)
        except Exception:
            logger.exception(f"{repository.full_name}: failed to send notification for release {release.id}")
            raise
        finally:
            await self._release(key)

        return True

    async def _deliver(self, event: ReleaseEvent, chat_id: Optional[str], source: DeliverySource) -> None:
        repository, release = event.repository, event.release
        target_chat = await self.resolve_chat_id(repository.full_name, chat_id)

        data = ReleaseMessage(
            repo_name=repository.full_name,
            name=release.name or release.tag_name,
            tag_name=release.tag_name,
            html_url=release.html_url,
            body=release.body,
            published_at=release.published_at,
            author=release.author or "Unknown",
        )

        logger.info(
            f"Processing release {release.id} ({data.tag_name}) of {repository.full_name} "
            f"by {data.author} from {source.value}"
        )

        if not data.body or not data.body.strip():
            logger.warning(f"{repository.full_name}: release {release.id} has an empty body, generating changelog")
            changelog = await self.enricher.enrich(release, repository.owner, repository.name)
            if changelog is not None:
                data.body = GENERATED_PREFIX + changelog.text if changelog.generated else changelog.text

        message = format_release_message(data, self.max_changelog_length)
        await self.telegram.send(message, target_chat)

        await self.ledger.record(release.id, repository.full_name, release.tag_name, source)
        logger.info(
            f"Sent notification for {repository.full_name} {release.tag_name} "
            f"(release {release.id}) to chat {target_chat} via {source.value}"
        )
