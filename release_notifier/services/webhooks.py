"""Keeps a GitHub release webhook registered on every tracked repository"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from release_notifier.config import Settings
from release_notifier.github_app import GitHubClient, status_of
from release_notifier.models import WebhookStatus
from release_notifier.schemas.github import GitHubHook
from release_notifier.schemas.repository import RepositoryInput, RepositoryRecord
from release_notifier.schemas.webhook import WebhookSyncResult, WebhookSyncSummary
from release_notifier.storage import RepositoryDirectory

logger = logging.getLogger(__name__)

RELEASE_EVENT = "release"
INACCESSIBLE = (403, 404)

RepositoryLike = Union[RepositoryInput, RepositoryRecord]


class WebhookSynchronizer:
    """
    Creates or repairs the release webhook of each repository.

    Repositories that cannot carry a webhook are marked `unsupported` so the
    poller picks them up. This is the only writer of the webhook fields in
    the repository directory.
    """

    def __init__(
        self,
        github: GitHubClient,
        directory: RepositoryDirectory,
        settings: Settings,
        repo_delay: float = 0.2,
    ):
        self.github = github
        self.directory = directory
        self.webhook_url = settings.webhook_url
        self.secret = settings.github_webhook_secret
        self.repo_delay = repo_delay

    def _hook_payload(self) -> Dict[str, Any]:
        return {
            "name": "web",
            "active": True,
            "events": [RELEASE_EVENT],
            "config": {
                "url": self.webhook_url,
                "content_type": "json",
                "secret": self.secret,
                "insecure_ssl": "0",
            },
        }

    def find_our_hook(self, hooks: List[GitHubHook]) -> Optional[GitHubHook]:
        for hook in hooks:
            if hook.config.url == self.webhook_url and RELEASE_EVENT in hook.events:
                return hook
        return None

    def needs_update(self, hook: GitHubHook) -> bool:
        return not hook.active or set(hook.events) != {RELEASE_EVENT} or hook.config.url != self.webhook_url

    async def _reconcile(self, repo: RepositoryLike) -> WebhookSyncResult:
        if not self.github.can_manage_webhooks:
            logger.warning(f"{repo.full_name}: no GitHub API token, cannot manage webhooks")
            return WebhookSyncResult(status=WebhookStatus.UNSUPPORTED)

        try:
            hooks = await self.github.list_hooks(repo.owner, repo.name)
        except Exception as e:
            if status_of(e) in INACCESSIBLE:
                logger.warning(f"{repo.full_name}: cannot access webhooks (status={status_of(e)})")
                return WebhookSyncResult(status=WebhookStatus.UNSUPPORTED)
            raise

        existing = self.find_our_hook(hooks)
        if existing:
            if not self.needs_update(existing):
                logger.debug(f"{repo.full_name}: webhook {existing.id} already configured")
                return WebhookSyncResult(status=WebhookStatus.ACTIVE, hook_id=existing.id)

            logger.info(f"{repo.full_name}: webhook {existing.id} exists but needs update")
            updated = await self.github.update_hook(repo.owner, repo.name, existing.id, self._hook_payload())
            return WebhookSyncResult(status=WebhookStatus.ACTIVE, hook_id=updated.id)

        logger.info(f"{repo.full_name}: creating webhook for {self.webhook_url}")
        try:
            created = await self.github.create_hook(repo.owner, repo.name, self._hook_payload())
        except Exception as e:
            if status_of(e) in INACCESSIBLE:
                logger.warning(f"{repo.full_name}: cannot create webhook (status={status_of(e)})")
                return WebhookSyncResult(status=WebhookStatus.UNSUPPORTED)
            raise

        logger.info(f"{repo.full_name}: webhook {created.id} created")
        return WebhookSyncResult(status=WebhookStatus.ACTIVE, hook_id=created.id)

    async def sync(self, repo: RepositoryLike) -> WebhookSyncResult:
        try:
            result = await self._reconcile(repo)
        except Exception:
            logger.exception(f"{repo.full_name}: failed to sync webhook")
            result = WebhookSyncResult(status=WebhookStatus.FAILED)

        await self.directory.update_webhook_status(repo.full_name, result.hook_id, result.status)
        return result

    async def sync_all(self, repos: Sequence[RepositoryLike]) -> WebhookSyncSummary:
        summary = WebhookSyncSummary()

        for index, repo in enumerate(repos):
            try:
                result = await self.sync(repo)
                summary.add(result.status)
                logger.info(f"{repo.full_name}: webhook sync {result.status.value} (hook_id={result.hook_id})")
            except Exception:
                # Only reachable if persisting the status itself failed
                logger.exception(f"{repo.full_name}: failed to record webhook sync result")
                summary.add(WebhookStatus.FAILED)

            if index < len(repos) - 1:
                await asyncio.sleep(self.repo_delay)

        logger.info(f"Webhook sync completed: {summary.model_dump()}")
        return summary
