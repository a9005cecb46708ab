"""Repository discovery across the configured GitHub profiles"""

import asyncio
import logging
from typing import List, Sequence

from release_notifier.config import Profile, Settings
from release_notifier.github_app import GitHubClient, status_of
from release_notifier.schemas.github import GitHubRepository
from release_notifier.schemas.repository import RepositoryInput
from release_notifier.services.filters import filters_from_settings, should_include_repository

logger = logging.getLogger(__name__)


def to_repository_input(repo: GitHubRepository, profile: Profile) -> RepositoryInput:
    return RepositoryInput(
        github_repo_id=repo.id,
        full_name=repo.full_name,
        owner=repo.owner.login,
        name=repo.name,
        description=repo.description,
        private=repo.private,
        fork=repo.fork,
        archived=repo.archived,
        disabled=repo.disabled,
        default_branch=repo.default_branch,
        url=repo.html_url,
        profile_owner=profile.owner,
        chat_id=profile.chat_id,
        github_created_at=repo.created_at,
        github_updated_at=repo.updated_at,
        github_pushed_at=repo.pushed_at,
    )


class RepositoryDiscovery:
    """
    Lists the repositories of each profile and applies the filters.

    Persisting the result is left to the caller.
    """

    def __init__(self, github: GitHubClient, settings: Settings, profile_delay: float = 0.5):
        self.github = github
        self.filters = filters_from_settings(settings)
        self.profile_delay = profile_delay

    async def _account_type(self, owner: str) -> str:
        try:
            return await self.github.get_account_type(owner)
        except Exception as e:
            logger.error(f"Failed to determine profile type for {owner} (status={status_of(e)}): {e}")
            return "user"

    def should_include(self, repo: GitHubRepository, profile: Profile) -> bool:
        return should_include_repository(repo.name, repo.archived, repo.fork, profile, **self.filters)

    async def discover(self, profile: Profile) -> List[RepositoryInput]:
        logger.info(f"Starting repository discovery for {profile.owner}")

        account_type = await self._account_type(profile.owner)
        try:
            all_repos = await self.github.list_account_repositories(profile.owner, account_type)
        except Exception as e:
            logger.error(f"Failed to fetch repositories for {profile.owner} (status={status_of(e)}): {e}")
            raise

        included = [repo for repo in all_repos if self.should_include(repo, profile)]
        logger.info(f"{profile.owner}: {len(all_repos)} repositories fetched, {len(included)} after filters")

        return [to_repository_input(repo, profile) for repo in included]

    async def discover_all(self, profiles: Sequence[Profile]) -> List[RepositoryInput]:
        discovered: List[RepositoryInput] = []

        for index, profile in enumerate(profiles):
            try:
                repos = await self.discover(profile)
                discovered.extend(repos)
                logger.info(f"Completed discovery for {profile.owner}: {len(repos)} repositories")
            except Exception:
                logger.exception(f"Failed to discover repositories for {profile.owner}, continuing with others")

            if index < len(profiles) - 1:
                await asyncio.sleep(self.profile_delay)

        logger.info(f"Repository discovery finished: {len(profiles)} profiles, {len(discovered)} repositories")
        return discovered
