"""Changelog enrichment for releases published without a body"""

import logging
from typing import NamedTuple, Optional

from release_notifier.github_app import GitHubClient, status_of
from release_notifier.schemas.github import GitHubRelease
from release_notifier.schemas.release import Release

logger = logging.getLogger(__name__)

MAX_COMMITS = 20
RECENT_RELEASES = 10
NO_COMMITS_PLACEHOLDER = "No commits found for this release."


class Changelog(NamedTuple):
    text: str
    generated: bool  # True when synthesized from commits rather than authored


def format_commit_line(message: str, sha: str) -> str:
    first_line = message.split("\n", 1)[0].strip()
    return f"• {first_line} ({sha[:7]})"


class ChangelogEnricher:
    """
    Derives a changelog for a release whose body came in empty.

    Tries, in order: the release as fetched directly from the API (webhook
    payloads sometimes lack the body), then the commits between the previous
    release and this one. Errors are logged and never raised.
    """

    def __init__(self, github: GitHubClient):
        self.github = github

    async def enrich(self, release: Release, owner: str, repo: str) -> Optional[Changelog]:
        body = await self._refetch_body(release, owner, repo)
        if body:
            logger.info(f"{owner}/{repo}: retrieved body of release {release.id} from GitHub API")
            return Changelog(body, generated=False)

        previous = await self._previous_release(release.tag_name, owner, repo)
        if previous is None:
            logger.debug(f"{owner}/{repo}: no release before {release.tag_name}, no changelog generated")
            return None

        text = await self._changelog_from_commits(previous.tag_name, release.tag_name, owner, repo)
        if text is None:
            return None

        logger.info(f"{owner}/{repo}: generated changelog for {previous.tag_name}...{release.tag_name}")
        return Changelog(text, generated=True)

    async def _refetch_body(self, release: Release, owner: str, repo: str) -> Optional[str]:
        try:
            fetched = await self.github.get_release(owner, repo, release.id)
        except Exception as e:
            logger.warning(f"{owner}/{repo}: failed to fetch release {release.id} (status={status_of(e)}): {e}")
            return None
        if fetched.body and fetched.body.strip():
            return fetched.body
        return None

    async def _previous_release(self, tag_name: str, owner: str, repo: str) -> Optional[GitHubRelease]:
        try:
            releases = await self.github.list_releases(owner, repo, per_page=RECENT_RELEASES)
        except Exception as e:
            logger.warning(f"{owner}/{repo}: failed to fetch previous releases (status={status_of(e)}): {e}")
            return None

        for index, candidate in enumerate(releases):
            if candidate.tag_name == tag_name:
                return releases[index + 1] if index + 1 < len(releases) else None
        return None

    async def _changelog_from_commits(self, base: str, head: str, owner: str, repo: str) -> Optional[str]:
        try:
            comparison = await self.github.compare(owner, repo, base, head)
        except Exception as e:
            logger.warning(f"{owner}/{repo}: failed to compare {base}...{head} (status={status_of(e)}): {e}")
            return None

        commits = comparison.commits[:MAX_COMMITS]
        if not commits:
            return NO_COMMITS_PLACEHOLDER
        return "\n".join(format_commit_line(c.commit.message, c.sha) for c in commits)
