"""Thin async client for the parts of the GitHub REST API the service uses"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from .schemas.github import (
    GitHubCompare,
    GitHubHook,
    GitHubRelease,
    GitHubRepository,
    GitHubUser,
)

GITHUB_API_BASE = "https://api.github.com"
USER_AGENT = "GitHub-Release-Telegram-Bot"
DEFAULT_TIMEOUT = 10.0
LISTING_TIMEOUT = 15.0
REPOS_PER_PAGE = 100

logger = logging.getLogger(__name__)


class GitHubClient:
    """
    Authenticated GitHub REST client.

    The token is optional: without it, read endpoints work for public
    repositories but webhook management is not possible.
    """

    def __init__(
        self,
        token: str = "",
        base_url: str = GITHUB_API_BASE,
        client: Optional[httpx.AsyncClient] = None,
        page_delay: float = 0.1,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.page_delay = page_delay
        self._client = client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)

    @property
    def can_manage_webhooks(self) -> bool:
        return bool(self.token)

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
        }
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return headers

    async def request(self, method: str, path_or_url: str, **kwargs) -> httpx.Response:
        """
        Make a request to the GitHub API.

        Raises:
            httpx.HTTPStatusError: on any non-2xx response
            httpx.HTTPError: on transport failures
        """
        url = path_or_url if path_or_url.startswith("http") else f"{self.base_url}{path_or_url}"
        headers = kwargs.pop("headers", {})
        headers.update(self._headers())
        response = await self._client.request(method, url, headers=headers, **kwargs)
        response.raise_for_status()
        return response

    async def aclose(self) -> None:
        await self._client.aclose()

    # Accounts and repositories

    async def get_account_type(self, owner: str) -> str:
        """Return "organization" or "user" for a GitHub account"""
        response = await self.request("GET", f"/users/{owner}")
        return GitHubUser.model_validate(response.json()).type.lower()

    async def list_account_repositories(self, owner: str, account_type: str) -> List[GitHubRepository]:
        """
        Fetch every repository of an account, most recently updated first.

        Follows the Link header until there is no `next` page or a page
        comes back empty.
        """
        endpoint = f"/orgs/{owner}/repos" if account_type == "organization" else f"/users/{owner}/repos"
        url: Optional[str] = f"{self.base_url}{endpoint}"
        params: Optional[Dict[str, Any]] = {
            "per_page": REPOS_PER_PAGE,
            "sort": "updated",
            "direction": "desc",
        }
        repos: List[GitHubRepository] = []
        page = 1

        while url:
            logger.debug(f"Fetching repositories page {page} for {owner} ({account_type})")
            response = await self.request("GET", url, params=params, timeout=LISTING_TIMEOUT)
            page_repos = response.json()
            if not page_repos:
                break

            repos.extend(GitHubRepository.model_validate(item) for item in page_repos)

            next_link = response.links.get("next")
            if not next_link:
                break

            # The next link already carries the query string
            url, params = next_link["url"], None
            page += 1
            await asyncio.sleep(self.page_delay)

        return repos

    # Releases

    async def list_releases(self, owner: str, repo: str, per_page: int = 10) -> List[GitHubRelease]:
        response = await self.request("GET", f"/repos/{owner}/{repo}/releases", params={"per_page": per_page})
        return [GitHubRelease.model_validate(item) for item in response.json()]

    async def get_release(self, owner: str, repo: str, release_id: int) -> GitHubRelease:
        response = await self.request("GET", f"/repos/{owner}/{repo}/releases/{release_id}")
        return GitHubRelease.model_validate(response.json())

    async def compare(self, owner: str, repo: str, base: str, head: str) -> GitHubCompare:
        response = await self.request("GET", f"/repos/{owner}/{repo}/compare/{base}...{head}")
        return GitHubCompare.model_validate(response.json())

    # Webhooks

    async def list_hooks(self, owner: str, repo: str) -> List[GitHubHook]:
        response = await self.request("GET", f"/repos/{owner}/{repo}/hooks")
        return [GitHubHook.model_validate(item) for item in response.json()]

    async def create_hook(self, owner: str, repo: str, payload: Dict[str, Any]) -> GitHubHook:
        response = await self.request("POST", f"/repos/{owner}/{repo}/hooks", json=payload)
        return GitHubHook.model_validate(response.json())

    async def update_hook(self, owner: str, repo: str, hook_id: int, payload: Dict[str, Any]) -> GitHubHook:
        response = await self.request("PATCH", f"/repos/{owner}/{repo}/hooks/{hook_id}", json=payload)
        return GitHubHook.model_validate(response.json())


def status_of(error: Exception) -> Optional[int]:
    """HTTP status code of a failed GitHub call, if there was a response"""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    return None
