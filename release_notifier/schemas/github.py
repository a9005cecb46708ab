"""Wire shapes of the GitHub REST API and webhook payloads.

Only the fields the service reads are declared; everything else is ignored.
These models never leave the GitHub boundary: discovery, polling and the
webhook route map them into the domain schemas right after parsing.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class GitHubModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GitHubUser(GitHubModel):
    login: str
    type: str = "User"


class GitHubRepository(GitHubModel):
    id: int
    name: str
    full_name: str
    owner: GitHubUser
    description: Optional[str] = None
    private: bool = False
    fork: bool = False
    archived: bool = False
    disabled: bool = False
    default_branch: Optional[str] = None
    html_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    pushed_at: Optional[datetime] = None


class GitHubRelease(GitHubModel):
    id: int
    tag_name: str
    name: Optional[str] = None
    body: Optional[str] = None
    html_url: str = ""
    draft: bool = False
    prerelease: bool = False
    published_at: Optional[datetime] = None
    author: Optional[GitHubUser] = None


class GitHubCommitDetail(GitHubModel):
    message: str = ""


class GitHubCommit(GitHubModel):
    sha: str
    commit: GitHubCommitDetail


class GitHubCompare(GitHubModel):
    commits: List[GitHubCommit] = []


class GitHubHookConfig(GitHubModel):
    url: Optional[str] = None
    content_type: Optional[str] = None


class GitHubHook(GitHubModel):
    id: int
    active: bool = True
    events: List[str] = []
    config: GitHubHookConfig = GitHubHookConfig()


class GitHubReleaseWebhook(GitHubModel):
    """Body of a `release` webhook delivery"""

    action: Optional[str] = None
    release: Optional[GitHubRelease] = None
    repository: Optional[GitHubRepository] = None
