"""Release event schemas used inside the notification pipeline"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from release_notifier.schemas.github import GitHubRelease, GitHubReleaseWebhook


class RepositoryRef(BaseModel):
    full_name: str
    owner: str
    name: str


class Release(BaseModel):
    id: int
    tag_name: str
    name: Optional[str] = None
    body: Optional[str] = None
    html_url: str = ""
    published_at: Optional[datetime] = None
    author: Optional[str] = None

    @classmethod
    def from_github(cls, release: GitHubRelease) -> "Release":
        return cls(
            id=release.id,
            tag_name=release.tag_name,
            name=release.name,
            body=release.body,
            html_url=release.html_url,
            published_at=release.published_at,
            author=release.author.login if release.author else None,
        )


class ReleaseEvent(BaseModel):
    """A release to notify about, from a webhook delivery or a poll cycle"""

    repository: RepositoryRef
    release: Release

    @classmethod
    def from_webhook(cls, payload: GitHubReleaseWebhook) -> "ReleaseEvent":
        if payload.repository is None or payload.release is None:
            raise ValueError("Missing repository or release in webhook payload")
        repo = payload.repository
        return cls(
            repository=RepositoryRef(full_name=repo.full_name, owner=repo.owner.login, name=repo.name),
            release=Release.from_github(payload.release),
        )


class ReleaseMessage(BaseModel):
    """Normalized data rendered into a Telegram message"""

    repo_name: str
    name: str
    tag_name: str
    html_url: str
    body: Optional[str] = None
    published_at: Optional[datetime] = None
    author: str = "Unknown"


class ProcessedReleaseRecord(BaseModel):
    release_id: int
    repo_full_name: str
    tag_name: str
    source: str
    processed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
