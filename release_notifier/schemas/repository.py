"""Repository schemas shared between discovery, the directory and the admin API"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from release_notifier.models.repository import WebhookStatus


class RepositoryInput(BaseModel):
    """A repository as produced by discovery, ready to be upserted"""

    github_repo_id: int
    full_name: str
    owner: str
    name: str
    description: Optional[str] = None
    private: bool = False
    fork: bool = False
    archived: bool = False
    disabled: bool = False
    default_branch: Optional[str] = None
    url: Optional[str] = None
    profile_owner: str
    chat_id: Optional[str] = None
    github_created_at: Optional[datetime] = None
    github_updated_at: Optional[datetime] = None
    github_pushed_at: Optional[datetime] = None


class RepositoryRecord(RepositoryInput):
    """A repository as stored in the directory"""

    webhook_id: Optional[int] = None
    webhook_status: WebhookStatus = WebhookStatus.PENDING
    last_synced_at: Optional[datetime] = None
    discovered_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RepositoryResponse(BaseModel):
    """Schema for the admin repository listing"""

    full_name: str
    owner: str
    name: str
    webhook_status: WebhookStatus
    webhook_id: Optional[int] = None
    last_synced_at: Optional[datetime] = None
    archived: bool
    fork: bool
    chat_id: Optional[str] = None
    url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
