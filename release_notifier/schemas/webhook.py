"""Webhook sync schemas"""

from typing import Optional

from pydantic import BaseModel

from release_notifier.models.repository import WebhookStatus


class WebhookSyncResult(BaseModel):
    status: WebhookStatus
    hook_id: Optional[int] = None


class WebhookSyncSummary(BaseModel):
    """Number of repositories ending in each status after a sync run"""

    active: int = 0
    unsupported: int = 0
    failed: int = 0
    pending: int = 0
    skipped: int = 0

    def add(self, status: WebhookStatus) -> None:
        setattr(self, status.value, getattr(self, status.value) + 1)
