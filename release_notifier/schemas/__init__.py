"""Pydantic schemas for API validation and internal data exchange"""

from release_notifier.schemas.repository import RepositoryInput, RepositoryRecord, RepositoryResponse
from release_notifier.schemas.release import (
    ProcessedReleaseRecord,
    Release,
    ReleaseEvent,
    ReleaseMessage,
    RepositoryRef,
)
from release_notifier.schemas.webhook import WebhookSyncResult, WebhookSyncSummary

__all__ = [
    "RepositoryInput",
    "RepositoryRecord",
    "RepositoryResponse",
    "ProcessedReleaseRecord",
    "Release",
    "ReleaseEvent",
    "ReleaseMessage",
    "RepositoryRef",
    "WebhookSyncResult",
    "WebhookSyncSummary",
]
