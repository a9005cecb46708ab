"""Database models for the release notifier"""

from release_notifier.models.repository import Repository, WebhookStatus
from release_notifier.models.processed_release import DeliverySource, ProcessedRelease

__all__ = ["Repository", "WebhookStatus", "ProcessedRelease", "DeliverySource"]
