"""Repository model for GitHub repositories discovered under monitored profiles"""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, String, Text

from release_notifier.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WebhookStatus(str, Enum):
    """Delivery mode of a repository: push via webhook, or poll fallback"""

    PENDING = "pending"
    ACTIVE = "active"
    FAILED = "failed"
    SKIPPED = "skipped"
    UNSUPPORTED = "unsupported"


class Repository(Base):
    """Repository model representing a tracked GitHub repository"""

    __tablename__ = "repositories"

    id = Column(Integer, primary_key=True, index=True)

    # GitHub repository info
    github_repo_id = Column(BigInteger, nullable=False, index=True)  # not unique, renames keep the id
    full_name = Column(String(255), unique=True, nullable=False, index=True)  # owner/repo
    owner = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    private = Column(Boolean, default=False)
    fork = Column(Boolean, default=False)
    archived = Column(Boolean, default=False)
    disabled = Column(Boolean, default=False)
    default_branch = Column(String(255))
    url = Column(String(500))

    # Monitoring settings
    profile_owner = Column(String(255), nullable=False, index=True)
    chat_id = Column(String(64))  # Override of the default Telegram chat

    # Webhook state, written only by the webhook synchronizer
    webhook_id = Column(BigInteger)
    webhook_status = Column(String(20), default=WebhookStatus.PENDING.value, nullable=False, index=True)
    last_synced_at = Column(DateTime(timezone=True))

    # Timestamps reported by GitHub
    github_created_at = Column(DateTime(timezone=True))
    github_updated_at = Column(DateTime(timezone=True))
    github_pushed_at = Column(DateTime(timezone=True))

    discovered_at = Column(DateTime(timezone=True), default=utcnow)

    def __repr__(self):
        return f"<Repository(id={self.id}, full_name={self.full_name}, webhook_status={self.webhook_status})>"
