"""ProcessedRelease model: the ledger of releases already delivered"""

from enum import Enum

from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, String, UniqueConstraint

from release_notifier.core.database import Base
from release_notifier.models.repository import utcnow


class DeliverySource(str, Enum):
    PUSH = "push"
    POLL = "poll"


class ProcessedRelease(Base):
    """One delivered (release, repository) pair"""

    __tablename__ = "processed_releases"
    __table_args__ = (
        UniqueConstraint("release_id", "repo_full_name", name="uq_processed_release"),
        Index("idx_releases_release_repo", "release_id", "repo_full_name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    release_id = Column(BigInteger, nullable=False)
    repo_full_name = Column(String(255), nullable=False, index=True)
    tag_name = Column(String(255), nullable=False)
    source = Column(String(10), default=DeliverySource.PUSH.value, nullable=False)
    processed_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    def __repr__(self):
        return f"<ProcessedRelease(release_id={self.release_id}, repo_full_name={self.repo_full_name}, tag={self.tag_name})>"
