"""Release ledger: which (release, repository) pairs were already delivered"""

import logging
from typing import List

from sqlalchemy import delete, func, select

from release_notifier.core.database import Database
from release_notifier.models import DeliverySource, ProcessedRelease
from release_notifier.schemas.release import ProcessedReleaseRecord
from release_notifier.storage._upsert import dialect_insert

logger = logging.getLogger(__name__)


class ReleaseLedger:
    def __init__(self, db: Database):
        self.db = db

    async def is_processed(self, release_id: int, repo_full_name: str) -> bool:
        async with self.db.session() as session:
            result = await session.execute(
                select(ProcessedRelease.id).where(
                    ProcessedRelease.release_id == release_id,
                    ProcessedRelease.repo_full_name == repo_full_name,
                )
            )
            return result.first() is not None

    async def record(
        self,
        release_id: int,
        repo_full_name: str,
        tag_name: str,
        source: DeliverySource = DeliverySource.PUSH,
    ) -> bool:
        """
        Insert the ledger entry if absent.

        Returns:
            True if a new entry was written, False if it already existed
        """
        stmt = (
            dialect_insert(self.db.dialect, ProcessedRelease.__table__)
            .values(
                release_id=release_id,
                repo_full_name=repo_full_name,
                tag_name=tag_name,
                source=source.value,
            )
            .on_conflict_do_nothing(index_elements=["release_id", "repo_full_name"])
        )
        async with self.db.session() as session:
            result = await session.execute(stmt)
            await session.commit()
        return result.rowcount == 1

    async def count(self) -> int:
        async with self.db.session() as session:
            result = await session.execute(select(func.count(ProcessedRelease.id)))
            return result.scalar() or 0

    async def recent(self, limit: int = 10) -> List[ProcessedReleaseRecord]:
        async with self.db.session() as session:
            result = await session.execute(
                select(ProcessedRelease)
                .order_by(ProcessedRelease.processed_at.desc(), ProcessedRelease.id.desc())
                .limit(limit)
            )
            return [ProcessedReleaseRecord.model_validate(row) for row in result.scalars().all()]

    async def prune(self, keep: int = 1000) -> int:
        """Delete all but the `keep` most recent entries"""
        keep_ids = (
            select(ProcessedRelease.id)
            .order_by(ProcessedRelease.processed_at.desc(), ProcessedRelease.id.desc())
            .limit(keep)
        )
        async with self.db.session() as session:
            result = await session.execute(delete(ProcessedRelease).where(ProcessedRelease.id.not_in(keep_ids)))
            await session.commit()

        deleted = result.rowcount or 0
        if deleted:
            logger.info(f"Pruned {deleted} old processed releases")
        return deleted
