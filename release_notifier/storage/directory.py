"""Repository directory: persistent record of discovered repositories"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from release_notifier.core.database import Database
from release_notifier.models import Repository, WebhookStatus
from release_notifier.models.repository import utcnow
from release_notifier.schemas.repository import RepositoryInput, RepositoryRecord
from release_notifier.storage._upsert import dialect_insert

logger = logging.getLogger(__name__)

# Fields refreshed on every discovery pass; identity fields stay as first seen
MUTABLE_FIELDS = (
    "description",
    "archived",
    "disabled",
    "default_branch",
    "chat_id",
    "github_updated_at",
    "github_pushed_at",
)


class RepositoryDirectory:
    def __init__(self, db: Database):
        self.db = db

    async def upsert(self, repo: RepositoryInput) -> None:
        await self.upsert_many([repo])

    async def upsert_many(self, repos: Iterable[RepositoryInput]) -> int:
        """
        Upsert each repository in its own transaction.

        A row that cannot be written is logged and skipped.

        Returns:
            Number of repositories stored
        """
        stored = 0
        for repo in repos:
            row = repo.model_dump()
            stmt = dialect_insert(self.db.dialect, Repository.__table__).values(**row)
            stmt = stmt.on_conflict_do_update(
                index_elements=[Repository.full_name],
                set_={field: stmt.excluded[field] for field in MUTABLE_FIELDS},
            )
            try:
                async with self.db.session() as session:
                    await session.execute(stmt)
                    await session.commit()
            except SQLAlchemyError as e:
                logger.error(f"{repo.full_name}: failed to store repository: {e}")
                continue
            stored += 1

        logger.debug(f"Upserted {stored} repositories")
        return stored

    async def update_webhook_status(
        self,
        full_name: str,
        webhook_id: Optional[int],
        status: WebhookStatus,
    ) -> None:
        async with self.db.session() as session:
            await session.execute(
                update(Repository)
                .where(Repository.full_name == full_name)
                .values(webhook_id=webhook_id, webhook_status=status.value, last_synced_at=utcnow())
            )
            await session.commit()

    async def get(self, full_name: str) -> Optional[RepositoryRecord]:
        async with self.db.session() as session:
            result = await session.execute(select(Repository).where(Repository.full_name == full_name))
            row = result.scalar_one_or_none()
        return RepositoryRecord.model_validate(row) if row else None

    async def list_all(self) -> List[RepositoryRecord]:
        async with self.db.session() as session:
            result = await session.execute(select(Repository).order_by(Repository.full_name))
            return [RepositoryRecord.model_validate(row) for row in result.scalars().all()]

    async def list_by_status(self, status: WebhookStatus) -> List[RepositoryRecord]:
        async with self.db.session() as session:
            result = await session.execute(
                select(Repository)
                .where(Repository.webhook_status == status.value)
                .order_by(Repository.full_name)
            )
            return [RepositoryRecord.model_validate(row) for row in result.scalars().all()]

    async def count(self) -> int:
        async with self.db.session() as session:
            result = await session.execute(select(func.count(Repository.id)))
            return result.scalar() or 0

    async def count_by_status(self) -> Dict[str, int]:
        async with self.db.session() as session:
            result = await session.execute(
                select(Repository.webhook_status, func.count(Repository.id)).group_by(Repository.webhook_status)
            )
            return {status: count for status, count in result.all()}
