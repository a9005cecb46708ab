"""Background jobs submitted from request handlers"""

import asyncio
import logging
import uuid
from collections import OrderedDict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaskInfo(BaseModel):
    task_id: str
    name: str
    status: TaskStatus = TaskStatus.PENDING
    submitted_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    result: Any = None
    error: Optional[str] = None


class TaskRunner:
    """
    Runs submitted coroutines in the background and keeps their outcome.

    `submit` returns immediately with a TaskInfo; failures are logged and
    stored on the TaskInfo instead of being lost with the request.
    """

    def __init__(self, history: int = 50):
        self.history = history
        self._tasks: "OrderedDict[str, TaskInfo]" = OrderedDict()
        self._running: Dict[str, asyncio.Task] = {}

    def submit(self, name: str, job: Callable[[], Awaitable[Any]]) -> TaskInfo:
        info = TaskInfo(task_id=uuid.uuid4().hex, name=name, submitted_at=_now())
        self._tasks[info.task_id] = info
        self._trim()

        task = asyncio.create_task(self._run(info, job), name=f"{name}-{info.task_id[:8]}")
        self._running[info.task_id] = task
        task.add_done_callback(lambda _: self._running.pop(info.task_id, None))

        logger.info(f"Submitted background task {name} ({info.task_id})")
        return info

    async def _run(self, info: TaskInfo, job: Callable[[], Awaitable[Any]]) -> None:
        info.status = TaskStatus.RUNNING
        info.started_at = _now()
        try:
            info.result = await job()
            info.status = TaskStatus.COMPLETED
            logger.info(f"Background task {info.name} ({info.task_id}) completed")
        except asyncio.CancelledError:
            info.status = TaskStatus.CANCELLED
            raise
        except Exception as e:
            info.status = TaskStatus.FAILED
            info.error = str(e)
            logger.exception(f"Background task {info.name} ({info.task_id}) failed")
        finally:
            info.finished_at = _now()

    def get(self, task_id: str) -> Optional[TaskInfo]:
        return self._tasks.get(task_id)

    def list(self) -> List[TaskInfo]:
        return list(reversed(self._tasks.values()))

    async def wait(self) -> None:
        """Wait for every task still running"""
        if self._running:
            await asyncio.gather(*self._running.values(), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._running.values()):
            task.cancel()
        await self.wait()

    def _trim(self) -> None:
        while len(self._tasks) > self.history:
            task_id, info = next(iter(self._tasks.items()))
            if info.status in (TaskStatus.PENDING, TaskStatus.RUNNING):
                break
            self._tasks.pop(task_id)


def _now() -> datetime:
    return datetime.now(timezone.utc)
