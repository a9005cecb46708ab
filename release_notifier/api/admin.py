"""Admin API routes: statistics, repository listing and background jobs"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from release_notifier.api.deps import get_services
from release_notifier.core.tasks import TaskInfo
from release_notifier.models import WebhookStatus
from release_notifier.schemas.repository import RepositoryResponse
from release_notifier.startup import Services, discover_and_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/stats")
async def get_stats(services: Services = Depends(get_services)):
    """Repository counts per webhook status and the latest deliveries"""
    recent = await services.ledger.recent(limit=10)

    return {
        "profiles": [{"owner": p.owner, "url": p.url} for p in services.profiles],
        "total_repositories": await services.directory.count(),
        "webhook_stats": await services.directory.count_by_status(),
        "total_releases": await services.ledger.count(),
        "recent_releases": [
            {
                "repo_full_name": r.repo_full_name,
                "tag_name": r.tag_name,
                "processed_at": r.processed_at.isoformat() if r.processed_at else None,
                "source": r.source,
            }
            for r in recent
        ],
        "config": {
            "polling_enabled": services.settings.enable_polling,
            "polling_interval_minutes": services.settings.poll_interval_minutes,
        },
    }


@router.get("/repositories")
async def list_repositories(
    status: Optional[WebhookStatus] = None,
    services: Services = Depends(get_services),
):
    """List tracked repositories, optionally filtered by webhook status"""
    if status:
        repos = await services.directory.list_by_status(status)
    else:
        repos = await services.directory.list_all()

    return {
        "count": len(repos),
        "repositories": [RepositoryResponse.model_validate(r).model_dump(mode="json") for r in repos],
    }


@router.post("/discover", status_code=202)
async def trigger_discovery(services: Services = Depends(get_services)):
    logger.info("Manually triggered repository discovery")

    async def job():
        repos = await discover_and_store(services)
        return {"repositories": len(repos)}

    info = services.tasks.submit("discover", job)
    return JSONResponse(
        {
            "message": "Repository discovery started in background",
            "task_id": info.task_id,
            "profiles": len(services.profiles),
        },
        status_code=202,
    )


@router.post("/sync-webhooks", status_code=202)
async def trigger_webhook_sync(services: Services = Depends(get_services)):
    logger.info("Manually triggered webhook sync")
    repos = await services.directory.list_all()

    async def job():
        summary = await services.synchronizer.sync_all(repos)
        return summary.model_dump()

    info = services.tasks.submit("sync-webhooks", job)
    return JSONResponse(
        {
            "message": "Webhook sync started in background",
            "task_id": info.task_id,
            "repositories": len(repos),
        },
        status_code=202,
    )


@router.get("/tasks")
async def list_tasks(services: Services = Depends(get_services)):
    return {"tasks": [t.model_dump(mode="json") for t in services.tasks.list()]}


@router.get("/tasks/{task_id}", response_model=TaskInfo)
async def get_task(task_id: str, services: Services = Depends(get_services)):
    info = services.tasks.get(task_id)
    if info is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return info
