from datetime import datetime, timezone

from fastapi import APIRouter

from release_notifier import __version__

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/")
async def index():
    """Service metadata and route listing"""
    return {
        "name": "GitHub Release Telegram Bot",
        "version": __version__,
        "status": "running",
        "endpoints": {
            "health": "/healthz",
            "webhook": "/webhook/github/releases",
            "admin": {
                "stats": "/admin/stats",
                "repositories": "/admin/repositories",
                "discover": "POST /admin/discover",
                "sync_webhooks": "POST /admin/sync-webhooks",
                "tasks": "/admin/tasks",
            },
        },
    }
