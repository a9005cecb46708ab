"""GitHub webhook receiver for release events"""

import json
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from release_notifier.api.deps import get_services
from release_notifier.core.security import verify_signature
from release_notifier.models import DeliverySource
from release_notifier.schemas.github import GitHubReleaseWebhook
from release_notifier.schemas.release import ReleaseEvent
from release_notifier.startup import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])


@router.post("/github/releases")
async def github_release_webhook(
    request: Request,
    x_github_event: str = Header(None, alias="X-GitHub-Event"),
    x_github_delivery: str = Header(None, alias="X-GitHub-Delivery"),
    x_hub_signature_256: str = Header(None, alias="X-Hub-Signature-256"),
    services: Services = Depends(get_services),
):
    raw_body = await request.body()

    if not verify_signature(raw_body, x_hub_signature_256, services.settings.github_webhook_secret):
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.warning(f"Invalid JSON payload (delivery={x_github_delivery})")
        raise HTTPException(status_code=400, detail="Invalid JSON")

    action = payload.get("action") if isinstance(payload, dict) else None
    logger.info(
        f"Received GitHub webhook event={x_github_event} action={action} delivery={x_github_delivery}"
    )

    if x_github_event != "release":
        logger.debug(f"Ignoring non-release event {x_github_event}")
        return JSONResponse({"message": "Event ignored (not a release)"}, status_code=202)

    if action != "published":
        logger.debug(f"Ignoring release action {action}")
        return JSONResponse({"message": "Event ignored (not published)"}, status_code=202)

    try:
        event = ReleaseEvent.from_webhook(GitHubReleaseWebhook.model_validate(payload))
    except (ValidationError, ValueError):
        logger.warning(f"Missing repository or release in webhook payload (delivery={x_github_delivery})")
        raise HTTPException(status_code=400, detail="Invalid payload")

    repo_full_name, release_id = event.repository.full_name, event.release.id

    if await services.ledger.is_processed(release_id, repo_full_name):
        logger.warning(f"{repo_full_name}: duplicate release event {release_id}, skipping")
        return JSONResponse({"message": "Duplicate event, already processed"})

    try:
        delivered = await services.notifier.notify(event, None, DeliverySource.PUSH)
    except Exception as e:
        logger.error(f"{repo_full_name}: error handling release {release_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error") from e

    if not delivered:
        return JSONResponse({"message": "Duplicate event, already being processed"})

    return JSONResponse({"message": "Release notification sent successfully"})
