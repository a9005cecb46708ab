import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .api import admin, health, webhooks
from .config import Settings, get_settings
from .startup import Services, build_services, shutdown_tasks, startup_tasks

logger = logging.getLogger("release-notifier")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # httpx logs full request URLs at INFO, which include the Telegram bot token
    logging.getLogger("httpx").setLevel(logging.WARNING)


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[Services] = None,
    run_bootstrap: bool = True,
) -> FastAPI:
    """
    Build the FastAPI application.

    Configuration errors surface here, before the server accepts traffic.
    """
    settings = settings or (services.settings if services else get_settings())
    configure_logging(settings.log_level)
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await startup_tasks(services, run_bootstrap=run_bootstrap)
        logger.info(
            f"Release notifier started: {len(services.profiles)} profiles, "
            f"webhook URL {settings.webhook_url}"
        )
        try:
            yield
        finally:
            await shutdown_tasks(services)
            logger.info("Application shutdown")

    app = FastAPI(title="GitHub Release Telegram Bot", version=__version__, lifespan=lifespan)
    app.state.services = services

    app.include_router(health.router)
    app.include_router(webhooks.router)
    app.include_router(admin.router)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        detail = "Not found" if exc.status_code == 404 and exc.detail == "Not Found" else exc.detail
        return JSONResponse({"error": detail}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": "Invalid request", "details": jsonable_encoder(exc.errors())}, status_code=422)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    return app
