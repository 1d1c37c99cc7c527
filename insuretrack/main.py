from __future__ import annotations

import logging
from typing import Optional

from dotenv import load_dotenv

# Load .env before settings are read anywhere downstream.
load_dotenv()

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from insuretrack.config import Settings, get_settings
from insuretrack.email.config import email_settings_from
from insuretrack.email.service import EmailDispatcher, build_dispatcher
from insuretrack.errors import (
    EntryValidationError,
    FieldError,
    NotFoundError,
    StorageUnavailableError,
)
from insuretrack.routers import health as health_router
from insuretrack.routers import insurance as insurance_router
from insuretrack.routers import logs as logs_router
from insuretrack.routers import reminders as reminders_router
from insuretrack.services.reminders import run_reminder_sweep
from insuretrack.services.scheduler import ReminderScheduler
from insuretrack.services.templates import template_from_settings
from insuretrack.storage import StorageAdapter, init_storage

logger = logging.getLogger("insuretrack.main")


def _request_errors(exc: RequestValidationError) -> list[FieldError]:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        errors.append(
            FieldError(field=".".join(loc) or "body", message=err.get("msg", "Invalid value"))
        )
    return errors


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(EntryValidationError)
    async def entry_validation_handler(request: Request, exc: EntryValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": exc.message,
                "details": [e.model_dump(exclude_none=True) for e in exc.errors],
            },
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Invalid request body",
                "details": [e.model_dump(exclude_none=True) for e in _request_errors(exc)],
            },
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": str(exc)})

    @app.exception_handler(StorageUnavailableError)
    async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
        logger.error("Storage unavailable on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"error": str(exc) or "Storage unavailable"},
        )


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[StorageAdapter] = None,
    dispatcher: Optional[EmailDispatcher] = None,
) -> FastAPI:
    """
    Build the API.

    Storage and dispatcher are chosen at startup unless supplied here;
    supplying them skips backend selection entirely.
    """
    settings = settings or get_settings()

    app = FastAPI(title=settings.app_name, debug=settings.debug)
    app.state.settings = settings
    app.state.storage = storage
    app.state.dispatcher = dispatcher
    app.state.scheduler = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    prefix = settings.api_prefix.strip("/")
    prefix = f"/{prefix}" if prefix else ""
    app.include_router(insurance_router.router, prefix=prefix)
    app.include_router(logs_router.router, prefix=prefix)
    app.include_router(reminders_router.router, prefix=prefix)
    app.include_router(health_router.router, prefix=prefix)

    _register_exception_handlers(app)

    def scheduled_sweep() -> None:
        run_reminder_sweep(
            app.state.storage,
            app.state.dispatcher,
            window_days=settings.reminder_days,
            template=template_from_settings(settings),
        )

    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("Starting %s (%s)...", settings.app_name, settings.environment)

        if app.state.storage is None:
            app.state.storage = init_storage(settings)
        if app.state.dispatcher is None:
            app.state.dispatcher = build_dispatcher(email_settings_from(settings))

        if settings.scheduler_enabled:
            scheduler = ReminderScheduler(
                scheduled_sweep,
                hour=settings.reminder_hour,
                minute=settings.reminder_minute,
            )
            scheduler.start()
            app.state.scheduler = scheduler
        else:
            logger.info("ENABLE_SCHEDULER is false; daily reminders are not scheduled.")

        logger.info(
            "%s started (storage=%s, email=%s)",
            settings.app_name,
            app.state.storage.mode,
            app.state.dispatcher.mode,
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        if app.state.scheduler is not None:
            app.state.scheduler.stop()
            app.state.scheduler = None
        if app.state.storage is not None:
            app.state.storage.close()
        logger.info("%s stopped.", settings.app_name)

    return app


app = create_app()
