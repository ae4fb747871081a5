import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from hireflow.api.router import api_router
from hireflow.core.config import settings
from hireflow.core.paths import resolve_repo_path
from hireflow.db.session import engine
from hireflow.jobs.scheduler import start_scheduler
from hireflow.middleware.audit import AuditMiddleware
from hireflow.middleware.logging import RequestLoggingMiddleware
from hireflow.services.collaborators import Collaborators, build_collaborators
from hireflow.services.event_bus import event_bus

logging.basicConfig(level=logging.INFO)
logging.getLogger("apscheduler").setLevel(logging.WARNING)
logging.getLogger("apscheduler.scheduler").setLevel(logging.WARNING)


def create_app(collaborators: Collaborators | None = None, *, audit_session_factory=None) -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.collaborators = collaborators
    app.state.scheduler = None

    # Added last runs first: request id is assigned before the audit row is written.
    app.add_middleware(AuditMiddleware, session_factory=audit_session_factory)
    app.add_middleware(RequestLoggingMiddleware)
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "environment": settings.environment}

    app.include_router(api_router, prefix="/api")
    app.mount(
        settings.offer_letter_route,
        StaticFiles(directory=str(resolve_repo_path(settings.offer_letter_dir)), check_dir=False),
        name="offer-letters",
    )

    @app.on_event("startup")
    async def _startup() -> None:
        if app.state.collaborators is None:
            app.state.collaborators = build_collaborators()
        if settings.enable_scheduler:
            app.state.scheduler = start_scheduler(app.state.collaborators)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        scheduler = app.state.scheduler
        if scheduler:
            scheduler.shutdown()
        if app.state.collaborators is not None:
            await app.state.collaborators.notifications.drain()
        await event_bus.close()
        await engine.dispose()

    return app


app = create_app()
