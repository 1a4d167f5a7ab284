from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .admin.routes import build_router as build_admin_router
from .analytics.routes import build_router as build_analytics_router
from .auth.otp import OtpStore
from .auth.routes import build_router as build_auth_router
from .catalog.routes import build_router as build_catalog_router
from .config import Settings, load_settings
from .exam.errors import SessionError, SessionRedirect
from .exam.registry import SessionRegistry
from .exam.routes import build_router as build_exam_router
from .exam.store import DemoAttemptStore, SqlAttemptStore
from .materials.routes import build_router as build_materials_router
from .middleware import auth_middleware
from .results.routes import build_router as build_results_router
from .shared.database import Base, make_engine, make_session_factory
from .shared.errors import RedirectRequired
from .shared.local_store import LocalStore
from .shared.mailer import Mailer
from .subscriptions.crud import ensure_default_plans
from .subscriptions.routes import build_router as build_subscriptions_router

logger = logging.getLogger("rapid-steno")

SERVICE_NAME = "rapid-steno-exam"
VERSION = "1.0.0"


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    import rapid_steno.models  # noqa: F401  (registers every table)

    engine = make_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    SessionLocal = make_session_factory(engine)
    with SessionLocal() as db:
        ensure_default_plans(db)

    local_store = LocalStore(settings.local_store_path)
    mailer = Mailer(settings)
    otp_store = OtpStore()
    registry = SessionRegistry(
        SqlAttemptStore(SessionLocal),
        DemoAttemptStore(SessionLocal, local_store),
        tick_seconds=settings.session_tick_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s", SERVICE_NAME)
        yield
        await registry.shutdown()
        engine.dispose()
        logger.info("Stopped %s", SERVICE_NAME)

    app = FastAPI(title="Rapid Steno Exam", version=VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.SessionLocal = SessionLocal
    app.state.local_store = local_store
    app.state.registry = registry
    app.state.otp_store = otp_store

    # Auth runs inside CORS so preflight and 401 responses still carry CORS headers
    app.add_middleware(BaseHTTPMiddleware, dispatch=auth_middleware)

    origins = settings.cors_origins
    allow_credentials = True
    if origins == ["*"]:
        # Browsers reject "*" with credentials
        allow_credentials = False

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SessionRedirect)
    async def session_redirect_handler(request: Request, exc: SessionRedirect):
        logger.info("Redirecting %s to %s: %s", request.url.path, exc.location, exc)
        return RedirectResponse(url=exc.location, status_code=303)

    @app.exception_handler(SessionError)
    async def session_error_handler(request: Request, exc: SessionError):
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc), "retry": exc.retry})

    @app.exception_handler(RedirectRequired)
    async def redirect_required_handler(request: Request, exc: RedirectRequired):
        return RedirectResponse(url=exc.location, status_code=303)

    @app.get("/health", operation_id="health_check", tags=["Health"])
    async def health_check():
        return {"status": "healthy", "service": SERVICE_NAME, "live_sessions": registry.live_count}

    @app.get("/", operation_id="root", tags=["Root"])
    async def root():
        return {
            "service": "Rapid Steno Exam",
            "version": VERSION,
            "docs": "/docs",
            "openapi": "/openapi.json",
        }

    app.include_router(build_auth_router(SessionLocal, settings, local_store, mailer, otp_store), prefix="/auth", tags=["Authentication"])
    app.include_router(build_catalog_router(SessionLocal), prefix="/catalog", tags=["Catalog"])
    app.include_router(build_exam_router(SessionLocal, registry), prefix="/exam", tags=["Exam"])
    app.include_router(build_results_router(SessionLocal, local_store), prefix="/results", tags=["Results"])
    app.include_router(build_analytics_router(SessionLocal, settings, local_store), prefix="/analytics", tags=["Analytics"])
    app.include_router(build_subscriptions_router(SessionLocal), prefix="/subscriptions", tags=["Subscriptions"])
    app.include_router(build_admin_router(SessionLocal), prefix="/admin", tags=["Admin"])
    app.include_router(build_materials_router(SessionLocal), prefix="/materials", tags=["Materials"])

    return app


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)
