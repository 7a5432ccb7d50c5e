import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from waterops.api.activities import router as activities_router
from waterops.api.alerts import router as alerts_router
from waterops.api.auth import router as auth_router
from waterops.api.dashboard import router as dashboard_router
from waterops.api.leaks import router as leaks_router
from waterops.api.maintenance import router as maintenance_router
from waterops.api.reports import router as reports_router
from waterops.api.water_usage import router as water_usage_router
from waterops.config.settings import Settings, get_settings
from waterops.errors import WaterOpsError
from waterops.store import build_store
from waterops.store.base import RecordStore
from waterops.utils.logger import setup_logger

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, store: Optional[RecordStore] = None) -> FastAPI:
    """
    Builds the API. ``store`` may be injected (tests); otherwise the
    configured backend is created on startup and closed on shutdown.
    """
    settings = settings or get_settings()
    setup_logger(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifecycle manager: opens the record store on startup, closes it on shutdown.
        """
        owns_store = store is None
        app.state.store = build_store(settings) if owns_store else store
        logger.info(f"🚀 {settings.app_name} started (backend: {app.state.store.backend_name})")
        yield
        if owns_store:
            app.state.store.close()
        logger.info(f"🔒 {settings.app_name} stopped")

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
    app.state.settings = settings
    if store is not None:
        app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(WaterOpsError)
    async def water_ops_error_handler(request: Request, exc: WaterOpsError):
        logger.warning(f"⚠️ {request.method} {request.url.path} -> {exc.to_dict()}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    # Register Routes
    app.include_router(auth_router)
    app.include_router(dashboard_router)
    app.include_router(water_usage_router)
    app.include_router(leaks_router)
    app.include_router(maintenance_router)
    app.include_router(alerts_router)
    app.include_router(activities_router)
    app.include_router(reports_router)

    @app.get("/health")
    def health_check(request: Request):
        """Health check for the operations service; pings the record store."""
        store = request.app.state.store
        try:
            store.health_check()
        except Exception as e:
            logger.error(f"❌ Store health check failed ({store.backend_name}): {e}")
            return JSONResponse(
                status_code=503,
                content={"status": "unavailable", "service": settings.app_name, "store": store.backend_name},
            )
        return {
            "status": "active",
            "service": settings.app_name,
            "store": store.backend_name,
        }

    return app
