"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from hrassess.api import admin_settings, android, auth, questions, reports, users
from hrassess.core.cache import SettingsCache
from hrassess.core.config import settings
from hrassess.core.database import close_db, get_session_factory, init_db
from hrassess.core.errors import HRAssessError, InfrastructureError
from hrassess.services.broadcast import SettingsBroadcaster
from hrassess.services.hr_client import HRRosterClient
from hrassess.services.hr_sync import HRSyncService
from hrassess.services.settings_store import SettingsStore
from hrassess.services.settings_sync import SettingsSyncService

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _error_response(status_code: int, error: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def create_app(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    roster_client: Optional[HRRosterClient] = None,
    cache: Optional[SettingsCache] = None,
    manage_database: bool = True,
) -> FastAPI:
    """Build the application and wire its services onto ``app.state``.

    Tests pass their own session factory and roster client; ``manage_database``
    then turns off schema creation and engine disposal in the lifespan.
    """
    if cache is None and settings.SETTINGS_CACHE_ENABLED:
        cache = SettingsCache()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info("Starting %s...", settings.APP_NAME)
        if manage_database:
            await init_db()
        if cache is not None:
            await cache.connect()
            logger.info("Settings cache connected")

        yield

        # Shutdown
        logger.info("Shutting down %s...", settings.APP_NAME)
        if cache is not None:
            await cache.disconnect()
        if manage_database:
            await close_db()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        docs_url="/docs" if not settings.is_production() else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    factory = session_factory or get_session_factory()
    broadcaster = SettingsBroadcaster()
    store = SettingsStore(factory, cache)
    app.state.session_factory = factory
    app.state.broadcaster = broadcaster
    app.state.settings_store = store
    app.state.settings_service = SettingsSyncService(store, broadcaster)
    app.state.hr_sync_service = HRSyncService(roster_client or HRRosterClient(), factory)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(HRAssessError)
    async def app_exception_handler(request: Request, exc: HRAssessError):
        """Render domain errors with their own status code."""
        if isinstance(exc, InfrastructureError):
            logger.error("Infrastructure failure on %s: %s", request.url.path, exc.message)
            return _error_response(exc.status_code, {"code": exc.code, "message": exc.message, "details": {}})
        return _error_response(exc.status_code, exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return _error_response(
            exc.status_code,
            {"code": "HTTP_ERROR", "message": exc.detail, "details": {}},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors."""
        return _error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            {"code": "VALIDATION_FAILED", "message": "Validation error", "details": {"errors": exc.errors()}},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        message = "An internal error occurred" if settings.is_production() else str(exc)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {"code": "INTERNAL_ERROR", "message": message, "details": {}},
        )

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check():
        """Basic health check endpoint."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "settings_subscribers": len(broadcaster),
        }

    prefix = settings.API_PREFIX
    app.include_router(auth.router, prefix=f"{prefix}/auth", tags=["Auth"])
    app.include_router(users.router, prefix=f"{prefix}/admin", tags=["Users"])
    app.include_router(admin_settings.router, prefix=f"{prefix}/admin", tags=["Settings"])
    app.include_router(questions.router, prefix=f"{prefix}/admin", tags=["Questions"])
    app.include_router(reports.router, prefix=f"{prefix}/admin", tags=["Reports"])
    app.include_router(android.router, prefix=f"{prefix}/android", tags=["Android"])

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "hrassess.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=True,
    )
