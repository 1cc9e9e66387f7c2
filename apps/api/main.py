# FastAPI entrypoint for the Debuggers OAuth2 / OpenID-Connect provider

import os

import dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from auth.security_middleware import SecurityHeadersMiddleware, SecurityLoggingMiddleware
from oauth2.cleanup import RefreshTokenCleanup
from oauth2.config import OAuth2Config
from oauth2.routes import router as oauth2_router, scheduler_router
from oauth2.service import AuthorizationService
from storage.relational.database import DatabaseConfig, DatabaseManager

dotenv.load_dotenv()


def _allowed_origins() -> list:
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def create_app(
    config: OAuth2Config = None,
    database_config: DatabaseConfig = None
) -> FastAPI:
    """Build the provider application; the database is initialized on startup"""
    config = config or OAuth2Config()

    app = FastAPI(
        title="Debuggers Identity API",
        description="OAuth2 Authorization Code + OpenID-Connect provider",
        version="1.0.0"
    )

    # ==================== SECURITY MIDDLEWARE STACK ====================

    app.add_middleware(SecurityLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    # ==================== CORS MIDDLEWARE ====================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin"],
        max_age=86400,
    )

    # ==================== GLOBAL INSTANCES ====================

    service = AuthorizationService(config)
    app.state.oauth2_config = config
    app.state.oauth2_service = service
    app.state.refresh_token_cleanup = RefreshTokenCleanup(
        session_factory=DatabaseManager.new_session,
        service=service,
        interval_seconds=config.cleanup_interval,
        batch_size=config.cleanup_batch_size
    )

    # ==================== ERROR HANDLERS ====================

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies and parameters are plain 400s"""
        detail = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'][1:]) or error['loc'][0]}: {error['msg']}"
            for error in exc.errors()
        )
        logger.warning(f"[VALIDATION] {request.method} {request.url.path}: {detail}")
        return JSONResponse(status_code=400, content={"detail": detail})

    # ==================== ROUTER REGISTRATION ====================

    app.include_router(oauth2_router)       # /public/oauth
    app.include_router(scheduler_router)    # /scheduler

    # ==================== ROOT ENDPOINTS ====================

    @app.get("/")
    async def root():
        """Root endpoint - service name and registered routes."""
        return {
            "message": "Debuggers Identity Provider",
            "status": "running",
            "routes": [
                {"path": path, "methods": sorted(method.upper() for method in operations)}
                for path, operations in app.openapi()["paths"].items()
            ]
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring system status."""
        if DatabaseManager.health_check():
            return {"status": "healthy", "database": "ok"}
        return {"status": "unhealthy", "database": "unavailable"}

    # ==================== STARTUP EVENTS ====================

    @app.on_event("startup")
    async def startup_event():
        try:
            logger.info("Initializing OAuth2 database...")
            DatabaseManager.initialize(database_config)
            logger.info("✓ OAuth2 database initialized and tables created")
        except Exception as e:
            logger.error(f"OAuth2 database init failed: {e}")
            raise

        if config.cleanup_enabled:
            app.state.refresh_token_cleanup.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.refresh_token_cleanup.stop()

    return app


app = create_app()
