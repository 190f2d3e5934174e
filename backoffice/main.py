import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backoffice.config import settings, validate_security_settings
from backoffice.database import Base, engine
from backoffice.exception_handlers import register_exception_handlers
from backoffice.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from backoffice.middleware.rate_limit import configure_rate_limiting
from backoffice.routes import admin_mfa, auth, users

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Tasks to run at application startup and shutdown."""
    logger.info(f"Starting {settings.app_name} in {settings.environment} mode")
    validate_security_settings(settings)

    if settings.debug:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created (if not existing).")

    yield

    await engine.dispose()
    logger.info("Shutting down the application...")


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Invoicing back-office API: authentication and admin MFA",
        debug=settings.debug,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(StructuredLoggingMiddleware)

    configure_rate_limiting(app)
    register_exception_handlers(app)

    app.include_router(auth.router, prefix=f"{API_PREFIX}/auth")
    app.include_router(admin_mfa.router, prefix=f"{API_PREFIX}/admin")
    app.include_router(users.router, prefix=f"{API_PREFIX}/users")

    @app.get("/health", tags=["Root"])
    async def health():
        return {
            "status": "success",
            "message": f"{settings.app_name} is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    if settings.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    return app


setup_structured_logging(
    log_level="DEBUG" if settings.debug else "INFO",
    json_format=settings.environment == "production",
)

app = create_app()
