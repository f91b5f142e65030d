"""
FastAPI application setup with monitoring, rate limiting, and error handling.
"""
import logging
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from prometheus_fastapi_instrumentator import Instrumentator
from village_carbon.api.rate_limit import limiter
from village_carbon.core.settings import settings
from village_carbon.core.exceptions import (
    village_carbon_exception_handler,
    validation_exception_handler,
    general_exception_handler,
    VillageCarbonException
)
from village_carbon.db.session import create_db_and_tables

# Setup structured logging
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(settings.log_level)),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Village Carbon Ledger API",
        description="Carbon credit balances, adjustments and audit trail for village members",
        version=settings.app_version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # Add rate limiting state
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Add middleware
    setup_middleware(app)

    # Add monitoring
    setup_monitoring(app)

    # Add exception handlers
    setup_exception_handlers(app)

    # Include routers
    setup_routers(app)

    # Setup event handlers
    setup_event_handlers(app)

    return app


def setup_middleware(app: FastAPI):
    """Setup application middleware."""

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )


def setup_monitoring(app: FastAPI):
    """Setup Prometheus monitoring."""
    if not settings.enable_metrics:
        return

    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics"],
        inprogress_name="village_carbon_requests_inprogress",
        inprogress_labels=True,
    )

    instrumentator.instrument(app).expose(app, endpoint="/metrics")


def setup_exception_handlers(app: FastAPI):
    """Setup exception handlers."""

    app.add_exception_handler(VillageCarbonException, village_carbon_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)


def setup_routers(app: FastAPI):
    """Setup API routers."""

    from village_carbon.api.routers import admin_carbon, user_carbon

    # Include routers with API prefix
    app.include_router(admin_carbon.router, prefix="/api")
    app.include_router(user_carbon.router, prefix="/api")

    # Health check endpoint with rate limiting
    @app.get("/health")
    @limiter.limit("100/minute")
    async def health_check(request: Request):
        """Health check endpoint."""
        logger.info("Health check requested", remote_addr=get_remote_address(request))
        return {
            "status": "healthy",
            "service": "village-carbon-ledger",
            "version": settings.app_version,
            "environment": settings.environment
        }

    # Root endpoint
    @app.get("/")
    @limiter.limit("60/minute")
    async def root(request: Request):
        """Root endpoint with API information."""
        return {
            "message": "Village Carbon Ledger API",
            "version": settings.app_version,
            "docs": "/docs" if settings.is_development else "Contact admin for API documentation",
        }


def setup_event_handlers(app: FastAPI):
    """Setup application event handlers."""

    @app.on_event("startup")
    async def startup_event():
        """Application startup event with logging."""
        logger.info("Village Carbon Ledger starting up",
                    environment=settings.environment,
                    database_url=settings.database_url[:20] + "...")

        for issue in settings.validate_production_config():
            logger.warning("Production configuration issue", issue=issue)

        # Create database tables
        create_db_and_tables()

        logger.info("Village Carbon Ledger started successfully")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Application shutdown event."""
        logger.info("Village Carbon Ledger shutting down")


# Create application instance
app = create_application()
