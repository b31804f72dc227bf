"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stowage.api.v1.router import api_router
from stowage.config import Settings, settings
from stowage.core.exceptions import AppException
from stowage.core.locks import KeyedLock
from stowage.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from stowage.database import async_session_maker, close_db, init_db
from stowage.services.availability_service import AvailabilityService
from stowage.services.booking_service import BookingService
from stowage.services.gateway_service import GatewayService
from stowage.services.loyalty_service import LoyaltyService
from stowage.services.payment_service import PaymentService
from stowage.services.pricing_service import PricingService
from stowage.utils.time import Clock, utc_now

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    # Startup
    if settings.debug:
        await init_db()
    logger.info(f"{settings.app_name} {settings.app_version} started ({settings.environment})")

    yield

    # Shutdown
    await close_db()


def create_application(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    clock: Clock = utc_now,
    gateways: GatewayService | None = None,
    config: Settings | None = None,
    use_lifespan: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        session_factory: Session factory for all services (defaults to the app engine)
        clock: Time source shared by every service
        gateways: Payment gateway router
        config: Settings override
        use_lifespan: Run engine startup/shutdown hooks

    Returns:
        FastAPI: Configured application
    """
    config = config or settings
    session_factory = session_factory or async_session_maker
    configure_logging(config.log_level)

    app = FastAPI(
        title=config.app_name,
        version=config.app_version,
        description="Stowage - Storage Unit Booking API",
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
        openapi_url="/openapi.json" if config.debug else None,
        lifespan=lifespan if use_lifespan else None,
    )

    # Services
    availability = AvailabilityService(session_factory)
    pricing = PricingService(session_factory, clock, config)
    bookings = BookingService(
        session_factory,
        availability=availability,
        pricing=pricing,
        loyalty=LoyaltyService(),
        clock=clock,
        locks=KeyedLock(),
        config=config,
    )
    app.state.session_factory = session_factory
    app.state.availability_service = availability
    app.state.pricing_service = pricing
    app.state.booking_service = bookings
    app.state.payment_service = PaymentService(
        bookings,
        gateways or GatewayService(config),
        session_factory,
        clock,
    )

    # Exception handlers
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        """Handle custom application exceptions."""
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=exc.headers,
        )

    # Middleware (order matters - first added = last executed)
    app.add_middleware(SecurityHeadersMiddleware, hsts=not config.debug)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Include API routes
    app.include_router(api_router, prefix=config.api_prefix)

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": config.app_version,
            "environment": config.environment,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "stowage.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
    )
