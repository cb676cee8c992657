"""FastAPI application entrypoint."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from projectcamp.api import auth_router, health_router, invitations_router
from projectcamp.api.limiter import limiter
from projectcamp.core.config import settings
from projectcamp.core.errors import ServiceError
from projectcamp.db.migrations import run_migrations
from projectcamp.db.session import verify_connection


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    try:
        logger.info("Startup: verifying database connection")
        verify_connection()
        logger.info("Startup: database connection verified")
        app.state.database_url = settings.database_url

        logger.info("Startup: running database migrations")
        run_migrations()
        logger.info("Startup: migrations completed")
    except Exception:  # pragma: no cover - logged and re-raised
        logger.error("Startup failure", exc_info=True)
        raise

    yield

    logger.info("Shutdown: application stopped")


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Render a service failure as ``{"detail": message}`` with its status code."""

    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s on %s %s", type(exc).__name__, request.method, request.url.path)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


logger.info("Creating FastAPI application instance")
app = FastAPI(title="Project Camp", lifespan=lifespan)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(ServiceError, service_error_handler)

logger.info("Configuring CORS middleware")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info("Registering API routers")
app.include_router(health_router)
app.include_router(auth_router, prefix="/api/v1/auth")
app.include_router(invitations_router, prefix="/api/v1/invitations")
logger.info("Routers registered; application ready to accept requests")
