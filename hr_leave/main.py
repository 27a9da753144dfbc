"""HR Leave — FastAPI application factory.

Mounts the leave and holiday routers under ``/api/v1/leave`` and installs
problem+json error handling, slowapi rate limiting and CORS.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from hr_leave import __version__
from hr_leave.common.exceptions import BASE_ERROR_URI, PROBLEM_JSON, register_exception_handlers
from hr_leave.common.rate_limit import limiter
from hr_leave.config import settings
from hr_leave.database import engine, get_db
from hr_leave.holidays.router import router as holidays_router
from hr_leave.leave.router import router as leave_router

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("HR Leave %s starting (environment=%s)", __version__, settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("HR Leave stopped")


async def _rate_limited(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit hit on %s %s: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=429,
        content={
            "type": f"{BASE_ERROR_URI}/rate-limited",
            "title": "Too Many Requests",
            "status": 429,
            "detail": f"Rate limit exceeded: {exc.detail}",
            "instance": request.url.path,
        },
        media_type=PROBLEM_JSON,
    )


def create_app() -> FastAPI:
    interactive_docs = settings.ENVIRONMENT != "production"
    app = FastAPI(
        title="HR Leave",
        description="Leave balances, holiday calendar and leave request approvals",
        version=__version__,
        docs_url="/api/docs" if interactive_docs else None,
        redoc_url="/api/redoc" if interactive_docs else None,
        lifespan=lifespan,
    )

    register_exception_handlers(app)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limited)  # type: ignore[arg-type]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )

    @app.get(f"{API_PREFIX}/health", tags=["system"])
    async def health_check(db: AsyncSession = Depends(get_db)):
        """Liveness plus a ``SELECT 1`` round trip to the database."""
        await db.execute(text("SELECT 1"))
        return {"status": "healthy", "version": __version__, "environment": settings.ENVIRONMENT}

    app.include_router(holidays_router, prefix=f"{API_PREFIX}/leave/holidays", tags=["holidays"])
    app.include_router(leave_router, prefix=f"{API_PREFIX}/leave", tags=["leave"])

    return app


app = create_app()
