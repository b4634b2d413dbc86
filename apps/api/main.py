"""
FastAPI application entry point.

Collaborators (user directory, activity publisher, stores) are assembled
once in create_app() and shared through app.state.
"""
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from routers import activities, recommendations, users
from core.config import settings
from core.database import SessionLocal, check_db_connection, init_db
from core.exceptions import APIException
from core.identity_sync import IdentitySyncMiddleware
from core.logging import setup_logging
from services.activity_events import ActivityEventPublisher
from services.recommendation_store import RecommendationStore
from services.user_directory import HttpUserDirectory, LocalUserDirectory, UserDirectory
from services.user_store import UserStore
import logging
import time

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _default_directory(user_store: UserStore) -> UserDirectory:
    if settings.USER_SERVICE_URL:
        logger.info(f"Identity sync uses remote user service at {settings.USER_SERVICE_URL}")
        return HttpUserDirectory(settings.USER_SERVICE_URL, timeout_s=settings.USER_SERVICE_TIMEOUT_S)
    return LocalUserDirectory(user_store)


def create_app(
    user_directory: Optional[UserDirectory] = None,
    publisher: Optional[ActivityEventPublisher] = None,
) -> FastAPI:
    app = FastAPI(
        title="Fitness Recommendation API",
        description="Activity tracking with asynchronous AI recommendations",
        version="1.0.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    user_store = UserStore(SessionLocal)
    app.state.user_store = user_store
    app.state.recommendation_store = RecommendationStore(SessionLocal)
    app.state.activity_publisher = publisher or ActivityEventPublisher.from_settings()

    @app.on_event("startup")
    async def create_tables():
        try:
            init_db()
        except Exception as e:
            logger.warning(f"Schema creation failed (non-critical): {e}")

    # Identity sync runs on every request before routing
    app.add_middleware(
        IdentitySyncMiddleware,
        directory=user_directory or _default_directory(user_store),
        user_id_header=settings.USER_ID_HEADER,
    )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests with timing information."""
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                exc_info=True,
                extra={
                    "extra_fields": {
                        "method": request.method,
                        "path": request.url.path,
                        "error": str(e),
                    }
                }
            )
            raise

        process_time = time.time() - start_time
        logger.info(
            f"Response: {request.method} {request.url.path} - {response.status_code}",
            extra={
                "extra_fields": {
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "process_time_ms": round(process_time * 1000, 2),
                }
            }
        )
        response.headers["X-Process-Time"] = str(process_time)
        return response

    @app.exception_handler(APIException)
    async def api_exception_handler(request: Request, exc: APIException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_code": exc.error_code},
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled errors."""
        logger.error(
            f"Unhandled exception: {exc}",
            exc_info=True,
            extra={
                "extra_fields": {
                    "method": request.method,
                    "path": request.url.path,
                }
            }
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    @app.get("/health")
    async def health():
        """
        Simple health check for load balancers and uptime monitors.

        Returns:
            - 200: Database reachable
            - 503: Database unavailable
        """
        if not check_db_connection():
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "unhealthy", "database": "unavailable"},
            )
        return {"status": "healthy", "timestamp": time.time()}

    app.include_router(users.router)
    app.include_router(activities.router)
    app.include_router(recommendations.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
