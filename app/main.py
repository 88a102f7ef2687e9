import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from app.config import Settings, get_settings
from app.core.logging import setup_logging
from app.database import Database
from app.errors import SchedulingError
from app.limiter import limiter, configure_limiter
from app.routers import auth, patients, doctors, appointments, feedback, patient_portal, dashboard, health
from app.seed import create_or_update_admin

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Application factory. The data-store handle is opened at startup and disposed at shutdown."""
    settings = settings or get_settings()
    setup_logging(settings)
    configure_limiter(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = app.state.db
        db.create_tables()
        create_or_update_admin(db, settings)
        logger.info(f"{settings.app_name} {settings.app_version} started ({settings.environment})")
        yield
        db.dispose()
        logger.info("Database connections closed")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db = database or Database.from_settings(settings)
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"],
        allow_headers=["*"],
    )

    # --- Error mapping ---
    @app.exception_handler(SchedulingError)
    async def scheduling_error_handler(request: Request, exc: SchedulingError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"Database error on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})

    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.include_router(auth.router, prefix=API_PREFIX)
    app.include_router(patients.router, prefix=API_PREFIX)
    app.include_router(doctors.router, prefix=API_PREFIX)
    app.include_router(appointments.router, prefix=API_PREFIX)
    app.include_router(feedback.router, prefix=API_PREFIX)
    app.include_router(patient_portal.router, prefix=API_PREFIX)
    app.include_router(dashboard.router, prefix=API_PREFIX)
    app.include_router(health.router, prefix=API_PREFIX)

    @app.post("/token", include_in_schema=False)
    async def token_redirect():
        return RedirectResponse(url=f"{API_PREFIX}/auth/token", status_code=307)

    return app


if __name__ == "__main__":
    uvicorn.run("app.main:create_app", factory=True, host="0.0.0.0", port=8000)
