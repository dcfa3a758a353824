import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import auth, departments, employees, notifications, presence
from .core.config import settings
from .core.errors import register_exception_handlers
from .core.logging import configure_logging
from .db import SessionLocal, create_tables
from .jobs import daily_summary

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    create_tables()
    job = None
    if settings.daily_summary_enabled:
        job = asyncio.create_task(
            daily_summary.run_forever(SessionLocal, settings.daily_summary_interval_hours)
        )
        logger.info("Daily summary job scheduled every %sh", settings.daily_summary_interval_hours)
    logger.info("%s started", settings.app_name)
    yield
    # Shutdown
    if job is not None:
        job.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await job


app = FastAPI(
    title=settings.app_name,
    description="Employee Management System API",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(departments.router, prefix="/departments", tags=["Departments"])
app.include_router(employees.router, prefix="/employees", tags=["Employees"])
app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
app.include_router(presence.router, tags=["Presence"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {"message": f"Welcome to {settings.app_name}", "status": "running"}


@app.get("/healthz")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": settings.app_name}


if __name__ == "__main__":
    uvicorn.run(
        "ems_backend.app:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
