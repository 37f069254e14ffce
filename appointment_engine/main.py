import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
import logfire

from appointment_engine import __version__
from appointment_engine.config import settings
from appointment_engine.database import init_db, close_db
from appointment_engine.scheduler import build_scheduler

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# Initialize Logfire - spans around every scheduled job
if settings.logfire_token:
    logfire.configure(
        token=settings.logfire_token,
        service_name="appointment-engine",
        environment=settings.app_env,
        console=False,  # Disable console logging (too verbose)
    )
    print("✅ Logfire initialized")
else:
    print("⚠️ Logfire token not set - observability disabled")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    print("🚀 Starting Appointment Engine...")
    await init_db()
    print("✅ Database initialized")

    scheduler = build_scheduler(settings=settings)
    app.state.scheduler = scheduler
    if settings.scheduler_enabled:
        scheduler.start()
        print("✅ Scheduler started")

    yield

    # Shutdown
    print("👋 Shutting down...")
    await scheduler.shutdown()
    await close_db()
    print("✅ Scheduler stopped, database connections closed")


app = FastAPI(
    title=settings.app_name,
    description="Appointment lifecycle maintenance service",
    version=__version__,
    lifespan=lifespan,
)

if settings.logfire_token:
    logfire.instrument_fastapi(app)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": __version__,
    }


@app.get("/health")
async def health_check():
    """Detailed health check with scheduled job bookkeeping."""
    scheduler = getattr(app.state, "scheduler", None)
    return {
        "status": "healthy",
        "scheduler": "running" if scheduler and scheduler.running else "stopped",
        "jobs": scheduler.job_status() if scheduler else [],
    }
