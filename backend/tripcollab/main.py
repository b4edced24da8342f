from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from tripcollab.api import conclusion, expenses, health, invitations, messages, plans, proposals, realtime
from tripcollab.config import get_settings
from tripcollab.database import SessionLocal, init_db
from tripcollab.errors import CollaborationError
from tripcollab.realtime.changes import attach_change_feed, change_feed
from tripcollab.scheduler import start_scheduler, stop_scheduler
from tripcollab.services.ai_service import configure_ai_from_settings

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

attach_change_feed(SessionLocal, change_feed)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting tripcollab")

    if settings.database_url.startswith("sqlite"):
        logger.info("SQLite detected - creating tables if needed")
        init_db()

    if configure_ai_from_settings(settings):
        logger.info(f"AI collaborator enabled ({settings.ai_provider})")
    else:
        logger.info("AI collaborator disabled")

    try:
        if settings.scheduler_enabled:
            start_scheduler()
            logger.info("APScheduler started")
    except Exception as e:
        logger.error(f"Scheduler startup failed: {e}")

    yield

    logger.info("Shutting down tripcollab")
    try:
        stop_scheduler()
    except Exception as e:
        logger.error(f"Shutdown error: {e}")


app = FastAPI(
    title="tripcollab",
    description="Group trip planning: proposals, votes and a consolidated plan",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)


@app.exception_handler(CollaborationError)
async def collaboration_error_handler(request: Request, exc: CollaborationError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(health.router, tags=["health"])
app.include_router(plans.router, prefix="/plans", tags=["plans"])
app.include_router(expenses.router, prefix="/plans", tags=["expenses"])
app.include_router(conclusion.router, prefix="/plans", tags=["conclusion"])
app.include_router(proposals.router, tags=["proposals"])
app.include_router(invitations.router, tags=["invitations"])
app.include_router(messages.router, tags=["messages"])
app.include_router(realtime.router, tags=["realtime"])


# Health check for monitoring/Docker
@app.get("/ping")
async def ping():
    """Simple ping endpoint for health checks."""
    return {"status": "ok"}
