from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from tripcollab.database import get_db
from tripcollab.realtime.changes import change_feed
from tripcollab.services.ai_service import AIService

router = APIRouter()


@router.get("/health")
async def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"

    return {
        "status": "ok" if db_status == "healthy" else "degraded",
        "database": db_status,
        "ai": AIService.get_provider().value if AIService.is_configured() else "disabled",
        "realtime_subscribers": change_feed.subscriber_count,
    }
