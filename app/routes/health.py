import logging
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlmodel import Session
from datetime import datetime, timezone

from app.config import settings
from app.database import get_session

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("/check")
def health_check(session: Session = Depends(get_session)):
    db_status = "ok"

    try:
        session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database ping failed")
        db_status = "failed"

    return {
        "status": "ok" if db_status == "ok" else "degraded",
        "database": db_status,
        "storage_backend": settings.storage_backend,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
