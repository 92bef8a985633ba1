"""
Health check endpoint
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime, timezone

from jewelry_crm import __version__
from jewelry_crm.database import get_db
from jewelry_crm.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint

    Returns service health status including:
    - Service status
    - Database connectivity
    - Timestamp
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        db_status = f"unhealthy: {str(e)}"

    return {
        "service": settings.SERVICE_NAME,
        "status": "healthy" if db_status == "healthy" else "unhealthy",
        "database": db_status,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/")
def root():
    """Root endpoint"""
    return {
        "service": settings.SERVICE_NAME,
        "version": __version__,
        "docs": "/docs"
    }
