"""Health check endpoints."""
import logging
import os

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from certissuer.api.models import HealthResponse
from certissuer.db.session import get_db

log = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/healthz", response_model=HealthResponse)
def healthz(db: Session = Depends(get_db)) -> HealthResponse:
    """Health check endpoint.

    Reports degraded database connectivity without failing the probe.
    """
    try:
        db.execute(text("SELECT 1"))
        return HealthResponse(ok=True)
    except SQLAlchemyError as e:
        log.warning(f"Health check warning: {e}")
        return HealthResponse(ok=True, database="unavailable")


@router.get("/version")
def version() -> dict:
    """Return the deployed commit."""
    git_sha = os.getenv("GIT_SHA", "unknown")

    result = {"git_sha": git_sha}
    if git_sha != "unknown":
        result["short_sha"] = git_sha[:7]

    return result
