"""Health check endpoint with database connectivity check."""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from cugino.core.config import Settings, get_settings
from cugino.core.database import check_db_connected, get_db
from cugino.schemas.health import HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def get_health(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse | JSONResponse:
    """
    Return service health status and database connectivity.
    Answers 503 when the database is unreachable, for load balancers.
    """
    if check_db_connected(db):
        return HealthResponse(status="ok", environment=settings.APP_ENV, database="connected")
    body = HealthResponse(status="degraded", environment=settings.APP_ENV, database="disconnected")
    return JSONResponse(status_code=503, content=body.model_dump())
