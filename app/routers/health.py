# app/routers/health.py
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import crud, schemas, security
from ..database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/health",
    tags=["Health Checks"],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=schemas.HealthResponse)
def health_check(request: Request):
    """Liveness probe with a database round trip. Public."""
    version = request.app.state.settings.app_version
    try:
        request.app.state.db.ping()
    except SQLAlchemyError as e:
        logger.error(f"Health check database ping failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "unavailable", "version": version},
        )
    return {"status": "healthy", "database": "ok", "version": version}


@router.get("/consistency-check", response_model=schemas.ConsistencyReport,
            dependencies=[Depends(security.require_admin)])
def check_system_consistency(db: Session = Depends(get_db)):
    """
    Checks the Schedule projection and the active-slot invariant against appointments.
    Accessible only by admin users.
    """
    report = crud.run_consistency_checks(db=db)
    issues = (
        len(report["confirmed_without_schedule"])
        + len(report["schedule_without_confirmed"])
        + len(report["active_slot_collisions"])
    )
    logger.info(f"Consistency checks completed. Found {issues} issues.")
    return report
