# app/routers/auth.py
from fastapi import APIRouter, Depends, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from .. import crud, schemas, security
from ..database import get_db
from ..errors import InvalidCredentials
from ..security import Principal, ROLE_ADMIN, ROLE_PATIENT

import logging

logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)


def _token_response(principal: Principal, settings) -> dict:
    access_token = security.create_principal_token(principal, settings)
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": settings.access_token_expire_minutes * 60,
        "user": schemas.PrincipalResponse(id=principal.id, role=principal.role, username=principal.username),
    }


@router.post("/token", response_model=schemas.TokenResponse)
def login_for_access_token(
    request: Request,
    db: Session = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
):
    """Admin login (OAuth2 password form)."""
    admin = crud.get_admin_by_username(db, form_data.username)
    if not admin or not security.verify_password(form_data.password, admin.password_hash):
        logger.warning("Failed admin login attempt")
        raise InvalidCredentials("Incorrect username or password")

    logger.info(f"Admin {admin.id} successfully authenticated.")
    return _token_response(Principal(role=ROLE_ADMIN, id=admin.id, username=admin.username), request.app.state.settings)


@router.post("/patient/token", response_model=schemas.TokenResponse)
def patient_login(
    request: Request,
    db: Session = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
):
    """Patient login. The form's username field carries the patient's email."""
    patient = crud.get_patient_by_email(db, form_data.username)
    if not patient or not security.verify_password(form_data.password, patient.password_hash):
        logger.warning("Failed patient login attempt")
        raise InvalidCredentials("Incorrect email or password")

    logger.info(f"Patient {patient.id} successfully authenticated.")
    return _token_response(Principal(role=ROLE_PATIENT, id=patient.id, username=patient.email), request.app.state.settings)


@router.post("/register", response_model=schemas.AdminResponse, status_code=status.HTTP_201_CREATED)
def register_admin(
    admin_in: schemas.AdminCreate,
    db: Session = Depends(get_db),
    current_admin: Principal = Depends(security.require_admin),
):
    """Create another admin account. Only an existing admin may do this."""
    admin = crud.create_admin(db, admin_in.username, security.get_password_hash(admin_in.password))
    logger.info(f"Admin {admin.id} created by admin {current_admin.id}")
    return admin


@router.post("/patient/register", response_model=schemas.TokenResponse, status_code=status.HTTP_201_CREATED)
def register_patient(
    request: Request,
    patient_in: schemas.PatientRegister,
    db: Session = Depends(get_db),
):
    """Self-service patient registration; answers with a token so the patient is logged in."""
    patient = crud.create_patient(db, patient_in, password_hash=security.get_password_hash(patient_in.password))
    return _token_response(Principal(role=ROLE_PATIENT, id=patient.id, username=patient.email), request.app.state.settings)


@router.get("/me", response_model=schemas.PrincipalResponse)
async def read_current_principal(principal: Principal = Depends(security.get_current_principal)):
    """
    Get the current logged in principal.
    """
    return schemas.PrincipalResponse(id=principal.id, role=principal.role, username=principal.username)
