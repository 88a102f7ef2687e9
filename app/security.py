import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .database import get_db
from . import models

security_logger = logging.getLogger("security")

pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__rounds=4,
    argon2__memory_cost=65536,
    argon2__parallelism=1,
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/token")

ROLE_ADMIN = "admin"
ROLE_PATIENT = "patient"


@dataclass(frozen=True)
class Principal:
    """The authenticated caller as seen by the scheduling services."""
    role: str
    id: int
    username: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_patient(self) -> bool:
        return self.role == ROLE_PATIENT


# Password utilities
def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash"""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Unknown/legacy hash formats should not crash login; treat as non-match
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# JWT utilities
def create_access_token(data: dict, settings, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

    to_encode.update({
        "exp": expire,
        "type": "access",
        "iat": now,
        "jti": secrets.token_urlsafe(16),
    })
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_principal_token(principal: Principal, settings) -> str:
    return create_access_token(
        {"sub": principal.username, "user_id": principal.id, "role": principal.role},
        settings,
    )


def verify_token(token: str, settings, token_type: str = "access") -> Optional[Dict[str, Any]]:
    """Verify and decode JWT token"""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("type") != token_type:
        return None
    return payload


# Dependencies for FastAPI
async def get_current_principal(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Principal:
    """Resolve the bearer token to an existing admin or patient."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = verify_token(token, request.app.state.settings)
    if not payload:
        raise credentials_exception

    username = payload.get("sub")
    user_id = payload.get("user_id")
    role = payload.get("role")
    if not username or not user_id or role not in (ROLE_ADMIN, ROLE_PATIENT):
        raise credentials_exception

    # The account must still exist; deleted patients lose access immediately
    if role == ROLE_ADMIN:
        account = db.get(models.Admin, user_id)
    else:
        account = db.get(models.Patient, user_id)
    if account is None:
        security_logger.warning(f"Token for missing {role} account {user_id} rejected")
        raise credentials_exception

    return Principal(role=role, id=user_id, username=username)


def require_role(*allowed_roles: str):
    """Dependency factory for role-based access control"""
    def role_dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {', '.join(allowed_roles)}"
            )
        return principal

    return role_dependency


require_admin = require_role(ROLE_ADMIN)
require_patient = require_role(ROLE_PATIENT)
