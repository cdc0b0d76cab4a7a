import secrets
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Tuple
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from passlib.context import CryptContext

from .config import get_settings
from .database import get_db
from . import models, crud

security_logger = logging.getLogger("security")

pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__rounds=4,
    argon2__memory_cost=65536,
    argon2__parallelism=1,
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/token")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/token", auto_error=False)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        security_logger.warning("Stored password hash could not be identified")
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# JWT utilities
def create_access_token(user: models.User, expires_delta: Optional[timedelta] = None) -> Tuple[str, str]:
    """Create a JWT access token. Returns the encoded token and its id (jti),
    which must be persisted for the token to be accepted."""
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    jti = secrets.token_urlsafe(16)
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": str(user.id),
        "role": user.role.value,
        "exp": now + expires_delta,
        "iat": now,
        "type": "access",
        "jti": jti,
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm), jti


def verify_token(token: str, token_type: str = "access") -> Optional[Dict[str, Any]]:
    """Verify and decode JWT token"""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("type") != token_type:
        return None
    return payload


def issue_token(db: Session, user: models.User) -> str:
    """Create and persist a new access token for the user."""
    token, jti = create_access_token(user)
    crud.create_user_token(db, user_id=user.id, token_id=jti)
    crud.touch_last_visit(db, user)
    return token


def enforce_roles(user: Optional[models.User], *roles: models.UserRole) -> models.User:
    """The single role policy check. Any signed in user passes when no roles are given."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if roles and user.role not in roles:
        security_logger.info(f"Access denied for user {user.id} with role {user.role.value}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied. Required roles: {', '.join(r.value for r in roles)}"
        )
    return user


def get_token_payload(token: str = Depends(oauth2_scheme)) -> Dict[str, Any]:
    payload = verify_token(token, "access")
    if not payload or not payload.get("sub") or not payload.get("jti"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


def get_current_user(
    payload: Dict[str, Any] = Depends(get_token_payload),
    db: Session = Depends(get_db)
) -> models.User:
    """Resolve the bearer token to a user. The token must still be persisted."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise credentials_exception

    if not crud.user_token_exists(db, user_id=user_id, token_id=payload["jti"]):
        security_logger.info(f"Rejected revoked or unknown token for user {user_id}")
        raise credentials_exception

    user = crud.get_user(db, user_id=user_id)
    if not user:
        raise credentials_exception
    return user


def get_optional_user(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    db: Session = Depends(get_db)
) -> Optional[models.User]:
    """Like get_current_user, but anonymous requests resolve to None instead of 401."""
    if not token:
        return None
    return get_current_user(get_token_payload(token), db)


def require_role(*allowed_roles: models.UserRole):
    """Dependency factory for role-based access control"""
    def role_dependency(current_user: models.User = Depends(get_current_user)) -> models.User:
        return enforce_roles(current_user, *allowed_roles)

    return role_dependency


require_user = require_role()
require_admin = require_role(models.UserRole.ADMIN)
require_doctor = require_role(models.UserRole.DOCTOR, models.UserRole.ADMIN)
