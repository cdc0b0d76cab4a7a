# milli/routers/auth.py
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from .. import crud, schemas, security, models
from ..config import get_settings
from ..database import get_db
from ..limiter import limiter
from ..services.messaging import MessagingService, get_messaging_service

import logging

logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)


def _token_response(db: Session, user: models.User) -> dict:
    access_token = security.issue_token(db, user)
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": get_settings().access_token_expire_minutes * 60,
        "user": user,
    }


def _validate_contact(email, phone):
    if not email and not phone:
        raise HTTPException(status_code=400, detail="An email or a phone number is required")
    if email and not schemas.is_email(email):
        raise HTTPException(status_code=400, detail=f"Invalid email address: {email}")
    if phone and not schemas.is_phone(phone):
        raise HTTPException(status_code=400, detail=f"Invalid phone number: {phone}")


def _code_expired(db_code: models.UserAuthCode) -> bool:
    created = db_code.created
    if created is None:
        return True
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    max_age = timedelta(minutes=get_settings().auth_code_expire_minutes)
    return datetime.now(timezone.utc) - created > max_age


@router.post("/token", response_model=schemas.TokenResponse)
def login_for_access_token(db: Session = Depends(get_db), form_data: OAuth2PasswordRequestForm = Depends()):
    """Password login. The username is either an email address or a phone number."""
    identifier = form_data.username.strip()
    if schemas.is_email(identifier):
        user = crud.get_user_by_email(db, identifier)
    else:
        user = crud.get_user_by_phone(db, identifier)

    stored_hash = user.login.password_hash if user and user.login else None
    if not user or not security.verify_password(form_data.password, stored_hash):
        logger.warning(f"Failed login attempt for: {identifier}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email/phone or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"User {user.id} successfully authenticated.")
    return _token_response(db, user)


@router.post("/deauthenticate")
def deauthenticate(
    payload: dict = Depends(security.get_token_payload),
    current_user: models.User = Depends(security.get_current_user),
    db: Session = Depends(get_db)
):
    """Revoke the token used for this request."""
    deleted = crud.delete_user_token(db, user_id=current_user.id, token_id=payload["jti"])
    logger.info(f"User {current_user.id} signed out.")
    return {"success": deleted}


@router.post("/invite", status_code=status.HTTP_201_CREATED)
def send_invite(
    invite: schemas.InviteRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor),
    messaging: MessagingService = Depends(get_messaging_service)
):
    if current_user.role == models.UserRole.DOCTOR and invite.role == models.UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Doctors cannot invite administrators")
    _validate_contact(invite.email, invite.phone)

    db_code = crud.create_auth_code(
        db,
        email=invite.email,
        phone=invite.phone,
        role=invite.role,
        name=invite.name,
        inviter_id=current_user.id,
    )
    delivered = messaging.send_auth_code(
        db_code.code, email=invite.email, phone=invite.phone, name=invite.name, invited=True
    )
    logger.info(f"User {current_user.id} invited a {invite.role.value} (delivered={delivered})")
    return {"success": True, "delivered": delivered}


@router.post("/code/request")
@limiter.limit(get_settings().auth_code_rate_limit)
def request_auth_code(
    request: Request,
    code_request: schemas.AuthCodeRequest,
    db: Session = Depends(get_db),
    messaging: MessagingService = Depends(get_messaging_service)
):
    """Send a sign in code to a known email or phone. Unknown contacts get the same answer."""
    _validate_contact(code_request.email, code_request.phone)

    user = crud.get_user_by_contact(db, email=code_request.email, phone=code_request.phone)
    if user is None:
        logger.info("Auth code requested for an unknown contact")
        return {"success": True}

    db_code = crud.create_auth_code(db, email=user.email, phone=user.phone, role=user.role, name=user.name)
    # Deliver over the channel the code was requested on
    if code_request.email:
        messaging.send_auth_code(db_code.code, email=user.email, name=user.name)
    else:
        messaging.send_auth_code(db_code.code, phone=user.phone, name=user.name)
    return {"success": True}


@router.post("/code/submit", response_model=schemas.TokenResponse)
def submit_auth_code(submission: schemas.AuthCodeSubmit, db: Session = Depends(get_db)):
    """Exchange a one-time code for a bearer token, creating an invited user on first use."""
    invalid_code = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired code",
    )
    db_code = crud.get_auth_code(db, submission.code)
    if db_code is None:
        raise invalid_code
    if _code_expired(db_code):
        crud.delete_auth_code(db, db_code)
        raise invalid_code

    user = crud.get_user_by_contact(db, email=db_code.email, phone=db_code.phone)
    if user is None:
        user = crud.create_user(db, schemas.UserCreate(
            email=db_code.email,
            phone=db_code.phone,
            name=db_code.name,
            role=db_code.role or models.UserRole.PATIENT,
        ))
        logger.info(f"Created user {user.id} from an invitation")

    if db_code.inviter_id is not None and user.role == models.UserRole.PATIENT:
        inviter = crud.get_user(db, db_code.inviter_id)
        if inviter is not None and inviter.role == models.UserRole.DOCTOR:
            crud.assign_patient_to_doctor(db, patient_id=user.id, doctor_id=inviter.id)

    crud.delete_auth_code(db, db_code)
    return _token_response(db, user)
