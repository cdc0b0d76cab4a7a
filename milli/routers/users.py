# milli/routers/users.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import crud, schemas, security, models
from ..database import get_db

router = APIRouter(
    tags=["Users"],
    responses={404: {"description": "Not found"}},
)


def _detail(db: Session, user: models.User) -> schemas.UserDetailResponse:
    detail = schemas.UserDetailResponse.model_validate(user)
    detail.patients = [schemas.UserResponse.model_validate(p) for p in crud.get_patients_of_doctor(db, user.id)]
    detail.doctors = [schemas.UserResponse.model_validate(d) for d in crud.get_doctors_of_patient(db, user.id)]
    return detail


@router.post("/users", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
def create_new_user(
    user: schemas.UserCreate,
    db: Session = Depends(get_db),
    current_user: Optional[models.User] = Depends(security.get_optional_user)
):
    """
    Sign up. Anyone may create a PATIENT account; other roles require an admin.
    """
    if user.role != models.UserRole.PATIENT:
        security.enforce_roles(current_user, models.UserRole.ADMIN)

    password_hash = security.get_password_hash(user.password) if user.password else None
    return crud.create_user(db=db, user=user, password_hash=password_hash)


@router.get("/users/me", response_model=schemas.UserDetailResponse)
def read_users_me(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    return _detail(db, current_user)


@router.put("/users/me", response_model=schemas.UserResponse)
def update_users_me(
    user_update: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    """Update the signed in user's profile. Role changes only apply for admins."""
    return crud.update_user(
        db, current_user, user_update,
        allow_role_change=current_user.role == models.UserRole.ADMIN
    )


@router.get("/users", response_model=List[schemas.UserResponse])
def read_all_users(
    skip: int = 0,
    limit: int = 100,
    role: Optional[models.UserRole] = None,
    db: Session = Depends(get_db),
    current_admin: models.User = Depends(security.require_admin)
):
    return crud.get_users(db, skip=skip, limit=limit, role=role)


@router.get("/users/{user_id}", response_model=schemas.UserDetailResponse)
def read_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    db_user = crud.get_user(db, user_id=user_id)
    if not db_user:
        raise HTTPException(status_code=404, detail="User not found")

    allowed = (
        current_user.id == db_user.id
        or current_user.role == models.UserRole.ADMIN
        or crud.is_patient_of(db, doctor_id=current_user.id, patient_id=db_user.id)
        or crud.is_patient_of(db, doctor_id=db_user.id, patient_id=current_user.id)
    )
    if not allowed:
        raise HTTPException(status_code=403, detail="You do not have access to this user")
    return _detail(db, db_user)


@router.get("/patients", response_model=List[schemas.UserResponse])
def read_my_patients(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor)
):
    return crud.get_patients_of_doctor(db, current_user.id)


@router.get("/doctors", response_model=List[schemas.UserResponse])
def read_my_doctors(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    return crud.get_doctors_of_patient(db, current_user.id)


@router.post("/doctor-patient", status_code=status.HTTP_201_CREATED)
def assign_patient_to_doctor(
    link: schemas.DoctorPatientLink,
    db: Session = Depends(get_db),
    current_admin: models.User = Depends(security.require_admin)
):
    doctor = crud.get_user(db, link.doctor_id)
    patient = crud.get_user(db, link.patient_id)
    if not doctor or not patient:
        raise HTTPException(status_code=404, detail="User not found")
    if doctor.role != models.UserRole.DOCTOR:
        raise HTTPException(status_code=400, detail=f"User {doctor.id} is not a doctor")
    return {"success": crud.assign_patient_to_doctor(db, patient_id=patient.id, doctor_id=doctor.id)}


@router.delete("/doctor-patient")
def unassign_patient_from_doctor(
    link: schemas.DoctorPatientLink,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor)
):
    """Admins may remove any link; doctors only their own."""
    if current_user.role != models.UserRole.ADMIN and current_user.id != link.doctor_id:
        raise HTTPException(status_code=403, detail="Doctors may only remove their own patients")
    return {"success": crud.unassign_patient_from_doctor(db, patient_id=link.patient_id, doctor_id=link.doctor_id)}
