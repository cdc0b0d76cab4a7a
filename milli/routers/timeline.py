# milli/routers/timeline.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import crud, schemas, security, models
from ..database import get_db

router = APIRouter(
    prefix="/timeline",
    tags=["Timeline"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


def _can_access_user(db: Session, current_user: models.User, user_id: int) -> bool:
    if current_user.id == user_id or current_user.role == models.UserRole.ADMIN:
        return True
    return crud.is_patient_of(db, doctor_id=current_user.id, patient_id=user_id)


def _check_access(db: Session, current_user: models.User, user_id: int) -> None:
    if not _can_access_user(db, current_user, user_id):
        raise HTTPException(status_code=403, detail="You do not have access to this timeline")


# --- Items ---

@router.get("/items", response_model=List[schemas.TimelineItemResponse])
def read_timeline_items(
    user_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    """Items of one user, the signed in user by default."""
    user_id = user_id if user_id is not None else current_user.id
    _check_access(db, current_user, user_id)
    return crud.get_timeline_items(db, user_id)


@router.get("/items/{item_id}", response_model=schemas.TimelineItemResponse)
def read_timeline_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    db_item = crud.get_timeline_item(db, item_id)
    if not db_item:
        raise HTTPException(status_code=404, detail="Timeline item not found")
    _check_access(db, current_user, db_item.user_id)
    return db_item


@router.post("/items", response_model=schemas.TimelineItemResponse, status_code=status.HTTP_201_CREATED)
def create_timeline_item(
    item: schemas.TimelineItemCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    owner_id = item.user_id if item.user_id is not None else current_user.id
    _check_access(db, current_user, owner_id)
    if item.group is not None and not crud.get_timeline_group(db, item.group):
        raise HTTPException(status_code=400, detail=f"Timeline group {item.group} does not exist")
    return crud.create_timeline_item(db, item, user_id=owner_id)


@router.put("/items/{item_id}", response_model=schemas.TimelineItemResponse)
def update_timeline_item(
    item_id: int,
    item_update: schemas.TimelineItemUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    db_item = crud.get_timeline_item(db, item_id)
    if not db_item:
        raise HTTPException(status_code=404, detail="Timeline item not found")
    _check_access(db, current_user, db_item.user_id)
    return crud.update_timeline_item(db, item_id, item_update)


# --- Groups ---

@router.get("/groups", response_model=List[schemas.TimelineGroupResponse])
def read_timeline_groups(db: Session = Depends(get_db)):
    return crud.get_timeline_groups(db)


@router.get("/groups/{group_id}", response_model=schemas.TimelineGroupResponse)
def read_timeline_group(group_id: int, db: Session = Depends(get_db)):
    db_group = crud.get_timeline_group(db, group_id)
    if not db_group:
        raise HTTPException(status_code=404, detail="Timeline group not found")
    return db_group


@router.post("/groups", response_model=schemas.TimelineGroupResponse, status_code=status.HTTP_201_CREATED)
def create_timeline_group(
    group: schemas.TimelineGroupCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor)
):
    return crud.create_timeline_group(db, group)


@router.put("/groups/{group_id}", response_model=schemas.TimelineGroupResponse)
def update_timeline_group(
    group_id: int,
    group_update: schemas.TimelineGroupUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor)
):
    db_group = crud.update_timeline_group(db, group_id, group_update)
    if not db_group:
        raise HTTPException(status_code=404, detail="Timeline group not found")
    return db_group
