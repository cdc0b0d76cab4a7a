# milli/routers/assignments.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from .. import crud, schemas, security, models
from ..database import get_db
from ..services import assignments as assignment_service

import logging

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Questionnaire Assignments"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


def _check_patient_of(db: Session, current_user: models.User, patient_id: int) -> None:
    if current_user.role == models.UserRole.ADMIN:
        return
    if not crud.is_patient_of(db, doctor_id=current_user.id, patient_id=patient_id):
        raise HTTPException(status_code=403, detail=f"User {patient_id} is not your patient")


def _get_assignment_or_404(db: Session, assignment_id: int) -> models.QuestionnaireAssignment:
    assignment = assignment_service.get_assignment(db, assignment_id)
    if assignment is None:
        raise HTTPException(status_code=404, detail="Questionnaire assignment not found")
    return assignment


@router.post("/questionnaire-assignments", response_model=schemas.QuestionnaireAssignmentResponse,
             status_code=status.HTTP_201_CREATED)
def create_questionnaire_assignment(
    assignment: schemas.QuestionnaireAssignmentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor)
):
    """Assign a questionnaire to one of the doctor's patients. The first instance is created with it."""
    if not crud.get_questionnaire(db, assignment.questionnaire_id):
        raise HTTPException(status_code=404, detail="Questionnaire not found")
    _check_patient_of(db, current_user, assignment.assignee_id)

    db_assignment = assignment_service.create_assignment(
        db,
        questionnaire_id=assignment.questionnaire_id,
        assignee_id=assignment.assignee_id,
        assigner_id=current_user.id,
        repeat_interval=assignment.repeat_interval,
    )
    logger.info(
        f"User {current_user.id} assigned questionnaire {assignment.questionnaire_id} "
        f"to user {assignment.assignee_id} (assignment {db_assignment.id})"
    )
    return db_assignment


@router.put("/questionnaire-assignments/{assignment_id}", response_model=schemas.QuestionnaireAssignmentResponse)
def update_questionnaire_assignment(
    assignment_id: int,
    assignment_update: schemas.QuestionnaireAssignmentUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor)
):
    assignment = _get_assignment_or_404(db, assignment_id)
    if current_user.role != models.UserRole.ADMIN and assignment.assigner_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the assigning doctor may change this assignment")
    if assignment_update.assignee_id is not None:
        _check_patient_of(db, current_user, assignment_update.assignee_id)
    if assignment_update.assigner_id is not None and current_user.role != models.UserRole.ADMIN \
            and assignment_update.assigner_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only an administrator may hand an assignment to another doctor")
    return assignment_service.update_assignment(db, assignment_id, assignment_update)


@router.delete("/questionnaire-assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_questionnaire_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor)
):
    """Stop the assignment. Instances already created, and their responses, are kept."""
    assignment = _get_assignment_or_404(db, assignment_id)
    if assignment.assigner_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the creator of an assignment may delete it")
    assignment_service.delete_assignment(db, assignment_id)
    logger.info(f"User {current_user.id} deleted assignment {assignment_id}")
    return


@router.get("/questionnaire-assignments/mine", response_model=List[schemas.QuestionnaireAssignmentDetail],
            response_model_exclude_unset=True)
def read_my_assignments(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor)
):
    """Assignments the signed in doctor has created."""
    return assignment_service.find_by_assigner_id(db, current_user.id)


@router.get("/questionnaire-assignments/{assignment_id}/instances",
            response_model=List[schemas.AssignmentInstanceResponse])
def read_assignment_instances(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor)
):
    assignment = _get_assignment_or_404(db, assignment_id)
    if current_user.role != models.UserRole.ADMIN and assignment.assigner_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the assigning doctor may view this assignment")
    return assignment_service.get_instances_for_assignment(db, assignment_id)


@router.get("/me/questionnaires", response_model=List[schemas.AssembledQuestionnaire],
            response_model_exclude_unset=True)
def read_my_questionnaires(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    """Every questionnaire instance assigned to the signed in user, with their responses."""
    return assignment_service.find_assigned_to_user(db, current_user.id)


@router.get("/patients/{patient_id}/questionnaires", response_model=List[schemas.AssembledQuestionnaire],
            response_model_exclude_unset=True)
def read_patient_questionnaires(
    patient_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor)
):
    _check_patient_of(db, current_user, patient_id)
    return assignment_service.find_assigned_to_user(db, patient_id)


@router.get("/questionnaire-assignment-instances/{instance_id}", response_model=schemas.AssembledQuestionnaire,
            response_model_exclude_unset=True)
def read_assignment_instance(
    instance_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    """One filled questionnaire. Still readable after its assignment has been deleted."""
    instance = assignment_service.get_instance(db, instance_id)
    if instance is None:
        raise HTTPException(status_code=404, detail="Assignment instance not found")
    allowed = (
        current_user.id in (instance.assignee_id, instance.assigner_id)
        or current_user.role == models.UserRole.ADMIN
        or crud.is_patient_of(db, doctor_id=current_user.id, patient_id=instance.assignee_id)
    )
    if not allowed:
        raise HTTPException(status_code=403, detail="You do not have access to this questionnaire")

    assembled = assignment_service.find_instance_questionnaire(db, instance_id)
    if assembled is None:
        raise HTTPException(status_code=404, detail="Questionnaire not found")
    return assembled
