# milli/services/assignments.py
"""
Questionnaire assignments and their instances.

An assignment is the standing doctor -> patient link to a questionnaire. An
instance is one concrete filling of it; responses are keyed by instance. Instances
copy the assignment's questionnaire/assignee/assigner and are never deleted, so
deleting an assignment leaves every instance and response in place.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .. import crud, models, schemas
from .assembler import assemble_questionnaire

logger = logging.getLogger(__name__)


def _integrity_message(error: IntegrityError) -> str:
    if "unique" in str(error.orig).lower():
        return "This questionnaire is already assigned to this patient"
    return "Assignment refers to a user or questionnaire that does not exist"


def get_assignment(db: Session, assignment_id: int) -> Optional[models.QuestionnaireAssignment]:
    return db.query(models.QuestionnaireAssignment).filter(
        models.QuestionnaireAssignment.id == assignment_id
    ).first()


def get_instance(db: Session, instance_id: int) -> Optional[models.QuestionnaireAssignmentInstance]:
    return db.query(models.QuestionnaireAssignmentInstance).filter(
        models.QuestionnaireAssignmentInstance.id == instance_id
    ).first()


def get_instances_for_assignment(db: Session, assignment_id: int) -> List[models.QuestionnaireAssignmentInstance]:
    return db.query(models.QuestionnaireAssignmentInstance).filter(
        models.QuestionnaireAssignmentInstance.assignment_id == assignment_id
    ).order_by(models.QuestionnaireAssignmentInstance.id).all()


def create_instance(
    db: Session,
    assignment: models.QuestionnaireAssignment,
    created: Optional[datetime] = None,
) -> models.QuestionnaireAssignmentInstance:
    """Mint a new instance for the assignment. Does NOT commit the transaction."""
    instance = models.QuestionnaireAssignmentInstance(
        created=created or models.utcnow(),
        assignment_id=assignment.id,
        questionnaire_id=assignment.questionnaire_id,
        assignee_id=assignment.assignee_id,
        assigner_id=assignment.assigner_id,
    )
    db.add(instance)
    db.flush()
    logger.info(f"Created instance {instance.id} for assignment {assignment.id}")
    return instance


def create_assignment(
    db: Session,
    questionnaire_id: int,
    assignee_id: int,
    assigner_id: int,
    repeat_interval: Optional[int] = None,
) -> models.QuestionnaireAssignment:
    """Persist the assignment and seed its first instance in the same transaction."""
    assignment = models.QuestionnaireAssignment(
        questionnaire_id=questionnaire_id,
        assignee_id=assignee_id,
        assigner_id=assigner_id,
        repeat_interval=repeat_interval,
    )
    try:
        db.add(assignment)
        db.flush()
        create_instance(db, assignment)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Rejected assignment of questionnaire {questionnaire_id} to user {assignee_id}: {str(e)}")
        raise crud.CRUDError(_integrity_message(e))
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(assignment)
    return assignment


def update_assignment(
    db: Session,
    assignment_id: int,
    assignment_update: schemas.QuestionnaireAssignmentUpdate,
) -> Optional[models.QuestionnaireAssignment]:
    """Partial update. Never creates an instance."""
    assignment = get_assignment(db, assignment_id)
    if assignment is None:
        return None
    for key, value in assignment_update.model_dump(exclude_unset=True).items():
        setattr(assignment, key, value)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Rejected update of assignment {assignment_id}: {str(e)}")
        raise crud.CRUDError(_integrity_message(e))
    db.refresh(assignment)
    return assignment


def delete_assignment(db: Session, assignment_id: int) -> bool:
    """Delete the assignment row only. Its instances and responses stay."""
    assignment = get_assignment(db, assignment_id)
    if assignment is None:
        return False
    db.delete(assignment)
    db.commit()
    return True


def find_instance_questionnaire(db: Session, instance_id: int) -> Optional[schemas.AssembledQuestionnaire]:
    """The questionnaire as filled in for one instance, with the assignee's responses."""
    instance = get_instance(db, instance_id)
    if instance is None:
        return None
    return assemble_questionnaire(
        db,
        instance.questionnaire_id,
        for_user_id=instance.assignee_id,
        for_assignment_instance_id=instance.id,
    )


def find_assigned_to_user(db: Session, patient_id: int) -> List[schemas.AssembledQuestionnaire]:
    """One assembled questionnaire per instance the patient has received."""
    instances = db.query(models.QuestionnaireAssignmentInstance).filter(
        models.QuestionnaireAssignmentInstance.assignee_id == patient_id
    ).order_by(
        models.QuestionnaireAssignmentInstance.created,
        models.QuestionnaireAssignmentInstance.id
    ).all()

    questionnaires = []
    for instance in instances:
        assembled = assemble_questionnaire(
            db,
            instance.questionnaire_id,
            for_user_id=patient_id,
            for_assignment_instance_id=instance.id,
        )
        if assembled is not None:
            questionnaires.append(assembled)
    return questionnaires


def find_by_assigner_id(db: Session, doctor_id: int) -> List[schemas.QuestionnaireAssignmentDetail]:
    """Assignments (not instances) the doctor created, with questionnaire and assignee."""
    assignments = db.query(models.QuestionnaireAssignment).filter(
        models.QuestionnaireAssignment.assigner_id == doctor_id
    ).order_by(models.QuestionnaireAssignment.id).all()

    details = []
    for assignment in assignments:
        assignee = crud.get_user(db, assignment.assignee_id)
        details.append(schemas.QuestionnaireAssignmentDetail(
            id=assignment.id,
            questionnaire_id=assignment.questionnaire_id,
            assignee_id=assignment.assignee_id,
            assigner_id=assignment.assigner_id,
            repeat_interval=assignment.repeat_interval,
            created=assignment.created,
            questionnaire=assemble_questionnaire(db, assignment.questionnaire_id),
            assignee=schemas.UserResponse.model_validate(assignee) if assignee else None,
        ))
    return details
