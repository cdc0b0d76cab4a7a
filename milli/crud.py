# milli/crud.py
import uuid
import logging
from datetime import datetime, timezone
from typing import Optional, List

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from . import models, schemas

logger = logging.getLogger(__name__)


class CRUDError(Exception):
    pass


# ==================== USER CRUD OPERATIONS ====================

def get_user(db: Session, user_id: int) -> Optional[models.User]:
    """Get user by ID with error handling."""
    try:
        return db.query(models.User).filter(models.User.id == user_id).first()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching user {user_id}: {str(e)}")
        raise CRUDError(f"Database error: {str(e)}")


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email).first()


def get_user_by_phone(db: Session, phone: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.phone == phone).first()


def get_user_by_contact(db: Session, email: Optional[str] = None, phone: Optional[str] = None) -> Optional[models.User]:
    """Get user by email, falling back to phone."""
    user = None
    if email:
        user = get_user_by_email(db, email)
    if user is None and phone:
        user = get_user_by_phone(db, phone)
    return user


def get_users(db: Session, skip: int = 0, limit: int = 100, role: Optional[models.UserRole] = None) -> List[models.User]:
    """Get users with optional role filter."""
    try:
        query = db.query(models.User)
        if role:
            query = query.filter(models.User.role == role)
        return query.order_by(models.User.id).offset(skip).limit(limit).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching users: {str(e)}")
        raise CRUDError(f"Database error: {str(e)}")


def create_user(db: Session, user: schemas.UserCreate, password_hash: Optional[str] = None) -> models.User:
    """Create a user with its login and health rows. Email and phone must be unique."""
    if user.email and get_user_by_email(db, user.email):
        raise CRUDError(f"A user with email {user.email} already exists")
    if user.phone and get_user_by_phone(db, user.phone):
        raise CRUDError(f"A user with phone {user.phone} already exists")

    db_user = models.User(
        email=user.email,
        phone=user.phone,
        name=user.name,
        role=user.role,
    )
    db_user.login = models.UserLogin(password_hash=password_hash)
    db_user.health = models.UserHealth()
    try:
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Integrity error creating user: {str(e)}")
        raise CRUDError("A user with this email or phone already exists")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating user: {str(e)}")
        raise CRUDError(f"Database error: {str(e)}")

    logger.info(f"Created user {db_user.id} with role {db_user.role.value}")
    return db_user


def update_user(db: Session, db_user: models.User, user_update: schemas.UserUpdate, allow_role_change: bool = False) -> models.User:
    update_data = user_update.model_dump(exclude_unset=True)
    if not allow_role_change:
        update_data.pop("role", None)

    if update_data.get("email") and update_data["email"] != db_user.email:
        if get_user_by_email(db, update_data["email"]):
            raise CRUDError(f"A user with email {update_data['email']} already exists")
    if update_data.get("phone") and update_data["phone"] != db_user.phone:
        if get_user_by_phone(db, update_data["phone"]):
            raise CRUDError(f"A user with phone {update_data['phone']} already exists")

    for key, value in update_data.items():
        setattr(db_user, key, value)
    try:
        db.commit()
        db.refresh(db_user)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating user {db_user.id}: {str(e)}")
        raise CRUDError(f"Database error: {str(e)}")
    return db_user


def set_password_hash(db: Session, db_user: models.User, password_hash: str) -> None:
    if db_user.login is None:
        db_user.login = models.UserLogin()
    db_user.login.password_hash = password_hash
    db.commit()


def touch_last_visit(db: Session, db_user: models.User) -> None:
    if db_user.login is None:
        db_user.login = models.UserLogin()
    db_user.login.last_visit = datetime.now(timezone.utc)
    db.commit()


# ==================== TOKENS & AUTH CODES ====================

def create_user_token(db: Session, user_id: int, token_id: str) -> models.UserToken:
    db_token = models.UserToken(user_id=user_id, token=token_id)
    db.add(db_token)
    db.commit()
    return db_token


def user_token_exists(db: Session, user_id: int, token_id: str) -> bool:
    return db.query(models.UserToken).filter(
        models.UserToken.user_id == user_id,
        models.UserToken.token == token_id
    ).first() is not None


def delete_user_token(db: Session, user_id: int, token_id: str) -> bool:
    deleted = db.query(models.UserToken).filter(
        models.UserToken.user_id == user_id,
        models.UserToken.token == token_id
    ).delete(synchronize_session=False)
    db.commit()
    return deleted > 0


def create_auth_code(
    db: Session,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    role: Optional[models.UserRole] = None,
    name: Optional[str] = None,
    inviter_id: Optional[int] = None,
) -> models.UserAuthCode:
    db_code = models.UserAuthCode(
        code=str(uuid.uuid4()),
        email=email,
        phone=phone,
        role=role,
        name=name,
        inviter_id=inviter_id,
    )
    db.add(db_code)
    db.commit()
    db.refresh(db_code)
    return db_code


def get_auth_code(db: Session, code: str) -> Optional[models.UserAuthCode]:
    return db.query(models.UserAuthCode).filter(models.UserAuthCode.code == code).first()


def delete_auth_code(db: Session, db_code: models.UserAuthCode) -> None:
    db.delete(db_code)
    db.commit()


# ==================== DOCTOR / PATIENT RELATIONSHIPS ====================

def get_patients_of_doctor(db: Session, doctor_id: int) -> List[models.User]:
    return db.query(models.User).join(
        models.DoctorPatientRelationship,
        models.DoctorPatientRelationship.patient_id == models.User.id
    ).filter(models.DoctorPatientRelationship.doctor_id == doctor_id).order_by(models.User.id).all()


def get_doctors_of_patient(db: Session, patient_id: int) -> List[models.User]:
    return db.query(models.User).join(
        models.DoctorPatientRelationship,
        models.DoctorPatientRelationship.doctor_id == models.User.id
    ).filter(models.DoctorPatientRelationship.patient_id == patient_id).order_by(models.User.id).all()


def is_patient_of(db: Session, doctor_id: int, patient_id: int) -> bool:
    return db.query(models.DoctorPatientRelationship).filter(
        models.DoctorPatientRelationship.doctor_id == doctor_id,
        models.DoctorPatientRelationship.patient_id == patient_id
    ).first() is not None


def assign_patient_to_doctor(db: Session, patient_id: int, doctor_id: int) -> bool:
    """Link a patient to a doctor. Linking twice is a no-op."""
    if is_patient_of(db, doctor_id=doctor_id, patient_id=patient_id):
        return True
    db.add(models.DoctorPatientRelationship(doctor_id=doctor_id, patient_id=patient_id))
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error linking patient {patient_id} to doctor {doctor_id}: {str(e)}")
        raise CRUDError("Could not link patient to doctor")
    return True


def unassign_patient_from_doctor(db: Session, patient_id: int, doctor_id: int) -> bool:
    deleted = db.query(models.DoctorPatientRelationship).filter(
        models.DoctorPatientRelationship.doctor_id == doctor_id,
        models.DoctorPatientRelationship.patient_id == patient_id
    ).delete(synchronize_session=False)
    db.commit()
    return deleted > 0


# ==================== TIMELINE ====================

def get_timeline_items(db: Session, user_id: int) -> List[models.TimelineItem]:
    return db.query(models.TimelineItem).filter(
        models.TimelineItem.user_id == user_id
    ).order_by(models.TimelineItem.start, models.TimelineItem.id).all()


def get_timeline_item(db: Session, item_id: int) -> Optional[models.TimelineItem]:
    return db.query(models.TimelineItem).filter(models.TimelineItem.id == item_id).first()


def create_timeline_item(db: Session, item: schemas.TimelineItemCreate, user_id: int) -> models.TimelineItem:
    data = item.model_dump(exclude={"user_id"})
    db_item = models.TimelineItem(**data, user_id=user_id)
    db.add(db_item)
    db.commit()
    db.refresh(db_item)
    return db_item


def update_timeline_item(db: Session, item_id: int, item_update: schemas.TimelineItemUpdate) -> Optional[models.TimelineItem]:
    db_item = get_timeline_item(db, item_id)
    if not db_item:
        return None
    for key, value in item_update.model_dump(exclude_unset=True).items():
        setattr(db_item, key, value)
    db.commit()
    db.refresh(db_item)
    return db_item


def get_timeline_groups(db: Session) -> List[models.TimelineGroup]:
    return db.query(models.TimelineGroup).order_by(models.TimelineGroup.id).all()


def get_timeline_group(db: Session, group_id: int) -> Optional[models.TimelineGroup]:
    return db.query(models.TimelineGroup).filter(models.TimelineGroup.id == group_id).first()


def _set_nested_groups(db_group: models.TimelineGroup, nested_group_ids: List[int]) -> None:
    db_group.nestings = [
        models.TimelineGroupNesting(nested_group_id=nested_id)
        for nested_id in dict.fromkeys(nested_group_ids)
    ]


def create_timeline_group(db: Session, group: schemas.TimelineGroupCreate) -> models.TimelineGroup:
    db_group = models.TimelineGroup(**group.model_dump(exclude={"nested_groups"}))
    _set_nested_groups(db_group, group.nested_groups)
    db.add(db_group)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Invalid nested groups for timeline group: {str(e)}")
        raise CRUDError("Nested groups must reference existing timeline groups")
    db.refresh(db_group)
    return db_group


def update_timeline_group(db: Session, group_id: int, group_update: schemas.TimelineGroupUpdate) -> Optional[models.TimelineGroup]:
    db_group = get_timeline_group(db, group_id)
    if not db_group:
        return None
    update_data = group_update.model_dump(exclude_unset=True)
    nested_groups = update_data.pop("nested_groups", None)
    for key, value in update_data.items():
        setattr(db_group, key, value)
    if nested_groups is not None:
        _set_nested_groups(db_group, nested_groups)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Invalid nested groups for timeline group {group_id}: {str(e)}")
        raise CRUDError("Nested groups must reference existing timeline groups")
    db.refresh(db_group)
    return db_group


# ==================== QUESTIONNAIRES ====================

def get_questionnaires(db: Session) -> List[models.Questionnaire]:
    return db.query(models.Questionnaire).order_by(models.Questionnaire.id).all()


def get_questionnaire(db: Session, questionnaire_id: int) -> Optional[models.Questionnaire]:
    return db.query(models.Questionnaire).filter(models.Questionnaire.id == questionnaire_id).first()


def get_question(db: Session, question_id: int) -> Optional[models.Question]:
    return db.query(models.Question).filter(models.Question.id == question_id).first()


def get_questions_for_questionnaire(db: Session, questionnaire_id: int) -> List[models.Question]:
    return db.query(models.Question).filter(
        models.Question.questionnaire_id == questionnaire_id
    ).order_by(models.Question.id).all()


def get_option(db: Session, option_id: int) -> Optional[models.QuestionOption]:
    return db.query(models.QuestionOption).filter(models.QuestionOption.id == option_id).first()


def _build_question(question: schemas.QuestionInput) -> models.Question:
    db_question = models.Question(text=question.text, type=question.type)
    if question.type in models.OPTION_QUESTION_TYPES:
        db_question.options = [models.QuestionOption(text=o.text) for o in (question.options or [])]
    return db_question


def create_questionnaire(db: Session, questionnaire: schemas.QuestionnaireCreate, creating_user_id: int) -> models.Questionnaire:
    db_questionnaire = models.Questionnaire(
        title=questionnaire.title,
        creating_user_id=creating_user_id,
        questions=[_build_question(q) for q in questionnaire.questions],
    )
    try:
        db.add(db_questionnaire)
        db.commit()
        db.refresh(db_questionnaire)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating questionnaire: {str(e)}")
        raise CRUDError(f"Database error: {str(e)}")
    logger.info(f"Created questionnaire {db_questionnaire.id} with {len(questionnaire.questions)} questions")
    return db_questionnaire


def delete_questionnaire(db: Session, questionnaire_id: int) -> bool:
    db_questionnaire = get_questionnaire(db, questionnaire_id)
    if not db_questionnaire:
        return False
    db.delete(db_questionnaire)
    db.commit()
    return True


def add_questions(db: Session, questionnaire_id: int, questions: List[schemas.QuestionInput]) -> List[models.Question]:
    db_questions = [_build_question(q) for q in questions]
    for db_question in db_questions:
        db_question.questionnaire_id = questionnaire_id
        db.add(db_question)
    db.commit()
    for db_question in db_questions:
        db.refresh(db_question)
    return db_questions


def update_question(db: Session, question_id: int, question_update: schemas.QuestionUpdate) -> Optional[models.Question]:
    """Update text/type. Supplied options replace the existing ones; options are
    dropped when the question no longer supports them."""
    db_question = get_question(db, question_id)
    if not db_question:
        return None
    if question_update.text is not None:
        db_question.text = question_update.text
    if question_update.type is not None:
        db_question.type = question_update.type

    if db_question.type not in models.OPTION_QUESTION_TYPES:
        db_question.options = []
    elif question_update.options is not None:
        db_question.options = [models.QuestionOption(text=o.text) for o in question_update.options]
    db.commit()
    db.refresh(db_question)
    return db_question


def delete_question(db: Session, question_id: int) -> bool:
    db_question = get_question(db, question_id)
    if not db_question:
        return False
    db.delete(db_question)
    db.commit()
    return True


def create_question_relations(db: Session, relations: List[schemas.QuestionRelationInput]) -> List[models.QuestionRelation]:
    for relation in relations:
        if not get_question(db, relation.question_id) or not get_question(db, relation.next_question_id):
            raise CRUDError(f"Relation {relation.question_id} -> {relation.next_question_id} references an unknown question")
    db_relations = [models.QuestionRelation(**relation.model_dump()) for relation in relations]
    db.add_all(db_relations)
    db.commit()
    return db_relations
