# milli/services/responses.py
"""
Response submission for assignment instances.

Boolean and text answers are upserted, so submitting twice leaves one row holding
the latest value. Choice answers are replaced wholesale (delete, then insert).
Event answers replace their linked timeline item. Every submission commits as
one transaction and rolls back completely on failure.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from .. import models, schemas

logger = logging.getLogger(__name__)


class SubmissionError(ValueError):
    """Malformed submission input. Raised before anything is written."""


def _upsert_statement(dialect_name: str):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
        return insert
    if dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
        return insert
    return None


def _upsert_value(db: Session, model, question_id: int, user_id: int, instance_id: int, value) -> None:
    """Insert the (question, user, instance) row; on a key conflict update its value."""
    table = model.__table__
    row = {
        "questionId": question_id,
        "userId": user_id,
        "assignmentInstanceId": instance_id,
        "value": value,
    }
    insert = _upsert_statement(db.get_bind().dialect.name)
    if insert is not None:
        stmt = insert(table).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=["questionId", "userId", "assignmentInstanceId"],
            set_={"value": stmt.excluded.value},
        )
        db.execute(stmt)
        return

    # Other backends: try the insert inside a savepoint and fall back to an update
    try:
        with db.begin_nested():
            db.execute(table.insert().values(**row))
    except IntegrityError:
        db.query(model).filter(
            model.question_id == question_id,
            model.user_id == user_id,
            model.assignment_instance_id == instance_id,
        ).update({"value": value}, synchronize_session=False)


def _commit(db: Session, description: str) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"Failed to store {description}", exc_info=True)
        raise


def submit_boolean_response(db: Session, question_id: int, user_id: int, assignment_instance_id: int, value: bool) -> bool:
    try:
        _upsert_value(db, models.QuestionResponseBoolean, question_id, user_id, assignment_instance_id, value)
    except Exception:
        db.rollback()
        raise
    _commit(db, f"boolean response for question {question_id}")
    return True


def submit_text_response(db: Session, question_id: int, user_id: int, assignment_instance_id: int, value: str) -> bool:
    try:
        _upsert_value(db, models.QuestionResponseText, question_id, user_id, assignment_instance_id, value)
    except Exception:
        db.rollback()
        raise
    _commit(db, f"text response for question {question_id}")
    return True


def _delete_choice_rows(db: Session, question_id: int, user_id: int, assignment_instance_id: int) -> int:
    return db.query(models.QuestionResponseChoice).filter(
        models.QuestionResponseChoice.question_id == question_id,
        models.QuestionResponseChoice.user_id == user_id,
        models.QuestionResponseChoice.assignment_instance_id == assignment_instance_id,
    ).delete(synchronize_session=False)


def submit_choice_response(
    db: Session,
    option_id: int,
    user_id: int,
    assignment_instance_id: int,
    question_id: Optional[int] = None,
) -> bool:
    """Select exactly one option. The question is resolved from the option."""
    option = db.query(models.QuestionOption).filter(models.QuestionOption.id == option_id).first()
    if option is None:
        raise SubmissionError(f"Option {option_id} does not exist")
    if question_id is not None and option.question_id != question_id:
        raise SubmissionError(f"Option {option_id} does not belong to question {question_id}")

    try:
        _delete_choice_rows(db, option.question_id, user_id, assignment_instance_id)
        db.add(models.QuestionResponseChoice(
            question_id=option.question_id,
            user_id=user_id,
            option_id=option.id,
            assignment_instance_id=assignment_instance_id,
            position=0,
        ))
        db.flush()
    except Exception:
        db.rollback()
        raise
    _commit(db, f"choice response for question {option.question_id}")
    return True


def submit_choice_responses(
    db: Session,
    question_id: int,
    option_ids: List[int],
    user_id: int,
    assignment_instance_id: int,
) -> bool:
    """Replace the selected options. An empty list clears the selection."""
    unique_option_ids = list(dict.fromkeys(option_ids))
    if unique_option_ids:
        options = db.query(models.QuestionOption).filter(
            models.QuestionOption.id.in_(unique_option_ids)
        ).all()
        found = {o.id for o in options}
        missing = [oid for oid in unique_option_ids if oid not in found]
        if missing:
            raise SubmissionError(f"Options {missing} do not exist")
        owning_questions = {o.question_id for o in options}
        if len(owning_questions) > 1:
            raise SubmissionError("All options must belong to the same question")
        if owning_questions.pop() != question_id:
            raise SubmissionError(f"Options do not belong to question {question_id}")

    try:
        _delete_choice_rows(db, question_id, user_id, assignment_instance_id)
        db.add_all([
            models.QuestionResponseChoice(
                question_id=question_id,
                user_id=user_id,
                option_id=oid,
                assignment_instance_id=assignment_instance_id,
                position=position,
            )
            for position, oid in enumerate(unique_option_ids)
        ])
        db.flush()
    except Exception:
        db.rollback()
        raise
    _commit(db, f"choice responses for question {question_id}")
    return True


def submit_event_response(
    db: Session,
    question_id: int,
    user_id: int,
    assignment_instance_id: int,
    event: schemas.EventResponseInput,
) -> models.TimelineItem:
    """Store the event as a timeline item, replacing any earlier answer's item."""
    try:
        existing = db.query(models.QuestionResponseEvent).filter(
            models.QuestionResponseEvent.question_id == question_id,
            models.QuestionResponseEvent.user_id == user_id,
            models.QuestionResponseEvent.assignment_instance_id == assignment_instance_id,
        ).first()
        if existing is not None:
            old_item = db.get(models.TimelineItem, existing.timeline_item_id)
            db.delete(existing)
            db.flush()
            if old_item is not None:
                db.delete(old_item)
                db.flush()

        item = models.TimelineItem(
            title=event.title,
            content=event.details or event.title or "",
            start=event.start,
            end=event.end,
            type=models.TimelineItemType.range if event.end else models.TimelineItemType.point,
            user_id=user_id,
        )
        db.add(item)
        db.flush()
        db.add(models.QuestionResponseEvent(
            question_id=question_id,
            user_id=user_id,
            assignment_instance_id=assignment_instance_id,
            timeline_item_id=item.id,
        ))
        db.flush()
    except Exception:
        db.rollback()
        raise
    _commit(db, f"event response for question {question_id}")
    db.refresh(item)
    return item
