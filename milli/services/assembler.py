# milli/services/assembler.py
"""
Reassembles normalized question rows into the nested, type-tagged shape the API returns.

Each question gets its outgoing branch relations (`next`), its options when the
type supports them, and, when both a user and an assignment instance are given,
that user's response for the instance in the shape its type calls for.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from .. import crud, models, schemas

logger = logging.getLogger(__name__)


class AssemblyError(RuntimeError):
    """Raised for question rows the assembler cannot shape. Always a programming error."""


def _options_for(db: Session, question_id: int) -> List[models.QuestionOption]:
    return db.query(models.QuestionOption).filter(
        models.QuestionOption.question_id == question_id
    ).order_by(models.QuestionOption.id).all()


def _relations_for(db: Session, question_id: int) -> List[schemas.QuestionRelationResponse]:
    relations = db.query(models.QuestionRelation).filter(
        models.QuestionRelation.question_id == question_id
    ).order_by(models.QuestionRelation.id).all()
    return [schemas.QuestionRelationResponse.model_validate(r) for r in relations]


def _response_key(model, question_id: int, user_id: int, instance_id: int):
    return (
        model.question_id == question_id,
        model.user_id == user_id,
        model.assignment_instance_id == instance_id,
    )


# --- per-type response loaders; each returns (has_response, value) ---

def _boolean_response(db, question, options, user_id, instance_id):
    row = db.query(models.QuestionResponseBoolean).filter(
        *_response_key(models.QuestionResponseBoolean, question.id, user_id, instance_id)
    ).first()
    # A stored False is an answer, so test for the row and not the value
    if row is None:
        return False, None
    return True, row.value


def _text_response(db, question, options, user_id, instance_id):
    row = db.query(models.QuestionResponseText).filter(
        *_response_key(models.QuestionResponseText, question.id, user_id, instance_id)
    ).first()
    if row is None:
        return False, None
    return True, row.value


def _choice_rows(db, question_id, user_id, instance_id):
    return db.query(models.QuestionResponseChoice).filter(
        *_response_key(models.QuestionResponseChoice, question_id, user_id, instance_id)
    ).order_by(models.QuestionResponseChoice.position).all()


def _single_choice_response(db, question, options, user_id, instance_id):
    rows = _choice_rows(db, question.id, user_id, instance_id)
    if not rows:
        return False, None
    by_id = {o.id: o for o in options}
    option = by_id.get(rows[0].option_id)
    if option is None:
        return False, None
    return True, schemas.QuestionOptionResponse.model_validate(option)


def _multiple_choice_response(db, question, options, user_id, instance_id):
    by_id = {o.id: o for o in options}
    selected = [
        schemas.QuestionOptionResponse.model_validate(by_id[row.option_id])
        for row in _choice_rows(db, question.id, user_id, instance_id)
        if row.option_id in by_id
    ]
    return True, selected


def _event_response(db, question, options, user_id, instance_id):
    row = db.query(models.QuestionResponseEvent).filter(
        *_response_key(models.QuestionResponseEvent, question.id, user_id, instance_id)
    ).first()
    if row is None:
        return False, None
    item = crud.get_timeline_item(db, row.timeline_item_id)
    if item is None:
        return False, None
    return True, schemas.TimelineItemResponse.model_validate(item)


# Exhaustive over models.QuestionType
_VARIANTS = {
    models.QuestionType.BOOLEAN: (schemas.BooleanQuestion, _boolean_response),
    models.QuestionType.TEXT: (schemas.TextQuestion, _text_response),
    models.QuestionType.SINGLE_CHOICE: (schemas.SingleChoiceQuestion, _single_choice_response),
    models.QuestionType.MULTIPLE_CHOICE: (schemas.MultipleChoiceQuestion, _multiple_choice_response),
    models.QuestionType.EVENT: (schemas.EventQuestion, _event_response),
}


def _question_type(question) -> models.QuestionType:
    try:
        return models.QuestionType(question.type)
    except ValueError:
        raise AssemblyError(f"Question {question.id} has unrecognized type {question.type!r}")


def assemble_question(
    db: Session,
    question,
    for_user_id: Optional[int] = None,
    for_assignment_instance_id: Optional[int] = None,
):
    question_type = _question_type(question)
    if question_type not in _VARIANTS:
        raise AssemblyError(f"No assembler registered for question type {question_type.value}")
    variant, load_response = _VARIANTS[question_type]

    fields = {
        "id": question.id,
        "questionnaire_id": question.questionnaire_id,
        "text": question.text,
        "type": question_type,
        "next": _relations_for(db, question.id),
    }

    options = []
    if question_type in models.OPTION_QUESTION_TYPES:
        options = _options_for(db, question.id)
        fields["options"] = [schemas.QuestionOptionResponse.model_validate(o) for o in options]

    # Responses only exist in the scope of an assignment instance
    if for_user_id is not None and for_assignment_instance_id is not None:
        has_response, value = load_response(db, question, options, for_user_id, for_assignment_instance_id)
        if has_response:
            fields["response"] = value

    return variant(**fields)


def assemble_questions(
    db: Session,
    questions: Iterable,
    for_user_id: Optional[int] = None,
    for_assignment_instance_id: Optional[int] = None,
) -> list:
    return [
        assemble_question(db, question, for_user_id, for_assignment_instance_id)
        for question in questions
    ]


def assemble_questionnaire(
    db: Session,
    questionnaire_id: int,
    for_user_id: Optional[int] = None,
    for_assignment_instance_id: Optional[int] = None,
) -> Optional[schemas.AssembledQuestionnaire]:
    """Returns None when the questionnaire does not exist."""
    questionnaire = crud.get_questionnaire(db, questionnaire_id)
    if questionnaire is None:
        return None

    questions = crud.get_questions_for_questionnaire(db, questionnaire.id)
    return schemas.AssembledQuestionnaire(
        id=questionnaire.id,
        title=questionnaire.title,
        creating_user_id=questionnaire.creating_user_id,
        assignment_instance_id=for_assignment_instance_id,
        questions=assemble_questions(db, questions, for_user_id, for_assignment_instance_id),
    )
