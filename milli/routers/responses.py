# milli/routers/responses.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud, schemas, security, models
from ..database import get_db
from ..services import responses as response_service
from ..services.assignments import get_instance

router = APIRouter(
    prefix="/responses",
    tags=["Questionnaire Responses"],
    responses={404: {"description": "Not found"}},
)


def _check_submission(
    db: Session,
    current_user: models.User,
    submission: schemas.ResponseSubmitBase,
    *question_types: models.QuestionType,
) -> models.Question:
    """The instance must be assigned to the caller and the question must be one of its questions."""
    instance = get_instance(db, submission.assignment_instance_id)
    if instance is None:
        raise HTTPException(status_code=404, detail="Assignment instance not found")
    if instance.assignee_id != current_user.id:
        raise HTTPException(status_code=403, detail="This questionnaire is not assigned to you")

    question = crud.get_question(db, submission.question_id)
    if question is None:
        raise HTTPException(status_code=404, detail="Question not found")
    if question.questionnaire_id != instance.questionnaire_id:
        raise HTTPException(
            status_code=400,
            detail=f"Question {question.id} is not part of questionnaire {instance.questionnaire_id}"
        )
    if question.type not in question_types:
        raise HTTPException(
            status_code=400,
            detail=f"Question {question.id} is a {question.type.value} question"
        )
    return question


@router.post("/boolean")
def submit_boolean_response(
    submission: schemas.BooleanResponseSubmit,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_user)
):
    _check_submission(db, current_user, submission, models.QuestionType.BOOLEAN)
    success = response_service.submit_boolean_response(
        db, submission.question_id, current_user.id, submission.assignment_instance_id, submission.value
    )
    return {"success": success}


@router.post("/text")
def submit_text_response(
    submission: schemas.TextResponseSubmit,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_user)
):
    _check_submission(db, current_user, submission, models.QuestionType.TEXT)
    success = response_service.submit_text_response(
        db, submission.question_id, current_user.id, submission.assignment_instance_id, submission.value
    )
    return {"success": success}


@router.post("/choice")
def submit_choice_response(
    submission: schemas.ChoiceResponseSubmit,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_user)
):
    """Select a single option."""
    _check_submission(db, current_user, submission, models.QuestionType.SINGLE_CHOICE)
    success = response_service.submit_choice_response(
        db, submission.option_id, current_user.id, submission.assignment_instance_id,
        question_id=submission.question_id
    )
    return {"success": success}


@router.post("/choices")
def submit_choice_responses(
    submission: schemas.ChoiceResponsesSubmit,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_user)
):
    """Replace the selected options. An empty list clears the answer."""
    _check_submission(db, current_user, submission, models.QuestionType.MULTIPLE_CHOICE)
    success = response_service.submit_choice_responses(
        db, submission.question_id, submission.option_ids, current_user.id, submission.assignment_instance_id
    )
    return {"success": success}


@router.post("/event", response_model=schemas.TimelineItemResponse, status_code=status.HTTP_201_CREATED)
def submit_event_response(
    submission: schemas.EventResponseSubmit,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_user)
):
    _check_submission(db, current_user, submission, models.QuestionType.EVENT)
    return response_service.submit_event_response(
        db, submission.question_id, current_user.id, submission.assignment_instance_id, submission.event
    )
