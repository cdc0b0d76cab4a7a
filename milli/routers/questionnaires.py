# milli/routers/questionnaires.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from .. import crud, schemas, security, models
from ..database import get_db
from ..services.assembler import assemble_question, assemble_questionnaire

import logging

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Questionnaires"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


def _get_owned_questionnaire(db: Session, questionnaire_id: int, current_user: models.User) -> models.Questionnaire:
    db_questionnaire = crud.get_questionnaire(db, questionnaire_id)
    if not db_questionnaire:
        raise HTTPException(status_code=404, detail="Questionnaire not found")
    if current_user.role != models.UserRole.ADMIN and db_questionnaire.creating_user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the creator of a questionnaire may change it")
    return db_questionnaire


def _get_owned_question(db: Session, question_id: int, current_user: models.User) -> models.Question:
    db_question = crud.get_question(db, question_id)
    if not db_question:
        raise HTTPException(status_code=404, detail="Question not found")
    _get_owned_questionnaire(db, db_question.questionnaire_id, current_user)
    return db_question


@router.get("/questionnaires", response_model=List[schemas.QuestionnaireSummary])
def read_questionnaires(db: Session = Depends(get_db)):
    return crud.get_questionnaires(db)


@router.get("/questionnaires/{questionnaire_id}", response_model=schemas.AssembledQuestionnaire,
            response_model_exclude_unset=True)
def read_questionnaire(questionnaire_id: int, db: Session = Depends(get_db)):
    assembled = assemble_questionnaire(db, questionnaire_id)
    if assembled is None:
        raise HTTPException(status_code=404, detail="Questionnaire not found")
    return assembled


@router.post("/questionnaires", response_model=schemas.AssembledQuestionnaire,
             response_model_exclude_unset=True, status_code=status.HTTP_201_CREATED)
def create_questionnaire(
    questionnaire: schemas.QuestionnaireCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor)
):
    db_questionnaire = crud.create_questionnaire(db, questionnaire, creating_user_id=current_user.id)
    return assemble_questionnaire(db, db_questionnaire.id)


@router.delete("/questionnaires/{questionnaire_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_questionnaire(
    questionnaire_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor)
):
    _get_owned_questionnaire(db, questionnaire_id, current_user)
    crud.delete_questionnaire(db, questionnaire_id)
    logger.info(f"User {current_user.id} deleted questionnaire {questionnaire_id}")
    return


@router.post("/questions", response_model=List[schemas.AssembledQuestion],
             response_model_exclude_unset=True, status_code=status.HTTP_201_CREATED)
def add_questions(
    request: schemas.AddQuestionsRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor)
):
    _get_owned_questionnaire(db, request.questionnaire_id, current_user)
    db_questions = crud.add_questions(db, request.questionnaire_id, request.questions)
    return [assemble_question(db, q) for q in db_questions]


@router.post("/questions/relations", response_model=List[schemas.QuestionRelationResponse],
             status_code=status.HTTP_201_CREATED)
def create_question_relations(
    relations: List[schemas.QuestionRelationInput],
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor)
):
    for relation in relations:
        _get_owned_question(db, relation.question_id, current_user)
    return crud.create_question_relations(db, relations)


@router.get("/questions/{question_id}", response_model=schemas.AssembledQuestion,
            response_model_exclude_unset=True)
def read_question(question_id: int, db: Session = Depends(get_db)):
    db_question = crud.get_question(db, question_id)
    if not db_question:
        raise HTTPException(status_code=404, detail="Question not found")
    return assemble_question(db, db_question)


@router.put("/questions/{question_id}", response_model=schemas.AssembledQuestion,
            response_model_exclude_unset=True)
def update_question(
    question_id: int,
    question_update: schemas.QuestionUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor)
):
    _get_owned_question(db, question_id, current_user)
    return assemble_question(db, crud.update_question(db, question_id, question_update))


@router.delete("/questions/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_question(
    question_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.require_doctor)
):
    _get_owned_question(db, question_id, current_user)
    crud.delete_question(db, question_id)
    return
