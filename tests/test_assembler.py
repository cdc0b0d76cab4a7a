# tests/test_assembler.py
from types import SimpleNamespace

import pytest

from milli import crud, models, schemas
from milli.services import responses
from milli.services.assembler import AssemblyError, assemble_question, assemble_questionnaire, assemble_questions
from milli.services.assignments import create_assignment, get_instances_for_assignment

from conftest import question_of


@pytest.fixture
def instance(db, survey, doctor, patient):
    assignment = create_assignment(db, survey.id, patient.id, doctor.id)
    return get_instances_for_assignment(db, assignment.id)[0]


def test_options_only_on_choice_questions(db, survey):
    assembled = {q.type: q for q in assemble_questions(db, survey.questions)}

    for question_type in (models.QuestionType.BOOLEAN, models.QuestionType.TEXT, models.QuestionType.EVENT):
        assert "options" not in assembled[question_type].model_dump()
    assert [o.text for o in assembled[models.QuestionType.SINGLE_CHOICE].options] == ["Low", "High"]
    assert len(assembled[models.QuestionType.MULTIPLE_CHOICE].options) == 3


def test_choice_question_without_options_has_empty_list(db, doctor):
    questionnaire = crud.create_questionnaire(db, schemas.QuestionnaireCreate(
        title="Empty choices",
        questions=[schemas.QuestionInput(text="Pick", type=models.QuestionType.SINGLE_CHOICE)],
    ), creating_user_id=doctor.id)

    assembled = assemble_questionnaire(db, questionnaire.id)
    assert assembled.questions[0].options == []


def test_options_on_non_choice_input_are_ignored(db, doctor):
    questionnaire = crud.create_questionnaire(db, schemas.QuestionnaireCreate(
        title="Stray options",
        questions=[schemas.QuestionInput(
            text="Yes?", type=models.QuestionType.BOOLEAN, options=[schemas.QuestionOptionInput(text="Maybe")]
        )],
    ), creating_user_id=doctor.id)

    assert crud.get_questions_for_questionnaire(db, questionnaire.id)[0].options == []
    assert "options" not in assemble_questionnaire(db, questionnaire.id).questions[0].model_dump()


def test_next_relations_always_attached(db, survey):
    boolean = question_of(survey, models.QuestionType.BOOLEAN)
    text = question_of(survey, models.QuestionType.TEXT)
    crud.create_question_relations(db, [
        schemas.QuestionRelationInput(question_id=boolean.id, next_question_id=text.id, equals="false"),
    ])

    assembled = {q.id: q for q in assemble_questions(db, survey.questions)}
    assert [(r.equals, r.next_question_id) for r in assembled[boolean.id].next] == [("false", text.id)]
    assert assembled[text.id].next == []


def test_boolean_false_is_distinct_from_unanswered(db, survey, patient, instance):
    boolean = question_of(survey, models.QuestionType.BOOLEAN)

    unanswered = assemble_question(db, boolean, patient.id, instance.id)
    assert "response" not in unanswered.model_dump(exclude_unset=True)

    responses.submit_boolean_response(db, boolean.id, patient.id, instance.id, False)
    answered = assemble_question(db, boolean, patient.id, instance.id)
    assert "response" in answered.model_dump(exclude_unset=True)
    assert answered.response is False


def test_responses_require_instance_scope(db, survey, patient, instance):
    text = question_of(survey, models.QuestionType.TEXT)
    responses.submit_text_response(db, text.id, patient.id, instance.id, "tired")

    assert assemble_question(db, text, patient.id, instance.id).response == "tired"
    user_only = assemble_question(db, text, for_user_id=patient.id)
    assert "response" not in user_only.model_dump(exclude_unset=True)


def test_response_shapes_per_type(db, survey, patient, instance):
    single = question_of(survey, models.QuestionType.SINGLE_CHOICE)
    multiple = question_of(survey, models.QuestionType.MULTIPLE_CHOICE)
    event = question_of(survey, models.QuestionType.EVENT)
    fatigue, headache = multiple.options[2], multiple.options[0]

    responses.submit_choice_response(db, single.options[1].id, patient.id, instance.id)
    responses.submit_choice_responses(db, multiple.id, [fatigue.id, headache.id], patient.id, instance.id)
    item = responses.submit_event_response(db, event.id, patient.id, instance.id, schemas.EventResponseInput(
        title="Migraine", start="2024-03-01T08:00:00Z"
    ))

    assembled = assemble_questionnaire(db, survey.id, patient.id, instance.id)
    by_type = {q.type: q for q in assembled.questions}
    assert assembled.assignment_instance_id == instance.id
    assert by_type[models.QuestionType.SINGLE_CHOICE].response.text == "High"
    # Stored order, not option order
    assert [o.text for o in by_type[models.QuestionType.MULTIPLE_CHOICE].response] == ["Fatigue", "Headache"]
    assert by_type[models.QuestionType.EVENT].response.id == item.id
    assert by_type[models.QuestionType.EVENT].response.title == "Migraine"


def test_unknown_questionnaire_is_none(db):
    assert assemble_questionnaire(db, 999) is None


def test_unrecognized_type_is_fatal(db):
    bogus = SimpleNamespace(id=1, questionnaire_id=1, text="?", type="SLIDER")
    with pytest.raises(AssemblyError):
        assemble_question(db, bogus)
