# tests/test_assignments.py
import pytest

from milli import crud, models, schemas
from milli.services import assignments
from milli.services.responses import submit_boolean_response

from conftest import auth_headers, make_user, question_of


def test_assignment_scenario(client, db, doctor, patient, doctor_headers, patient_headers):
    """Create, assign, answer, then delete the assignment and read the answers back by instance id."""
    response = client.post("/api/v1/questionnaires", headers=doctor_headers, json={
        "title": "Weekly",
        "questions": [
            {"text": "Exercised?", "type": "BOOLEAN"},
            {"text": "Meals", "type": "MULTIPLE_CHOICE", "options": [{"text": "Breakfast"}, {"text": "Dinner"}]},
        ],
    })
    assert response.status_code == 201
    questionnaire = response.json()
    boolean, multiple = questionnaire["questions"]
    opt1, opt2 = multiple["options"]
    assert "options" not in boolean

    response = client.post("/api/v1/questionnaire-assignments", headers=doctor_headers, json={
        "questionnaire_id": questionnaire["id"], "assignee_id": patient.id, "repeat_interval": 0,
    })
    assert response.status_code == 201
    assignment_id = response.json()["id"]

    mine = client.get("/api/v1/me/questionnaires", headers=patient_headers).json()
    assert len(mine) == 1
    instance_id = mine[0]["assignment_instance_id"]
    assert instance_id is not None

    assert client.post("/api/v1/responses/boolean", headers=patient_headers, json={
        "question_id": boolean["id"], "assignment_instance_id": instance_id, "value": True,
    }).status_code == 200
    assert client.post("/api/v1/responses/choices", headers=patient_headers, json={
        "question_id": multiple["id"], "assignment_instance_id": instance_id,
        "option_ids": [opt1["id"], opt2["id"]],
    }).status_code == 200

    seen_by_doctor = client.get(f"/api/v1/patients/{patient.id}/questionnaires", headers=doctor_headers).json()
    assert len(seen_by_doctor) == 1
    answered = {q["id"]: q for q in seen_by_doctor[0]["questions"]}
    assert answered[boolean["id"]]["response"] is True
    assert [o["id"] for o in answered[multiple["id"]]["response"]] == [opt1["id"], opt2["id"]]

    response = client.delete(f"/api/v1/questionnaire-assignments/{assignment_id}", headers=doctor_headers)
    assert response.status_code == 204

    response = client.get(f"/api/v1/questionnaire-assignment-instances/{instance_id}", headers=doctor_headers)
    assert response.status_code == 200
    survived = {q["id"]: q for q in response.json()["questions"]}
    assert survived[boolean["id"]]["response"] is True
    assert [o["id"] for o in survived[multiple["id"]]["response"]] == [opt1["id"], opt2["id"]]
    assert len(client.get("/api/v1/me/questionnaires", headers=patient_headers).json()) == 1


def test_create_seeds_exactly_one_instance(db, survey, doctor, patient):
    assignment = assignments.create_assignment(db, survey.id, patient.id, doctor.id, repeat_interval=60)

    instances = assignments.get_instances_for_assignment(db, assignment.id)
    assert len(instances) == 1
    assert instances[0].questionnaire_id == survey.id
    assert instances[0].assignee_id == patient.id
    assert instances[0].assigner_id == doctor.id


def test_update_does_not_create_instance(db, survey, doctor, patient):
    assignment = assignments.create_assignment(db, survey.id, patient.id, doctor.id)

    updated = assignments.update_assignment(
        db, assignment.id, schemas.QuestionnaireAssignmentUpdate(repeat_interval=1440)
    )
    assert updated.repeat_interval == 1440
    assert updated.assignee_id == patient.id
    assert len(assignments.get_instances_for_assignment(db, assignment.id)) == 1
    assert assignments.update_assignment(db, 999, schemas.QuestionnaireAssignmentUpdate()) is None


def test_duplicate_assignment_is_rejected(db, survey, doctor, patient):
    assignments.create_assignment(db, survey.id, patient.id, doctor.id)
    with pytest.raises(crud.CRUDError):
        assignments.create_assignment(db, survey.id, patient.id, doctor.id)


def test_delete_keeps_instances_and_responses(db, survey, doctor, patient):
    assignment = assignments.create_assignment(db, survey.id, patient.id, doctor.id)
    assignment_id = assignment.id
    instance = assignments.get_instances_for_assignment(db, assignment.id)[0]
    boolean = question_of(survey, models.QuestionType.BOOLEAN)
    instance_id = instance.id
    submit_boolean_response(db, boolean.id, patient.id, instance_id, True)

    assert assignments.delete_assignment(db, assignment_id) is True
    assert assignments.get_assignment(db, assignment_id) is None

    assert assignments.get_instance(db, instance_id) is not None
    assert db.query(models.QuestionResponseBoolean).filter(
        models.QuestionResponseBoolean.assignment_instance_id == instance_id
    ).count() == 1
    filled = assignments.find_instance_questionnaire(db, instance_id)
    assert question_of(filled, models.QuestionType.BOOLEAN).response is True


def test_find_assigned_to_user_returns_one_per_instance(db, survey, doctor, patient):
    assignment = assignments.create_assignment(db, survey.id, patient.id, doctor.id, repeat_interval=1)
    assignments.create_instance(db, assignment)
    assignments.create_instance(db, assignment)
    db.commit()

    filled = assignments.find_assigned_to_user(db, patient.id)
    assert len(filled) == 3
    assert len({q.assignment_instance_id for q in filled}) == 3
    assert all(q.id == survey.id for q in filled)


def test_find_by_assigner_id_enriches_assignments(db, survey, doctor, patient):
    assignments.create_assignment(db, survey.id, patient.id, doctor.id)

    details = assignments.find_by_assigner_id(db, doctor.id)
    assert len(details) == 1
    assert details[0].questionnaire.title == "Daily check-in"
    assert details[0].assignee.id == patient.id
    assert assignments.find_by_assigner_id(db, patient.id) == []


def test_unknown_instance_is_none(db):
    assert assignments.get_instance(db, 42) is None
    assert assignments.find_instance_questionnaire(db, 42) is None


# --- authorization ---

def test_doctor_can_only_assign_own_patients(client, db, survey, doctor_headers):
    stranger = make_user(db, email="stranger@example.com")
    response = client.post("/api/v1/questionnaire-assignments", headers=doctor_headers, json={
        "questionnaire_id": survey.id, "assignee_id": stranger.id,
    })
    assert response.status_code == 403


def test_patient_cannot_assign(client, db, survey, patient, patient_headers):
    response = client.post("/api/v1/questionnaire-assignments", headers=patient_headers, json={
        "questionnaire_id": survey.id, "assignee_id": patient.id,
    })
    assert response.status_code == 403


def test_only_creator_may_delete(client, db, survey, doctor, patient):
    assignment = assignments.create_assignment(db, survey.id, patient.id, doctor.id)
    other_doctor = make_user(db, models.UserRole.DOCTOR, email="pulaski@example.com")

    response = client.delete(
        f"/api/v1/questionnaire-assignments/{assignment.id}", headers=auth_headers(db, other_doctor)
    )
    assert response.status_code == 403
    assert assignments.get_assignment(db, assignment.id) is not None


def test_duplicate_assignment_over_http_is_400(client, survey, patient, doctor_headers):
    body = {"questionnaire_id": survey.id, "assignee_id": patient.id}
    assert client.post("/api/v1/questionnaire-assignments", headers=doctor_headers, json=body).status_code == 201
    assert client.post("/api/v1/questionnaire-assignments", headers=doctor_headers, json=body).status_code == 400


def test_update_over_http(client, db, survey, doctor, patient, doctor_headers):
    assignment = assignments.create_assignment(db, survey.id, patient.id, doctor.id)

    response = client.put(f"/api/v1/questionnaire-assignments/{assignment.id}", headers=doctor_headers, json={
        "repeat_interval": 10080,
    })
    assert response.status_code == 200
    assert response.json()["repeat_interval"] == 10080

    response = client.get(f"/api/v1/questionnaire-assignments/{assignment.id}/instances", headers=doctor_headers)
    assert len(response.json()) == 1


def test_update_cannot_clear_assignee(client, db, survey, doctor, patient, doctor_headers):
    assignment = assignments.create_assignment(db, survey.id, patient.id, doctor.id)

    response = client.put(f"/api/v1/questionnaire-assignments/{assignment.id}", headers=doctor_headers, json={
        "assignee_id": None,
    })
    assert response.status_code == 422
    assert assignments.get_assignment(db, assignment.id).assignee_id == patient.id


def test_update_to_missing_user_is_not_reported_as_duplicate(db, survey, doctor, patient):
    assignment = assignments.create_assignment(db, survey.id, patient.id, doctor.id)

    with pytest.raises(crud.CRUDError, match="does not exist"):
        assignments.update_assignment(db, assignment.id, schemas.QuestionnaireAssignmentUpdate(assigner_id=999))


def test_my_assignments_lists_created_assignments(client, db, survey, doctor, patient, doctor_headers):
    assignments.create_assignment(db, survey.id, patient.id, doctor.id)

    response = client.get("/api/v1/questionnaire-assignments/mine", headers=doctor_headers)
    assert response.status_code == 200
    listed = response.json()
    assert len(listed) == 1
    assert listed[0]["assignee"]["id"] == patient.id
    assert len(listed[0]["questionnaire"]["questions"]) == 5


def test_doctor_cannot_read_other_patients_questionnaires(client, db, doctor_headers):
    stranger = make_user(db, email="stranger@example.com")
    response = client.get(f"/api/v1/patients/{stranger.id}/questionnaires", headers=doctor_headers)
    assert response.status_code == 403
