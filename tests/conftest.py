# tests/conftest.py
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-jwt")
os.environ["RECURRENCE_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from milli import crud, models, schemas, security
from milli.database import Base, get_db, enable_sqlite_foreign_keys
from milli.main import app
from milli.services.messaging import get_messaging_service

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "correct-horse"


class FakeMessaging:
    """Records auth codes instead of sending them."""

    def __init__(self):
        self.sent = []

    def send_auth_code(self, code, email=None, phone=None, name=None, invited=False):
        self.sent.append({"code": code, "email": email, "phone": phone, "name": name, "invited": invited})
        return True


@pytest.fixture
def session_factory():
    Base.metadata.create_all(bind=engine)
    yield TestingSessionLocal
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def messaging():
    return FakeMessaging()


@pytest.fixture
def client(session_factory, messaging):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_messaging_service] = lambda: messaging
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, role=models.UserRole.PATIENT, email=None, phone=None, name=None, password=PASSWORD):
    return crud.create_user(
        db,
        schemas.UserCreate(email=email, phone=phone, name=name, role=role),
        password_hash=security.get_password_hash(password) if password else None,
    )


def auth_headers(db, user):
    return {"Authorization": f"Bearer {security.issue_token(db, user)}"}


@pytest.fixture
def admin(db):
    return make_user(db, models.UserRole.ADMIN, email="admin@example.com", name="Admin")


@pytest.fixture
def doctor(db):
    return make_user(db, models.UserRole.DOCTOR, email="doctor@example.com", name="Dr. Crusher")


@pytest.fixture
def patient(db, doctor):
    user = make_user(db, models.UserRole.PATIENT, email="patient@example.com", name="Seven")
    crud.assign_patient_to_doctor(db, patient_id=user.id, doctor_id=doctor.id)
    return user


@pytest.fixture
def admin_headers(db, admin):
    return auth_headers(db, admin)


@pytest.fixture
def doctor_headers(db, doctor):
    return auth_headers(db, doctor)


@pytest.fixture
def patient_headers(db, patient):
    return auth_headers(db, patient)


@pytest.fixture
def survey(db, doctor):
    """A questionnaire with one question of every type."""
    return crud.create_questionnaire(db, schemas.QuestionnaireCreate(
        title="Daily check-in",
        questions=[
            schemas.QuestionInput(text="Did you sleep well?", type=models.QuestionType.BOOLEAN),
            schemas.QuestionInput(text="How do you feel?", type=models.QuestionType.TEXT),
            schemas.QuestionInput(
                text="Pain level",
                type=models.QuestionType.SINGLE_CHOICE,
                options=[schemas.QuestionOptionInput(text="Low"), schemas.QuestionOptionInput(text="High")],
            ),
            schemas.QuestionInput(
                text="Symptoms",
                type=models.QuestionType.MULTIPLE_CHOICE,
                options=[
                    schemas.QuestionOptionInput(text="Headache"),
                    schemas.QuestionOptionInput(text="Nausea"),
                    schemas.QuestionOptionInput(text="Fatigue"),
                ],
            ),
            schemas.QuestionInput(text="When did it start?", type=models.QuestionType.EVENT),
        ],
    ), creating_user_id=doctor.id)


def question_of(questionnaire, question_type):
    return next(q for q in questionnaire.questions if q.type == question_type)
