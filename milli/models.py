# milli/models.py
# Table and column names follow the existing Milli database (camelCase columns),
# Python attributes are snake_case.
from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Boolean,
    Enum as SQLAlchemyEnum, Index, UniqueConstraint, PrimaryKeyConstraint
)
from sqlalchemy.orm import relationship
from .database import Base
import enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    DOCTOR = "DOCTOR"
    PATIENT = "PATIENT"


class QuestionType(str, enum.Enum):
    BOOLEAN = "BOOLEAN"
    TEXT = "TEXT"
    SINGLE_CHOICE = "SINGLE_CHOICE"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    EVENT = "EVENT"


# Only these question types carry options
OPTION_QUESTION_TYPES = frozenset({QuestionType.SINGLE_CHOICE, QuestionType.MULTIPLE_CHOICE})


class TimelineItemType(str, enum.Enum):
    box = "box"
    point = "point"
    range = "range"
    background = "background"


# ==================== USERS ====================

class User(Base):
    __tablename__ = "User"

    id = Column(Integer, primary_key=True, index=True)
    role = Column(SQLAlchemyEnum(UserRole, name="user_role"), default=UserRole.PATIENT, nullable=False)
    email = Column(String(330), unique=True, nullable=True)
    phone = Column(String(255), unique=True, nullable=True)
    name = Column(String(255), nullable=True)
    image_url = Column("imageUrl", String(255), nullable=True)
    birthday = Column(DateTime(timezone=True), nullable=True)
    join_date = Column("joinDate", DateTime(timezone=True), default=utcnow)

    login = relationship("UserLogin", uselist=False, back_populates="user", cascade="all, delete-orphan")
    health = relationship("UserHealth", uselist=False, back_populates="user", cascade="all, delete-orphan")
    tokens = relationship("UserToken", back_populates="user", cascade="all, delete-orphan")

    @property
    def last_visit(self):
        return self.login.last_visit if self.login else None

    @property
    def adherence(self):
        return self.health.adherence if self.health else None


class UserLogin(Base):
    __tablename__ = "UserLogin"

    user_id = Column("userId", Integer, ForeignKey("User.id", ondelete="CASCADE"), primary_key=True)
    # Invited users have no password until they set one
    password_hash = Column("passwordHash", String(255), nullable=True)
    last_visit = Column("lastVisit", DateTime(timezone=True), default=utcnow)

    user = relationship("User", back_populates="login")


class UserHealth(Base):
    __tablename__ = "UserHealth"

    user_id = Column("userId", Integer, ForeignKey("User.id", ondelete="CASCADE"), primary_key=True)
    adherence = Column(Integer, nullable=True)

    user = relationship("User", back_populates="health")


class UserToken(Base):
    __tablename__ = "UserToken"

    user_id = Column("userId", Integer, ForeignKey("User.id", ondelete="CASCADE"), primary_key=True)
    token = Column(String(64), primary_key=True)

    user = relationship("User", back_populates="tokens")


class UserAuthCode(Base):
    """A one-time code sent by email or SMS, either as an invitation or a login code."""
    __tablename__ = "UserAuthCode"

    code = Column(String(36), primary_key=True)
    email = Column(String(330), nullable=True)
    phone = Column(String(255), nullable=True)
    role = Column(SQLAlchemyEnum(UserRole, name="user_role"), nullable=True)
    name = Column(String(255), nullable=True)
    inviter_id = Column("inviterId", Integer, ForeignKey("User.id", ondelete="CASCADE"), nullable=True)
    created = Column(DateTime(timezone=True), default=utcnow)


class DoctorPatientRelationship(Base):
    __tablename__ = "DoctorPatientRelationship"

    doctor_id = Column("doctorId", Integer, ForeignKey("User.id", ondelete="CASCADE"), primary_key=True)
    patient_id = Column("patientId", Integer, ForeignKey("User.id", ondelete="CASCADE"), primary_key=True)


# ==================== TIMELINE ====================

class TimelineGroup(Base):
    __tablename__ = "TimelineGroup"

    id = Column(Integer, primary_key=True, index=True)
    content = Column(Text, nullable=False)
    class_name = Column("className", String(320), nullable=True)
    title = Column(String(255), nullable=True)
    style = Column(Text, nullable=True)
    order = Column(Integer, nullable=True)
    visible = Column(Boolean, nullable=True)
    show_nested = Column("showNested", Boolean, nullable=True)

    nestings = relationship(
        "TimelineGroupNesting",
        foreign_keys="TimelineGroupNesting.group_id",
        cascade="all, delete-orphan",
    )

    @property
    def nested_groups(self):
        return [n.nested_group_id for n in self.nestings]


class TimelineGroupNesting(Base):
    __tablename__ = "TimelineGroupNesting"

    group_id = Column("groupId", Integer, ForeignKey("TimelineGroup.id", ondelete="CASCADE"), primary_key=True)
    nested_group_id = Column("nestedGroupId", Integer, ForeignKey("TimelineGroup.id", ondelete="CASCADE"), primary_key=True)


class TimelineItem(Base):
    __tablename__ = "TimelineItem"
    __table_args__ = (
        Index('idx_timeline_item_user', 'userId'),
    )

    id = Column(Integer, primary_key=True, index=True)
    class_name = Column("className", String(320), nullable=True)
    content = Column(Text, nullable=False)
    start = Column(DateTime(timezone=True), nullable=False)
    end = Column(DateTime(timezone=True), nullable=True)
    group = Column("group", Integer, ForeignKey("TimelineGroup.id", ondelete="CASCADE"), nullable=True)
    style = Column(Text, nullable=True)
    subgroup = Column(Integer, nullable=True)
    title = Column(String(255), nullable=True)
    type = Column(SQLAlchemyEnum(TimelineItemType, name="timeline_item_type"), nullable=True)
    editable = Column(Boolean, nullable=True)
    selectable = Column(Boolean, nullable=True)
    user_id = Column("userId", Integer, ForeignKey("User.id", ondelete="CASCADE"), nullable=False)


# ==================== QUESTIONNAIRES ====================

class Questionnaire(Base):
    __tablename__ = "Questionnaire"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=True)
    creating_user_id = Column("creatingUserId", Integer, ForeignKey("User.id"), nullable=False)

    questions = relationship(
        "Question",
        back_populates="questionnaire",
        cascade="all, delete-orphan",
        order_by="Question.id",
    )


class Question(Base):
    __tablename__ = "Question"
    __table_args__ = (
        Index('idx_question_questionnaire', 'questionnaireId'),
    )

    id = Column(Integer, primary_key=True, index=True)
    questionnaire_id = Column("questionnaireId", Integer, ForeignKey("Questionnaire.id", ondelete="CASCADE"), nullable=False)
    text = Column(Text, nullable=True)
    type = Column(SQLAlchemyEnum(QuestionType, name="question_type"), nullable=False)

    questionnaire = relationship("Questionnaire", back_populates="questions")
    options = relationship("QuestionOption", cascade="all, delete-orphan", order_by="QuestionOption.id")
    relations = relationship(
        "QuestionRelation",
        foreign_keys="QuestionRelation.question_id",
        cascade="all, delete-orphan",
    )
    incoming_relations = relationship(
        "QuestionRelation",
        foreign_keys="QuestionRelation.next_question_id",
        cascade="all, delete-orphan",
    )


class QuestionOption(Base):
    __tablename__ = "QuestionOption"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column("questionId", Integer, ForeignKey("Question.id", ondelete="CASCADE"), nullable=False)
    text = Column(Text, nullable=True)


class QuestionRelation(Base):
    """A branch hint: if the response equals/includes a value, go to next_question_id."""
    __tablename__ = "QuestionRelation"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column("questionId", Integer, ForeignKey("Question.id", ondelete="CASCADE"), nullable=False)
    includes = Column(Text, nullable=True)
    equals = Column(Text, nullable=True)
    next_question_id = Column("nextQuestionId", Integer, ForeignKey("Question.id", ondelete="CASCADE"), nullable=False)


# ==================== ASSIGNMENTS ====================

class QuestionnaireAssignment(Base):
    __tablename__ = "QuestionnaireAssignment"
    __table_args__ = (
        UniqueConstraint('questionnaireId', 'assigneeId', 'assignerId', name='uq_questionnaire_assignment'),
        Index('idx_questionnaire_assignment_assigner', 'assignerId'),
    )

    id = Column(Integer, primary_key=True, index=True)
    questionnaire_id = Column("questionnaireId", Integer, ForeignKey("Questionnaire.id", ondelete="CASCADE"), nullable=False)
    assignee_id = Column("assigneeId", Integer, ForeignKey("User.id", ondelete="CASCADE"), nullable=False)
    assigner_id = Column("assignerId", Integer, ForeignKey("User.id", ondelete="CASCADE"), nullable=False)
    created = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    # Minutes between instances; None or 0 never repeats
    repeat_interval = Column("repeatInterval", Integer, nullable=True)


class QuestionnaireAssignmentInstance(Base):
    """One filling of an assignment. assignment_id is a plain lookup key with no
    foreign key, so instances and their responses outlive the assignment."""
    __tablename__ = "QuestionnaireAssignmentInstance"
    __table_args__ = (
        Index('idx_assignment_instance_assignment', 'assignmentId'),
        Index('idx_assignment_instance_assignee', 'assigneeId'),
    )

    id = Column(Integer, primary_key=True, index=True)
    created = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    assignment_id = Column("assignmentId", Integer, nullable=False)
    questionnaire_id = Column("questionnaireId", Integer, ForeignKey("Questionnaire.id", ondelete="CASCADE"), nullable=False)
    assignee_id = Column("assigneeId", Integer, ForeignKey("User.id", ondelete="CASCADE"), nullable=False)
    assigner_id = Column("assignerId", Integer, ForeignKey("User.id", ondelete="CASCADE"), nullable=False)


# ==================== RESPONSES ====================

class QuestionResponseBoolean(Base):
    __tablename__ = "QuestionResponseBoolean"
    __table_args__ = (
        PrimaryKeyConstraint('questionId', 'userId', 'assignmentInstanceId'),
    )

    question_id = Column("questionId", Integer, ForeignKey("Question.id", ondelete="CASCADE"), nullable=False)
    user_id = Column("userId", Integer, ForeignKey("User.id", ondelete="CASCADE"), nullable=False)
    assignment_instance_id = Column(
        "assignmentInstanceId", Integer,
        ForeignKey("QuestionnaireAssignmentInstance.id", ondelete="CASCADE"), nullable=False
    )
    value = Column(Boolean, nullable=True)


class QuestionResponseText(Base):
    __tablename__ = "QuestionResponseText"
    __table_args__ = (
        PrimaryKeyConstraint('questionId', 'userId', 'assignmentInstanceId'),
    )

    question_id = Column("questionId", Integer, ForeignKey("Question.id", ondelete="CASCADE"), nullable=False)
    user_id = Column("userId", Integer, ForeignKey("User.id", ondelete="CASCADE"), nullable=False)
    assignment_instance_id = Column(
        "assignmentInstanceId", Integer,
        ForeignKey("QuestionnaireAssignmentInstance.id", ondelete="CASCADE"), nullable=False
    )
    value = Column(Text, nullable=True)


class QuestionResponseChoice(Base):
    __tablename__ = "QuestionResponseChoice"
    __table_args__ = (
        PrimaryKeyConstraint('questionId', 'userId', 'assignmentInstanceId', 'optionId'),
    )

    question_id = Column("questionId", Integer, ForeignKey("Question.id", ondelete="CASCADE"), nullable=False)
    user_id = Column("userId", Integer, ForeignKey("User.id", ondelete="CASCADE"), nullable=False)
    option_id = Column("optionId", Integer, ForeignKey("QuestionOption.id", ondelete="CASCADE"), nullable=False)
    assignment_instance_id = Column(
        "assignmentInstanceId", Integer,
        ForeignKey("QuestionnaireAssignmentInstance.id", ondelete="CASCADE"), nullable=False
    )
    # Index of the option in the submitted list
    position = Column(Integer, nullable=False, default=0)


class QuestionResponseEvent(Base):
    __tablename__ = "QuestionResponseEvent"
    __table_args__ = (
        PrimaryKeyConstraint('questionId', 'userId', 'assignmentInstanceId'),
    )

    question_id = Column("questionId", Integer, ForeignKey("Question.id", ondelete="CASCADE"), nullable=False)
    user_id = Column("userId", Integer, ForeignKey("User.id", ondelete="CASCADE"), nullable=False)
    assignment_instance_id = Column(
        "assignmentInstanceId", Integer,
        ForeignKey("QuestionnaireAssignmentInstance.id", ondelete="CASCADE"), nullable=False
    )
    timeline_item_id = Column("timelineItemId", Integer, ForeignKey("TimelineItem.id", ondelete="CASCADE"), nullable=False)
