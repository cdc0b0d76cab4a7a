# milli/schemas.py
import re
from datetime import datetime
from typing import Annotated, List, Optional, Union, Literal
from pydantic import BaseModel, Field, EmailStr, field_validator, model_validator

from .models import UserRole, QuestionType, TimelineItemType

EMAIL_PATTERN = re.compile(r"^[^<>()\[\]\\.,;:\s@\"]+(\.[^<>()\[\]\\.,;:\s@\"]+)*@([a-zA-Z\-0-9]+\.)+[a-zA-Z]{2,}$")


def is_email(text: str) -> bool:
    return bool(text) and EMAIL_PATTERN.match(text) is not None


def is_phone(text: str) -> bool:
    return bool(text) and text.isdigit()


# --- Base Schemas ---
class BaseSchema(BaseModel):
    class Config:
        from_attributes = True


# --- User Schemas ---
class UserCreate(BaseSchema):
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=255)
    password: Optional[str] = Field(None, min_length=6)
    name: Optional[str] = Field(None, max_length=255)
    role: UserRole = UserRole.PATIENT

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        if v is not None and not is_phone(v):
            raise ValueError('Phone number must contain digits only')
        return v

    @model_validator(mode='after')
    def check_contact(self):
        if not self.email and not self.phone:
            raise ValueError('Either an email or a phone number is required')
        return self


class UserUpdate(BaseSchema):
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=255)
    role: Optional[UserRole] = None
    image_url: Optional[str] = Field(None, max_length=255)
    birthday: Optional[datetime] = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        if v is not None and not is_phone(v):
            raise ValueError('Phone number must contain digits only')
        return v


class UserResponse(BaseSchema):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole
    image_url: Optional[str] = None
    birthday: Optional[datetime] = None
    join_date: Optional[datetime] = None
    last_visit: Optional[datetime] = None
    adherence: Optional[int] = None


class UserDetailResponse(UserResponse):
    patients: List[UserResponse] = []
    doctors: List[UserResponse] = []


class DoctorPatientLink(BaseSchema):
    patient_id: int
    doctor_id: int


# --- Auth Schemas ---
class TokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class AuthCodeRequest(BaseSchema):
    email: Optional[str] = None
    phone: Optional[str] = None


class InviteRequest(BaseSchema):
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole


class AuthCodeSubmit(BaseSchema):
    code: str = Field(..., min_length=1, max_length=36)


# --- Timeline Schemas ---
class TimelineItemBase(BaseSchema):
    class_name: Optional[str] = Field(None, max_length=320)
    content: str
    start: datetime
    end: Optional[datetime] = None
    group: Optional[int] = None
    style: Optional[str] = None
    subgroup: Optional[int] = None
    title: Optional[str] = Field(None, max_length=255)
    type: Optional[TimelineItemType] = None
    editable: Optional[bool] = None
    selectable: Optional[bool] = None


class TimelineItemCreate(TimelineItemBase):
    # Defaults to the acting user
    user_id: Optional[int] = None


class TimelineItemUpdate(BaseSchema):
    class_name: Optional[str] = Field(None, max_length=320)
    content: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    group: Optional[int] = None
    style: Optional[str] = None
    subgroup: Optional[int] = None
    title: Optional[str] = Field(None, max_length=255)
    type: Optional[TimelineItemType] = None
    editable: Optional[bool] = None
    selectable: Optional[bool] = None


class TimelineItemResponse(TimelineItemBase):
    id: int
    user_id: int


class TimelineGroupBase(BaseSchema):
    content: str
    class_name: Optional[str] = Field(None, max_length=320)
    title: Optional[str] = Field(None, max_length=255)
    style: Optional[str] = None
    order: Optional[int] = None
    visible: Optional[bool] = None
    show_nested: Optional[bool] = None
    nested_groups: List[int] = []


class TimelineGroupCreate(TimelineGroupBase):
    pass


class TimelineGroupUpdate(BaseSchema):
    content: Optional[str] = None
    class_name: Optional[str] = Field(None, max_length=320)
    title: Optional[str] = Field(None, max_length=255)
    style: Optional[str] = None
    order: Optional[int] = None
    visible: Optional[bool] = None
    show_nested: Optional[bool] = None
    nested_groups: Optional[List[int]] = None


class TimelineGroupResponse(TimelineGroupBase):
    id: int


# --- Questionnaire authoring ---
class QuestionOptionInput(BaseSchema):
    text: str


class QuestionOptionResponse(BaseSchema):
    id: int
    text: Optional[str] = None


class QuestionInput(BaseSchema):
    text: str
    type: QuestionType
    # Ignored unless type is SINGLE_CHOICE or MULTIPLE_CHOICE
    options: Optional[List[QuestionOptionInput]] = None


class QuestionUpdate(BaseSchema):
    text: Optional[str] = None
    type: Optional[QuestionType] = None
    options: Optional[List[QuestionOptionInput]] = None


class QuestionnaireCreate(BaseSchema):
    title: str = Field(..., max_length=255)
    questions: List[QuestionInput] = []


class AddQuestionsRequest(BaseSchema):
    questionnaire_id: int
    questions: List[QuestionInput]


class QuestionRelationInput(BaseSchema):
    question_id: int
    next_question_id: int
    includes: Optional[str] = None
    equals: Optional[str] = None


class QuestionRelationResponse(BaseSchema):
    includes: Optional[str] = None
    equals: Optional[str] = None
    next_question_id: int


class QuestionnaireSummary(BaseSchema):
    id: int
    title: Optional[str] = None
    creating_user_id: int


# --- Assembled questions (tagged by `type`) ---
class QuestionMeta(BaseSchema):
    id: int
    questionnaire_id: int
    text: Optional[str] = None
    next: List[QuestionRelationResponse] = []


class BooleanQuestion(QuestionMeta):
    type: Literal[QuestionType.BOOLEAN]
    response: Optional[bool] = None


class TextQuestion(QuestionMeta):
    type: Literal[QuestionType.TEXT]
    response: Optional[str] = None


class SingleChoiceQuestion(QuestionMeta):
    type: Literal[QuestionType.SINGLE_CHOICE]
    options: List[QuestionOptionResponse]
    response: Optional[QuestionOptionResponse] = None


class MultipleChoiceQuestion(QuestionMeta):
    type: Literal[QuestionType.MULTIPLE_CHOICE]
    options: List[QuestionOptionResponse]
    response: Optional[List[QuestionOptionResponse]] = None


class EventQuestion(QuestionMeta):
    type: Literal[QuestionType.EVENT]
    response: Optional[TimelineItemResponse] = None


AssembledQuestion = Annotated[
    Union[BooleanQuestion, TextQuestion, SingleChoiceQuestion, MultipleChoiceQuestion, EventQuestion],
    Field(discriminator="type"),
]


class AssembledQuestionnaire(BaseSchema):
    id: int
    title: Optional[str] = None
    creating_user_id: int
    assignment_instance_id: Optional[int] = None
    questions: List[AssembledQuestion] = []


# --- Assignments ---
class QuestionnaireAssignmentCreate(BaseSchema):
    questionnaire_id: int
    assignee_id: int
    repeat_interval: Optional[int] = Field(None, ge=0, description="Minutes between instances, 0 or null never repeats")


class QuestionnaireAssignmentUpdate(BaseSchema):
    assignee_id: Optional[int] = None
    assigner_id: Optional[int] = None
    repeat_interval: Optional[int] = Field(None, ge=0)

    # Omitted means unchanged; both columns are required
    @field_validator('assignee_id', 'assigner_id')
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError('Cannot be cleared')
        return v


class QuestionnaireAssignmentResponse(BaseSchema):
    id: int
    questionnaire_id: int
    assignee_id: int
    assigner_id: int
    repeat_interval: Optional[int] = None
    created: datetime


class QuestionnaireAssignmentDetail(QuestionnaireAssignmentResponse):
    questionnaire: Optional[AssembledQuestionnaire] = None
    assignee: Optional[UserResponse] = None


class AssignmentInstanceResponse(BaseSchema):
    id: int
    created: datetime
    assignment_id: int
    questionnaire_id: int
    assignee_id: int
    assigner_id: int


# --- Response submission ---
class ResponseSubmitBase(BaseSchema):
    question_id: int
    assignment_instance_id: int


class BooleanResponseSubmit(ResponseSubmitBase):
    value: bool


class TextResponseSubmit(ResponseSubmitBase):
    value: str


class ChoiceResponseSubmit(ResponseSubmitBase):
    option_id: int


class ChoiceResponsesSubmit(ResponseSubmitBase):
    option_ids: List[int]


class EventResponseInput(BaseSchema):
    title: Optional[str] = Field(None, max_length=255)
    details: Optional[str] = None
    start: datetime
    end: Optional[datetime] = None

    @model_validator(mode='after')
    def check_range(self):
        if self.end is not None and self.end < self.start:
            raise ValueError('Event end must not be before its start')
        return self


class EventResponseSubmit(ResponseSubmitBase):
    event: EventResponseInput

