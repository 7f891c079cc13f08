import re
from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from flask import request
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from models.tasks import TASK_STATUSES
from models.task_files import FILE_TYPES
from utils.errors import ValidationFailed, first_error_message

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")

COMMON_WEAK_PASSWORDS = {
    "password", "123456", "12345678", "qwerty", "admin", "welcome", "monkey",
    "dragon", "letmein", "password1", "abc123", "123123", "1234567890",
    "111111", "123abc", "test123", "admin123", "pass1234", "qwerty123",
    "welcome123", "admin12345",
}

PAGED_ACTIONS = ("open", "page_change", "scroll", "close")
TIMED_ACTIONS = ("play", "pause", "seek", "time_update", "ended")

TaskStatus = Literal[TASK_STATUSES]
FileType = Literal[FILE_TYPES]


def validate_username(value):
    if not 3 <= len(value) <= 20:
        raise ValueError("Username must be 3 to 20 characters")
    if not USERNAME_PATTERN.match(value):
        raise ValueError("Username may only contain letters, digits and underscores")
    return value


def validate_password(value):
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain an uppercase letter")
    if not re.search(r"\d", value):
        raise ValueError("Password must contain a digit")
    if value.lower() in COMMON_WEAK_PASSWORDS:
        raise ValueError("Password is too common")
    return value


class RequestSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RegisterSchema(RequestSchema):
    username: str
    password: str
    name: str = Field(min_length=1, max_length=50)

    @field_validator("username")
    @classmethod
    def check_username(cls, value):
        return validate_username(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value):
        return validate_password(value)


class LoginSchema(RequestSchema):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserCreateSchema(RegisterSchema):
    role: Literal["user", "admin"] = "user"


class UserUpdateSchema(RequestSchema):
    username: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    role: Optional[Literal["user", "admin"]] = None
    status: Optional[Literal["active", "disabled"]] = None

    @field_validator("username")
    @classmethod
    def check_username(cls, value):
        return value if value is None else validate_username(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value):
        return value if value is None else validate_password(value)


class TaskCreateSchema(RequestSchema):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    deadline: Optional[datetime] = None
    passing_score: int = Field(default=100, ge=0, le=100, alias="passingScore")
    strict_mode: bool = Field(default=True, alias="strictMode")
    enable_quiz: bool = Field(default=False, alias="enableQuiz")
    assignment_type: Literal["all", "user"] = Field(default="all", alias="assignmentType")
    assignment_ids: List[UUID] = Field(default_factory=list, max_length=1000, alias="assignmentIds")


class TaskUpdateSchema(RequestSchema):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    deadline: Optional[datetime] = None
    status: Optional[TaskStatus] = None
    passing_score: Optional[int] = Field(default=None, ge=0, le=100, alias="passingScore")
    strict_mode: Optional[bool] = Field(default=None, alias="strictMode")
    enable_quiz: Optional[bool] = Field(default=None, alias="enableQuiz")


class TaskListQuery(RequestSchema):
    page: int = Field(default=1, gt=0, le=1000)
    limit: int = Field(default=10, gt=0, le=100)
    status: Optional[TaskStatus] = None
    search: Optional[str] = Field(default=None, max_length=100)


class TaskFileCreateSchema(RequestSchema):
    title: str = Field(min_length=1, max_length=200)
    storage_key: str = Field(min_length=1, max_length=512, alias="storageKey")
    file_type: FileType = Field(alias="fileType")
    file_size: int = Field(default=0, ge=0, alias="fileSize")
    total_pages: Optional[int] = Field(default=None, ge=1, alias="totalPages")
    duration: Optional[int] = Field(default=None, ge=1)


class FileOrderSchema(RequestSchema):
    file_ids: List[UUID] = Field(min_length=1, alias="fileIds")


class AssignmentSchema(RequestSchema):
    user_ids: List[UUID] = Field(max_length=1000, alias="userIds")


class QuestionSchema(RequestSchema):
    question: str = Field(min_length=1)
    options: List[str] = Field(min_length=2, max_length=6)
    correct_answer: int = Field(ge=0, alias="correctAnswer")
    order: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_answer_in_range(self):
        if self.correct_answer >= len(self.options):
            raise ValueError("correctAnswer must index one of the options")
        return self


class QuestionUpdateSchema(RequestSchema):
    question: Optional[str] = Field(default=None, min_length=1)
    options: Optional[List[str]] = Field(default=None, min_length=2, max_length=6)
    correct_answer: Optional[int] = Field(default=None, ge=0, alias="correctAnswer")
    order: Optional[int] = Field(default=None, ge=0)


class AnswerSchema(RequestSchema):
    question_id: UUID = Field(alias="questionId")
    selected_index: int = Field(ge=0, alias="selectedIndex")


class QuizSubmitSchema(RequestSchema):
    task_id: UUID = Field(alias="taskId")
    answers: List[AnswerSchema] = Field(min_length=1)


class ProgressReportSchema(RequestSchema):
    file_id: UUID = Field(alias="fileId")
    task_id: UUID = Field(alias="taskId")
    position: int = Field(ge=0)
    extent: Optional[int] = Field(default=None, ge=0)
    session_duration_delta: int = Field(default=0, ge=0, alias="sessionDurationDelta")
    action_kind: Literal[PAGED_ACTIONS + TIMED_ACTIONS] = Field(alias="actionKind")


class CompleteTaskSchema(RequestSchema):
    confirmed: bool

    @field_validator("confirmed")
    @classmethod
    def check_confirmed(cls, value):
        if value is not True:
            raise ValueError("Task completion must be confirmed")
        return value


class UploadLinkSchema(RequestSchema):
    filename: str = Field(min_length=1, max_length=255)


def parse(schema, data):
    """Validate ``data`` against ``schema``; report only the first violation."""
    if not isinstance(data, dict):
        raise ValidationFailed("Request body must be a JSON object")
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailed(first_error_message(exc)) from exc


def parse_body(schema):
    return parse(schema, request.get_json(silent=True))


def parse_query(schema):
    return parse(schema, request.args.to_dict())
