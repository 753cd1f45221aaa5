"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
route handlers and tests. Each entity has a `*Create` model (fields
required on insert), a `*Update` model (every field optional; fields
that are required on create may be omitted but not set to null) and an
`*Out` model read from the ORM object. Passwords never appear in `*Out`
models.

Input models accept the legacy `describtion` key as an alias of
`description` so older clients keep working.
"""

import json
from datetime import date, datetime
from typing import Annotated, Any, Literal, Optional

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from .config import settings
from .models import DB_INT_MAX, DB_INT_MIN


def _not_null(value):
    if value is None:
        raise ValueError("This field may not be null.")
    return value


def _password_length(value):
    if value is not None and len(value) < settings.PASSWORD_MIN_LENGTH:
        raise ValueError(f"The password must be at least {settings.PASSWORD_MIN_LENGTH} characters.")
    return value


def _optional_password(value):
    # an empty password on update means "keep the current one"
    if not value:
        return None
    return _password_length(value)


def _active_default(value):
    return True if value is None else value


def _serialize_answers(value: Any) -> Optional[str]:
    # answers are stored opaque; structured payloads are kept as JSON text
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


Sex = Literal["male", "female", "other"]
Password = Annotated[str, AfterValidator(_password_length)]
ActiveOnCreate = Annotated[Optional[bool], AfterValidator(_active_default)]
DbInt = Annotated[int, Field(ge=DB_INT_MIN, le=DB_INT_MAX)]
Count = Annotated[int, Field(ge=0, le=DB_INT_MAX)]
Age = Annotated[int, Field(ge=1, le=DB_INT_MAX)]
NonEmptyStr = Annotated[str, Field(min_length=1)]
ShortStr = Annotated[str, Field(min_length=1, max_length=255)]
RequiredStr = Annotated[Optional[NonEmptyStr], AfterValidator(_not_null)]
RequiredShortStr = Annotated[Optional[ShortStr], AfterValidator(_not_null)]
RequiredInt = Annotated[Optional[DbInt], AfterValidator(_not_null)]
RequiredFloat = Annotated[Optional[float], AfterValidator(_not_null)]
RequiredBool = Annotated[Optional[bool], AfterValidator(_not_null)]
Answers = Annotated[Optional[Any], AfterValidator(_serialize_answers)]


def description_field():
    return Field(default=None, validation_alias=AliasChoices("description", "describtion"))


def camel_field(camel: str, snake: str, out: bool = False):
    if out:
        return Field(default=None, serialization_alias=camel)
    return Field(default=None, validation_alias=AliasChoices(camel, snake))


class OrmOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


# --- auth -----------------------------------------------------------------

class LoginIn(BaseModel):
    """Payload for the login endpoint."""
    email: EmailStr
    password: str = Field(min_length=1)


# --- roles ----------------------------------------------------------------

class RoleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = description_field()
    is_active: ActiveOnCreate = True


class RoleUpdate(BaseModel):
    name: RequiredShortStr = None
    description: Optional[str] = description_field()
    is_active: RequiredBool = None


class RoleOut(OrmOut):
    name: str
    description: Optional[str] = None


# --- institutes -----------------------------------------------------------

class InstituteCreate(BaseModel):
    name: str = Field(min_length=1)
    username: str = Field(min_length=1)
    password: Password
    address: Optional[str] = None
    logo_url: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    mobile: Optional[str] = None
    description: Optional[str] = description_field()
    is_active: ActiveOnCreate = True


class InstituteUpdate(BaseModel):
    """Partial institute update; an empty or null password is ignored."""
    name: RequiredStr = None
    username: RequiredStr = None
    password: Annotated[Optional[str], AfterValidator(_optional_password)] = None
    address: Optional[str] = None
    logo_url: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    mobile: Optional[str] = None
    description: Optional[str] = description_field()
    is_active: RequiredBool = None


class InstituteOut(OrmOut):
    name: str
    username: str
    address: Optional[str] = None
    logo_url: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    mobile: Optional[str] = None
    description: Optional[str] = None


# --- users ----------------------------------------------------------------

class UserCreate(BaseModel):
    """Payload for registration and admin user creation."""
    full_name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: Password
    mobile: Optional[str] = Field(default=None, max_length=20)
    sex: Optional[Sex] = None
    age: Optional[Age] = None
    role_id: Optional[DbInt] = None
    institute_id: Optional[DbInt] = None
    description: Optional[str] = description_field()
    is_active: ActiveOnCreate = True


class UserUpdate(BaseModel):
    full_name: RequiredShortStr = None
    email: Annotated[Optional[EmailStr], AfterValidator(_not_null)] = None
    password: Annotated[Optional[str], AfterValidator(_not_null), AfterValidator(_password_length)] = None
    mobile: Optional[str] = Field(default=None, max_length=20)
    sex: Optional[Sex] = None
    age: Optional[Age] = None
    role_id: RequiredInt = None
    institute_id: Optional[DbInt] = None
    description: Optional[str] = description_field()
    is_active: RequiredBool = None


class UserOut(OrmOut):
    full_name: str
    email: str
    mobile: Optional[str] = None
    sex: Optional[str] = None
    age: Optional[int] = None
    role_id: Optional[int] = None
    institute_id: Optional[int] = None
    description: Optional[str] = None


class AuthOut(BaseModel):
    """Authentication response with the user and a bearer token."""
    message: str
    user: UserOut
    token: str


class TokenOut(BaseModel):
    message: str
    token: str


class MessageOut(BaseModel):
    message: str


# --- exams ----------------------------------------------------------------

class ExamCreate(BaseModel):
    title: str = Field(min_length=1)
    question_count: DbInt
    duration_minutes: DbInt
    price: Optional[float] = None
    link: Optional[str] = None
    discount_percent: Optional[float] = None
    quiz_type: Optional[str] = None
    description: Optional[str] = description_field()
    image_url: Optional[str] = None
    is_active: ActiveOnCreate = True


class ExamUpdate(BaseModel):
    title: RequiredStr = None
    question_count: RequiredInt = None
    duration_minutes: RequiredInt = None
    price: RequiredFloat = None
    link: Optional[str] = None
    discount_percent: RequiredFloat = None
    quiz_type: Optional[str] = None
    description: Optional[str] = description_field()
    image_url: Optional[str] = None
    is_active: RequiredBool = None


class ExamOut(OrmOut):
    title: str
    question_count: int
    duration_minutes: int
    price: float
    link: Optional[str] = None
    discount_percent: float
    quiz_type: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None


# --- user exams -----------------------------------------------------------

class UserExamCreate(BaseModel):
    user_id: DbInt
    exam_id: DbInt
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    total_time_seconds: Optional[Count] = None
    status: Optional[str] = None
    answers: Answers = None
    description: Optional[str] = description_field()
    is_active: ActiveOnCreate = True


class UserExamUpdate(BaseModel):
    """The user and exam of an attempt are fixed once created."""
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    total_time_seconds: Optional[Count] = None
    status: Optional[str] = None
    answers: Answers = None
    description: Optional[str] = description_field()
    is_active: RequiredBool = None


class UserExamOut(OrmOut):
    user_id: int
    exam_id: int
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    total_time_seconds: Optional[int] = None
    status: Optional[str] = None
    answers: Optional[str] = None
    description: Optional[str] = None


# --- institute exams ------------------------------------------------------

class InstituteExamCreate(BaseModel):
    institute_id: DbInt
    exam_id: DbInt
    assigned_at: Optional[datetime] = None
    description: Optional[str] = description_field()
    is_active: ActiveOnCreate = True


class InstituteExamUpdate(BaseModel):
    assigned_at: Optional[datetime] = None
    description: Optional[str] = description_field()
    is_active: RequiredBool = None


class InstituteExamOut(OrmOut):
    institute_id: int
    exam_id: int
    assigned_at: Optional[datetime] = None
    description: Optional[str] = None


# --- exam results ---------------------------------------------------------

class ExamResultCreate(BaseModel):
    user_id: DbInt
    exam_id: DbInt
    result_html: str = Field(min_length=1)
    description_short: Optional[str] = camel_field("descriptionShort", "description_short")
    description_long: Optional[str] = camel_field("descriptionLong", "description_long")
    expert_comment: Optional[str] = None
    description: Optional[str] = description_field()
    is_active: ActiveOnCreate = True


class ExamResultUpdate(BaseModel):
    result_html: RequiredStr = None
    description_short: Optional[str] = camel_field("descriptionShort", "description_short")
    description_long: Optional[str] = camel_field("descriptionLong", "description_long")
    expert_comment: Optional[str] = None
    description: Optional[str] = description_field()
    is_active: RequiredBool = None


class ExamResultOut(OrmOut):
    user_id: int
    exam_id: int
    result_html: str
    description_short: Optional[str] = camel_field("descriptionShort", "description_short", out=True)
    description_long: Optional[str] = camel_field("descriptionLong", "description_long", out=True)
    expert_comment: Optional[str] = None
    description: Optional[str] = None
