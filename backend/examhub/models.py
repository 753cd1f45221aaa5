"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and uses relationships where appropriate.

Join tables (`UserExam`, `InstituteExam`) and results are owned by
their parents: the foreign keys carry `ON DELETE CASCADE` and the parent
relationships use `cascade_delete`, so removing an exam, user or
institute removes the rows that point at it. Role and institute links
on users are nulled instead.
"""

from datetime import date, datetime, timezone
from typing import List, Optional

from sqlmodel import Field, Relationship, SQLModel

# signed 64-bit range of an INTEGER/BIGINT column
DB_INT_MIN = -(2 ** 63)
DB_INT_MAX = 2 ** 63 - 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(SQLModel, table=True):
    """A named role users can be assigned to."""
    __tablename__ = "roles"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True, max_length=255)
    description: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    users: List["User"] = Relationship(back_populates="role", passive_deletes="all")


class Institute(SQLModel, table=True):
    """A tenant organisation with its own login credentials.

    Fields:
    - `username`: unique login name of the institute
    - `password_hash`: hashed password string (never returned by the API)
    """
    __tablename__ = "institutes"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    username: str = Field(index=True, unique=True)
    password_hash: str
    address: Optional[str] = None
    logo_url: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    mobile: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    users: List["User"] = Relationship(back_populates="institute", passive_deletes="all")
    institute_exams: List["InstituteExam"] = Relationship(back_populates="institute", cascade_delete=True)


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `email`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `role_id` / `institute_id`: optional links, nulled when the parent goes away
    """
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    full_name: str = Field(max_length=255)
    email: str = Field(index=True, unique=True, max_length=255)
    mobile: Optional[str] = Field(default=None, max_length=20)
    sex: Optional[str] = None
    age: Optional[int] = None
    password_hash: str
    role_id: Optional[int] = Field(default=None, foreign_key="roles.id", ondelete="SET NULL", index=True)
    institute_id: Optional[int] = Field(default=None, foreign_key="institutes.id", ondelete="SET NULL", index=True)
    description: Optional[str] = None
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    role: Optional[Role] = Relationship(back_populates="users")
    institute: Optional[Institute] = Relationship(back_populates="users")
    user_exams: List["UserExam"] = Relationship(back_populates="user", cascade_delete=True)
    exam_results: List["ExamResult"] = Relationship(back_populates="user", cascade_delete=True)
    tokens: List["AccessToken"] = Relationship(back_populates="user", cascade_delete=True)


class Exam(SQLModel, table=True):
    """An exam that can be assigned to users and institutes."""
    __tablename__ = "exams"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    question_count: int
    price: float = 0
    link: Optional[str] = None
    duration_minutes: int
    discount_percent: float = 0
    quiz_type: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    user_exams: List["UserExam"] = Relationship(back_populates="exam", cascade_delete=True)
    institute_exams: List["InstituteExam"] = Relationship(back_populates="exam", cascade_delete=True)
    results: List["ExamResult"] = Relationship(back_populates="exam", cascade_delete=True)


class UserExam(SQLModel, table=True):
    """A user's attempt at (or enrolment in) an exam.

    `status` is free text ("started", "completed", ...) and `answers`
    holds the client's serialized answer sheet as-is.
    """
    __tablename__ = "user_exams"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", ondelete="CASCADE", index=True)
    exam_id: int = Field(foreign_key="exams.id", ondelete="CASCADE", index=True)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    total_time_seconds: Optional[int] = None
    status: Optional[str] = None
    answers: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    user: Optional[User] = Relationship(back_populates="user_exams")
    exam: Optional[Exam] = Relationship(back_populates="user_exams")


class InstituteExam(SQLModel, table=True):
    """Assignment of an exam to an institute."""
    __tablename__ = "institute_exams"

    id: Optional[int] = Field(default=None, primary_key=True)
    institute_id: int = Field(foreign_key="institutes.id", ondelete="CASCADE", index=True)
    exam_id: int = Field(foreign_key="exams.id", ondelete="CASCADE", index=True)
    assigned_at: Optional[datetime] = None
    description: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    institute: Optional[Institute] = Relationship(back_populates="institute_exams")
    exam: Optional[Exam] = Relationship(back_populates="institute_exams")


class ExamResult(SQLModel, table=True):
    """A rendered result sheet for a user's exam, with expert notes."""
    __tablename__ = "exam_results"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", ondelete="CASCADE", index=True)
    exam_id: int = Field(foreign_key="exams.id", ondelete="CASCADE", index=True)
    result_html: str
    description_short: Optional[str] = None
    description_long: Optional[str] = None
    expert_comment: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    user: Optional[User] = Relationship(back_populates="exam_results")
    exam: Optional[Exam] = Relationship(back_populates="results")


class AccessToken(SQLModel, table=True):
    """An issued bearer token.

    The signed token carries `jti`; it is accepted only while this row
    exists, so deleting the row revokes the token.
    """
    __tablename__ = "access_tokens"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", ondelete="CASCADE", index=True)
    name: str = "auth-token"
    jti: str = Field(index=True, unique=True)
    created_at: datetime = Field(default_factory=utcnow)
    last_used_at: Optional[datetime] = None
    user: Optional[User] = Relationship(back_populates="tokens")
