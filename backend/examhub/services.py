"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories.
Services are intentionally thin: they perform the validation that needs
the database (uniqueness, referenced rows existing), hash passwords,
manage bearer tokens and persist through repositories. They raise the
exceptions from `errors`; the HTTP layer renders them.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple, Type

import jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlmodel import Session

from . import errors, models, repositories
from .config import settings

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

logger = logging.getLogger("examhub.services")


def hash_password(password: str) -> str:
    return PWD_CTX.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return PWD_CTX.verify(password, password_hash)


class EntityService:
    """Validated CRUD for one entity.

    Subclasses declare:
    - `repository_cls`: the repository for the entity table
    - `label`: the name used in "... not found" messages
    - `unique_fields`: columns whose value must not exist on another row
    - `references`: foreign-key field -> repository of the referenced table
    """
    repository_cls: Type[repositories.CrudRepository]
    label = "Record"
    unique_fields: Tuple[str, ...] = ()
    references: Dict[str, Type[repositories.CrudRepository]] = {}

    def __init__(self, session: Session):
        self.session = session
        self.repo = self.repository_cls(session)

    def list(self, filters: Optional[dict] = None, page: Optional[int] = None, per_page: int = 15):
        return self.repo.list(filters, page=page, per_page=per_page)

    def get(self, obj_id: int):
        obj = self.repo.get(obj_id)
        if obj is None:
            raise errors.NotFound(f"{self.label} not found")
        return obj

    def create(self, payload: BaseModel):
        data = payload.model_dump(exclude_none=True)
        self.validate(data)
        obj = self.repo.model(**self.prepare(data))
        return self.repo.create(obj)

    def update(self, obj_id: int, payload: BaseModel):
        obj = self.get(obj_id)
        data = payload.model_dump(exclude_unset=True)
        self.validate(data, exclude_id=obj.id)
        return self.repo.update(obj, self.prepare(data))

    def delete(self, obj_id: int) -> None:
        self.repo.delete(self.get(obj_id))

    def validate(self, data: dict, exclude_id: Optional[int] = None) -> None:
        """Check uniqueness and referenced rows for the supplied fields.

        All problems are collected and raised together as one
        `ValidationError` so clients see every failing field at once.
        """
        problems: Dict[str, List[str]] = {}
        for field in self.unique_fields:
            if data.get(field) is None:
                continue
            if self.repo.find_by(field, data[field], exclude_id=exclude_id) is not None:
                problems.setdefault(field, []).append(f"The {field.replace('_', ' ')} has already been taken.")
        for field, repo_cls in self.references.items():
            if data.get(field) is None:
                continue
            if not repo_cls(self.session).exists(data[field]):
                problems.setdefault(field, []).append(f"The selected {field.replace('_', ' ')} is invalid.")
        if problems:
            raise errors.ValidationError(problems)

    def prepare(self, data: dict) -> dict:
        """Turn validated input into column values."""
        return data


class RoleService(EntityService):
    repository_cls = repositories.RoleRepository
    label = "Role"
    unique_fields = ("name",)


class InstituteService(EntityService):
    repository_cls = repositories.InstituteRepository
    label = "Institute"
    unique_fields = ("username",)

    def prepare(self, data: dict) -> dict:
        password = data.pop("password", None)
        if password:
            data["password_hash"] = hash_password(password)
        return data


class UserService(EntityService):
    repository_cls = repositories.UserRepository
    label = "User"
    unique_fields = ("email",)
    references = {
        "role_id": repositories.RoleRepository,
        "institute_id": repositories.InstituteRepository,
    }

    def create(self, payload: BaseModel) -> models.User:
        """Create a user, falling back to the default role when none is given."""
        data = payload.model_dump(exclude_none=True)
        if "role_id" not in data:
            default_role = settings.DEFAULT_ROLE_ID
            if repositories.RoleRepository(self.session).exists(default_role):
                data["role_id"] = default_role
            else:
                logger.warning("default_role_missing role_id=%s", default_role)
        self.validate(data)
        return self.repo.create(models.User(**self.prepare(data)))

    def prepare(self, data: dict) -> dict:
        password = data.pop("password", None)
        if password is not None:
            data["password_hash"] = hash_password(password)
        return data

    def toggle_status(self, user_id: int) -> models.User:
        user = self.get(user_id)
        return self.repo.update(user, {"is_active": not user.is_active})

    def authenticate(self, email: str, password: str) -> Optional[models.User]:
        """Return the user for valid credentials, else `None`."""
        # One lookup by email then verify the supplied password hash.
        user = self.repo.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            return None
        return user


class ExamService(EntityService):
    repository_cls = repositories.ExamRepository
    label = "Exam"


class UserExamService(EntityService):
    repository_cls = repositories.UserExamRepository
    label = "UserExam"
    references = {
        "user_id": repositories.UserRepository,
        "exam_id": repositories.ExamRepository,
    }


class InstituteExamService(EntityService):
    repository_cls = repositories.InstituteExamRepository
    label = "InstituteExam"
    references = {
        "institute_id": repositories.InstituteRepository,
        "exam_id": repositories.ExamRepository,
    }


class ExamResultService(EntityService):
    repository_cls = repositories.ExamResultRepository
    label = "Exam result"
    references = {
        "user_id": repositories.UserRepository,
        "exam_id": repositories.ExamRepository,
    }


class TokenService:
    """Issue, resolve and revoke bearer tokens.

    A token is a JWT carrying the user id (`sub`) and a random `jti`.
    The `jti` is stored in `access_tokens`; deleting that row revokes the
    token even though its signature stays valid.
    """
    def __init__(self, session: Session):
        self.session = session
        self.token_repo = repositories.TokenRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def issue(self, user: models.User, name: str = "auth-token") -> str:
        jti = uuid.uuid4().hex
        self.token_repo.create(models.AccessToken(user_id=user.id, name=name, jti=jti))
        payload = {"sub": str(user.id), "jti": jti, "iat": int(datetime.now(timezone.utc).timestamp())}
        if settings.JWT_EXPIRE_HOURS:
            expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
            payload["exp"] = int(expire.timestamp())
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    def resolve(self, token: str) -> Tuple[models.User, models.AccessToken]:
        """Return the user and token row for `token` or raise `Unauthenticated`."""
        try:
            payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise errors.Unauthenticated("Token expired.")
        except jwt.PyJWTError:
            raise errors.Unauthenticated()
        jti = payload.get("jti")
        if not jti:
            raise errors.Unauthenticated()
        row = self.token_repo.get_by_jti(jti)
        if row is None or str(row.user_id) != str(payload.get("sub")):
            raise errors.Unauthenticated()
        user = self.user_repo.get(row.user_id)
        if user is None:
            raise errors.Unauthenticated()
        self.token_repo.touch(row)
        return user, row

    def revoke(self, row: models.AccessToken) -> None:
        self.token_repo.delete(row)


class AuthService:
    """Registration, login, logout and token refresh."""
    def __init__(self, session: Session):
        self.session = session
        self.users = UserService(session)
        self.tokens = TokenService(session)

    def register(self, payload: BaseModel) -> Tuple[models.User, str]:
        user = self.users.create(payload)
        token = self.tokens.issue(user)
        logger.info("user_registered user_id=%s", user.id)
        return user, token

    def login(self, email: str, password: str) -> Tuple[models.User, str]:
        user = self.users.authenticate(email, password)
        if user is None:
            logger.info("login_failed")
            raise errors.InvalidCredentials()
        token = self.tokens.issue(user)
        logger.info("login_succeeded user_id=%s", user.id)
        return user, token

    def logout(self, current_token: models.AccessToken) -> None:
        user_id = current_token.user_id
        self.tokens.revoke(current_token)
        logger.info("logout user_id=%s", user_id)

    def refresh(self, user: models.User, current_token: models.AccessToken) -> str:
        self.tokens.revoke(current_token)
        return self.tokens.issue(user)

