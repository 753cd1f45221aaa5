"""Repository classes encapsulating database operations.

Each repository is small and focused on a single table. `CrudRepository`
carries the operations every entity shares (get, filtered/paginated
list, create, update, delete); subclasses add the lookups their
services need. Repositories return SQLModel objects and perform
commits/refreshes; integrity violations are rolled back and surfaced as
`errors.Conflict`, other storage failures as `errors.InternalError`.
"""

import logging
from typing import Dict, List, Optional, Tuple, Type

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from . import errors, models

logger = logging.getLogger("examhub.repositories")


class CrudRepository:
    """Generic CRUD operations for one SQLModel table."""
    model: Type[SQLModel]
    # string columns compared case-insensitively by `find_by`
    casefold_fields: Tuple[str, ...] = ()

    def __init__(self, session: Session):
        self.session = session

    def _commit(self):
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            logger.warning("integrity_error table=%s", self.model.__tablename__)
            raise errors.Conflict()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("storage_error table=%s", self.model.__tablename__)
            raise errors.InternalError()

    def get(self, obj_id: int):
        """Get a row by primary key or `None`.

        Ids outside the column's integer range cannot exist and are not
        sent to the database.
        """
        if not models.DB_INT_MIN <= obj_id <= models.DB_INT_MAX:
            return None
        return self.session.get(self.model, obj_id)

    def exists(self, obj_id: int) -> bool:
        return self.get(obj_id) is not None

    def find_by(self, field: str, value, exclude_id: Optional[int] = None):
        """Return the first row whose `field` equals `value`, optionally ignoring one id."""
        column = getattr(self.model, field)
        if field in self.casefold_fields:
            stmt = select(self.model).where(func.lower(column) == value.lower())
        else:
            stmt = select(self.model).where(column == value)
        if exclude_id is not None:
            stmt = stmt.where(self.model.id != exclude_id)
        return self.session.exec(stmt).first()

    def list(
        self,
        filters: Optional[Dict[str, object]] = None,
        page: Optional[int] = None,
        per_page: int = 15,
    ) -> Tuple[List[SQLModel], int]:
        """Return `(rows, total)` for rows matching every non-None filter.

        Rows are ordered by id. When `page` is given only that page of
        `per_page` rows is returned; `total` always counts all matches.
        """
        stmt = select(self.model)
        for field, value in (filters or {}).items():
            if value is not None:
                stmt = stmt.where(getattr(self.model, field) == value)
        try:
            total = self.session.exec(select(func.count()).select_from(stmt.subquery())).one()
            stmt = stmt.order_by(self.model.id)
            if page is not None:
                stmt = stmt.offset((page - 1) * per_page).limit(per_page)
            rows = self.session.exec(stmt).all()
        except SQLAlchemyError:
            logger.exception("storage_error table=%s", self.model.__tablename__)
            raise errors.InternalError()
        return rows, total

    def create(self, obj: SQLModel) -> SQLModel:
        """Persist a new row and return the managed instance."""
        self.session.add(obj)
        self._commit()
        self.session.refresh(obj)
        return obj

    def update(self, obj: SQLModel, data: Dict[str, object]) -> SQLModel:
        """Apply `data` to `obj`, bump `updated_at` and persist."""
        for field, value in data.items():
            setattr(obj, field, value)
        obj.updated_at = models.utcnow()
        self.session.add(obj)
        self._commit()
        self.session.refresh(obj)
        return obj

    def delete(self, obj: SQLModel) -> None:
        self.session.delete(obj)
        self._commit()


class RoleRepository(CrudRepository):
    model = models.Role


class InstituteRepository(CrudRepository):
    model = models.Institute


class UserRepository(CrudRepository):
    """CRUD operations for `User` objects."""
    model = models.User
    casefold_fields = ("email",)

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email (any letter case) or `None` if not found."""
        return self.find_by("email", email)


class ExamRepository(CrudRepository):
    model = models.Exam


class UserExamRepository(CrudRepository):
    model = models.UserExam


class InstituteExamRepository(CrudRepository):
    model = models.InstituteExam


class ExamResultRepository(CrudRepository):
    model = models.ExamResult


class TokenRepository(CrudRepository):
    """Issued bearer tokens; a token is valid while its row exists."""
    model = models.AccessToken

    def get_by_jti(self, jti: str) -> Optional[models.AccessToken]:
        return self.find_by("jti", jti)

    def touch(self, token: models.AccessToken) -> None:
        """Record that `token` was just used."""
        token.last_used_at = models.utcnow()
        self.session.add(token)
        self._commit()

