"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine from
`settings.DATABASE_URL` and provides small helpers used by the
application, scripts and tests. By default the database is a local
SQLite file `examhub.db` next to the `examhub` package.
"""

from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine, select

from .config import settings

DB_URL = settings.DATABASE_URL


def _engine_kwargs(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {}
    kwargs = {"connect_args": {"check_same_thread": False}}
    # an in-memory database only survives on a single shared connection
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return kwargs


engine = create_engine(DB_URL, echo=False, **_engine_kwargs(DB_URL))


if DB_URL.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, _record):
        """Turn on FK enforcement so ON DELETE clauses apply on SQLite."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_db_and_tables():
    """Create database tables using SQLModel metadata.

    This function is intended for local development and lightweight
    deployments; schema changes on a populated database should go through
    a proper migration tool (alembic) instead.
    """
    from . import models  # noqa: F401  registers the tables on the metadata

    SQLModel.metadata.create_all(engine)


def drop_db_and_tables():
    """Drop every table known to the metadata. Used by tests."""
    from . import models  # noqa: F401

    SQLModel.metadata.drop_all(engine)


DEFAULT_ROLES = [
    "Super Admin",
    "Admin",
    "Editor",
    "User",
    "Writer",
    "Manager",
    "Support",
    "Teacher",
    "Student",
    "Guest",
]


def seed_roles(session: Session) -> int:
    """Insert the default roles that are not present yet.

    Roles are inserted in `DEFAULT_ROLES` order so that on an empty
    database "User" receives id 4, the default role for registrations.
    Returns the number of roles created.
    """
    from .models import Role

    existing = set(session.exec(select(Role.name)).all())
    created = 0
    for name in DEFAULT_ROLES:
        if name in existing:
            continue
        session.add(Role(name=name))
        created += 1
    session.commit()
    return created


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(engine) as session:
        yield session
