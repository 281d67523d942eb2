"""Database engine, session factory and the `get_db` dependency.

WHAT:
    Builds one SQLAlchemy engine from DATABASE_URL and hands out sessions
    to routers through `get_db`.

WHY:
    - Production runs on PostgreSQL (psycopg2, pooled); local runs and
      tests use SQLite, which needs different engine arguments.
    - Tests replace `get_db` through FastAPI dependency overrides.

USAGE:
    from app.database import get_db

    @router.get("/shops/{shop_id}/metrics")
    async def read_shop_metrics(shop_id: str, db: Session = Depends(get_db)):
        ...

REFERENCES:
    - app/models.py (metadata)
    - alembic/ (PostgreSQL schema)
"""

import os
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.utils.env import get_env_flag, load_env_file


def _resolve_database_url() -> str:
    """Read DATABASE_URL, consulting backend/.env once when it is not exported.

    Raises:
        RuntimeError: If no database URL can be found.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        load_env_file()
        url = os.getenv("DATABASE_URL")

    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set. Export it or add it to backend/.env "
            "(e.g. sqlite:///./shop_metrics.db for local runs)."
        )

    # SQLAlchemy 2 only accepts the postgresql:// scheme
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


DATABASE_URL = _resolve_database_url()
IS_SQLITE = DATABASE_URL.startswith("sqlite")

if IS_SQLITE:
    # SQLite has no connection pool settings; sessions may cross threads under TestClient/uvicorn
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        echo=get_env_flag("SQL_ECHO"),
    )
else:
    engine = create_engine(
        DATABASE_URL,
        pool_size=5,
        max_overflow=10,
        pool_recycle=1800,
        pool_pre_ping=True,
        echo=get_env_flag("SQL_ECHO"),
    )

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

# The metadata registry lives in app.models
from .models import Base  # noqa: E402


def get_db() -> Generator[Session, None, None]:
    """Yield a session per request and always close it."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def init_db() -> None:
    """Create tables for SQLite databases.

    PostgreSQL schemas are owned by the Alembic migrations.
    """
    if IS_SQLITE:
        Base.metadata.create_all(bind=engine)
