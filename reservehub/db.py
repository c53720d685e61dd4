from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy import create_engine
from .config import settings


_is_sqlite = settings.database_url.startswith("sqlite")

# SQLite uses a single-file/file-less pool, so pool sizing only applies elsewhere
engine = create_engine(
    settings.database_url,
    future=True,
    pool_pre_ping=True,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    **({} if _is_sqlite else {"pool_size": 5, "max_overflow": 10, "pool_recycle": 3600}),
)

# One Session per request or job; never share a Session across threads
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """All-or-nothing unit of work.

    Commits when the block exits normally; on any exception every statement
    issued inside the block is rolled back and the exception propagates.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
