"""Database dependencies for FastAPI endpoints."""

from collections.abc import Generator

from sqlalchemy.orm import Session

from buildplan.db.session import SessionLocal


def get_db_session() -> Generator[Session, None, None]:
    """Yield a session; uncommitted work is rolled back when the request fails."""

    session = SessionLocal()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
