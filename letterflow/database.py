"""Engine, session factory and per-request session scoping."""
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from letterflow import config


def build_engine(url: str):
    """Create an engine for url. Hosted postgres:// URLs are rewritten for SQLAlchemy."""
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)

    if url.startswith("sqlite"):
        # Request handlers run in a threadpool
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


@contextmanager
def session_scope(factory=SessionLocal):
    """
    Yield a session that is rolled back if the block raises.

    The key-value store commits each successful write itself, so anything
    still pending when an error escapes is a half-finished write and is
    discarded here.
    """
    db = factory()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_db():
    """Dependency for FastAPI endpoints to get database session."""
    with session_scope() as db:
        yield db
