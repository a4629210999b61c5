from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from medregistry.config import settings


def engine_options(url: str) -> dict:
    """Pool settings per backend; in-memory SQLite must share one connection."""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {"pool_pre_ping": True, "pool_size": 5}


engine = create_engine(settings.DATABASE_URL, **engine_options(settings.DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


class Base(DeclarativeBase):
    pass


def get_db():
    """FastAPI dependency that yields a database session.

    Closing an uncommitted session rolls it back, so a request that raises
    leaves no partial change behind.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
