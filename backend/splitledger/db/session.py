"""
Database session management.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from splitledger.core.config import settings
from splitledger.db.base import Base

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    pool_pre_ping=True,
    pool_recycle=3600,
    connect_args=connect_args
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> sessionmaker:
    """
    Dependency for the session factory.
    Balance computation opens one session per concurrently computed group,
    so it needs the factory rather than a single request session.
    """
    return SessionLocal


def init_db():
    """Initialize database tables."""
    import splitledger.models  # noqa: F401  registers all tables on Base.metadata
    Base.metadata.create_all(bind=engine)
