from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from .core.config import settings

engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if "sqlite" in settings.database_url else {}
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """Dependency for work that outlives the request (background tasks)"""
    return SessionLocal


def create_tables():
    """Create all database tables"""
    # Import models so they register on Base.metadata
    from .models import department, employee, notification, user  # noqa: F401

    Base.metadata.create_all(bind=engine)
