"""Database configuration using SQLAlchemy."""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from .settings import settings

UNPLANNED_CATEGORY_ID = "unplanned"


def build_engine(database_url: str, echo: bool = False):
    """Create an engine with pool options suited to the backend.

    SQLite (tests, local demos) shares a single connection across threads;
    server databases get a pre-pinged, recycled connection pool.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# Base class for models
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.

    Usage:
        @router.get("/items")
        def get_items(db: Session = Depends(get_db)):
            return db.query(Item).all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def seed_system_categories(db: Session) -> None:
    """Ensure the catch-all category used for reassignment exists."""
    from schoolops.models import Category

    if db.get(Category, UNPLANNED_CATEGORY_ID) is None:
        db.add(Category(id=UNPLANNED_CATEGORY_ID, name="Unplanned", is_system=True))
        db.commit()


def init_db(bind=None) -> None:
    """Initialize database tables and seed system rows."""
    # Import all models to register them with Base
    from schoolops import models  # noqa: F401

    bind = bind or engine
    Base.metadata.create_all(bind=bind)

    db = Session(bind=bind)
    try:
        seed_system_categories(db)
    finally:
        db.close()
