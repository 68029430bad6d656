"""Database base configuration."""
import os
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator
from sqlalchemy import create_engine, Column, DateTime
from sqlalchemy.ext.declarative import declared_attr
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from emailflow.core.config import settings


class Base(DeclarativeBase):
    """Base class for all database models."""

    @declared_attr
    def __tablename__(cls) -> str:
        """Generate table name from class name."""
        return cls.__name__.lower()

    # Common columns for all tables
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


database_url = settings.SQLALCHEMY_DATABASE_URL

if database_url.startswith("sqlite"):
    if database_url.startswith("sqlite:///./"):
        os.makedirs(os.path.dirname(database_url.replace("sqlite:///", "")), exist_ok=True)
    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False},
        echo=False
    )
else:
    engine = create_engine(
        database_url,
        pool_pre_ping=True,
        pool_recycle=300,
        echo=False
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for one unit of work; uncommitted changes are rolled back on error."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
