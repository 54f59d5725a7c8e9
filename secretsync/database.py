"""
Database schema and connection management.

Uses SQLite with SQLAlchemy to hold namespaces and secrets.
"""

from datetime import datetime
from pathlib import Path
from sqlalchemy import create_engine, Column, String, Integer, DateTime, JSON
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()

RESOURCE_VERSION_COUNTER = "resourceVersion"


class NamespaceRow(Base):
    """Namespace (partition) model."""

    __tablename__ = "namespaces"

    name = Column(String, primary_key=True)
    labels = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class SecretRow(Base):
    """Secret model. Payload values are stored base64-encoded."""

    __tablename__ = "secrets"

    namespace = Column(String, primary_key=True)
    name = Column(String, primary_key=True)
    uid = Column(String, nullable=False, unique=True)
    resource_version = Column(Integer, nullable=False)
    type = Column(String, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    annotations = Column(JSON, nullable=False, default=dict)
    labels = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class CounterRow(Base):
    """Named monotonically increasing counters (cluster-wide resourceVersion)."""

    __tablename__ = "counters"

    name = Column(String, primary_key=True)
    value = Column(Integer, nullable=False, default=0)


def get_engine(db_path: Path):
    """
    Create an engine bound to a SQLite database file.

    Args:
        db_path: Path to SQLite database file
    """
    return create_engine(f"sqlite:///{db_path}")


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(db_path)
    Base.metadata.create_all(engine)
    engine.dispose()


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    engine = get_engine(db_path)
    Session = sessionmaker(bind=engine)
    return Session()
