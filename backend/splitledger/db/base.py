"""
SQLAlchemy declarative base and shared model columns.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def generate_uuid() -> str:
    """Primary key default: a random UUID in canonical string form."""
    return str(uuid.uuid4())


class BaseModel(Base):
    """Abstract base with UUID primary key and audit timestamps."""
    __abstract__ = True

    id = Column(String(36), primary_key=True, default=generate_uuid)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
