"""
Base model class for all SQLAlchemy models.

WHY: Centralizing common model functionality (timestamps, ID) in a base class
ensures consistency across all models and reduces code duplication.
"""

from datetime import datetime
from enum import Enum
from typing import Type

from sqlalchemy import Integer, DateTime, Enum as SQLEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    WHY: DeclarativeBase provides the foundation for SQLAlchemy 2.0 models
    with improved type hints and async support.
    """

    pass


class PrimaryKeyMixin:
    """Mixin to add an auto-incrementing integer primary key."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)


class TimestampMixin:
    """
    Mixin to add created_at and updated_at timestamps to models.

    WHY: Ticket lists are ordered by created_at and every mutation must bump
    updated_at; a mixin keeps that identical across the four ticket tables.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


def enum_column(enum_cls: Type[Enum], name: str) -> SQLEnum:
    """
    Build a SQLAlchemy Enum type that stores member values, not names.

    WHY: Values ("in_progress") are what the API exposes and what the
    existing PostgreSQL enum types contain; storing names would diverge.
    """
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
