"""
Exercise Matcher - Database Models

SQLAlchemy ORM models for the reference exercise catalog and learned aliases.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class Exercise(Base):
    """
    Reference exercise catalog.

    Populated by the catalog ingestion job with idempotent upserts keyed by
    the external numeric id; read-only from the resolver's point of view.
    """

    __tablename__ = "exercises"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wger_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    name_normalized: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[Optional[str]] = mapped_column(String(100))
    muscles: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    equipment: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    image_urls: Mapped[Optional[list]] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), onupdate=func.now(), nullable=False
    )

    aliases: Mapped[list["ExerciseAlias"]] = relationship(back_populates="exercise")

    def __repr__(self) -> str:
        return f"<Exercise(wger_id={self.wger_id}, name='{self.name}')>"


class ExerciseAlias(Base):
    """
    Learned mapping from normalized input text to a catalog exercise.

    Written by the resolver (last write wins), never expired or deleted by it.
    """

    __tablename__ = "exercise_aliases"

    alias: Mapped[str] = mapped_column(Text, primary_key=True)
    exercise_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("exercises.wger_id"), nullable=False, index=True
    )
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), onupdate=func.now(), nullable=False
    )

    exercise: Mapped["Exercise"] = relationship(back_populates="aliases")

    def __repr__(self) -> str:
        return f"<ExerciseAlias('{self.alias}' -> {self.exercise_id}, conf={self.confidence_score:.2f})>"
