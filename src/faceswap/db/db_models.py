"""SQLAlchemy ORM models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base declarative class."""


class GenerationModel(Base):
    __tablename__ = "generation"
    __table_args__ = (Index("ix_generation_user_timestamp", "user_id", "timestamp"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    source_image: Mapped[str] = mapped_column(String(512), nullable=False)
    target_image: Mapped[str] = mapped_column(String(2048), nullable=False)
    result_image: Mapped[str] = mapped_column(String(2048), nullable=False)
    task_id: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
