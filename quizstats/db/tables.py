"""SQLAlchemy table definitions.

The domain keeps frozen dataclasses (quizstats/models/); these rows are
only the persistence shape.  A user's five current records live in one
JSONB document so a save is a single-row compare-and-swap on
``version``.  Closed windows are appended to ``progress_archive``.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from quizstats.db.engine import Base


class ProgressStateRow(Base):
    __tablename__ = "progress_states"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    document: Mapped[dict] = mapped_column(JSONB, nullable=False)


class ProgressArchiveRow(Base):
    __tablename__ = "progress_archive"
    __table_args__ = (
        Index("ix_progress_archive_user_kind", "user_id", "period_kind", "window_start"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    period_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    window_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    window_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    document: Mapped[dict] = mapped_column(JSONB, nullable=False)
