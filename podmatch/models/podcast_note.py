"""PodcastNote model."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from podmatch.models.base import Base, utcnow


class PodcastNote(Base):
    __tablename__ = "podcast_notes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    saved_match_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("saved_matches.id"), nullable=False, index=True,
    )
    author_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(20), nullable=False, default="general")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    feedback: Mapped[dict | None] = mapped_column(JSON)
    is_pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )
