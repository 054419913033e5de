"""SavedMatch model — an author's durable record of a podcast match.

Rows are never deleted; a match ends as ``completed`` or ``rejected``.
"""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from podmatch.models.base import Base, utcnow


class SavedMatch(Base):
    __tablename__ = "saved_matches"
    __table_args__ = (UniqueConstraint("author_id", "podcast_id", name="uq_saved_match_author_podcast"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    author_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    podcast_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="viewed", index=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(30))
    is_bookmarked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text)
    match_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    match_reasons: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )
    last_viewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )
    contacted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
