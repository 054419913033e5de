"""ContactAttempt model — one outreach to a podcast for a saved match."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from podmatch.models.base import Base, utcnow


class ContactAttempt(Base):
    __tablename__ = "contact_attempts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    saved_match_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("saved_matches.id"), nullable=False, index=True,
    )
    author_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="sent")
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    email_details: Mapped[dict | None] = mapped_column(JSON)
    social_details: Mapped[dict | None] = mapped_column(JSON)
    requires_follow_up: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    follow_up_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    follow_up_note: Mapped[str | None] = mapped_column(Text)
    response: Mapped[str | None] = mapped_column(Text)
    response_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )
