"""Match store: saved matches, contact history, notes and collections.

Status lifecycle of a saved match:
  viewed → contacted → pending → scheduled → completed
  (any non-terminal status) → rejected   [reason required]

Moves go forward only but may skip steps. ``completed`` and ``rejected``
are terminal. Saved matches are never deleted.
"""

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from podmatch.errors import (
    DuplicateRecordError,
    InvalidRecordError,
    InvalidStatusTransitionError,
    RecordNotFoundError,
)
from podmatch.models import CollectionItem, ContactAttempt, PodcastCollection, PodcastNote, SavedMatch
from podmatch.models.base import utcnow
from podmatch.schemas import (
    CollectionQuery,
    ContactHistoryQuery,
    ContactMethod,
    ContactStatus,
    EmailContactDetails,
    MatchFeedback,
    MatchStatus,
    NoteCategory,
    NotesQuery,
    RejectionReason,
    SavedMatchQuery,
    SocialContactDetails,
)

logger = logging.getLogger(__name__)

STATUS_CHAIN = ["viewed", "contacted", "pending", "scheduled", "completed"]
TERMINAL_STATUSES = {"completed", "rejected"}
FOLLOW_UP_STATUSES = {"sent", "received"}
DEFAULT_FOLLOW_UP = timedelta(days=7)

IdLike = str | uuid.UUID


class MatchStore:
    """Persistence façade over an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # ═══════════════ SAVED MATCHES ═══════════════

    async def save_match(
        self,
        author_id: str,
        podcast_id: str,
        match_score: float,
        match_reasons: list[str] | None = None,
    ) -> SavedMatch:
        match = SavedMatch(
            author_id=author_id,
            podcast_id=podcast_id,
            match_score=match_score,
            match_reasons=list(match_reasons or []),
            status="viewed",
            is_bookmarked=False,
        )
        async with self._session_factory() as session:
            session.add(match)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateRecordError(
                    f"Podcast '{podcast_id}' is already saved for author '{author_id}'"
                ) from e
        logger.info("Match saved | author=%s | podcast=%s | score=%.2f", author_id, podcast_id, match_score)
        return match

    async def get_match(self, match_id: IdLike) -> SavedMatch:
        async with self._session_factory() as session:
            return await self._load(session, SavedMatch, match_id)

    async def record_view(self, match_id: IdLike) -> SavedMatch:
        async with self._session_factory() as session:
            match = await self._load(session, SavedMatch, match_id)
            match.last_viewed_at = utcnow()
            await session.commit()
            return match

    async def update_status(
        self,
        match_id: IdLike,
        status: MatchStatus,
        rejection_reason: RejectionReason | None = None,
    ) -> SavedMatch:
        async with self._session_factory() as session:
            match = await self._load(session, SavedMatch, match_id)
            _check_transition(match.status, status, rejection_reason)

            now = utcnow()
            if status != "rejected" and match.contacted_at is None and STATUS_CHAIN.index(status) >= 1:
                match.contacted_at = now
            match.status = status
            match.rejection_reason = rejection_reason
            match.last_viewed_at = now
            await session.commit()

        logger.info("Match status | id=%s | status=%s", match.id, status)
        return match

    async def toggle_bookmark(self, match_id: IdLike) -> bool:
        async with self._session_factory() as session:
            match = await self._load(session, SavedMatch, match_id)
            match.is_bookmarked = not match.is_bookmarked
            await session.commit()
            return match.is_bookmarked

    async def update_notes(self, match_id: IdLike, notes: str) -> SavedMatch:
        async with self._session_factory() as session:
            match = await self._load(session, SavedMatch, match_id)
            match.notes = notes
            await session.commit()
            return match

    async def list_matches(self, query: SavedMatchQuery) -> list[SavedMatch]:
        stmt = (
            select(SavedMatch)
            .where(SavedMatch.author_id == query.author_id)
            .order_by(SavedMatch.match_score.desc())
        )
        if query.status is not None:
            stmt = stmt.where(SavedMatch.status == query.status)
        if query.is_bookmarked is not None:
            stmt = stmt.where(SavedMatch.is_bookmarked == query.is_bookmarked)
        if query.min_match_score is not None:
            stmt = stmt.where(SavedMatch.match_score >= query.min_match_score)
        if query.offset:
            stmt = stmt.offset(query.offset)
        if query.limit is not None:
            stmt = stmt.limit(query.limit)

        async with self._session_factory() as session:
            return list((await session.scalars(stmt)).all())

    # ═══════════════ CONTACT HISTORY ═══════════════

    async def record_contact(
        self,
        match_id: IdLike,
        author_id: str,
        method: ContactMethod,
        content: str,
        email_details: EmailContactDetails | None = None,
        social_details: SocialContactDetails | None = None,
    ) -> ContactAttempt:
        if method == "email" and (email_details is None or not email_details.email_address):
            raise InvalidRecordError("Email address is required for email contact method")
        if method == "social" and social_details is None:
            raise InvalidRecordError("Platform is required for social contact method")

        async with self._session_factory() as session:
            match = await self._load(session, SavedMatch, match_id)
            contact = ContactAttempt(
                saved_match_id=match.id,
                author_id=author_id,
                method=method,
                status="sent",
                content=content,
                email_details=email_details.model_dump() if email_details else None,
                social_details=social_details.model_dump() if social_details else None,
                requires_follow_up=True,
                follow_up_date=utcnow() + DEFAULT_FOLLOW_UP,
            )
            session.add(contact)
            await session.commit()

        logger.info("Contact recorded | match=%s | method=%s", match_id, method)
        return contact

    async def update_contact_status(
        self, contact_id: IdLike, status: ContactStatus, response: str | None = None,
    ) -> ContactAttempt:
        async with self._session_factory() as session:
            contact = await self._load(session, ContactAttempt, contact_id)
            contact.status = status
            contact.requires_follow_up = status in FOLLOW_UP_STATUSES
            if response:
                contact.response = response
                contact.response_date = utcnow()
            await session.commit()
            return contact

    async def update_follow_up(
        self,
        contact_id: IdLike,
        requires_follow_up: bool,
        follow_up_date: datetime | None = None,
        follow_up_note: str | None = None,
    ) -> ContactAttempt:
        async with self._session_factory() as session:
            contact = await self._load(session, ContactAttempt, contact_id)
            contact.requires_follow_up = requires_follow_up
            contact.follow_up_date = follow_up_date
            contact.follow_up_note = follow_up_note
            await session.commit()
            return contact

    async def get_contact_history(self, query: ContactHistoryQuery) -> list[ContactAttempt]:
        stmt = (
            select(ContactAttempt)
            .where(
                ContactAttempt.saved_match_id == _as_uuid(query.match_id),
                ContactAttempt.author_id == query.author_id,
            )
            .order_by(ContactAttempt.created_at.desc())
        )
        if query.method is not None:
            stmt = stmt.where(ContactAttempt.method == query.method)
        if query.status is not None:
            stmt = stmt.where(ContactAttempt.status == query.status)
        if query.requires_follow_up is not None:
            stmt = stmt.where(ContactAttempt.requires_follow_up == query.requires_follow_up)

        async with self._session_factory() as session:
            return list((await session.scalars(stmt)).all())

    # ═══════════════ NOTES ═══════════════

    async def add_note(
        self,
        match_id: IdLike,
        author_id: str,
        category: NoteCategory,
        content: str,
        feedback: MatchFeedback | None = None,
    ) -> PodcastNote:
        async with self._session_factory() as session:
            match = await self._load(session, SavedMatch, match_id)
            note = PodcastNote(
                saved_match_id=match.id,
                author_id=author_id,
                category=category,
                content=content,
                feedback=feedback.model_dump() if feedback else None,
                is_pinned=False,
            )
            session.add(note)
            await session.commit()
            return note

    async def update_note(
        self,
        note_id: IdLike,
        content: str | None = None,
        category: NoteCategory | None = None,
        feedback: MatchFeedback | None = None,
        is_pinned: bool | None = None,
    ) -> PodcastNote:
        async with self._session_factory() as session:
            note = await self._load(session, PodcastNote, note_id)
            if content is not None:
                note.content = content
            if category is not None:
                note.category = category
            if feedback is not None:
                note.feedback = feedback.model_dump()
            if is_pinned is not None:
                note.is_pinned = is_pinned
            await session.commit()
            return note

    async def get_notes(self, query: NotesQuery) -> list[PodcastNote]:
        stmt = (
            select(PodcastNote)
            .where(
                PodcastNote.saved_match_id == _as_uuid(query.match_id),
                PodcastNote.author_id == query.author_id,
            )
            .order_by(PodcastNote.created_at.desc())
        )
        if query.category is not None:
            stmt = stmt.where(PodcastNote.category == query.category)
        if query.is_pinned is not None:
            stmt = stmt.where(PodcastNote.is_pinned == query.is_pinned)

        async with self._session_factory() as session:
            return list((await session.scalars(stmt)).all())

    async def delete_note(self, note_id: IdLike) -> None:
        async with self._session_factory() as session:
            note = await self._load(session, PodcastNote, note_id)
            await session.delete(note)
            await session.commit()

    # ═══════════════ COLLECTIONS ═══════════════

    async def create_collection(
        self,
        author_id: str,
        name: str,
        description: str | None = None,
        is_default: bool = False,
    ) -> PodcastCollection:
        collection = PodcastCollection(
            author_id=author_id,
            name=name,
            description=description,
            is_default=is_default,
            podcast_count=0,
        )
        async with self._session_factory() as session:
            session.add(collection)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateRecordError(f'Collection "{name}" already exists') from e
        return collection

    async def add_to_collection(
        self, collection_id: IdLike, match_id: IdLike, notes: str | None = None,
    ) -> PodcastCollection:
        async with self._session_factory() as session:
            collection = await self._load(session, PodcastCollection, collection_id)
            match = await self._load(session, SavedMatch, match_id)
            if await session.get(CollectionItem, (collection.id, match.id)) is not None:
                raise DuplicateRecordError("Podcast is already in this collection")

            session.add(CollectionItem(collection_id=collection.id, saved_match_id=match.id, notes=notes))
            try:
                await session.flush()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateRecordError("Podcast is already in this collection") from e
            await self._adjust_count(session, collection.id, PodcastCollection.podcast_count + 1)
            await session.commit()
            await session.refresh(collection)
            return collection

    async def remove_from_collection(self, collection_id: IdLike, match_id: IdLike) -> PodcastCollection:
        async with self._session_factory() as session:
            collection = await self._load(session, PodcastCollection, collection_id)
            item = await session.get(CollectionItem, (collection.id, _as_uuid(match_id)))
            if item is None:
                raise RecordNotFoundError(f"Match '{match_id}' is not in collection '{collection_id}'")

            await session.delete(item)
            await self._adjust_count(
                session,
                collection.id,
                case((PodcastCollection.podcast_count > 0, PodcastCollection.podcast_count - 1), else_=0),
            )
            await session.commit()
            await session.refresh(collection)
            return collection

    async def get_collections(self, query: CollectionQuery) -> list[PodcastCollection]:
        stmt = (
            select(PodcastCollection)
            .where(PodcastCollection.author_id == query.author_id)
            .order_by(PodcastCollection.created_at.desc())
        )
        if not query.include_empty:
            stmt = stmt.where(PodcastCollection.podcast_count > 0)
        if query.search_term:
            stmt = stmt.where(PodcastCollection.name.ilike(f"%{query.search_term}%"))

        async with self._session_factory() as session:
            return list((await session.scalars(stmt)).all())

    # ═══════════════ HELPERS ═══════════════

    async def _adjust_count(self, session: AsyncSession, collection_id: uuid.UUID, value) -> None:
        # Computed in SQL, never as a read-modify-write of the loaded row
        await session.execute(
            update(PodcastCollection)
            .where(PodcastCollection.id == collection_id)
            .values(podcast_count=value)
            .execution_options(synchronize_session=False)
        )

    async def _load(self, session: AsyncSession, model, record_id: IdLike):
        record = await session.get(model, _as_uuid(record_id))
        if record is None:
            raise RecordNotFoundError(f"{model.__name__} '{record_id}' not found")
        return record


def _as_uuid(value: IdLike) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as e:
        raise RecordNotFoundError(f"'{value}' is not a valid record id") from e


def _check_transition(current: str, requested: str, reason: str | None) -> None:
    if current in TERMINAL_STATUSES:
        raise InvalidStatusTransitionError(current, requested)

    if requested == "rejected":
        if reason is None:
            raise InvalidRecordError("A rejection reason is required when rejecting a match")
        return

    if reason is not None:
        raise InvalidRecordError(f"Rejection reason given for non-rejected status '{requested}'")
    if STATUS_CHAIN.index(requested) <= STATUS_CHAIN.index(current):
        raise InvalidStatusTransitionError(current, requested)
