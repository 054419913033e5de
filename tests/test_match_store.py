"""Tests for the match store against in-memory SQLite."""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from podmatch.errors import (
    DuplicateRecordError,
    InvalidRecordError,
    InvalidStatusTransitionError,
    RecordNotFoundError,
)
from podmatch.schemas import (
    CollectionQuery,
    ContactHistoryQuery,
    EmailContactDetails,
    MatchFeedback,
    NotesQuery,
    SavedMatchQuery,
    SocialContactDetails,
)


@pytest.fixture
async def saved(store):
    return await store.save_match("author-1", "pod-1", 0.82, ["Strong topic alignment"])


def naive(value: datetime) -> datetime:
    return value.replace(tzinfo=None)


class TestSavedMatches:
    @pytest.mark.asyncio
    async def test_save_defaults(self, saved):
        assert saved.status == "viewed"
        assert saved.is_bookmarked is False
        assert saved.match_reasons == ["Strong topic alignment"]
        assert saved.contacted_at is None

    @pytest.mark.asyncio
    async def test_duplicate_pair_rejected(self, store, saved):
        with pytest.raises(DuplicateRecordError):
            await store.save_match("author-1", "pod-1", 0.5)
        # same podcast, different author is fine
        other = await store.save_match("author-2", "pod-1", 0.5)
        assert other.id != saved.id

    @pytest.mark.asyncio
    async def test_get_match_accepts_str_id(self, store, saved):
        loaded = await store.get_match(str(saved.id))
        assert loaded.podcast_id == "pod-1"

    @pytest.mark.asyncio
    async def test_missing_match(self, store):
        with pytest.raises(RecordNotFoundError):
            await store.get_match(uuid.uuid4())
        with pytest.raises(RecordNotFoundError):
            await store.get_match("not-a-uuid")

    @pytest.mark.asyncio
    async def test_record_view_updates_timestamp(self, store, saved):
        await asyncio.sleep(0.01)
        viewed = await store.record_view(saved.id)
        assert naive(viewed.last_viewed_at) > naive(saved.last_viewed_at)

    @pytest.mark.asyncio
    async def test_toggle_bookmark(self, store, saved):
        assert await store.toggle_bookmark(saved.id) is True
        assert await store.toggle_bookmark(saved.id) is False

    @pytest.mark.asyncio
    async def test_update_notes(self, store, saved):
        updated = await store.update_notes(saved.id, "Host prefers morning recordings")
        assert updated.notes == "Host prefers morning recordings"


class TestStatusTransitions:
    @pytest.mark.asyncio
    async def test_forward_move_stamps_contacted(self, store, saved):
        updated = await store.update_status(saved.id, "contacted")
        assert updated.status == "contacted"
        assert updated.contacted_at is not None

    @pytest.mark.asyncio
    async def test_skipping_steps_allowed(self, store, saved):
        updated = await store.update_status(saved.id, "scheduled")
        assert updated.status == "scheduled"
        assert updated.contacted_at is not None

    @pytest.mark.asyncio
    async def test_contacted_at_set_once(self, store, saved):
        first = await store.update_status(saved.id, "contacted")
        await asyncio.sleep(0.01)
        second = await store.update_status(saved.id, "pending")
        assert naive(second.contacted_at) == naive(first.contacted_at)

    @pytest.mark.asyncio
    async def test_backward_move_rejected(self, store, saved):
        await store.update_status(saved.id, "pending")
        with pytest.raises(InvalidStatusTransitionError) as exc:
            await store.update_status(saved.id, "contacted")
        assert exc.value.current == "pending"
        assert exc.value.requested == "contacted"

    @pytest.mark.asyncio
    async def test_same_status_rejected(self, store, saved):
        with pytest.raises(InvalidStatusTransitionError):
            await store.update_status(saved.id, "viewed")

    @pytest.mark.asyncio
    async def test_completed_is_terminal(self, store, saved):
        await store.update_status(saved.id, "completed")
        with pytest.raises(InvalidStatusTransitionError):
            await store.update_status(saved.id, "rejected", "other")

    @pytest.mark.asyncio
    async def test_reject_requires_reason(self, store, saved):
        with pytest.raises(InvalidRecordError):
            await store.update_status(saved.id, "rejected")

        rejected = await store.update_status(saved.id, "rejected", "audience_mismatch")
        assert rejected.rejection_reason == "audience_mismatch"
        assert rejected.contacted_at is None

    @pytest.mark.asyncio
    async def test_rejected_is_terminal(self, store, saved):
        await store.update_status(saved.id, "rejected", "declined")
        with pytest.raises(InvalidStatusTransitionError):
            await store.update_status(saved.id, "scheduled")

    @pytest.mark.asyncio
    async def test_reason_only_with_rejection(self, store, saved):
        with pytest.raises(InvalidRecordError):
            await store.update_status(saved.id, "contacted", "declined")


class TestListMatches:
    @pytest.fixture
    async def matches(self, store):
        low = await store.save_match("author-1", "pod-low", 0.3)
        high = await store.save_match("author-1", "pod-high", 0.9)
        mid = await store.save_match("author-1", "pod-mid", 0.6)
        await store.save_match("author-2", "pod-other", 1.0)
        await store.toggle_bookmark(mid.id)
        await store.update_status(low.id, "contacted")
        return low, high, mid

    @pytest.mark.asyncio
    async def test_ordered_by_score(self, store, matches):
        listed = await store.list_matches(SavedMatchQuery(author_id="author-1"))
        assert [m.podcast_id for m in listed] == ["pod-high", "pod-mid", "pod-low"]

    @pytest.mark.asyncio
    async def test_filters(self, store, matches):
        bookmarked = await store.list_matches(SavedMatchQuery(author_id="author-1", is_bookmarked=True))
        assert [m.podcast_id for m in bookmarked] == ["pod-mid"]

        contacted = await store.list_matches(SavedMatchQuery(author_id="author-1", status="contacted"))
        assert [m.podcast_id for m in contacted] == ["pod-low"]

        strong = await store.list_matches(SavedMatchQuery(author_id="author-1", min_match_score=0.5))
        assert len(strong) == 2

    @pytest.mark.asyncio
    async def test_pagination(self, store, matches):
        page = await store.list_matches(SavedMatchQuery(author_id="author-1", limit=1, offset=1))
        assert [m.podcast_id for m in page] == ["pod-mid"]


class TestContactHistory:
    @pytest.mark.asyncio
    async def test_email_requires_address(self, store, saved):
        with pytest.raises(InvalidRecordError):
            await store.record_contact(saved.id, "author-1", "email", "Hello!")
        with pytest.raises(InvalidRecordError):
            await store.record_contact(
                saved.id, "author-1", "email", "Hello!", email_details=EmailContactDetails(email_address=""),
            )

    @pytest.mark.asyncio
    async def test_social_requires_platform(self, store, saved):
        with pytest.raises(InvalidRecordError):
            await store.record_contact(saved.id, "author-1", "social", "DM sent")

    @pytest.mark.asyncio
    async def test_record_defaults(self, store, saved):
        contact = await store.record_contact(
            saved.id, "author-1", "email", "Pitch",
            email_details=EmailContactDetails(email_address="host@example.com", subject="Guest pitch"),
        )
        assert contact.status == "sent"
        assert contact.requires_follow_up is True
        expected = datetime.now(timezone.utc) + timedelta(days=7)
        assert abs(contact.follow_up_date - expected) < timedelta(minutes=1)
        assert contact.email_details["email_address"] == "host@example.com"

    @pytest.mark.asyncio
    async def test_record_contact_for_missing_match(self, store):
        with pytest.raises(RecordNotFoundError):
            await store.record_contact(uuid.uuid4(), "author-1", "form", "Submitted form")

    @pytest.mark.asyncio
    async def test_status_drives_follow_up(self, store, saved):
        contact = await store.record_contact(
            saved.id, "author-1", "social", "DM",
            social_details=SocialContactDetails(platform="linkedin"),
        )

        received = await store.update_contact_status(contact.id, "received", "Sounds interesting!")
        assert received.requires_follow_up is True
        assert received.response == "Sounds interesting!"
        assert received.response_date is not None

        declined = await store.update_contact_status(contact.id, "declined")
        assert declined.requires_follow_up is False

    @pytest.mark.asyncio
    async def test_update_follow_up(self, store, saved):
        contact = await store.record_contact(saved.id, "author-1", "referral", "Intro via Sam")
        later = datetime(2027, 1, 15, tzinfo=timezone.utc)
        updated = await store.update_follow_up(contact.id, True, later, "Ask about spring season")
        assert updated.follow_up_date == later
        assert updated.follow_up_note == "Ask about spring season"

    @pytest.mark.asyncio
    async def test_history_newest_first_and_filtered(self, store, saved):
        await store.record_contact(saved.id, "author-1", "form", "first")
        await asyncio.sleep(0.01)
        second = await store.record_contact(saved.id, "author-1", "referral", "second")
        await store.update_contact_status(second.id, "noResponse")

        history = await store.get_contact_history(ContactHistoryQuery(match_id=str(saved.id), author_id="author-1"))
        assert [c.content for c in history] == ["second", "first"]

        pending = await store.get_contact_history(
            ContactHistoryQuery(match_id=str(saved.id), author_id="author-1", requires_follow_up=True),
        )
        assert [c.content for c in pending] == ["first"]


class TestNotes:
    @pytest.mark.asyncio
    async def test_note_lifecycle(self, store, saved):
        feedback = MatchFeedback(is_relevant=True, audience_match=4, topic_match=5)
        note = await store.add_note(saved.id, "author-1", "preparation", "Read last 3 episodes", feedback)
        assert note.is_pinned is False
        assert note.feedback["topic_match"] == 5

        updated = await store.update_note(note.id, content="Read last 5 episodes", is_pinned=True)
        assert updated.content == "Read last 5 episodes"
        assert updated.category == "preparation"
        assert updated.is_pinned is True

        await store.delete_note(note.id)
        assert await store.get_notes(NotesQuery(match_id=str(saved.id), author_id="author-1")) == []

    @pytest.mark.asyncio
    async def test_get_notes_filters(self, store, saved):
        await store.add_note(saved.id, "author-1", "outreach", "Sent pitch")
        await asyncio.sleep(0.01)
        pinned = await store.add_note(saved.id, "author-1", "general", "Great fit")
        await store.update_note(pinned.id, is_pinned=True)

        notes = await store.get_notes(NotesQuery(match_id=str(saved.id), author_id="author-1"))
        assert [n.content for n in notes] == ["Great fit", "Sent pitch"]

        outreach = await store.get_notes(NotesQuery(match_id=str(saved.id), author_id="author-1", category="outreach"))
        assert [n.content for n in outreach] == ["Sent pitch"]

        only_pinned = await store.get_notes(NotesQuery(match_id=str(saved.id), author_id="author-1", is_pinned=True))
        assert [n.content for n in only_pinned] == ["Great fit"]

    @pytest.mark.asyncio
    async def test_delete_missing_note(self, store):
        with pytest.raises(RecordNotFoundError):
            await store.delete_note(uuid.uuid4())


class TestCollections:
    @pytest.mark.asyncio
    async def test_duplicate_name_per_author(self, store):
        await store.create_collection("author-1", "Dream shows")
        with pytest.raises(DuplicateRecordError):
            await store.create_collection("author-1", "Dream shows")
        await store.create_collection("author-2", "Dream shows")

    @pytest.mark.asyncio
    async def test_membership_maintains_count(self, store, saved):
        collection = await store.create_collection("author-1", "Business", "B2B shows")
        assert collection.podcast_count == 0

        collection = await store.add_to_collection(collection.id, saved.id, "Top pick")
        assert collection.podcast_count == 1

        with pytest.raises(DuplicateRecordError):
            await store.add_to_collection(collection.id, saved.id)

        collection = await store.remove_from_collection(collection.id, saved.id)
        assert collection.podcast_count == 0

        with pytest.raises(RecordNotFoundError):
            await store.remove_from_collection(collection.id, saved.id)

    @pytest.mark.asyncio
    async def test_concurrent_adds_keep_count(self, store):
        collection = await store.create_collection("author-1", "Shortlist")
        matches = [await store.save_match("author-1", f"pod-{i}", 0.7, []) for i in range(4)]

        await asyncio.gather(*(store.add_to_collection(collection.id, m.id) for m in matches))

        [stored] = await store.get_collections(CollectionQuery(author_id="author-1"))
        assert stored.podcast_count == 4

        await asyncio.gather(*(store.remove_from_collection(collection.id, m.id) for m in matches[:3]))
        [stored] = await store.get_collections(CollectionQuery(author_id="author-1"))
        assert stored.podcast_count == 1

    @pytest.mark.asyncio
    async def test_get_collections(self, store, saved):
        empty = await store.create_collection("author-1", "Someday")
        business = await store.create_collection("author-1", "Business Podcasts")
        await store.add_to_collection(business.id, saved.id)

        non_empty = await store.get_collections(CollectionQuery(author_id="author-1"))
        assert [c.name for c in non_empty] == ["Business Podcasts"]

        everything = await store.get_collections(CollectionQuery(author_id="author-1", include_empty=True))
        assert {c.id for c in everything} == {empty.id, business.id}

        searched = await store.get_collections(
            CollectionQuery(author_id="author-1", include_empty=True, search_term="busi"),
        )
        assert [c.name for c in searched] == ["Business Podcasts"]
