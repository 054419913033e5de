"""SQLAlchemy ORM models."""

from podmatch.models.base import Base
from podmatch.models.collection import CollectionItem, PodcastCollection
from podmatch.models.contact_attempt import ContactAttempt
from podmatch.models.podcast_note import PodcastNote
from podmatch.models.saved_match import SavedMatch

__all__ = [
    "Base",
    "SavedMatch",
    "ContactAttempt",
    "PodcastNote",
    "PodcastCollection",
    "CollectionItem",
]
