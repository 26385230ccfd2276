"""
Preference and saved-book repositories.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from shelfwise.exceptions import StorageError
from shelfwise.models import PreferenceProfile

from .database import Database
from .models import PreferenceModel, SavedBookModel


class PreferenceRepository:
    """One preference profile per device."""

    def __init__(self, database: Database):
        self.database = database

    def get_by_device(self, device_id: str) -> Optional[PreferenceProfile]:
        """Profile for a device, or None if it never saved one."""
        try:
            with self.database.session() as session:
                model = session.execute(
                    select(PreferenceModel).where(PreferenceModel.device_id == device_id)
                ).scalar_one_or_none()
                if model is None:
                    return None
                return PreferenceProfile.from_dict({
                    "device_id": model.device_id,
                    "genres": model.genres or [],
                    "authors": model.authors or [],
                    "books": model.books or [],
                    "goodreads_data": model.goodreads_data or [],
                })
        except SQLAlchemyError as e:
            logger.error(f"Error loading preferences for {device_id}: {e}")
            return None

    def save(self, profile: PreferenceProfile) -> PreferenceProfile:
        """
        Create or update the profile for ``profile.device_id``.

        Raises:
            StorageError: If the write fails
        """
        try:
            with self.database.session() as session:
                model = session.execute(
                    select(PreferenceModel).where(PreferenceModel.device_id == profile.device_id)
                ).scalar_one_or_none()

                if model is None:
                    model = PreferenceModel(device_id=profile.device_id)
                    session.add(model)
                    logger.info(f"Creating preferences for device {profile.device_id}")
                else:
                    logger.info(f"Updating preferences for device {profile.device_id}")

                model.genres = list(profile.genres)
                model.authors = list(profile.authors)
                model.books = list(profile.books)
                model.goodreads_data = list(profile.goodreads_data) or None
                session.commit()

            return profile

        except SQLAlchemyError as e:
            logger.error(f"Error saving preferences for {profile.device_id}: {e}")
            raise StorageError("save_preferences", detail=str(e)) from e


@dataclass
class SavedBook:
    """Data class for saved book transfer."""

    id: int
    device_id: str
    title: str
    author: str
    book_cache_id: Optional[int] = None
    cover_url: Optional[str] = None
    rating: Optional[str] = None
    summary: Optional[str] = None
    saved_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: SavedBookModel) -> "SavedBook":
        return cls(
            id=model.id,
            device_id=model.device_id,
            title=model.title,
            author=model.author,
            book_cache_id=model.book_cache_id,
            cover_url=model.cover_url,
            rating=model.rating,
            summary=model.summary,
            saved_at=model.saved_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "device_id": self.device_id,
            "title": self.title,
            "author": self.author,
            "book_cache_id": self.book_cache_id,
            "cover_url": self.cover_url,
            "rating": self.rating,
            "summary": self.summary,
            "saved_at": self.saved_at.isoformat() if self.saved_at else None,
        }


class SavedBookRepository:
    """Books a device saved from its recommendations."""

    _UPDATABLE_FIELDS = ("book_cache_id", "cover_url", "rating", "summary")

    def __init__(self, database: Database):
        self.database = database

    def list_for_device(self, device_id: str) -> list[SavedBook]:
        """Saved books, newest first."""
        try:
            with self.database.session() as session:
                models = session.execute(
                    select(SavedBookModel)
                    .where(SavedBookModel.device_id == device_id)
                    .order_by(SavedBookModel.saved_at.desc(), SavedBookModel.id.desc())
                ).scalars().all()
                return [SavedBook.from_model(m) for m in models]
        except SQLAlchemyError as e:
            logger.error(f"Error listing saved books for {device_id}: {e}")
            return []

    def find(self, device_id: str, title: str, author: str) -> Optional[SavedBook]:
        """Case-insensitive lookup of a saved title/author."""
        try:
            with self.database.session() as session:
                model = session.execute(
                    select(SavedBookModel)
                    .where(
                        SavedBookModel.device_id == device_id,
                        func.lower(SavedBookModel.title) == title.lower(),
                        func.lower(SavedBookModel.author) == author.lower(),
                    )
                    .limit(1)
                ).scalar_one_or_none()
                return SavedBook.from_model(model) if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error finding saved book '{title}': {e}")
            return None

    def create(
        self,
        device_id: str,
        title: str,
        author: str,
        book_cache_id: Optional[int] = None,
        cover_url: Optional[str] = None,
        rating: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> SavedBook:
        """
        Save a book for a device.

        Raises:
            StorageError: If the write fails
        """
        try:
            with self.database.session() as session:
                model = SavedBookModel(
                    device_id=device_id,
                    title=title,
                    author=author,
                    book_cache_id=book_cache_id,
                    cover_url=cover_url,
                    rating=rating,
                    summary=summary,
                    saved_at=datetime.utcnow(),
                )
                session.add(model)
                session.commit()
                session.refresh(model)

            logger.info(f"Saved '{title}' for device {device_id}")
            return SavedBook.from_model(model)

        except SQLAlchemyError as e:
            logger.error(f"Error saving book '{title}': {e}")
            raise StorageError("create_saved_book", detail=str(e)) from e

    def update(self, saved_id: int, **fields) -> Optional[SavedBook]:
        """
        Update enrichment fields of a saved book.

        Returns:
            Updated SavedBook, or None if it does not exist
        """
        try:
            with self.database.session() as session:
                model = session.get(SavedBookModel, saved_id)
                if model is None:
                    return None

                for name, value in fields.items():
                    if name in self._UPDATABLE_FIELDS:
                        setattr(model, name, value)
                session.commit()
                session.refresh(model)
                return SavedBook.from_model(model)

        except SQLAlchemyError as e:
            logger.error(f"Error updating saved book {saved_id}: {e}")
            raise StorageError("update_saved_book", detail=str(e)) from e

    def delete(self, saved_id: int) -> bool:
        """Remove a saved book. Returns False if it did not exist."""
        try:
            with self.database.session() as session:
                model = session.get(SavedBookModel, saved_id)
                if model is None:
                    return False
                session.delete(model)
                session.commit()
                return True

        except SQLAlchemyError as e:
            logger.error(f"Error deleting saved book {saved_id}: {e}")
            raise StorageError("delete_saved_book", detail=str(e)) from e
