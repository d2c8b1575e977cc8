"""Repository for tag storage and retrieval."""
import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError

from textoc.exceptions import DataIntegrityError
from textoc.models.db_models import DBTag, note_tags
from textoc.models.schema import NoteTag, Tag, generate_id
from textoc.storage.base import integrity_guard
from textoc.storage.connection import StoreConnection

logger = logging.getLogger(__name__)


class TagRepository:
    """Repository for managing tags and note-tag associations."""

    def __init__(self, connection: StoreConnection):
        """Initialize the tag repository.

        Args:
            connection: Shared store handle.
        """
        self.connection = connection

    def create_tag(self, name: str) -> Tag:
        """Create a tag, or return the existing one with the same name.

        A uniqueness violation on ``name`` is the expected path for a
        duplicate and is answered with the stored row.

        Args:
            name: The tag name (case-sensitive).

        Returns:
            The new or existing Tag.
        """
        with self.connection.session() as session:
            db_tag = DBTag(id=generate_id(), name=name)
            session.add(db_tag)
            try:
                session.commit()
                logger.debug(f"Created tag {db_tag.id} ({name})")
                return self._db_to_model(db_tag)
            except IntegrityError as e:
                session.rollback()
                existing = session.scalar(select(DBTag).where(DBTag.name == name))
                if existing is None:
                    raise DataIntegrityError(
                        f"Could not create tag '{name}'",
                        operation="create_tag",
                        original_error=e,
                    ) from e
                logger.debug(f"Tag '{name}' already exists as {existing.id}")
                return self._db_to_model(existing)

    def get_tag(self, tag_id: str) -> Optional[Tag]:
        with self.connection.session() as session:
            db_tag = session.get(DBTag, tag_id)
            return self._db_to_model(db_tag) if db_tag else None

    def get_tag_by_name(self, name: str) -> Optional[Tag]:
        with self.connection.session() as session:
            db_tag = session.scalar(select(DBTag).where(DBTag.name == name))
            return self._db_to_model(db_tag) if db_tag else None

    def list_tags(self) -> List[Tag]:
        """Get all tags ordered by name."""
        with self.connection.session() as session:
            rows = session.scalars(select(DBTag).order_by(DBTag.name, DBTag.id)).all()
            return [self._db_to_model(row) for row in rows]

    def update_tag(self, tag_id: str, name: str) -> Optional[Tag]:
        """Rename a tag.

        Raises:
            DataIntegrityError: If another tag already uses ``name``.
        """
        with self.connection.session() as session:
            db_tag = session.get(DBTag, tag_id)
            if db_tag is None:
                return None
            db_tag.name = name
            with integrity_guard(session, "update_tag"):
                session.commit()
            return self._db_to_model(db_tag)

    def delete_tag(self, tag_id: str) -> None:
        """Delete a tag; its note associations cascade away."""
        with self.connection.session() as session:
            session.execute(delete(DBTag).where(DBTag.id == tag_id))
            session.commit()

    def add_tag_to_note(self, note_id: str, tag_id: str) -> None:
        """Associate a tag with a note. Existing associations are left as is.

        Raises:
            DataIntegrityError: If the note or tag does not exist.
        """
        stmt = (
            sqlite_insert(note_tags)
            .values(note_id=note_id, tag_id=tag_id)
            .on_conflict_do_nothing(index_elements=["note_id", "tag_id"])
        )
        with self.connection.session() as session:
            with integrity_guard(session, "add_tag_to_note"):
                session.execute(stmt)
                session.commit()

    def remove_tag_from_note(self, note_id: str, tag_id: str) -> None:
        """Remove an association; removing a missing one is a no-op."""
        with self.connection.session() as session:
            session.execute(
                delete(note_tags).where(
                    note_tags.c.note_id == note_id, note_tags.c.tag_id == tag_id
                )
            )
            session.commit()

    def list_tags_for_note(self, note_id: str) -> List[Tag]:
        """Get all tags for a specific note, ordered by name."""
        with self.connection.session() as session:
            rows = session.scalars(
                select(DBTag)
                .join(note_tags, DBTag.id == note_tags.c.tag_id)
                .where(note_tags.c.note_id == note_id)
                .order_by(DBTag.name)
            ).all()
            return [self._db_to_model(row) for row in rows]

    def list_all_note_tag_associations(self) -> List[NoteTag]:
        """Every (note_id, tag_id) pair in the store."""
        with self.connection.session() as session:
            rows = session.execute(
                select(note_tags.c.note_id, note_tags.c.tag_id).order_by(
                    note_tags.c.note_id, note_tags.c.tag_id
                )
            ).all()
            return [NoteTag(note_id=row[0], tag_id=row[1]) for row in rows]

    @staticmethod
    def _db_to_model(db_tag: DBTag) -> Tag:
        return Tag(id=db_tag.id, name=db_tag.name)
