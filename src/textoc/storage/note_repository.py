"""Repository for note storage and retrieval."""
import logging
from typing import Iterable, List, Optional, Union

from sqlalchemy import delete, select, update

from textoc.models.db_models import DBNote
from textoc.models.schema import (
    Note,
    ensure_timezone_aware,
    generate_id,
    utc_now,
)
from textoc.storage.base import UNSET, _Unset, integrity_guard
from textoc.storage.connection import StoreConnection

logger = logging.getLogger(__name__)


class NoteRepository:
    """CRUD access to the ``notes`` table.

    Every write runs in its own session and commits once, so a call either
    applies completely or not at all.
    """

    def __init__(self, connection: StoreConnection):
        """Initialize the note repository.

        Args:
            connection: Shared store handle.
        """
        self.connection = connection

    def create_note(
        self, title: str, content: str = "", notebook_id: Optional[str] = None
    ) -> Note:
        """Insert a new note.

        Args:
            title: Note title (already validated by the caller).
            content: Initial body.
            notebook_id: Owning notebook, or None for an unfiled note.

        Returns:
            The stored note.

        Raises:
            DataIntegrityError: If ``notebook_id`` names no notebook.
        """
        now = utc_now()
        db_note = DBNote(
            id=generate_id(),
            title=title,
            content=content,
            notebook_id=notebook_id,
            created_at=now,
            updated_at=now,
        )
        with self.connection.session() as session:
            with integrity_guard(session, "create_note"):
                session.add(db_note)
                session.commit()
            logger.debug(f"Created note {db_note.id}")
            return self._db_to_model(db_note)

    def get_note(self, note_id: str) -> Optional[Note]:
        """Get a note by ID, or None when it does not exist."""
        with self.connection.session() as session:
            db_note = session.get(DBNote, note_id)
            return self._db_to_model(db_note) if db_note else None

    def list_notes(self) -> List[Note]:
        """All notes, most recently updated first (ties by id)."""
        with self.connection.session() as session:
            rows = session.scalars(
                select(DBNote).order_by(DBNote.updated_at.desc(), DBNote.id.asc())
            ).all()
            return [self._db_to_model(row) for row in rows]

    def update_note(
        self,
        note_id: str,
        *,
        title: Union[str, _Unset] = UNSET,
        content: Union[str, _Unset] = UNSET,
        notebook_id: Union[Optional[str], _Unset] = UNSET,
    ) -> Optional[Note]:
        """Patch only the supplied fields; ``updated_at`` is always refreshed.

        ``content_hash`` is left alone: it tracks what was last mirrored to
        disk, not the current body.

        Passing ``notebook_id=None`` moves the note to unfiled; omitting it
        leaves the notebook untouched.

        Returns:
            The updated note, or None if no such note exists.
        """
        with self.connection.session() as session:
            db_note = session.get(DBNote, note_id)
            if db_note is None:
                return None
            if not isinstance(title, _Unset):
                db_note.title = title
            if not isinstance(content, _Unset):
                db_note.content = content
            if not isinstance(notebook_id, _Unset):
                db_note.notebook_id = notebook_id
            db_note.updated_at = utc_now()
            with integrity_guard(session, "update_note"):
                session.commit()
            return self._db_to_model(db_note)

    def set_content_hash(self, note_id: str, content_hash: Optional[str]) -> None:
        """Record the hash last written to the mirror; leaves updated_at alone."""
        with self.connection.session() as session:
            session.execute(
                update(DBNote)
                .where(DBNote.id == note_id)
                .values(content_hash=content_hash)
            )
            session.commit()

    def delete_note(self, note_id: str) -> None:
        """Delete a note; unknown ids are a silent no-op."""
        self.delete_notes([note_id])

    def delete_notes(self, note_ids: Iterable[str]) -> int:
        """Delete several notes in one transaction.

        Returns:
            Number of rows removed.
        """
        ids = list(note_ids)
        if not ids:
            return 0
        with self.connection.session() as session:
            result = session.execute(delete(DBNote).where(DBNote.id.in_(ids)))
            session.commit()
            if result.rowcount:
                logger.debug(f"Deleted {result.rowcount} note(s)")
            return result.rowcount or 0

    @staticmethod
    def _db_to_model(db_note: DBNote) -> Note:
        """Convert DBNote to Note model."""
        return Note(
            id=db_note.id,
            title=db_note.title,
            content=db_note.content or "",
            notebook_id=db_note.notebook_id,
            created_at=ensure_timezone_aware(db_note.created_at),
            updated_at=ensure_timezone_aware(db_note.updated_at),
            content_hash=db_note.content_hash,
        )
