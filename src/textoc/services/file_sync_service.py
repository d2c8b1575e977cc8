"""Keeps the file mirror in step with the store and hands it to git."""

import logging
from typing import Dict, List, Optional

from textoc.exceptions import ErrorCode, NotFoundError, StorageError
from textoc.models.schema import Note, NoteFileMetadata, SyncResult, compute_content_hash
from textoc.observability import timed_operation, traced
from textoc.services.git_sync_service import GitSyncService
from textoc.storage import Store
from textoc.storage.markdown_mirror import NoteFileMirror

logger = logging.getLogger(__name__)


class FileSyncService:
    """Store to mirror to git coordination.

    The store is the source of truth. Mirror files are regenerated from it
    and never read back into it.

    Args:
        store: Repository bundle to read notes, notebooks and tags from.
        mirror: Target directory writer.
        git_sync: Optional git service; without it ``sync()`` only mirrors.
    """

    def __init__(
        self,
        store: Store,
        mirror: NoteFileMirror,
        git_sync: Optional[GitSyncService] = None,
    ) -> None:
        self.store = store
        self.mirror = mirror
        self.git_sync = git_sync

    def _metadata_for(
        self,
        note: Note,
        notebook_names: Dict[str, str],
        tag_names: List[str],
    ) -> NoteFileMetadata:
        return NoteFileMetadata(
            id=note.id,
            title=note.title,
            created_at=note.created_at,
            updated_at=note.updated_at,
            notebook=notebook_names.get(note.notebook_id) if note.notebook_id else None,
            tags=tag_names,
            hash=compute_content_hash(note.title, note.content),
        )

    def _write(self, note: Note, notebook_names: Dict[str, str], tag_names: List[str]) -> str:
        metadata = self._metadata_for(note, notebook_names, tag_names)
        self.mirror.write_note_file(metadata, note.content)
        if note.content_hash != metadata.hash:
            self.store.notes.set_content_hash(note.id, metadata.hash)
        return metadata.hash

    def save_note(self, note_id: str) -> str:
        """Write one note's mirror file and record its hash on the row.

        Returns:
            The content hash written to the file header.

        Raises:
            NotFoundError: If the note does not exist.
            StorageError: If the file cannot be written.
        """
        note = self.store.notes.get_note(note_id)
        if note is None:
            raise NotFoundError("Note", note_id, code=ErrorCode.NOTE_NOT_FOUND)
        notebook_names = {nb.id: nb.name for nb in self.store.notebooks.list_notebooks()}
        tag_names = [tag.name for tag in self.store.tags.list_tags_for_note(note_id)]
        return self._write(note, notebook_names, tag_names)

    def remove_note(self, note_id: str) -> bool:
        """Delete a note's mirror file; False when there was none."""
        return self.mirror.delete_note_file(note_id)

    def mirror_all(self) -> int:
        """Rewrite every note file and delete files of notes that no longer exist.

        Returns:
            Number of notes written.
        """
        with timed_operation("mirror_all") as op:
            notes = self.store.notes.list_notes()
            notebook_names = {nb.id: nb.name for nb in self.store.notebooks.list_notebooks()}
            tags_by_id = {tag.id: tag.name for tag in self.store.tags.list_tags()}
            tag_names: Dict[str, List[str]] = {}
            for assoc in self.store.tags.list_all_note_tag_associations():
                tag_names.setdefault(assoc.note_id, []).append(tags_by_id[assoc.tag_id])

            live_ids = set()
            for note in notes:
                self._write(note, notebook_names, sorted(tag_names.get(note.id, [])))
                live_ids.add(note.id)

            orphans = [nid for nid in self.mirror.list_note_ids() if nid not in live_ids]
            for orphan in orphans:
                self.mirror.delete_note_file(orphan)
            if orphans:
                logger.info(f"Removed {len(orphans)} orphaned mirror file(s)")
            op["mirrored"] = len(notes)
            op["orphans"] = len(orphans)
            return len(notes)

    @traced("detect_drift")
    def detect_drift(self) -> List[str]:
        """IDs of notes whose mirror file is missing or stale.

        A note has drifted when its current title and body no longer hash
        to the recorded ``content_hash``, or when the file is absent or
        carries a different hash.
        """
        drifted = []
        for note in self.store.notes.list_notes():
            current = compute_content_hash(note.title, note.content)
            if note.content_hash != current:
                drifted.append(note.id)
                continue
            try:
                parsed = self.mirror.read_note_file(note.id)
            except StorageError as e:
                logger.warning(f"Unreadable mirror file for {note.id}: {e}")
                drifted.append(note.id)
                continue
            if parsed is None or parsed[0].hash != note.content_hash:
                drifted.append(note.id)
        return drifted

    def sync(self) -> SyncResult:
        """Mirror everything, then run git sync when configured. Never raises."""
        try:
            mirrored = self.mirror_all()
        except Exception as e:
            logger.error(f"Mirror failed, skipping git sync: {e}")
            return SyncResult(success=False, error=f"mirror failed: {e}")
        if self.git_sync is None:
            return SyncResult(success=True, mirrored=mirrored)
        result = self.git_sync.sync()
        return result.model_copy(update={"mirrored": mirrored})
