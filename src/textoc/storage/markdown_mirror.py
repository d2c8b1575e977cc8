"""Plain-file mirror of the note store.

Every note is written to ``<notes_dir>/<id>.md`` as a YAML frontmatter
header followed by the raw body, so the directory can be versioned with
git and read without the application.
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

from frontmatter.default_handlers import YAMLHandler

from textoc.exceptions import ErrorCode, StorageError
from textoc.models.schema import NoteFileMetadata, validate_safe_path_component

logger = logging.getLogger(__name__)

DELIMITER = "---"


class NoteFileMirror:
    """Reads and writes note files in a single directory.

    Args:
        notes_dir: Directory holding the mirror. Created on first use.
    """

    def __init__(self, notes_dir: Path) -> None:
        self._notes_dir = Path(notes_dir)
        self._handler = YAMLHandler()

    def notes_directory(self) -> Path:
        """Resolve the mirror directory, creating it if needed."""
        path = self._notes_dir.expanduser().resolve()
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Cannot create notes directory {path}: {e}",
                operation="notes_directory",
                path=str(path),
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e
        return path

    def path_for(self, note_id: str) -> Path:
        validate_safe_path_component(note_id, "Note ID")
        return self.notes_directory() / f"{note_id}.md"

    def render(self, metadata: NoteFileMetadata, body: str) -> str:
        """Render the header and body exactly as they are stored on disk."""
        header = {
            "id": metadata.id,
            "title": metadata.title,
            "created_at": metadata.created_at.isoformat(),
            "updated_at": metadata.updated_at.isoformat(),
            "notebook": metadata.notebook,
            "tags": list(metadata.tags),
            "hash": metadata.hash,
        }
        yaml_text = self._handler.export(header, sort_keys=False)
        return f"{DELIMITER}\n{yaml_text}\n{DELIMITER}\n\n{body}"

    def split(self, text: str) -> Tuple[dict, str]:
        """Separate a rendered file into its header mapping and raw body.

        The body comes back unchanged, leading and trailing blank lines
        included.
        """
        opening = f"{DELIMITER}\n"
        closing = f"\n{DELIMITER}\n"
        if not text.startswith(opening):
            raise ValueError("missing frontmatter header")
        end = text.find(closing, len(opening) - 1)
        if end == -1:
            raise ValueError("unterminated frontmatter header")
        header = self._handler.load(text[len(opening):end + 1])
        if not isinstance(header, dict):
            raise ValueError("frontmatter header is not a mapping")
        body = text[end + len(closing):]
        if body.startswith("\n"):
            body = body[1:]
        return header, body

    def write_note_file(self, metadata: NoteFileMetadata, body: str) -> Path:
        """Atomically write ``metadata`` and ``body`` to ``{id}.md``.

        The file is written to a temporary sibling and moved into place, so
        readers never observe a half-written note.

        Returns:
            Path of the written file.

        Raises:
            StorageError: If the file cannot be written.
        """
        target = self.path_for(metadata.id)
        text = self.render(metadata, body)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{metadata.id}.", suffix=".tmp", dir=str(target.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(text)
            os.replace(tmp_name, target)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise StorageError(
                f"Failed to write note file {target}: {e}",
                operation="write_note_file",
                path=str(target),
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e
        logger.debug(f"Mirrored note {metadata.id} to {target}")
        return target

    def read_note_file(self, note_id: str) -> Optional[Tuple[NoteFileMetadata, str]]:
        """Parse a mirrored file back into its header and body.

        Returns:
            ``(metadata, body)``, or None when the file does not exist.

        Raises:
            StorageError: If the file exists but cannot be parsed.
        """
        path = self.path_for(note_id)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                header, body = self.split(f.read())
            metadata = NoteFileMetadata(**header)
        except Exception as e:
            raise StorageError(
                f"Failed to read note file {path}: {e}",
                operation="read_note_file",
                path=str(path),
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=e,
            ) from e
        return metadata, body

    def delete_note_file(self, note_id: str) -> bool:
        """Remove a note file. Returns False when there was nothing to remove."""
        path = self.path_for(note_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(
                f"Failed to delete note file {path}: {e}",
                operation="delete_note_file",
                path=str(path),
                code=ErrorCode.STORAGE_DELETE_FAILED,
                original_error=e,
            ) from e
        logger.debug(f"Removed mirror file {path}")
        return True

    def list_note_ids(self) -> List[str]:
        """IDs of every mirrored note, sorted."""
        directory = self.notes_directory()
        return sorted(
            p.stem for p in directory.glob("*.md") if not p.name.startswith(".")
        )
