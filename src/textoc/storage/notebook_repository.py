"""Repository for notebook storage and retrieval."""
import logging
from typing import List, Optional

from sqlalchemy import delete, literal, select

from textoc.exceptions import ErrorCode, ValidationError
from textoc.models.db_models import DBNote, DBNotebook
from textoc.models.schema import Notebook, ensure_timezone_aware, generate_id, utc_now
from textoc.storage.base import integrity_guard
from textoc.storage.connection import StoreConnection

logger = logging.getLogger(__name__)

# Guards the recursive subtree query against a corrupted (cyclic) table
_MAX_DEPTH = 1000


class NotebookRepository:
    """CRUD access to the ``notebooks`` forest.

    Notebooks reference their parent through ``parent_id``. Reparenting is
    validated here so no write can introduce a cycle.
    """

    def __init__(self, connection: StoreConnection):
        self.connection = connection

    def create_notebook(self, name: str, parent_id: Optional[str] = None) -> Notebook:
        """Create a notebook, optionally nested under ``parent_id``.

        Raises:
            ValidationError: If the parent does not exist.
        """
        now = utc_now()
        with self.connection.session() as session:
            if parent_id is not None and session.get(DBNotebook, parent_id) is None:
                raise ValidationError(
                    f"Parent notebook '{parent_id}' not found",
                    field="parent_id",
                    value=parent_id,
                )
            db_notebook = DBNotebook(
                id=generate_id(),
                name=name,
                parent_id=parent_id,
                created_at=now,
                updated_at=now,
            )
            with integrity_guard(session, "create_notebook"):
                session.add(db_notebook)
                session.commit()
            logger.debug(f"Created notebook {db_notebook.id} ({name})")
            return self._db_to_model(db_notebook)

    def get_notebook(self, notebook_id: str) -> Optional[Notebook]:
        with self.connection.session() as session:
            db_notebook = session.get(DBNotebook, notebook_id)
            return self._db_to_model(db_notebook) if db_notebook else None

    def list_notebooks(self) -> List[Notebook]:
        """All notebooks in creation order."""
        with self.connection.session() as session:
            rows = session.scalars(
                select(DBNotebook).order_by(DBNotebook.created_at.asc(), DBNotebook.id.asc())
            ).all()
            return [self._db_to_model(row) for row in rows]

    def update_notebook(self, notebook_id: str, name: str) -> Optional[Notebook]:
        """Rename a notebook. Returns None if it does not exist."""
        with self.connection.session() as session:
            db_notebook = session.get(DBNotebook, notebook_id)
            if db_notebook is None:
                return None
            db_notebook.name = name
            db_notebook.updated_at = utc_now()
            session.commit()
            return self._db_to_model(db_notebook)

    def move_notebook(
        self, notebook_id: str, new_parent_id: Optional[str]
    ) -> Optional[Notebook]:
        """Reparent a notebook (``None`` makes it a root).

        Raises:
            ValidationError: On self-parenting, an unknown parent, or a move
                under one of the notebook's own descendants.
        """
        with self.connection.session() as session:
            db_notebook = session.get(DBNotebook, notebook_id)
            if db_notebook is None:
                return None
            if new_parent_id is not None:
                if new_parent_id == notebook_id:
                    raise ValidationError(
                        f"Notebook '{notebook_id}' cannot be its own parent",
                        field="parent_id",
                        code=ErrorCode.NOTEBOOK_CYCLE,
                    )
                parent = session.get(DBNotebook, new_parent_id)
                if parent is None:
                    raise ValidationError(
                        f"Parent notebook '{new_parent_id}' not found",
                        field="parent_id",
                        value=new_parent_id,
                    )
                # Walk up from the new parent; meeting the notebook means a cycle
                visited = {notebook_id}
                current = parent
                while current is not None and current.parent_id:
                    if current.parent_id in visited:
                        raise ValidationError(
                            f"Moving notebook under '{new_parent_id}' would create a cycle",
                            field="parent_id",
                            code=ErrorCode.NOTEBOOK_CYCLE,
                        )
                    visited.add(current.parent_id)
                    current = session.get(DBNotebook, current.parent_id)
            db_notebook.parent_id = new_parent_id
            db_notebook.updated_at = utc_now()
            session.commit()
            return self._db_to_model(db_notebook)

    def descendant_ids(self, notebook_id: str) -> List[str]:
        """IDs of ``notebook_id`` and every notebook below it."""
        with self.connection.session() as session:
            return self._subtree_ids(session, notebook_id)

    def delete_notebook(self, notebook_id: str) -> List[str]:
        """Delete a notebook, its whole subtree, and every note filed in it.

        Notes are deleted rather than left unfiled. The foreign-key cascades
        would do the same; the explicit statements keep the policy visible
        and independent of PRAGMA state.

        Returns:
            IDs of the notes that were deleted (empty for unknown ids).
        """
        with self.connection.session() as session:
            subtree = self._subtree_ids(session, notebook_id)
            if not subtree:
                return []
            note_ids = list(
                session.scalars(select(DBNote.id).where(DBNote.notebook_id.in_(subtree)))
            )
            with integrity_guard(session, "delete_notebook"):
                if note_ids:
                    session.execute(delete(DBNote).where(DBNote.id.in_(note_ids)))
                session.execute(delete(DBNotebook).where(DBNotebook.id.in_(subtree)))
                session.commit()
            logger.info(
                f"Deleted notebook {notebook_id}: {len(subtree)} notebook(s), "
                f"{len(note_ids)} note(s)"
            )
            return note_ids

    @staticmethod
    def _subtree_ids(session, notebook_id: str) -> List[str]:
        tree = (
            select(DBNotebook.id.label("id"), literal(0).label("depth"))
            .where(DBNotebook.id == notebook_id)
            .cte("subtree", recursive=True)
        )
        parent = tree.alias()
        child = DBNotebook.__table__.alias()
        tree = tree.union_all(
            select(child.c.id, parent.c.depth + 1).where(
                child.c.parent_id == parent.c.id,
                parent.c.depth < _MAX_DEPTH,
            )
        )
        rows = session.execute(select(tree.c.id).order_by(tree.c.depth)).all()
        return list(dict.fromkeys(row[0] for row in rows))

    @staticmethod
    def _db_to_model(db_notebook: DBNotebook) -> Notebook:
        """Convert DBNotebook to Notebook model."""
        return Notebook(
            id=db_notebook.id,
            name=db_notebook.name,
            parent_id=db_notebook.parent_id,
            created_at=ensure_timezone_aware(db_notebook.created_at),
            updated_at=ensure_timezone_aware(db_notebook.updated_at),
        )
