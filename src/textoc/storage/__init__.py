"""Storage layer: relational store, file mirror and git."""

from dataclasses import dataclass
from typing import Optional

from textoc.storage.connection import StoreConnection
from textoc.storage.note_repository import NoteRepository
from textoc.storage.notebook_repository import NotebookRepository
from textoc.storage.tag_repository import TagRepository


@dataclass
class Store:
    """The three repositories sharing one connection."""

    notes: NoteRepository
    notebooks: NotebookRepository
    tags: TagRepository

    @classmethod
    def from_connection(cls, connection: Optional[StoreConnection] = None) -> "Store":
        connection = connection or StoreConnection()
        return cls(
            notes=NoteRepository(connection),
            notebooks=NotebookRepository(connection),
            tags=TagRepository(connection),
        )


__all__ = [
    "NoteRepository",
    "NotebookRepository",
    "Store",
    "StoreConnection",
    "TagRepository",
]
