"""SQLAlchemy database models for textoc."""
import datetime
import logging

from sqlalchemy import (Column, DateTime, ForeignKey, String, Table, Text,
                        create_engine, event, text)
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from textoc.exceptions import ErrorCode, StorageError

logger = logging.getLogger(__name__)

Base = declarative_base()


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


# Association table for tags and notes
note_tags = Table(
    "note_tags",
    Base.metadata,
    Column(
        "note_id", String(36), ForeignKey("notes.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "tag_id", String(36), ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True, index=True,
    ),
)


class DBNotebook(Base):
    """Database model for a notebook."""
    __tablename__ = "notebooks"
    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    parent_id = Column(
        String(36), ForeignKey("notebooks.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, nullable=False)

    def __repr__(self) -> str:
        return f"<Notebook(id='{self.id}', name='{self.name}')>"


class DBNote(Base):
    """Database model for a note."""
    __tablename__ = "notes"
    id = Column(String(36), primary_key=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False, default="")
    notebook_id = Column(
        String(36), ForeignKey("notebooks.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, nullable=False, index=True)
    content_hash = Column(String(64), nullable=True)

    # passive_deletes leaves association cleanup to the ON DELETE CASCADE rule
    tags = relationship(
        "DBTag", secondary=note_tags, back_populates="notes", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Note(id='{self.id}', title='{self.title}')>"


class DBTag(Base):
    """Database model for a tag."""
    __tablename__ = "tags"
    id = Column(String(36), primary_key=True)
    name = Column(String(255), unique=True, nullable=False)

    notes = relationship(
        "DBNote", secondary=note_tags, back_populates="tags", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Tag(id='{self.id}', name='{self.name}')>"


# Additive column migrations for databases created by older versions.
# SQLite has no ADD COLUMN IF NOT EXISTS, so "duplicate column" means the
# migration already ran.
SCHEMA_MIGRATIONS = (
    "ALTER TABLE notebooks ADD COLUMN parent_id VARCHAR(36) "
    "REFERENCES notebooks(id) ON DELETE CASCADE",
    "ALTER TABLE notes ADD COLUMN content_hash VARCHAR(64)",
)


def create_store_engine(db_url: str):
    """Create an engine with foreign keys enforced on every connection.

    In-memory URLs use StaticPool so every thread sees the same database.
    """
    in_memory = db_url in ("sqlite://", "sqlite:///:memory:")
    engine_kwargs = {"connect_args": {"check_same_thread": False}}
    if in_memory:
        engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["pool_pre_ping"] = True
    engine = create_engine(db_url, **engine_kwargs)

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        # Cascades on notebooks, notes and note_tags depend on this
        cursor.execute("PRAGMA foreign_keys=ON")
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    return engine


def init_db(engine) -> None:
    """Create tables if absent and apply pending column migrations."""
    Base.metadata.create_all(engine)
    run_migrations(engine)


def run_migrations(engine) -> int:
    """Apply SCHEMA_MIGRATIONS, ignoring ones that were already applied.

    Returns:
        Number of migrations that changed the schema.
    """
    applied = 0
    for statement in SCHEMA_MIGRATIONS:
        try:
            with engine.begin() as conn:
                conn.execute(text(statement))
            applied += 1
            logger.info(f"Applied schema migration: {statement}")
        except OperationalError as e:
            if "duplicate column" in str(e).lower():
                continue
            raise StorageError(
                "Schema migration failed",
                operation="migrate",
                code=ErrorCode.SCHEMA_MIGRATION_FAILED,
                original_error=e,
            ) from e
    return applied


def get_session_factory(engine):
    """Get a session factory for the database."""
    return sessionmaker(bind=engine, expire_on_commit=False)
