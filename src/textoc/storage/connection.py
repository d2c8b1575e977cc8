"""Owned handle to the SQLite store.

The engine is opened lazily on first use and memoized for the lifetime of
the handle. Two threads racing on the first access collapse to one engine.
"""
import logging
import threading
from typing import Optional

from sqlalchemy.engine import Engine

from textoc.config import config
from textoc.models.db_models import create_store_engine, get_session_factory, init_db

logger = logging.getLogger(__name__)


class StoreConnection:
    """Lazily initialized, injectable store connection."""

    def __init__(self, db_url: Optional[str] = None):
        """Initialize the handle without touching the database.

        Args:
            db_url: SQLAlchemy URL. Defaults to the configured SQLite file.
        """
        self._db_url = db_url
        self._engine: Optional[Engine] = None
        self._session_factory = None
        self._init_lock = threading.Lock()

    @property
    def db_url(self) -> str:
        if self._db_url is None:
            self._db_url = config.get_db_url()
        return self._db_url

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        """The engine, created and schema-initialized on first access."""
        engine = self._engine
        if engine is not None:
            return engine
        with self._init_lock:
            # Another caller may have won while we waited for the lock
            if self._engine is None:
                engine = create_store_engine(self.db_url)
                try:
                    init_db(engine)
                except Exception:
                    engine.dispose()
                    raise
                self._session_factory = get_session_factory(engine)
                self._engine = engine
                logger.info(f"Opened store: {self.db_url}")
            return self._engine

    def session(self):
        """Open a new ORM session bound to the shared engine."""
        if self._session_factory is None:
            _ = self.engine
        return self._session_factory()

    def dispose(self) -> None:
        """Close pooled connections; the next access reopens the store."""
        with self._init_lock:
            if self._engine is not None:
                self._engine.dispose()
                logger.debug(f"Closed store: {self.db_url}")
            self._engine = None
            self._session_factory = None
