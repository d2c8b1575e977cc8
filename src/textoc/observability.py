"""Logging setup and operation timing for textoc.

``configure_logging`` attaches a rotating log file to the ``textoc`` logger
tree. ``timed_operation`` and ``@traced`` wrap store mutations, refreshes
and sync runs: each run gets a short correlation id, START/END debug lines
and an entry in the process-wide ``metrics`` collector.
"""
import functools
import logging
import time
import uuid
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = Path.home() / ".textoc" / "logs"
LOG_FILE_NAME = "textoc.log"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

F = TypeVar("F", bound=Callable[..., Any])


def configure_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: int = logging.INFO,
    max_bytes: int = 2 * 1024 * 1024,
    backup_count: int = 3,
    console: bool = True,
) -> Path:
    """Send ``textoc.*`` records to a size-rotated file, optionally to stderr too.

    Calling it again does not stack handlers.

    Returns:
        The directory holding the log file.
    """
    log_path = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    log_path.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger("textoc")
    package_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers = package_logger.handlers

    if not any(isinstance(h, RotatingFileHandler) for h in handlers):
        file_handler = RotatingFileHandler(
            log_path / LOG_FILE_NAME,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    has_console = any(
        type(h) is logging.StreamHandler for h in package_logger.handlers
    )
    if console and not has_console:
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(level)
        stream_handler.setFormatter(formatter)
        package_logger.addHandler(stream_handler)

    package_logger.debug(f"Logging to {log_path / LOG_FILE_NAME}")
    return log_path


@dataclass
class OperationMetrics:
    """Running totals for one operation name."""

    count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_duration_ms: float = 0.0
    max_duration_ms: float = 0.0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None

    def snapshot(self) -> Dict[str, Any]:
        average = self.total_duration_ms / self.count if self.count else 0.0
        return {
            "count": self.count,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "avg_duration_ms": round(average, 2),
            "max_duration_ms": round(self.max_duration_ms, 2),
            "last_error": self.last_error,
            "last_error_time": (
                self.last_error_time.isoformat() if self.last_error_time else None
            ),
        }


class MetricsCollector:
    """Thread-safe per-operation counters and durations."""

    def __init__(self):
        self._metrics: Dict[str, OperationMetrics] = defaultdict(OperationMetrics)
        self._lock = Lock()

    def record_operation(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error: Optional[str] = None,
    ) -> None:
        with self._lock:
            entry = self._metrics[operation]
            entry.count += 1
            entry.total_duration_ms += duration_ms
            entry.max_duration_ms = max(entry.max_duration_ms, duration_ms)
            if success:
                entry.success_count += 1
                return
            entry.error_count += 1
            entry.last_error = error
            entry.last_error_time = datetime.now(timezone.utc)

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Snapshot keyed by operation name."""
        with self._lock:
            return {name: entry.snapshot() for name, entry in self._metrics.items()}

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()


metrics = MetricsCollector()


@contextmanager
def timed_operation(operation: str, **context) -> Iterator[Dict[str, Any]]:
    """Time a block, log it at debug level and record it in ``metrics``.

    The yielded dict collects result fields for the END line::

        with timed_operation("mirror_all") as op:
            op["mirrored"] = write_everything()

    Exceptions are recorded as failures and re-raised.
    """
    correlation_id = uuid.uuid4().hex[:8]
    fields: Dict[str, Any] = {}
    context_text = ", ".join(f"{k}={v}" for k, v in context.items())
    logger.debug(f"[{correlation_id}] START {operation} ({context_text})")

    started = time.perf_counter()
    error: Optional[str] = None
    try:
        yield fields
    except Exception as e:
        error = str(e)
        raise
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        metrics.record_operation(operation, elapsed_ms, error is None, error)
        status = "OK" if error is None else f"ERROR: {error}"
        result_text = ", ".join(f"{k}={v}" for k, v in fields.items())
        logger.debug(
            f"[{correlation_id}] END {operation} ({elapsed_ms:.2f}ms) "
            f"[{status}] {result_text}"
        )


def traced(operation_name: Optional[str] = None) -> Callable[[F], F]:
    """Decorator form of ``timed_operation``; list results are counted."""

    def decorator(func: F) -> F:
        name = operation_name or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            context = {"note_id": kwargs["note_id"]} if "note_id" in kwargs else {}
            with timed_operation(name, **context) as op:
                result = func(*args, **kwargs)
                if isinstance(result, (list, tuple)):
                    op["result_count"] = len(result)
                return result

        return wrapper  # type: ignore[return-value]

    return decorator
