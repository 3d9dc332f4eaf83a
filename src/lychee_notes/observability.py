"""Observability utilities for Lychee Notes.

Provides log configuration with rotation, per-operation timing metrics and
a tracing decorator used by the service layer.
"""
import functools
import json
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
from typing import Any, Callable, Dict, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

# Root of the package logger hierarchy
ROOT_LOGGER_NAME = "lychee_notes"

# Logging format with ISO 8601 timestamps
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Type variable for decorators
F = TypeVar('F', bound=Callable[..., Any])


def configure_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: int = logging.INFO,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB per file
    backup_count: int = 5,
    console: bool = True,
) -> Optional[Path]:
    """Configure logging for the package logger hierarchy.

    Console output goes to stderr, which keeps stdout free for the MCP
    stdio transport. When ``log_dir`` is given, a rotating file handler is
    added as well.

    Args:
        log_dir: Directory for log files. None disables file logging.
        level: Logging level (default: INFO)
        max_bytes: Maximum size per log file before rotation (default: 10 MB)
        backup_count: Number of rotated files to keep (default: 5)
        console: Also log to the console (default: True)

    Returns:
        Path to the log directory, or None when file logging is off.
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    log_path = None
    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        log_file = log_path / "lychee.log"
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        root_logger.info(f"Logging to {log_file} (max {max_bytes} bytes, {backup_count} backups)")

    if console and not any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler)
        for h in root_logger.handlers
    ):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    return log_path


@dataclass
class OperationStats:
    """Running totals for one operation name."""
    calls: int = 0
    errors: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0
    last_error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "count": self.calls,
            "error_count": self.errors,
            "avg_ms": round(self.total_ms / self.calls, 2) if self.calls else 0.0,
            "max_ms": round(self.max_ms, 2),
            "last_error": self.last_error,
        }


class MetricsCollector:
    """Per-operation call counts and latencies, shared by all threads.

    Feeds the ``status`` tool and, when a metrics file is configured, the
    JSON snapshot written at shutdown.
    """

    def __init__(self):
        self._stats: Dict[str, OperationStats] = defaultdict(OperationStats)
        self._lock = Lock()
        self._started = time.monotonic()

    def record(self, operation: str, duration_ms: float, error: Optional[str] = None) -> None:
        """Add one call of ``operation``; ``error`` marks it as failed."""
        with self._lock:
            stats = self._stats[operation]
            stats.calls += 1
            stats.total_ms += duration_ms
            stats.max_ms = max(stats.max_ms, duration_ms)
            if error is not None:
                stats.errors += 1
                stats.last_error = error

    def snapshot(self) -> Dict[str, Any]:
        """Totals plus one entry per operation name, sorted by name."""
        with self._lock:
            operations = {name: self._stats[name].as_dict() for name in sorted(self._stats)}
            return {
                "uptime_seconds": round(time.monotonic() - self._started, 1),
                "total_operations": sum(s.calls for s in self._stats.values()),
                "total_errors": sum(s.errors for s in self._stats.values()),
                "operations": operations,
            }

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()
            self._started = time.monotonic()

    def save_metrics(self, metrics_file: Union[str, Path]) -> bool:
        """Write the snapshot as JSON, replacing ``metrics_file`` in one rename.

        Returns:
            False if the file could not be written.
        """
        metrics_file = Path(metrics_file)
        data = dict(self.snapshot(), saved_at=datetime.now(timezone.utc).isoformat())
        try:
            metrics_file.parent.mkdir(parents=True, exist_ok=True)
            temp_file = metrics_file.with_suffix(".tmp")
            temp_file.write_text(json.dumps(data, indent=2), encoding="utf-8")
            temp_file.replace(metrics_file)
        except OSError as e:
            logger.error(f"Failed to save metrics to {metrics_file}: {e}")
            return False
        return True


metrics = MetricsCollector()


@contextmanager
def timed_operation(operation: str, **context):
    """Time a block and record it under ``operation``.

    Yields a dict the block may fill with result details; they are
    appended to the DEBUG end line together with the correlation id.
    """
    info: Dict[str, Any] = {}
    correlation_id = uuid.uuid4().hex[:8]
    logger.debug(f"[{correlation_id}] {operation} start {context or ''}".rstrip())
    started = time.perf_counter()
    error = None
    try:
        yield info
    except Exception as e:
        error = str(e)
        raise
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        metrics.record(operation, elapsed_ms, error)
        outcome = "ok" if error is None else f"failed: {error}"
        logger.debug(f"[{correlation_id}] {operation} {outcome} in {elapsed_ms:.1f}ms {info or ''}".rstrip())


def traced(operation_name: Optional[str] = None) -> Callable[[F], F]:
    """Run the decorated call inside ``timed_operation``.

    ``note_id`` and ``tag_id`` keyword arguments are logged as context, and
    list results report their length.
    """
    def decorator(func: F) -> F:
        name = operation_name or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            context = {k: kwargs[k] for k in ("note_id", "tag_id") if k in kwargs}
            with timed_operation(name, **context) as info:
                result = func(*args, **kwargs)
                if isinstance(result, list):
                    info["results"] = len(result)
                return result

        return wrapper  # type: ignore
    return decorator
