"""Logging setup and operation metrics for notekeep.

Commit, save and bulk operations report failure through their return value
rather than by raising, so the tracing helpers here count a ``False`` result
as a failed operation.
"""
import functools
import json
import logging
import os
import time
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = Path.home() / ".notekeep" / "logs"
DEFAULT_METRICS_FILE = Path.home() / ".notekeep" / "metrics.json"
LOG_FILE_NAME = "notekeep.log"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

F = TypeVar('F', bound=Callable[..., Any])


def configure_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: int = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    console: bool = True,
) -> Path:
    """Send the ``notekeep`` logger hierarchy to a rotating log file.

    Calling this twice with the same directory does not add a second file
    handler.

    Returns:
        The log directory.
    """
    log_path = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = log_path / LOG_FILE_NAME

    package_logger = logging.getLogger("notekeep")
    package_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handlers = package_logger.handlers
    if not any(
        isinstance(h, RotatingFileHandler) and h.baseFilename == os.path.abspath(log_file)
        for h in handlers
    ):
        file_handler = RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    # RotatingFileHandler is itself a StreamHandler
    if console and not any(type(h) is logging.StreamHandler for h in handlers):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        package_logger.addHandler(console_handler)

    package_logger.info(f"Logging to {log_file}")
    return log_path


@dataclass
class OperationStats:
    """Running totals for one operation name."""
    calls: int = 0
    failures: int = 0
    total_ms: float = 0.0
    last_error: Optional[str] = None

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.calls if self.calls else 0.0


class MetricsCollector:
    """Thread-safe per-operation counters, persisted as JSON between runs."""

    def __init__(self, metrics_file: Optional[Union[str, Path]] = None):
        self._stats: Dict[str, OperationStats] = {}
        self._lock = Lock()
        self.metrics_file = Path(metrics_file) if metrics_file else DEFAULT_METRICS_FILE

    def record_operation(
        self, operation: str, duration_ms: float, success: bool, error: Optional[str] = None
    ) -> None:
        with self._lock:
            stats = self._stats.setdefault(operation, OperationStats())
            stats.calls += 1
            stats.total_ms += duration_ms
            if not success:
                stats.failures += 1
                stats.last_error = error

    def snapshot(self) -> Dict[str, OperationStats]:
        """Return a copy of the current totals keyed by operation name."""
        with self._lock:
            return {name: OperationStats(**asdict(s)) for name, s in self._stats.items()}

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()

    def load_metrics(self) -> bool:
        """Add the totals saved by a previous run.

        Returns:
            False when there is no readable metrics file.
        """
        try:
            with open(self.metrics_file, "r", encoding="utf-8") as f:
                saved = json.load(f)
            loaded = {name: OperationStats(**data) for name, data in saved.items()}
        except FileNotFoundError:
            return False
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable metrics file {self.metrics_file}: {e}")
            return False

        with self._lock:
            for name, previous in loaded.items():
                stats = self._stats.setdefault(name, OperationStats())
                stats.calls += previous.calls
                stats.failures += previous.failures
                stats.total_ms += previous.total_ms
                stats.last_error = stats.last_error or previous.last_error
        return True

    def save_metrics(self) -> bool:
        """Write the totals to ``metrics_file`` through a temporary file."""
        with self._lock:
            data = {name: asdict(s) for name, s in self._stats.items()}
        temp_file = self.metrics_file.with_suffix(".tmp")
        try:
            self.metrics_file.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            temp_file.replace(self.metrics_file)
        except OSError as e:
            logger.error(f"Failed to save metrics to {self.metrics_file}: {e}")
            return False
        return True


# Process-wide collector fed by timed_operation and traced
metrics = MetricsCollector()


@contextmanager
def timed_operation(operation: str, **context):
    """Time a block, log it under a short correlation id and record metrics.

    The yielded dict is logged with the END line. Setting
    ``op['success'] = False`` records a failure without raising.
    """
    correlation_id = uuid.uuid4().hex[:8]
    details = ', '.join(f'{k}={v}' for k, v in context.items())
    logger.debug(f"[{correlation_id}] START {operation} ({details})")

    op: Dict[str, Any] = {}
    error = None
    start = time.perf_counter()
    try:
        yield op
    except Exception as e:
        error = str(e)
        raise
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        if error is None and op.get('success') is False:
            error = f"{operation} returned False"
        metrics.record_operation(operation, duration_ms, error is None, error)

        result = ', '.join(f'{k}={v}' for k, v in op.items() if k != 'success')
        status = 'OK' if error is None else f'ERROR: {error}'
        logger.debug(
            f"[{correlation_id}] END {operation} ({duration_ms:.2f}ms) [{status}] {result}"
        )


def traced(operation_name: Optional[str] = None) -> Callable[[F], F]:
    """Run the decorated function inside :func:`timed_operation`.

    ``note_id``, ``folder_id`` and ``dest_folder_id`` keyword arguments are
    logged as context. A bool result decides success.
    """
    def decorator(func: F) -> F:
        op_name = operation_name or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            context = {
                key: kwargs[key]
                for key in ('note_id', 'folder_id', 'dest_folder_id')
                if key in kwargs
            }
            with timed_operation(op_name, **context) as op:
                result = func(*args, **kwargs)
                if isinstance(result, bool):
                    op['success'] = result
                elif result is not None:
                    op['result'] = result
                return result

        return wrapper  # type: ignore
    return decorator
