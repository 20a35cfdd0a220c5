"""
Structured logging system for jobindex.

Provides centralized logging with console and file outputs, plus
metrics tracking for indexing runs and query traffic.
"""

import json
import logging
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for monitoring index synchronization health.

    Metric updates are guarded by a lock because bulk indexing workers
    report outcomes from their own threads.
    """

    def __init__(
        self,
        name: str = "jobindex",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()

        self._lock = threading.Lock()
        self.metrics = self._empty_metrics()

        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"jobindex_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(threadName)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    @staticmethod
    def _empty_metrics() -> dict:
        return {
            "bulk_requests": 0,
            "documents_indexed": 0,
            "documents_failed": 0,
            "documents_not_attempted": 0,
            "documents_skipped": 0,
            "searches": 0,
            "skill_matches": 0,
            "errors_by_type": {},
        }

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        """Internal logging method with context."""
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_bulk_request(self):
        """Increment bulk request counter."""
        with self._lock:
            self.metrics["bulk_requests"] += 1

    def record_indexed(self, count: int = 1):
        """Record documents acknowledged by the index."""
        with self._lock:
            self.metrics["documents_indexed"] += count

    def record_failed(self, error_type: str, count: int = 1):
        """Record documents rejected by the index."""
        with self._lock:
            self.metrics["documents_failed"] += count
            errors = self.metrics["errors_by_type"]
            errors[error_type] = errors.get(error_type, 0) + count

    def record_not_attempted(self, count: int = 1):
        """Record documents discarded after cancellation."""
        with self._lock:
            self.metrics["documents_not_attempted"] += count

    def record_skipped(self, count: int = 1):
        """Record jobs left out of a pass because of an integrity gap."""
        with self._lock:
            self.metrics["documents_skipped"] += count

    def record_search(self):
        with self._lock:
            self.metrics["searches"] += 1

    def record_skill_match(self):
        with self._lock:
            self.metrics["skill_matches"] += 1

    def get_metrics(self) -> dict:
        """Return a snapshot of current metrics."""
        with self._lock:
            snapshot = dict(self.metrics)
            snapshot["errors_by_type"] = dict(self.metrics["errors_by_type"])

        attempted = snapshot["documents_indexed"] + snapshot["documents_failed"]
        if attempted > 0:
            snapshot["success_rate"] = round(snapshot["documents_indexed"] / attempted, 3)
        return snapshot

    def reset_metrics(self):
        with self._lock:
            self.metrics = self._empty_metrics()

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        indexed = metrics["documents_indexed"]
        attempted = indexed + metrics["documents_failed"]
        overall_rate = 0
        if attempted > 0:
            overall_rate = round(indexed / attempted * 100, 1)

        self.info("=== Indexing Session Metrics ===")
        self.info(f"Bulk requests: {metrics['bulk_requests']}")
        self.info(f"Documents: {indexed}/{attempted} ({overall_rate}% success)")
        if metrics["documents_not_attempted"]:
            self.info(f"Not attempted: {metrics['documents_not_attempted']}")
        if metrics["documents_skipped"]:
            self.info(f"Skipped (integrity gaps): {metrics['documents_skipped']}")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "jobindex",
    level: str = "INFO",
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
