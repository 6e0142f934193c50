"""
Structured logging system for agencyrank.

Provides centralized logging with console and file outputs, plus metrics
tracking for monitoring upstream health during a ranking run.
"""

import logging
import sys
import threading
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for monitoring metric fetches across a run.
    """

    def __init__(
        self,
        name: str = "agencyrank",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = False,
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
        self.logger.handlers.clear()  # Remove existing handlers

        # Fetches run on worker threads, so counters are guarded
        self._lock = threading.Lock()
        self.metrics = self._empty_metrics()

        if enable_console:
            # stderr keeps stdout clean for --json output
            console_handler = logging.StreamHandler(sys.stderr)
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

            log_file = log_dir / f"agencyrank_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    @staticmethod
    def _empty_metrics() -> dict:
        return {
            "api_calls": 0,
            "fetches_attempted": 0,
            "fetches_succeeded": 0,
            "fetches_degraded": 0,
            "rate_limit_retries": 0,
            "fallback_runs": 0,
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

    def record_api_call(self):
        """Increment API call counter."""
        with self._lock:
            self.metrics["api_calls"] += 1

    def record_fetch_attempt(self):
        with self._lock:
            self.metrics["fetches_attempted"] += 1

    def record_fetch_success(self):
        with self._lock:
            self.metrics["fetches_succeeded"] += 1

    def record_fetch_degraded(self, error_type: str):
        """Record a metric that was zero-filled after a failed fetch."""
        with self._lock:
            self.metrics["fetches_degraded"] += 1
            errors = self.metrics["errors_by_type"]
            errors[error_type] = errors.get(error_type, 0) + 1

    def record_rate_limit_retry(self):
        with self._lock:
            self.metrics["rate_limit_retries"] += 1

    def record_fallback(self):
        with self._lock:
            self.metrics["fallback_runs"] += 1

    def get_metrics(self) -> dict:
        """Return a snapshot of current metrics with the degraded rate."""
        with self._lock:
            metrics_copy = dict(self.metrics)
            metrics_copy["errors_by_type"] = dict(self.metrics["errors_by_type"])

        attempted = metrics_copy["fetches_attempted"]
        metrics_copy["degraded_rate"] = (
            round(metrics_copy["fetches_degraded"] / attempted, 3) if attempted else 0.0
        )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Ranking Run Metrics ===")
        self.info(f"API Calls: {metrics['api_calls']}")
        self.info(
            f"Fetches: {metrics['fetches_succeeded']}/{metrics['fetches_attempted']} "
            f"({metrics['fetches_degraded']} degraded)"
        )
        self.info(f"Rate limit retries: {metrics['rate_limit_retries']}")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "agencyrank",
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
