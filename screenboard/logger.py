"""
Structured logging system for screenboard.

Provides centralized logging with console and file outputs, log levels,
and run metrics for monitoring how healthy the store reads and the
reconciliation passes are.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks fetch and reconciliation metrics across pipeline runs.
    """

    def __init__(
        self,
        name: str = "screenboard",
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
        self._console_handler: Optional[logging.Handler] = None

        self.metrics = {
            "runs_started": 0,
            "runs_completed": 0,
            "runs_failed": 0,
            "records_admitted": 0,
            "records_discarded": 0,
            "fetches_by_collection": {},
            "errors_by_type": {},
        }

        if enable_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)
            self._console_handler = console_handler

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"screenboard_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def set_level(self, level: str):
        """Change the logger and console level; the file handler keeps DEBUG."""
        numeric = getattr(logging, level.upper())
        self.logger.setLevel(numeric)
        if self._console_handler is not None:
            self._console_handler.setLevel(numeric)

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

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_run_start(self):
        self.metrics["runs_started"] += 1

    def record_run_complete(self, admitted: int, discarded: int = 0):
        """Record a published run and how many records it admitted."""
        self.metrics["runs_completed"] += 1
        self.metrics["records_admitted"] += admitted
        self.metrics["records_discarded"] += discarded

    def record_run_failure(self, error_type: str):
        self.metrics["runs_failed"] += 1
        self._count_error(error_type)

    def record_fetch_attempt(self, collection: str):
        """Record a read against one collection."""
        stats = self.metrics["fetches_by_collection"].setdefault(
            collection, {"attempts": 0, "failures": 0}
        )
        stats["attempts"] += 1

    def record_fetch_failure(self, collection: str, error_type: str):
        """Record a failed read against one collection."""
        stats = self.metrics["fetches_by_collection"].setdefault(
            collection, {"attempts": 0, "failures": 0}
        )
        stats["failures"] += 1
        self._count_error(error_type)

    def _count_error(self, error_type: str):
        if error_type not in self.metrics["errors_by_type"]:
            self.metrics["errors_by_type"][error_type] = 0
        self.metrics["errors_by_type"][error_type] += 1

    def get_metrics(self) -> dict:
        """Return current metrics."""
        metrics_copy = self.metrics.copy()
        for collection, stats in metrics_copy["fetches_by_collection"].items():
            if stats["attempts"] > 0:
                stats["failure_rate"] = round(
                    stats["failures"] / stats["attempts"], 3
                )

        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Screening Board Metrics ===")
        self.info(
            f"Runs: {metrics['runs_completed']} completed, "
            f"{metrics['runs_failed']} failed of {metrics['runs_started']}"
        )
        self.info(
            f"Records: {metrics['records_admitted']} admitted, "
            f"{metrics['records_discarded']} discarded"
        )

        if metrics["fetches_by_collection"]:
            self.info("Fetches by collection:")
            for collection, stats in metrics["fetches_by_collection"].items():
                rate = stats.get("failure_rate", 0) * 100
                self.info(f"  {collection}: {stats['failures']}/{stats['attempts']} failed ({rate:.1f}%)")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "screenboard",
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
