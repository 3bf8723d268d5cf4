"""
Structured logging for store operations.

The store reports what it did (opened, applied schema, saved, searched).
Failures are never logged here; they are raised to the caller.
"""

import logging
from typing import Any, Dict, Optional

from ..core.config import LOG_LEVEL, debug_enabled


def resolve_level(name: str = LOG_LEVEL) -> int:
    """Numeric level for a level name; unknown names fall back to INFO."""
    if debug_enabled():
        return logging.DEBUG
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


class StructuredLogger:
    """Structured logger for store, schema and vector operations."""

    def __init__(self, name: str = "healthanalyzer"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(resolve_level())

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Optional[Dict[str, Any]] = None,
                      level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_store_operation(self, operation: str, record_id: str, details: Optional[Dict[str, Any]] = None,
                            status: str = "success"):
        """Log a relational write or read."""
        log_details = {"record_id": record_id}
        if details:
            log_details.update(details)

        self.log_operation(f"store.{operation}", status, log_details, level=logging.DEBUG)

    def log_vector_operation(self, operation: str, subject: str, details: Optional[Dict[str, Any]] = None,
                             status: str = "success"):
        """Log a vector index operation."""
        log_details = {"subject": subject}
        if details:
            log_details.update(details)

        self.log_operation(f"vector.{operation}", status, log_details, level=logging.DEBUG)


# Global logger instance
logger = StructuredLogger()
