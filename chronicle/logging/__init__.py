"""
Logging infrastructure for chronicle.

Provides component-bound loguru logging and a timing decorator.
"""

from .logger import (
    ChronicleLogger,
    get_chronicle_logger,
    initialize_logging,
    get_logger_instance,
    log_history_operation,
)

from .decorators import performance_monitor

__all__ = [
    # Logger
    "ChronicleLogger",
    "get_chronicle_logger",
    "initialize_logging",
    "get_logger_instance",
    "log_history_operation",
    # Decorators
    "performance_monitor",
]
