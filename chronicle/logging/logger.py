"""
Logging infrastructure for chronicle.

Provides structured logging with:
- Component-specific log files (history, git, queue, tracker)
- Log rotation and retention
- Structured history operation records
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger

COMPONENTS = ("history", "git", "queue", "tracker")


class ChronicleLogger:
    """
    Logger for chronicle with component-specific sinks.

    Every record is bound to a ``component`` so each subsystem gets its own
    log file in addition to the main one.
    """

    def __init__(
        self,
        log_dir: Optional[Path] = None,
        rotation: str = "100 MB",
        retention: str = "1 month",
        level: str = "INFO",
        format_string: Optional[str] = None,
        enable_file_logging: bool = True,
        enable_console_logging: bool = True,
    ):
        """
        Initialize the chronicle logger.

        Args:
            log_dir: Directory for log files
            rotation: When to rotate log files
            retention: How long to keep old logs
            level: Default log level
            format_string: Custom format string
            enable_file_logging: Whether to log to files
            enable_console_logging: Whether to log to console
        """
        self.log_dir = log_dir or Path("logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.rotation = rotation
        self.retention = retention
        self.level = level

        self.format_string = format_string or (
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{extra[component]}</cyan> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )

        # Remove default handler
        logger.remove()
        logger.configure(extra={"component": "system"})

        if enable_console_logging:
            logger.add(
                sys.stderr,
                format=self.format_string,
                level=level,
                colorize=True,
            )

        if enable_file_logging:
            self._add_file_handlers()

        self.logger = logger.bind(component="system")

    def _add_file_handlers(self) -> None:
        """Add the main log file, one file per component and an error log."""
        logger.add(
            self.log_dir / "chronicle.log",
            format=self.format_string,
            level=self.level,
            rotation=self.rotation,
            retention=self.retention,
            compression="zip",
        )

        for component in COMPONENTS:
            logger.add(
                self.log_dir / f"{component}.log",
                format=self.format_string,
                level="DEBUG",
                rotation=self.rotation,
                retention=self.retention,
                compression="zip",
                filter=lambda record, c=component: record["extra"].get("component") == c,
            )

        logger.add(
            self.log_dir / "errors.log",
            format=self.format_string,
            level="ERROR",
            rotation=self.rotation,
            retention=self.retention,
            compression="zip",
        )

    def get_logger(self, component: str) -> Any:
        """
        Get a logger bound to a specific component.

        Args:
            component: Component name (e.g., "history", "git", "queue")

        Returns:
            Logger instance bound to the component
        """
        return logger.bind(component=component)


def get_chronicle_logger(component: str = "system") -> Any:
    """
    Get a component-specific logger.

    Example:
        >>> log = get_chronicle_logger("history")
        >>> log.info("Recorded version", path="acme/privacy-policy.md")
    """
    return logger.bind(component=component)


def log_history_operation(logger_instance: Any, operation: str, **kwargs: Any) -> None:
    """
    Log a history operation (record, commit, lookup, publish).

    Args:
        logger_instance: Logger to use
        operation: Operation type (e.g., "record", "commit", "publish")
        **kwargs: Additional context
    """
    logger_instance.debug(
        f"History operation: {operation}",
        operation=operation,
        timestamp=datetime.now(timezone.utc).isoformat(),
        **kwargs,
    )


# Global logger instance
_chronicle_logger: Optional[ChronicleLogger] = None


def initialize_logging(
    log_dir: Optional[Path] = None, level: str = "INFO", **kwargs: Any
) -> ChronicleLogger:
    """
    Initialize the chronicle logging system.

    This should be called once at application startup.
    """
    global _chronicle_logger
    _chronicle_logger = ChronicleLogger(log_dir=log_dir, level=level, **kwargs)
    return _chronicle_logger


def get_logger_instance() -> Optional[ChronicleLogger]:
    """Get the global logger instance."""
    return _chronicle_logger
