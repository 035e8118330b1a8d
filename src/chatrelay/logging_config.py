# src/chatrelay/logging_config.py
"""
Unified logging configuration for chatrelay.

Both entry points (the gateway server and the terminal chat client) call
`configure_logging()` once at startup with the `[logging]` section of the
application config.

Key concepts:

    **Display filter**: When ``console_enabled=False`` (the default), the
    console handler still exists but only passes through log records that
    carry ``extra={"display": True}``. This lets operational messages
    ("Gateway listening on ...") reach the user while request chatter stays
    in the log file.

    **File rotation**: ``file_mode="single"`` uses a ``RotatingFileHandler``.
    The default ``file_mode="per_run"`` creates a new timestamped file for
    each invocation.

    **structlog**: configured to render through the stdlib handlers above,
    so request-scoped context bound by the API middleware ends up in the
    same files and console stream.

Usage:
    from chatrelay.logging_config import configure_logging, log_display

    configure_logging(app_name="chatrelay-gateway", config=app_config.logging)
    log_display(logger, logging.INFO, "Gateway listening on %s:%d", host, port)
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

import structlog

DEFAULT_LOGGING_CONFIG: dict[str, Any] = {
    "console_enabled": False,
    "console_level": "WARNING",
    "console_format": "%(levelname)s - %(message)s",
    "file_enabled": True,
    "file_level": "DEBUG",
    "file_directory": "~/.local/share/chatrelay/logs",
    "file_mode": "per_run",
    "file_name_pattern": "{app}_{timestamp:%Y%m%d_%H%M%S}.log",
    "file_single_name": "{app}.log",
    "file_format": "%(asctime)s [%(levelname)-8s] %(name)-30s - %(message)s (%(filename)s:%(lineno)d)",
    "rotation_max_bytes": 10 * 1024 * 1024,  # 10 MB
    "rotation_backup_count": 5,
    "display_min_level": "INFO",
    "components": {
        "chatrelay": "INFO",
        "uvicorn": "INFO",
        "httpx": "WARNING",
        "httpcore": "WARNING",
        "openai": "WARNING",
        "asyncio": "WARNING",
    },
}


def _resolve_level(value: str | int, default: int) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).upper())
    return level if isinstance(level, int) else default


class DisplayFilter(logging.Filter):
    """Controls which log records pass through to the console handler.

    When console output is globally enabled (``-v``), everything passes and
    the handler's own level does the filtering. Otherwise only records with
    ``record.display = True`` at or above ``display_min_level`` pass.
    """

    def __init__(
        self,
        console_globally_enabled: bool = False,
        display_min_level: int = logging.INFO,
    ) -> None:
        super().__init__()
        self.console_globally_enabled = console_globally_enabled
        self.display_min_level = display_min_level

    def filter(self, record: logging.LogRecord) -> bool:
        if self.console_globally_enabled:
            return True
        if getattr(record, "display", False):
            return record.levelno >= self.display_min_level
        return False


class UnifiedLoggingManager:
    """
    Singleton manager for logging configuration.

    Ensures logging is only configured once per process and allows the
    console level to be adjusted at runtime (e.g. by the CLI's -v flag).
    """

    _instance: Optional["UnifiedLoggingManager"] = None
    _configured: bool = False
    _log_file_path: Path | None = None
    _console_handler: logging.Handler | None = None
    _file_handler: logging.Handler | None = None
    _display_filter: DisplayFilter | None = None

    def __new__(cls) -> "UnifiedLoggingManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def get_instance(cls) -> "UnifiedLoggingManager":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def is_configured(cls) -> bool:
        return cls._configured

    @classmethod
    def get_log_file_path(cls) -> Path | None:
        return cls._log_file_path

    def configure(
        self,
        app_name: str = "chatrelay",
        config: dict[str, Any] | None = None,
        force_reconfigure: bool = False,
    ) -> Path | None:
        """
        Configure logging for the process.

        Args:
            app_name: Name of the application (used in the log filename)
            config: The `[logging]` config section; missing keys use defaults
            force_reconfigure: If True, reconfigure even if already configured

        Returns:
            Path to the log file, or None when file logging is disabled or failed.
        """
        if UnifiedLoggingManager._configured and not force_reconfigure:
            return UnifiedLoggingManager._log_file_path

        log_config = {**DEFAULT_LOGGING_CONFIG, **(config or {})}

        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()
        root_logger.setLevel(logging.DEBUG)

        console_globally_enabled = bool(log_config.get("console_enabled", False))
        display_min_level = _resolve_level(log_config.get("display_min_level", "INFO"), logging.INFO)
        display_filter = DisplayFilter(
            console_globally_enabled=console_globally_enabled,
            display_min_level=display_min_level,
        )
        console_handler = self._create_console_handler(log_config)
        if not console_globally_enabled:
            # The filter is the only gate in quiet mode.
            console_handler.setLevel(logging.DEBUG)
        console_handler.addFilter(display_filter)
        root_logger.addHandler(console_handler)
        UnifiedLoggingManager._console_handler = console_handler
        UnifiedLoggingManager._display_filter = display_filter

        file_handler, log_file_path = None, None
        if log_config.get("file_enabled", True):
            file_handler, log_file_path = self._create_file_handler(log_config, app_name)
            if file_handler:
                root_logger.addHandler(file_handler)
        UnifiedLoggingManager._file_handler = file_handler
        UnifiedLoggingManager._log_file_path = log_file_path

        components = log_config.get("components") or DEFAULT_LOGGING_CONFIG["components"]
        for component_name, level_str in components.items():
            logging.getLogger(component_name).setLevel(_resolve_level(level_str, logging.INFO))

        configure_structlog()
        UnifiedLoggingManager._configured = True

        if log_file_path:
            logging.getLogger(__name__).debug("Logging configured. Log file: %s", log_file_path)
        return log_file_path

    def _create_console_handler(self, config: dict[str, Any]) -> logging.Handler:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(_resolve_level(config.get("console_level", "WARNING"), logging.WARNING))
        handler.setFormatter(logging.Formatter(config.get("console_format", DEFAULT_LOGGING_CONFIG["console_format"])))
        return handler

    def _create_file_handler(
        self, config: dict[str, Any], app_name: str
    ) -> tuple[logging.Handler | None, Path | None]:
        """Create the file handler in ``per_run`` or ``single`` (rotating) mode."""
        log_dir = Path(os.path.expanduser(config.get("file_directory", DEFAULT_LOGGING_CONFIG["file_directory"])))
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            sys.stderr.write(f"Warning: Cannot create log directory {log_dir}: {e}\n")
            return None, None

        handler: logging.Handler
        if config.get("file_mode", "per_run") == "single":
            try:
                filename = config.get("file_single_name", "{app}.log").format(app=app_name)
            except (KeyError, ValueError):
                filename = f"{app_name}.log"
            log_file_path = log_dir / filename
            try:
                handler = RotatingFileHandler(
                    log_file_path,
                    maxBytes=config.get("rotation_max_bytes", 10 * 1024 * 1024),
                    backupCount=config.get("rotation_backup_count", 5),
                    encoding="utf-8",
                )
            except OSError as e:
                sys.stderr.write(f"Warning: Cannot create log file {log_file_path}: {e}\n")
                return None, None
        else:
            timestamp = datetime.now()
            pattern = config.get("file_name_pattern", DEFAULT_LOGGING_CONFIG["file_name_pattern"])
            try:
                filename = pattern.format(app=app_name, timestamp=timestamp)
            except (KeyError, ValueError):
                filename = f"{app_name}_{timestamp.strftime('%Y%m%d_%H%M%S')}.log"
            log_file_path = log_dir / filename
            try:
                handler = logging.FileHandler(log_file_path, encoding="utf-8")
            except OSError as e:
                sys.stderr.write(f"Warning: Cannot create log file {log_file_path}: {e}\n")
                return None, None

        handler.setLevel(_resolve_level(config.get("file_level", "DEBUG"), logging.DEBUG))
        handler.setFormatter(logging.Formatter(config.get("file_format", DEFAULT_LOGGING_CONFIG["file_format"])))
        return handler, log_file_path

    def set_console_level(self, level: str | int) -> None:
        """Change the console handler's log level at runtime."""
        if UnifiedLoggingManager._console_handler is not None:
            UnifiedLoggingManager._console_handler.setLevel(_resolve_level(level, logging.WARNING))

    def enable_console(self, level: str = "INFO") -> None:
        """Let every record at or above `level` reach the console (verbose mode)."""
        if UnifiedLoggingManager._display_filter is not None:
            UnifiedLoggingManager._display_filter.console_globally_enabled = True
        self.set_console_level(level)


def configure_structlog() -> None:
    """Route structlog events through the stdlib logging handlers."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.KeyValueRenderer(key_order=["event", "request_id"], drop_missing=True),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def configure_logging(
    app_name: str = "chatrelay",
    config: dict[str, Any] | None = None,
    force_reconfigure: bool = False,
) -> Path | None:
    """
    Configure logging for the application. Call early in startup.

    Example:
        configure_logging(
            app_name="chatrelay",
            config={"console_enabled": True, "file_enabled": False},
        )
    """
    return UnifiedLoggingManager.get_instance().configure(
        app_name=app_name,
        config=config,
        force_reconfigure=force_reconfigure,
    )


def log_display(
    logger: logging.Logger,
    level: int,
    msg: str,
    *args: Any,
    **kwargs: Any,
) -> None:
    """Log a message that also appears on the console even in quiet mode.

    Sets ``extra={"display": True}`` (merged with any caller-supplied extra).
    ``display_min_level`` still applies.
    """
    extra = kwargs.pop("extra", None) or {}
    extra["display"] = True
    kwargs["extra"] = extra
    logger.log(level, msg, *args, **kwargs)


def get_log_file_path() -> Path | None:
    """Get the current log file path."""
    return UnifiedLoggingManager.get_log_file_path()


def enable_console_logging(level: str = "INFO") -> None:
    """Switch the console to verbose mode."""
    UnifiedLoggingManager.get_instance().enable_console(level)
