"""Logging configuration for image_uploader.

Provides centralized logging setup with proper formatting,
rotation, level management, and unified logger naming.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
import threading
from pathlib import Path
from typing import Optional, Union

ROOT_LOGGER_NAME = "image_uploader"
DISABLED_ENV = "IMAGE_UPLOADER_LOGGING_DISABLED"


def _normalize_logger_name(name: Optional[str]) -> Optional[str]:
    """Return a clean logger name without forcing a package prefix."""

    if name is None:
        return None

    normalized = name.strip().lstrip(".")
    return normalized or None


class LogConfig:
    """Centralized logging configuration."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    DEFAULT_LEVEL = INFO
    DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

    LOG_DIR = Path.cwd() / "image_uploader_logs"
    LOG_FILE = "image_uploader.log"
    MAX_BYTES = 10 * 1024 * 1024
    BACKUP_COUNT = 5

    _initialised = False
    _init_lock = threading.Lock()
    _file_handler: Optional[logging.handlers.RotatingFileHandler] = None

    @classmethod
    def _resolve_level(cls, level: Optional[Union[str, int]]) -> Optional[int]:
        if level is None:
            return cls.DEFAULT_LEVEL
        if isinstance(level, int):
            return level
        text = str(level).strip().upper()
        if not text:
            return cls.DEFAULT_LEVEL
        if text in {"OFF", "NONE", "DISABLED", "DISABLE"}:
            return None
        mapping = {
            "DEBUG": logging.DEBUG,
            "INFO": logging.INFO,
            "WARN": logging.WARNING,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR,
            "CRITICAL": logging.CRITICAL,
        }
        return mapping.get(text, cls.DEFAULT_LEVEL)

    @classmethod
    def setup_logging(
        cls,
        level: Optional[Union[str, int]] = None,
        log_file: Union[bool, str, Path] = False,
        console: bool = True,
        format_string: Optional[str] = None,
        date_format: Optional[str] = None,
    ) -> None:
        """Setup logging for the ``image_uploader`` logger hierarchy.

        The root logger is never touched, so a host application keeps full
        control of its own handlers; our records still propagate to it.

        Args:
            level: Level name or number. ``"OFF"`` silences the package.
            log_file: ``True`` for the default rotating file, a path for a
                specific file, ``False`` to log to the console only.
            console: Attach a stdout handler.
            format_string: Override for :attr:`DEFAULT_FORMAT`.
            date_format: Override for :attr:`DEFAULT_DATE_FORMAT`.
        """
        with cls._init_lock:
            if cls._initialised:
                return

            if level is None and os.environ.get(DISABLED_ENV) == "1":
                level = logging.CRITICAL

            resolved_level = cls._resolve_level(level)
            format_string = format_string or cls.DEFAULT_FORMAT
            date_format = date_format or cls.DEFAULT_DATE_FORMAT

            formatter = logging.Formatter(format_string, date_format)

            pkg_logger = logging.getLogger(ROOT_LOGGER_NAME)
            pkg_logger.setLevel(resolved_level or logging.CRITICAL)
            pkg_logger.handlers.clear()
            pkg_logger.propagate = True
            cls._file_handler = None

            if resolved_level is None:
                pkg_logger.disabled = True
                cls._initialised = True
                return

            if console:
                console_handler = logging.StreamHandler(sys.stdout)
                console_handler.setLevel(resolved_level)
                console_handler.setFormatter(formatter)
                pkg_logger.addHandler(console_handler)

            log_path = None
            requested_path: Optional[Path] = None
            if isinstance(log_file, (str, Path)):
                requested_path = Path(log_file)

            if log_file:
                try:
                    candidate = requested_path or (cls.LOG_DIR / cls.LOG_FILE)
                    candidate.parent.mkdir(parents=True, exist_ok=True)
                    file_handler = logging.handlers.RotatingFileHandler(
                        candidate,
                        maxBytes=cls.MAX_BYTES,
                        backupCount=cls.BACKUP_COUNT,
                        encoding="utf-8",
                    )
                    file_handler.setLevel(resolved_level)
                    file_handler.setFormatter(formatter)
                    pkg_logger.addHandler(file_handler)
                    cls._file_handler = file_handler
                    log_path = candidate
                except OSError as exc:
                    pkg_logger.warning(
                        "image_uploader.logging file handler disabled: %s", exc
                    )

            cls._configure_module_loggers()

            pkg_logger.debug("image_uploader logging initialized")
            pkg_logger.debug("Log level: %s", logging.getLevelName(resolved_level))
            if log_path:
                pkg_logger.info("Log file: %s", log_path)

            cls._initialised = True

    @classmethod
    def _configure_module_loggers(cls) -> None:
        logging.getLogger("PIL").setLevel(logging.WARNING)
        logging.getLogger("aiohttp").setLevel(logging.WARNING)

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        normalized = _normalize_logger_name(name) or name or ROOT_LOGGER_NAME
        logger = logging.getLogger(normalized)

        if os.environ.get(DISABLED_ENV) == "1":
            logger.setLevel(logging.CRITICAL)
            for handler in logger.handlers:
                handler.setLevel(logging.CRITICAL)

        return logger

    @classmethod
    def set_level(cls, level: int, logger_name: Optional[str] = None) -> None:
        normalized = _normalize_logger_name(logger_name) or ROOT_LOGGER_NAME
        target = logging.getLogger(normalized)
        target.setLevel(level)
        for handler in target.handlers:
            handler.setLevel(level)

    @classmethod
    def reset(cls) -> None:
        """Drop our handlers so the next ``setup_logging`` call starts fresh."""
        with cls._init_lock:
            pkg_logger = logging.getLogger(ROOT_LOGGER_NAME)
            for handler in pkg_logger.handlers[:]:
                pkg_logger.removeHandler(handler)
                handler.close()
            pkg_logger.disabled = False
            cls._file_handler = None
            cls._initialised = False


def get_logger(name: str) -> logging.Logger:
    if not LogConfig._initialised:
        LogConfig.setup_logging()
    return LogConfig.get_logger(name)


def setup_logging(**kwargs) -> None:
    LogConfig.setup_logging(**kwargs)
