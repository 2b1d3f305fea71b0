"""Logging service"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List

from ..config import settings

LOG_CHANNELS = ("error", "info", "tmdb")


class LogService:
    """Centralized logging service"""

    def __init__(self, log_dir: Path = None):
        self.log_dir = log_dir or settings.LOGS_DIR
        self.log_dir.mkdir(exist_ok=True, parents=True)

        # Setup loggers
        self.error_logger = self._setup_logger("error", logging.ERROR)
        self.info_logger = self._setup_logger("info", logging.INFO)
        self.tmdb_logger = self._setup_logger("tmdb", logging.DEBUG)

    def _setup_logger(self, name: str, level: int) -> logging.Logger:
        """Setup a logger with rotating file handler"""
        logger = logging.getLogger(f"paired_ratings.{name}")
        logger.setLevel(level)

        # Prevent duplicate handlers
        if logger.handlers:
            return logger

        # Create rotating file handler (10MB max, 3 backups)
        log_file = self.log_dir / f"{name}.log"
        handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=3,
        )

        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)

        logger.addHandler(handler)
        return logger

    def error(self, message: str, **kwargs):
        """Log error message"""
        self.error_logger.error(message, extra=kwargs)

    def info(self, message: str, **kwargs):
        """Log info message"""
        self.info_logger.info(message, extra=kwargs)

    def warning(self, message: str, **kwargs):
        """Log a rejected request or other recoverable problem"""
        self.info_logger.warning(message, extra=kwargs)

    def tmdb(self, message: str, **kwargs):
        """Log outbound TMDB traffic"""
        self.tmdb_logger.debug(message, extra=kwargs)

    def get_logs(self, log_type: str = "error", limit: int = 100) -> List[str]:
        """Read last N lines from log file"""
        if log_type not in LOG_CHANNELS:
            raise ValueError(f"unknown log type: {log_type}")

        log_file = self.log_dir / f"{log_type}.log"

        if not log_file.exists():
            return []

        with open(log_file, "r") as f:
            lines = [line.rstrip("\n") for line in f.readlines()]
        return lines[-limit:] if len(lines) > limit else lines


# Global log service instance
log_service = LogService()
