"""
Structured Logging for the Quote Bridge
Rotating file logs plus console output, flushed immediately so a running
service can be followed with tail -f.
"""
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from . import quote_config as cfg


class QuoteLogger:
    """Centralized logging for the Quote Bridge with rotation and formatting"""

    def __init__(self, name="Quote-Bridge", log_dir=None, log_level=None):
        """
        Initialize logger with rotating file handlers

        Args:
            name: Logger name
            log_dir: Directory for log files (default: LOG_DIR)
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        """
        log_level = (log_level or cfg.LOG_LEVEL).upper()
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, log_level, logging.INFO))
        self.logger.propagate = False

        # Clear any existing handlers
        self.logger.handlers.clear()

        log_path = Path(log_dir or cfg.LOG_DIR)
        log_path.mkdir(parents=True, exist_ok=True)

        log_format = logging.Formatter(
            '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # 1. Main rotating file handler
        main_handler = RotatingFileHandler(
            log_path / 'quote_bridge.log',
            maxBytes=cfg.LOG_FILE_MAX_MB * 1024 * 1024,
            backupCount=cfg.LOG_FILE_BACKUP_COUNT,
            encoding='utf-8'
        )
        main_handler.setLevel(logging.DEBUG)
        main_handler.setFormatter(log_format)
        self.logger.addHandler(main_handler)

        # 2. Error-only log file (5MB per file, keep 3 files)
        error_handler = RotatingFileHandler(
            log_path / 'errors.log',
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(log_format)
        self.logger.addHandler(error_handler)

        # 3. Console
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(log_format)
        self.logger.addHandler(console_handler)

    def debug(self, message, component=""):
        self._log(logging.DEBUG, message, component)

    def info(self, message, component=""):
        self._log(logging.INFO, message, component)

    def warning(self, message, component=""):
        self._log(logging.WARNING, message, component)

    def error(self, message, component="", exc_info=False):
        self._log(logging.ERROR, message, component, exc_info=exc_info)

    def _log(self, level, message, component="", exc_info=False):
        """Internal logging method with component prefix"""
        if component:
            message = f"[{component}] {message}"

        self.logger.log(level, message, exc_info=exc_info)

        # Force immediate flush
        for handler in self.logger.handlers:
            handler.flush()

    def log_validation(self, source, positions, error_count, warning_count):
        """Log the outcome of one validation pass"""
        self.info(
            f"{source} - {positions} position(s) validated: "
            f"{error_count} error(s), {warning_count} warning(s)",
            component="Validation"
        )

    def log_api_call(self, method, path, status_code, attempt=1):
        """Log a Lexware API round-trip"""
        level = logging.INFO if 200 <= status_code < 400 else logging.WARNING
        self._log(
            level,
            f"{method} {path} -> {status_code} (attempt {attempt})",
            component="Lexware"
        )


# Global logger instance
_global_logger = None


def get_logger(log_level=None):
    """Get or create global logger instance"""
    global _global_logger
    if _global_logger is None:
        _global_logger = QuoteLogger(log_level=log_level)
    return _global_logger
