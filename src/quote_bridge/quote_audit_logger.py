"""
Quote Bridge Audit Logger
Audit trail for every validation and quotation submission.
Structured JSON log format with file rotation.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from . import quote_config as cfg
from .models import BuildResult, SubmissionResult


class QuoteAuditLogger:
    """Per-request audit logging for the Quote Bridge."""

    def __init__(
        self,
        log_dir: Optional[str] = None,
        max_mb: Optional[int] = None,
        backup_count: Optional[int] = None,
    ) -> None:
        self.log_dir = log_dir or cfg.AUDIT_LOG_DIR
        self.max_mb = max_mb or cfg.AUDIT_LOG_MAX_MB
        self.backup_count = backup_count or cfg.AUDIT_LOG_BACKUP_COUNT

        Path(self.log_dir).mkdir(parents=True, exist_ok=True)

        self._logger = self._create_logger()

    @property
    def log_file(self) -> str:
        return os.path.join(self.log_dir, "quote_bridge_audit.log")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def log_validation(
        self,
        source: str,
        build_result: BuildResult,
    ) -> None:
        """Log the outcome of one validation pass."""
        summary = build_result.summary
        customer = build_result.customer
        entry = {
            "timestamp": self._now(),
            "level": "INFO" if summary.valid else "WARNING",
            "type": "VALIDATION",
            "source": source,
            "status": summary.status,
            "positions": build_result.positions,
            "by_type": dict(summary.by_type),
            "error_count": len(summary.errors),
            "warning_count": len(summary.warnings),
            "errors": [e.to_dict() for e in summary.errors],
            "customer_email_masked": self._mask_email(
                customer.email if customer else ""
            ),
        }
        self._logger.info(json.dumps(entry, ensure_ascii=False))

    def log_submission(
        self,
        source: str,
        submission: SubmissionResult,
        positions: int = 0,
        customer_email: str = "",
    ) -> None:
        """Log a quotation creation attempt against Lexware."""
        entry: Dict[str, Any] = {
            "timestamp": self._now(),
            "level": "INFO" if submission.success else "ERROR",
            "type": "SUBMISSION",
            "source": source,
            "status": "SUCCESS" if submission.success else "FAILED",
            "status_code": submission.status_code,
            "quotation_id": submission.quotation_id,
            "positions": positions,
            "rate_limited": submission.rate_limited,
            "customer_email_masked": self._mask_email(customer_email),
        }
        if submission.error:
            entry["error"] = submission.error
        self._logger.info(json.dumps(entry, ensure_ascii=False))

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _create_logger(self) -> logging.Logger:
        """Create a structured rotating-file logger."""
        logger = logging.getLogger(f"quote_bridge_audit_{id(self)}")
        logger.setLevel(logging.DEBUG)
        logger.propagate = False
        logger.handlers.clear()

        handler = RotatingFileHandler(
            self.log_file,
            maxBytes=self.max_mb * 1024 * 1024,
            backupCount=self.backup_count,
            encoding="utf-8",
        )
        handler.setLevel(logging.DEBUG)
        # Entries are already JSON
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

        return logger

    def close(self) -> None:
        for handler in list(self._logger.handlers):
            handler.close()
            self._logger.removeHandler(handler)

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _mask_email(email: str) -> str:
        """Mask the local part of an e-mail address.

        Example: max.mustermann@example.de -> ma****@example.de
        """
        if not email or "@" not in email:
            return email
        local, _, domain = email.partition("@")
        return local[:2] + "****@" + domain
