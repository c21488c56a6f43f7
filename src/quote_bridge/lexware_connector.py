"""
Lexware Connector Service
Handles HTTP communication with the Lexware public API: quotation creation,
article lookup, PDF download and connection testing.

Reads (GET) retry with exponential backoff on transient errors and 429.
Quotation creation is sent exactly once: a retried POST after a timeout or
a 429 could create the same quotation twice.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import requests

from . import quote_config as cfg
from .lexware_response_parser import LexwareResponseParser
from .models import LexwareResponse, SubmissionResult
from .rate_limiter import RequestThrottle


class LexwareConnector:
    """HTTP connector for the Lexware public API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_connect: Optional[int] = None,
        timeout_read: Optional[int] = None,
        max_retries: Optional[int] = None,
        throttle: Optional[RequestThrottle] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        logger=None,
    ) -> None:
        self.api_key = api_key if api_key is not None else cfg.LEXWARE_API_KEY
        self.base_url = (base_url or cfg.LEXWARE_BASE_URL).rstrip("/")
        self.timeout_connect = timeout_connect or cfg.LEXWARE_TIMEOUT_CONNECT
        self.timeout_read = timeout_read or cfg.LEXWARE_TIMEOUT_READ
        self.max_retries = max_retries or cfg.LEXWARE_MAX_RETRIES
        self.throttle = throttle or RequestThrottle()
        self.session = session or requests.Session()
        self.parser = LexwareResponseParser()
        self._sleep = sleep
        self._logger = logger

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @property
    def logger(self):
        if self._logger is None:
            from .quote_logger import get_logger
            self._logger = get_logger()
        return self._logger

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_quotation(
        self,
        payload: Dict[str, Any],
        finalize: bool = True,
    ) -> SubmissionResult:
        """POST a quotation payload. Single attempt, never retried."""
        resp = self._request(
            "POST",
            "/v1/quotations",
            params={"finalize": "true" if finalize else "false"},
            json_body=payload,
            retry=False,
        )
        return self.parser.parse_create_response(resp)

    def get_article(self, article_id: str) -> LexwareResponse:
        """GET /v1/articles/{id} with retry."""
        return self._request("GET", f"/v1/articles/{quote(article_id, safe='')}")

    def get_quotation_file(self, quotation_id: str) -> LexwareResponse:
        """GET the rendered quotation document (PDF) with retry."""
        return self._request(
            "GET",
            f"/v1/quotations/{quote(quotation_id, safe='')}/file",
            accept="application/pdf",
        )

    def get_profile(self) -> LexwareResponse:
        """GET /v1/profile - used as connection test."""
        return self._request("GET", "/v1/profile")

    # ------------------------------------------------------------------
    # Internal HTTP
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        accept: str = "application/json",
        retry: bool = True,
    ) -> LexwareResponse:
        attempts = self.max_retries if retry else 1
        url = f"{self.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": accept,
        }
        if json_body is not None:
            headers["Content-Type"] = "application/json"

        last_error = ""
        for attempt in range(1, attempts + 1):
            self.throttle.acquire()
            try:
                http_resp = self.session.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    json=json_body,
                    timeout=(self.timeout_connect, self.timeout_read),
                )
            except (requests.ConnectionError, requests.Timeout) as exc:
                last_error = str(exc)
                self.logger.warning(
                    f"{method} {path} failed (attempt {attempt}): {exc}",
                    component="Lexware",
                )
                if attempt < attempts:
                    self._sleep(2 ** attempt)  # 2, 4, 8 seconds
                continue
            except requests.RequestException as exc:
                # Non-transient error, don't retry
                return LexwareResponse(
                    error=f"Unerwarteter Fehler bei der Lexware-API: {exc}",
                    attempts=attempt,
                )

            self.logger.log_api_call(method, path, http_resp.status_code, attempt)

            if http_resp.status_code == 429:
                delay = self._retry_after(http_resp, attempt)
                self.throttle.block_for(delay)
                if attempt < attempts:
                    continue
            elif http_resp.status_code >= 500 and attempt < attempts:
                self._sleep(2 ** attempt)
                continue

            return self._to_response(http_resp, attempt)

        return LexwareResponse(
            error=(
                f"Lexware-API unter {self.base_url} nicht erreichbar "
                f"nach {attempts} Versuch(en): {last_error}"
            ),
            attempts=attempts,
        )

    @staticmethod
    def _retry_after(http_resp: requests.Response, attempt: int) -> float:
        """Seconds to hold back after a 429."""
        header = http_resp.headers.get("Retry-After", "")
        try:
            return max(float(header), 0.0)
        except (TypeError, ValueError):
            return float(2 ** attempt)

    @staticmethod
    def _to_response(http_resp: requests.Response, attempt: int) -> LexwareResponse:
        content_type = http_resp.headers.get("Content-Type", "")
        data: Any = None
        if "json" in content_type.lower():
            try:
                data = http_resp.json()
            except ValueError:
                data = None

        success = 200 <= http_resp.status_code < 300
        return LexwareResponse(
            success=success,
            status_code=http_resp.status_code,
            data=data,
            content=http_resp.content or b"",
            headers={k.lower(): v for k, v in http_resp.headers.items()},
            error="" if success or data is not None else (http_resp.text or "")[:500],
            rate_limited=http_resp.status_code == 429,
            attempts=attempt,
        )
