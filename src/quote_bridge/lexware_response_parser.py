"""
Lexware Response Parser
Convert Lexware API responses into structured Quote Bridge objects.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from .models import (
    CatalogArticle,
    CatalogPrice,
    LexwareResponse,
    SubmissionResult,
)
from .price_resolver import PriceResolver

_FILENAME_RE = re.compile(r'filename\*?=(?:UTF-8\'\')?"?([^";]+)"?', re.IGNORECASE)


class LexwareResponseParser:
    """Parse Lexware JSON responses."""

    # ------------------------------------------------------------------
    # Quotation creation
    # ------------------------------------------------------------------

    def parse_create_response(self, resp: LexwareResponse) -> SubmissionResult:
        """Parse the response of POST /v1/quotations.

        Args:
            resp: Raw connector response.

        Returns:
            SubmissionResult with the created id or the remote error.
        """
        result = SubmissionResult(
            status_code=resp.status_code,
            rate_limited=resp.rate_limited,
        )

        if resp.success and isinstance(resp.data, dict) and resp.data.get("id"):
            result.success = True
            result.quotation_id = str(resp.data["id"])
            result.resource_uri = str(resp.data.get("resourceUri", ""))
            result.version = int(resp.data.get("version") or 0)
            return result

        result.error_body = resp.data
        if resp.success:
            result.error = "Antwort von Lexware enthält keine Angebots-ID"
        elif resp.rate_limited:
            result.error = (
                "Lexware-Rate-Limit erreicht (429). Das Angebot wurde nicht "
                "erstellt; bitte später erneut senden."
            )
        else:
            result.error = self.parse_error_message(resp)
        return result

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------

    def parse_article(self, data: Any) -> Optional[CatalogArticle]:
        """Parse GET /v1/articles/{id} into a CatalogArticle."""
        if not isinstance(data, dict) or not data.get("id"):
            return None

        price_data = data.get("price")
        price: Optional[CatalogPrice] = None
        if isinstance(price_data, dict):
            price = CatalogPrice(
                net_price=PriceResolver.parse_amount(price_data.get("netPrice")),
                gross_price=PriceResolver.parse_amount(price_data.get("grossPrice")),
                tax_rate=PriceResolver.parse_amount(price_data.get("taxRate")),
            )

        return CatalogArticle(
            article_id=str(data["id"]),
            title=str(data.get("title") or "").strip(),
            unit_name=str(data.get("unitName") or "").strip(),
            price=price,
        )

    # ------------------------------------------------------------------
    # Profile / files
    # ------------------------------------------------------------------

    @staticmethod
    def parse_organization_name(data: Any) -> str:
        if not isinstance(data, dict):
            return ""
        return str(data.get("organizationName") or data.get("companyName") or "")

    @staticmethod
    def filename_from_disposition(header: str) -> Optional[str]:
        """Extract the filename from a Content-Disposition header."""
        if not header or "filename" not in header.lower():
            return None
        match = _FILENAME_RE.search(header)
        return match.group(1).strip() if match else None

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def parse_error_message(self, resp: LexwareResponse) -> str:
        """Best-effort human readable message from an error response.

        Lexware answers either with {"message": ..., "details": [...]} or
        with the legacy {"IssueList": [...]} shape.
        """
        data = resp.data
        parts: List[str] = []

        if isinstance(data, dict):
            if data.get("message"):
                parts.append(str(data["message"]))
            for detail in data.get("details") or []:
                parts.append(self._format_detail(detail))
            for issue in data.get("IssueList") or []:
                parts.append(self._format_issue(issue))

        parts = [p for p in parts if p]
        if parts:
            return f"Lexware-Fehler ({resp.status_code}): " + "; ".join(parts)
        if resp.error:
            return f"Lexware-Fehler ({resp.status_code}): {resp.error}"
        return f"Lexware-Fehler ({resp.status_code})"

    @staticmethod
    def _format_detail(detail: Dict[str, Any]) -> str:
        if not isinstance(detail, dict):
            return str(detail)
        field = detail.get("field", "")
        message = detail.get("message") or detail.get("violation") or ""
        return f"{field}: {message}" if field else str(message)

    @staticmethod
    def _format_issue(issue: Dict[str, Any]) -> str:
        if not isinstance(issue, dict):
            return str(issue)
        source = issue.get("source", "")
        key = issue.get("i18nKey") or issue.get("type") or ""
        return f"{source}: {key}" if source else str(key)
