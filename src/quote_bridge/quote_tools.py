"""
Tool Endpoints for the Quote Bridge
Validation, quotation creation (from a workbook or free text), PDF download
and the Lexware connection test.

These functions are the public API of the Quote Bridge module. They never
raise for expected failures; every result is a dict with ``success`` and,
on failure, ``error`` and ``error_code``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from . import quote_config as cfg
from .article_lookup_service import ArticleLookupService
from .lexware_connector import LexwareConnector
from .models import BuildResult, QuoteDocument, ValidationSummary
from .quotation_builder import QuotationBuilder
from .quote_audit_logger import QuoteAuditLogger
from .quote_logger import get_logger
from .rate_limiter import get_default_throttle
from .text_order_parser import parse_lines
from .workbook_loader import WorkbookLoader, WorkbookReadError


# ======================================================================
# Helpers
# ======================================================================

def _default_connector() -> LexwareConnector:
    return LexwareConnector(throttle=get_default_throttle())


def _default_builder(connector: LexwareConnector) -> QuotationBuilder:
    lookup = ArticleLookupService(connector) if connector.has_api_key else None
    return QuotationBuilder(article_lookup=lookup)


def _api_key_guard(connector: LexwareConnector) -> Optional[Dict[str, Any]]:
    """Return an error dict if no Lexware API key is configured."""
    if not connector.has_api_key:
        return {
            "success": False,
            "error": "LEXWARE_API_KEY ist nicht gesetzt",
            "error_code": "API_KEY_MISSING",
        }
    return None


def _load_workbook(
    content: bytes,
    filename: str,
) -> Dict[str, Any]:
    """Run file checks and read the workbook.

    Returns {"sheets": ...} on success or an error dict.
    """
    loader = WorkbookLoader()
    ok, errs = loader.validate_file_basics(content, filename)
    if not ok:
        return {
            "success": False,
            "error": errs[0].message if errs else "Ungültige Datei",
            "error_code": "FILE_INVALID",
        }
    try:
        return {"sheets": loader.load(content)}
    except WorkbookReadError as exc:
        get_logger().warning(str(exc), component="Tools")
        return {
            "success": False,
            "error": str(exc),
            "error_code": "EXCEL_UNREADABLE",
        }


def _summary_block(result: BuildResult) -> Dict[str, Any]:
    return {
        "customer": result.customer.name if result.customer else "",
        "taxType": result.offer.tax_type if result.offer else "",
        "positions": result.positions,
        "byType": dict(result.summary.by_type),
    }


def _build_report(result: BuildResult) -> Dict[str, Any]:
    """Validation outcome as returned by every tool."""
    report: Dict[str, Any] = {"success": result.success}
    report.update(result.to_dict())
    if result.offer is not None:
        report["summary"] = _summary_block(result)
    if not result.success:
        report["error"] = (
            f"Validierung fehlgeschlagen: {len(result.summary.errors)} Fehler"
        )
        report["error_code"] = (
            "STRUCTURE_INVALID" if result.offer is None else "VALIDATION_FAILED"
        )
    return report


def _submit(
    result: BuildResult,
    source: str,
    connector: LexwareConnector,
    audit_logger: QuoteAuditLogger,
) -> Dict[str, Any]:
    """Send a validated payload to Lexware (single attempt)."""
    submission = connector.create_quotation(result.payload.to_dict())
    audit_logger.log_submission(
        source,
        submission,
        positions=result.positions,
        customer_email=result.customer.email if result.customer else "",
    )

    if not submission.success:
        get_logger().error(
            f"Quotation creation failed: {submission.error}",
            component="Tools",
        )
        response: Dict[str, Any] = {
            "success": False,
            "error": submission.error,
            "error_code": "RATE_LIMITED" if submission.rate_limited else "LEXWARE_ERROR",
            "status_code": submission.status_code,
            "summary": _summary_block(result),
            "warnings": [w.to_dict() for w in result.summary.warnings],
        }
        if submission.error_body is not None:
            response["error_body"] = submission.error_body
        return response

    get_logger().info(
        f"Quotation {submission.quotation_id} created "
        f"({result.positions} position(s))",
        component="Tools",
    )
    return {
        "success": True,
        "message": "Angebot in Lexware erstellt",
        "quotationId": submission.quotation_id,
        "resourceUri": submission.resource_uri,
        "summary": _summary_block(result),
        "warnings": [w.to_dict() for w in result.summary.warnings],
        "autoNamedLineItems": list(result.summary.auto_named_line_items),
    }


def _canonical_keys(values: Optional[Dict[str, Any]], fields: List[str]) -> Dict[str, Any]:
    """Map {"TaxType": ...} to {"taxType": ...} for the known fields."""
    known = {f.lower(): f for f in fields}
    return {
        known.get(str(k).strip().lower(), str(k).strip()): v
        for k, v in (values or {}).items()
    }


def _build_from_text(
    text: str,
    offer: Optional[Dict[str, Any]],
    customer: Optional[Dict[str, Any]],
    builder: QuotationBuilder,
    allow_price_override: Optional[bool],
) -> BuildResult:
    records, parse_warnings = parse_lines(text)

    summary = ValidationSummary()
    for warning in parse_warnings:
        summary.add_warning(
            warning["message"],
            sheet=cfg.SHEET_POSITIONS,
            row=warning["line"],
        )

    rows = builder.mapper.map_records(records, first_row=1)
    return builder.build_from_sections(
        _canonical_keys(offer, cfg.OFFER_FIELDS),
        _canonical_keys(customer, cfg.CUSTOMER_FIELDS),
        rows,
        allow_price_override=allow_price_override,
        summary=summary,
        source="Text",
    )


# ======================================================================
# Tool 1: validate_workbook
# ======================================================================

def validate_workbook(
    content: bytes,
    filename: str = "",
    allow_price_override: Optional[bool] = None,
    connector: Optional[LexwareConnector] = None,
    builder: Optional[QuotationBuilder] = None,
    audit_logger: Optional[QuoteAuditLogger] = None,
) -> Dict[str, Any]:
    """Validate a quotation workbook without creating anything in Lexware.

    Catalog lookups (names, prices) are still performed when an API key
    is configured.
    """
    loaded = _load_workbook(content, filename)
    if "sheets" not in loaded:
        return loaded

    connector = connector or _default_connector()
    builder = builder or _default_builder(connector)
    audit_logger = audit_logger or QuoteAuditLogger()

    result = builder.build(loaded["sheets"], allow_price_override=allow_price_override)
    audit_logger.log_validation("Excel", result)
    return _build_report(result)


# ======================================================================
# Tool 2: create_quote_from_workbook
# ======================================================================

def create_quote_from_workbook(
    content: bytes,
    filename: str = "",
    allow_price_override: Optional[bool] = None,
    connector: Optional[LexwareConnector] = None,
    builder: Optional[QuotationBuilder] = None,
    audit_logger: Optional[QuoteAuditLogger] = None,
) -> Dict[str, Any]:
    """Validate a workbook and create the quotation in Lexware.

    Nothing is sent when validation reports any error.
    """
    connector = connector or _default_connector()
    guard = _api_key_guard(connector)
    if guard:
        return guard

    loaded = _load_workbook(content, filename)
    if "sheets" not in loaded:
        return loaded

    builder = builder or _default_builder(connector)
    audit_logger = audit_logger or QuoteAuditLogger()

    result = builder.build(loaded["sheets"], allow_price_override=allow_price_override)
    audit_logger.log_validation("Excel", result)
    if not result.success:
        return _build_report(result)

    return _submit(result, "Excel", connector, audit_logger)


# ======================================================================
# Tool 3: create_quote_from_text
# ======================================================================

def create_quote_from_text(
    text: str,
    offer: Optional[Dict[str, Any]],
    customer: Optional[Dict[str, Any]],
    allow_price_override: Optional[bool] = None,
    connector: Optional[LexwareConnector] = None,
    builder: Optional[QuotationBuilder] = None,
    audit_logger: Optional[QuoteAuditLogger] = None,
) -> Dict[str, Any]:
    """Create a quotation from pasted order text.

    Args:
        text: One position per line.
        offer: Offer fields (taxType, voucherDate, ...).
        customer: Customer fields (name, contactId, ...).
        allow_price_override: Per-call override of ALLOW_PRICE_OVERRIDE.
    """
    connector = connector or _default_connector()
    guard = _api_key_guard(connector)
    if guard:
        return guard

    builder = builder or _default_builder(connector)
    audit_logger = audit_logger or QuoteAuditLogger()

    result = _build_from_text(text, offer, customer, builder, allow_price_override)
    audit_logger.log_validation("Text", result)
    if not result.success:
        return _build_report(result)

    return _submit(result, "Text", connector, audit_logger)


# ======================================================================
# Tool 4: preview_text_order
# ======================================================================

def preview_text_order(text: str) -> Dict[str, Any]:
    """Show how pasted text would be split into positions."""
    rows, warnings = parse_lines(text)
    by_type: Dict[str, int] = {}
    for row in rows:
        by_type[row["type"]] = by_type.get(row["type"], 0) + 1
    return {
        "success": True,
        "items": rows,
        "warnings": warnings,
        "byType": by_type,
    }


# ======================================================================
# Tool 5: download_quote_pdf
# ======================================================================

def download_quote_pdf(
    quotation_id: str,
    connector: Optional[LexwareConnector] = None,
) -> Dict[str, Any]:
    """Fetch the PDF of an existing quotation.

    On success the dict carries a QuoteDocument under ``document``.
    """
    if not (quotation_id or "").strip():
        return {
            "success": False,
            "error": "quotationId fehlt",
            "error_code": "MISSING_ID",
        }

    connector = connector or _default_connector()
    guard = _api_key_guard(connector)
    if guard:
        return guard

    quotation_id = quotation_id.strip()
    resp = connector.get_quotation_file(quotation_id)

    if not resp.success:
        if resp.rate_limited:
            error = (
                "PDF kann aktuell nicht geladen werden (Lexware-Rate-Limit 429). "
                "Bitte später erneut versuchen oder das Angebot direkt in "
                "Lexoffice öffnen."
            )
            error_code = "RATE_LIMITED"
        elif resp.status_code:
            error = "PDF konnte nicht geladen werden."
            error_code = "LEXWARE_ERROR"
        else:
            error = resp.error or "Unerwarteter Fehler beim PDF-Download"
            error_code = "LEXWARE_UNREACHABLE"
        return {
            "success": False,
            "error": error,
            "error_code": error_code,
            "status_code": resp.status_code,
            "details": resp.error or None,
        }

    filename = connector.parser.filename_from_disposition(
        resp.headers.get("content-disposition", "")
    )
    document = QuoteDocument(
        quotation_id=quotation_id,
        content=resp.content,
        content_type=resp.headers.get("content-type") or "application/pdf",
        filename=filename or f"Angebot-{quotation_id}.pdf",
    )
    return {"success": True, "document": document}


# ======================================================================
# Tool 6: api_connection_test
# ======================================================================

def api_connection_test(
    connector: Optional[LexwareConnector] = None,
) -> Dict[str, Any]:
    """Check that the API key works by reading the Lexware profile."""
    connector = connector or _default_connector()
    guard = _api_key_guard(connector)
    if guard:
        return guard

    resp = connector.get_profile()
    if not resp.success:
        return {
            "success": False,
            "error": connector.parser.parse_error_message(resp),
            "error_code": (
                "LEXWARE_UNREACHABLE" if not resp.status_code else "LEXWARE_ERROR"
            ),
            "status_code": resp.status_code,
        }

    return {
        "success": True,
        "organization": connector.parser.parse_organization_name(resp.data) or "OK",
    }
