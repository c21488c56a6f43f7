"""
Quote Bridge Data Models
Dataclasses for structured data passing between Quote Bridge components.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional


def _money(value: Optional[Decimal]) -> Optional[float]:
    """Decimal -> JSON number (Lexware expects plain numbers)."""
    if value is None:
        return None
    return float(value)


def _iso_day(value: date) -> str:
    """Format a day the way Lexware expects voucher dates."""
    return f"{value.isoformat()}T00:00:00.000+00:00"


# ---------------------------------------------------------------------------
# Validation models
# ---------------------------------------------------------------------------

@dataclass
class ValidationIssue:
    """A single validation error or warning, attributed to sheet/row/field."""
    sheet: str = ""
    row: int = 0
    field: str = ""
    message: str = ""
    severity: str = "ERROR"  # ERROR or WARNING

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"sheet": self.sheet, "row": self.row}
        if self.field or self.severity == "ERROR":
            d["field"] = self.field
        d["message"] = self.message
        return d


@dataclass
class ValidationSummary:
    """Append-only accumulator for one validation pass."""
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    by_type: Dict[str, int] = field(default_factory=dict)
    auto_named_line_items: List[Dict[str, Any]] = field(default_factory=list)

    def add_error(
        self,
        message: str,
        sheet: str = "",
        row: int = 0,
        field: str = "",
    ) -> None:
        self.errors.append(
            ValidationIssue(
                sheet=sheet,
                row=row,
                field=field,
                message=message,
                severity="ERROR",
            )
        )

    def add_warning(
        self,
        message: str,
        sheet: str = "",
        row: int = 0,
        field: str = "",
    ) -> None:
        self.warnings.append(
            ValidationIssue(
                sheet=sheet,
                row=row,
                field=field,
                message=message,
                severity="WARNING",
            )
        )

    def count_type(self, line_type: str) -> None:
        self.by_type[line_type] = self.by_type.get(line_type, 0) + 1

    def record_auto_name(
        self,
        row: int,
        name: str,
        article_id: str = "",
    ) -> None:
        entry: Dict[str, Any] = {"row": row, "name": name}
        if article_id:
            entry["articleId"] = article_id
        self.auto_named_line_items.append(entry)

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def status(self) -> str:
        if self.errors:
            return "ERROR"
        if self.warnings:
            return "WARNING"
        return "OK"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "byType": dict(self.by_type),
            "autoNamedLineItems": list(self.auto_named_line_items),
        }


# ---------------------------------------------------------------------------
# Quotation input models
# ---------------------------------------------------------------------------

@dataclass
class OfferMetadata:
    """Header data from the Angebot sheet."""
    tax_type: str = ""
    voucher_date: Optional[date] = None
    expiration_date: Optional[date] = None
    currency: str = "EUR"
    tax_rate_default: Decimal = Decimal("19")
    title: str = ""
    introduction: str = ""
    remark: str = ""
    shipping_type: str = "service"
    shipping_date: Optional[date] = None


@dataclass
class Customer:
    """Customer data from the Kunde sheet."""
    name: str = ""
    contact_id: str = ""
    street: str = ""
    zip: str = ""
    city: str = ""
    country_code: str = "DE"
    email: str = ""
    contact_person: str = ""
    phone: str = ""
    supplement: str = ""

    def to_address(self) -> Dict[str, Any]:
        """Build the Lexware address block.

        A contactId references an existing Lexware contact and replaces the
        freeform address entirely.
        """
        if self.contact_id:
            return {"contactId": self.contact_id}

        address: Dict[str, Any] = {
            "name": self.name,
            "countryCode": self.country_code,
        }
        for key, value in (
            ("supplement", self.supplement),
            ("street", self.street),
            ("zip", self.zip),
            ("city", self.city),
            ("contactPerson", self.contact_person),
        ):
            if value:
                address[key] = value
        return address


@dataclass
class LineItemRow:
    """One Positionen row after alias columns are resolved.

    Values stay raw (as read from the sheet); validation happens in the
    QuotationBuilder.
    """
    row_number: int = 0
    type: str = ""
    article_id: str = ""
    name: str = ""
    description: str = ""
    quantity: Any = None
    unit_name: str = ""
    unit_price_amount: Any = None
    tax_rate_percentage: Any = None
    discount_percentage: Any = None

    # Column each value came from (e.g. "qty" vs "quantity")
    source_columns: Dict[str, str] = field(default_factory=dict)

    @property
    def is_blank(self) -> bool:
        values = (
            self.type,
            self.article_id,
            self.name,
            self.description,
            self.quantity,
            self.unit_name,
            self.unit_price_amount,
            self.tax_rate_percentage,
            self.discount_percentage,
        )
        return all(v is None or str(v).strip() == "" for v in values)


# ---------------------------------------------------------------------------
# Catalog models
# ---------------------------------------------------------------------------

@dataclass
class CatalogPrice:
    """Price block of a Lexware article."""
    net_price: Optional[Decimal] = None
    gross_price: Optional[Decimal] = None
    tax_rate: Optional[Decimal] = None


@dataclass
class CatalogArticle:
    """A Lexware article as needed for naming and pricing."""
    article_id: str = ""
    title: str = ""
    unit_name: str = ""
    price: Optional[CatalogPrice] = None


# ---------------------------------------------------------------------------
# Pricing models
# ---------------------------------------------------------------------------

class CatalogUnavailableError(Exception):
    """Lexware could not answer an article lookup (5xx, 429, network)."""

    def __init__(self, article_id: str, reason: str = "") -> None:
        super().__init__(f"Article lookup for {article_id} failed: {reason}")
        self.article_id = article_id
        self.reason = reason


class PriceStatus:
    """Outcome codes of a price resolution."""
    RESOLVED = "RESOLVED"
    RESOLVED_FROM_CATALOG = "RESOLVED_FROM_CATALOG"
    MISSING_PRICE = "MISSING_PRICE"
    ARTICLE_NOT_FOUND = "ARTICLE_NOT_FOUND"
    CATALOG_UNAVAILABLE = "CATALOG_UNAVAILABLE"
    INCOMPLETE_CATALOG = "INCOMPLETE_CATALOG"
    MALFORMED_INPUT = "MALFORMED_INPUT"

    FAILURES = {
        MISSING_PRICE,
        ARTICLE_NOT_FOUND,
        CATALOG_UNAVAILABLE,
        INCOMPLETE_CATALOG,
        MALFORMED_INPUT,
    }


@dataclass
class UnitPrice:
    """Lexware unitPrice: exactly one of net_amount / gross_amount is set."""
    currency: str = "EUR"
    tax_rate_percentage: Decimal = Decimal("19")
    net_amount: Optional[Decimal] = None
    gross_amount: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"currency": self.currency}
        if self.net_amount is not None:
            d["netAmount"] = _money(self.net_amount)
        if self.gross_amount is not None:
            d["grossAmount"] = _money(self.gross_amount)
        d["taxRatePercentage"] = _money(self.tax_rate_percentage)
        return d


@dataclass
class PriceResolution:
    """Result of PriceResolver.resolve()."""
    status: str = PriceStatus.MISSING_PRICE
    unit_price: Optional[UnitPrice] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status not in PriceStatus.FAILURES

    @property
    def from_catalog(self) -> bool:
        return self.status == PriceStatus.RESOLVED_FROM_CATALOG


# ---------------------------------------------------------------------------
# Payload models
# ---------------------------------------------------------------------------

@dataclass
class QuotationLineItem:
    """A validated, API-ready line item."""
    type: str = "custom"
    name: str = ""
    description: str = ""
    quantity: Optional[Decimal] = None
    unit_name: str = ""
    unit_price: Optional[UnitPrice] = None
    discount_percentage: Optional[Decimal] = None
    article_id: str = ""
    row_number: int = 0

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"type": self.type}
        if self.article_id and self.type in ("material", "service"):
            d["id"] = self.article_id
        d["name"] = self.name
        if self.description:
            d["description"] = self.description
        if self.type != "text":
            d["quantity"] = _money(self.quantity)
            d["unitName"] = self.unit_name
            if self.unit_price is not None:
                d["unitPrice"] = self.unit_price.to_dict()
            if self.discount_percentage is not None:
                d["discountPercentage"] = _money(self.discount_percentage)
        return d


@dataclass
class QuotationPayload:
    """The complete request body for POST /v1/quotations."""
    voucher_date: date = field(default_factory=date.today)
    expiration_date: date = field(default_factory=date.today)
    address: Dict[str, Any] = field(default_factory=dict)
    line_items: List[QuotationLineItem] = field(default_factory=list)
    tax_type: str = "net"
    currency: str = "EUR"
    shipping_type: str = "service"
    shipping_date: Optional[date] = None
    title: str = ""
    introduction: str = ""
    remark: str = ""

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "voucherDate": _iso_day(self.voucher_date),
            "expirationDate": _iso_day(self.expiration_date),
            "address": dict(self.address),
            "lineItems": [li.to_dict() for li in self.line_items],
            "totalPrice": {"currency": self.currency},
            "taxConditions": {"taxType": self.tax_type},
            "shippingConditions": {
                "shippingType": self.shipping_type,
                "shippingDate": _iso_day(self.shipping_date or self.voucher_date),
            },
        }
        if self.title:
            d["title"] = self.title
        if self.introduction:
            d["introduction"] = self.introduction
        if self.remark:
            d["remark"] = self.remark
        return d


@dataclass
class BuildResult:
    """Outcome of QuotationBuilder: a payload XOR a list of errors."""
    payload: Optional[QuotationPayload] = None
    summary: ValidationSummary = field(default_factory=ValidationSummary)
    offer: Optional[OfferMetadata] = None
    customer: Optional[Customer] = None
    positions: int = 0
    # Line items accepted in this pass, also when other rows failed
    line_items: List[QuotationLineItem] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.payload is not None and self.summary.valid

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "ok": self.success,
            "payload": self.payload.to_dict() if self.payload else None,
        }
        d.update(self.summary.to_dict())
        return d


# ---------------------------------------------------------------------------
# Lexware response models
# ---------------------------------------------------------------------------

@dataclass
class LexwareResponse:
    """Raw outcome of one HTTP exchange with the Lexware API."""
    success: bool = False
    status_code: int = 0
    data: Any = None
    content: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)
    error: str = ""
    rate_limited: bool = False
    attempts: int = 0


@dataclass
class SubmissionResult:
    """Parsed result of a quotation creation call."""
    success: bool = False
    quotation_id: str = ""
    resource_uri: str = ""
    version: int = 0
    status_code: int = 0
    rate_limited: bool = False
    error: str = ""
    error_body: Any = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "success": self.success,
            "status_code": self.status_code,
        }
        if self.quotation_id:
            d["quotation_id"] = self.quotation_id
        if self.resource_uri:
            d["resource_uri"] = self.resource_uri
        if self.rate_limited:
            d["rate_limited"] = True
        if self.error:
            d["error"] = self.error
        if self.error_body is not None:
            d["error_body"] = self.error_body
        return d


@dataclass
class QuoteDocument:
    """A downloaded quotation file (normally a PDF)."""
    quotation_id: str = ""
    content: bytes = b""
    content_type: str = "application/pdf"
    filename: str = ""
