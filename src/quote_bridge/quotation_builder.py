"""
Quotation Builder
Validates the three quotation sections (Angebot, Kunde, Positionen) in a
single pass and assembles the Lexware quotation payload.

Structural problems (missing sheets) stop the pass immediately. Field
problems are collected per sheet/row/field so one run reports everything;
a payload is only returned when no error was recorded.
"""

from __future__ import annotations

import re
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from . import quote_config as cfg
from .article_lookup_service import ArticleLookupService
from .models import (
    BuildResult,
    CatalogArticle,
    CatalogUnavailableError,
    Customer,
    LineItemRow,
    OfferMetadata,
    QuotationLineItem,
    QuotationPayload,
    UnitPrice,
    ValidationSummary,
)
from .price_resolver import PriceResolver
from .row_mapper import RowMapper, cell_text, is_blank, parse_date
from .workbook_loader import SheetRows, WorkbookLoader

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")
_COUNTRY_RE = re.compile(r"^[A-Z]{2}$")

# First data row beneath the header, used for section-level errors
_SECTION_ROW = 2


class QuotationBuilder:
    """Build a validated QuotationPayload or a complete list of errors."""

    def __init__(
        self,
        article_lookup: Optional[ArticleLookupService] = None,
        price_resolver: Optional[PriceResolver] = None,
        row_mapper: Optional[RowMapper] = None,
        allow_price_override: Optional[bool] = None,
        service_requires_article_id: Optional[bool] = None,
        live_article_titles: Optional[bool] = None,
        today: Optional[Callable[[], date]] = None,
        logger=None,
    ) -> None:
        self.article_lookup = article_lookup
        self.prices = price_resolver or PriceResolver()
        self.mapper = row_mapper or RowMapper()
        self.loader = WorkbookLoader()
        self.allow_price_override = (
            cfg.ALLOW_PRICE_OVERRIDE
            if allow_price_override is None
            else allow_price_override
        )
        if service_requires_article_id is None:
            service_requires_article_id = cfg.SERVICE_REQUIRES_ARTICLE_ID
        self.article_required_types = set(cfg.ARTICLE_REQUIRED_TYPES)
        if service_requires_article_id:
            self.article_required_types.add("service")
        self.live_article_titles = (
            cfg.LIVE_ARTICLE_TITLES
            if live_article_titles is None
            else live_article_titles
        )
        self._today = today or date.today
        self._logger = logger

    @property
    def logger(self):
        if self._logger is None:
            from .quote_logger import get_logger
            self._logger = get_logger()
        return self._logger

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(
        self,
        sheets: Dict[str, SheetRows],
        allow_price_override: Optional[bool] = None,
    ) -> BuildResult:
        """Validate a loaded workbook and build the payload.

        Args:
            sheets: ``{sheet_name: rows}`` as returned by WorkbookLoader.load.
            allow_price_override: Per-call override of ALLOW_PRICE_OVERRIDE.

        Returns:
            BuildResult with either a payload or errors.
        """
        summary = ValidationSummary()

        # 1. Structural check, terminal
        missing = self.loader.check_required_sheets(sheets)
        if missing:
            summary.errors.extend(missing)
            self.logger.warning(
                "Workbook rejected: " + ", ".join(i.message for i in missing),
                component="Builder",
            )
            return BuildResult(summary=summary)

        # 2. Sections
        offer_raw, _ = self.mapper.extract_section(
            sheets[cfg.SHEET_OFFER], cfg.OFFER_FIELDS
        )
        customer_raw, _ = self.mapper.extract_section(
            sheets[cfg.SHEET_CUSTOMER], cfg.CUSTOMER_FIELDS
        )
        rows = self.mapper.map_line_items(sheets[cfg.SHEET_POSITIONS])

        return self.build_from_sections(
            offer_raw,
            customer_raw,
            rows,
            allow_price_override=allow_price_override,
            summary=summary,
            source="Excel",
        )

    def build_from_sections(
        self,
        offer_raw: Dict[str, Any],
        customer_raw: Dict[str, Any],
        rows: List[LineItemRow],
        allow_price_override: Optional[bool] = None,
        summary: Optional[ValidationSummary] = None,
        source: str = "Excel",
    ) -> BuildResult:
        """Validate already extracted sections.

        Used directly for free-text orders, where offer and customer data
        come from the request instead of a sheet.
        """
        summary = summary if summary is not None else ValidationSummary()
        override = (
            self.allow_price_override
            if allow_price_override is None
            else allow_price_override
        )

        offer = self._parse_offer(offer_raw, summary)
        customer = self._parse_customer(customer_raw, summary)

        # 3. Line items
        non_blank = [r for r in rows if not r.is_blank]
        line_items: List[QuotationLineItem] = []
        if not non_blank:
            summary.add_error(
                "Keine Positionen vorhanden",
                sheet=cfg.SHEET_POSITIONS,
                row=_SECTION_ROW,
            )
        elif len(non_blank) > cfg.MAX_ROWS:
            summary.add_error(
                f"Zu viele Positionen: {len(non_blank)} (maximal {cfg.MAX_ROWS})",
                sheet=cfg.SHEET_POSITIONS,
                row=_SECTION_ROW,
            )
        else:
            for row in non_blank:
                item = self._process_row(row, offer, summary, override)
                if item is not None:
                    line_items.append(item)

        self.logger.log_validation(
            source,
            len(non_blank),
            len(summary.errors),
            len(summary.warnings),
        )

        result = BuildResult(
            summary=summary,
            offer=offer,
            customer=customer,
            positions=len(non_blank),
            line_items=line_items,
        )

        # 4. Terminal decision
        if summary.errors:
            return result

        result.payload = QuotationPayload(
            voucher_date=offer.voucher_date,
            expiration_date=offer.expiration_date,
            address=customer.to_address(),
            line_items=line_items,
            tax_type=offer.tax_type,
            currency=offer.currency,
            shipping_type=offer.shipping_type,
            shipping_date=offer.shipping_date,
            title=offer.title,
            introduction=offer.introduction,
            remark=offer.remark,
        )
        return result

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _parse_offer(
        self,
        raw: Dict[str, Any],
        summary: ValidationSummary,
    ) -> OfferMetadata:
        sheet = cfg.SHEET_OFFER

        tax_type = cell_text(raw.get("taxType")).lower()
        if not tax_type:
            summary.add_error(
                "Feld fehlt: Angebot.taxType",
                sheet=sheet, row=_SECTION_ROW, field="taxType",
            )
        elif tax_type not in cfg.VALID_TAX_TYPES:
            summary.add_error(
                f"Ungültiger taxType '{tax_type}' (erlaubt: net, gross)",
                sheet=sheet, row=_SECTION_ROW, field="taxType",
            )

        voucher_date = self._date_field(raw, "voucherDate", summary) or self._today()
        expiration_date = self._date_field(raw, "expirationDate", summary)
        if expiration_date is None:
            expiration_date = voucher_date + timedelta(days=cfg.EXPIRATION_DAYS)
        elif expiration_date < voucher_date:
            summary.add_error(
                "expirationDate liegt vor voucherDate",
                sheet=sheet, row=_SECTION_ROW, field="expirationDate",
            )

        currency = cell_text(raw.get("currency")).upper() or cfg.DEFAULT_CURRENCY
        if not _CURRENCY_RE.match(currency):
            summary.add_error(
                f"Ungültige Währung '{currency}' (ISO-Code, z.B. EUR)",
                sheet=sheet, row=_SECTION_ROW, field="currency",
            )

        tax_rate_default = self.prices.default_tax_rate
        if not is_blank(raw.get("taxRateDefault")):
            parsed = self.prices.parse_amount(raw.get("taxRateDefault"))
            if parsed is None or parsed < 0:
                summary.add_error(
                    "taxRateDefault muss eine Zahl ab 0 sein",
                    sheet=sheet, row=_SECTION_ROW, field="taxRateDefault",
                )
            else:
                tax_rate_default = parsed

        return OfferMetadata(
            tax_type=tax_type,
            voucher_date=voucher_date,
            expiration_date=expiration_date,
            currency=currency,
            tax_rate_default=tax_rate_default,
            title=cell_text(raw.get("title")),
            introduction=cell_text(raw.get("introduction")),
            remark=cell_text(raw.get("remark")),
            shipping_type=cell_text(raw.get("shippingType")) or cfg.DEFAULT_SHIPPING_TYPE,
            shipping_date=self._date_field(raw, "shippingDate", summary),
        )

    def _parse_customer(
        self,
        raw: Dict[str, Any],
        summary: ValidationSummary,
    ) -> Customer:
        sheet = cfg.SHEET_CUSTOMER

        name = cell_text(raw.get("name"))
        if not name:
            summary.add_error(
                "Feld fehlt: Kunde.name",
                sheet=sheet, row=_SECTION_ROW, field="name",
            )

        country_code = (
            cell_text(raw.get("countryCode")).upper() or cfg.DEFAULT_COUNTRY_CODE
        )
        if not _COUNTRY_RE.match(country_code):
            summary.add_error(
                f"Ungültiger countryCode '{country_code}' (zweistellig, z.B. DE)",
                sheet=sheet, row=_SECTION_ROW, field="countryCode",
            )

        email = cell_text(raw.get("email"))
        if email and "@" not in email:
            summary.add_warning(
                f"E-Mail-Adresse '{email}' sieht ungültig aus",
                sheet=sheet, row=_SECTION_ROW, field="email",
            )

        return Customer(
            name=name,
            contact_id=cell_text(raw.get("contactId")),
            street=cell_text(raw.get("street")),
            zip=cell_text(raw.get("zip")),
            city=cell_text(raw.get("city")),
            country_code=country_code,
            email=email,
            contact_person=cell_text(raw.get("contactPerson")),
            phone=cell_text(raw.get("phone")),
            supplement=cell_text(raw.get("supplement")),
        )

    @staticmethod
    def _date_field(
        raw: Dict[str, Any],
        key: str,
        summary: ValidationSummary,
    ) -> Optional[date]:
        value = raw.get(key)
        if is_blank(value):
            return None
        parsed = parse_date(value)
        if parsed is None:
            summary.add_error(
                f"{key} ist kein gültiges Datum: {cell_text(value)}",
                sheet=cfg.SHEET_OFFER, row=_SECTION_ROW, field=key,
            )
        return parsed

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    def _process_row(
        self,
        row: LineItemRow,
        offer: OfferMetadata,
        summary: ValidationSummary,
        allow_price_override: bool,
    ) -> Optional[QuotationLineItem]:
        """Validate one Positionen row; None if the row produced an error."""
        sheet = cfg.SHEET_POSITIONS
        n = row.row_number
        errors_before = len(summary.errors)

        line_type = row.type
        if not line_type:
            summary.add_error("Typ fehlt.", sheet=sheet, row=n, field="type")
            return None
        if line_type not in cfg.VALID_LINE_ITEM_TYPES:
            summary.add_error(
                f"Unbekannter Typ '{line_type}' "
                f"(erlaubt: custom, material, service, text).",
                sheet=sheet, row=n, field="type",
            )
            return None
        summary.count_type(line_type)

        if line_type == "text":
            return QuotationLineItem(
                type="text",
                name=row.name or row.description or f"Hinweis {n}",
                description=row.description if row.name else "",
                row_number=n,
            )

        quantity = self.prices.parse_amount(row.quantity)
        if quantity is None or quantity <= 0:
            summary.add_error(
                "Menge muss größer als 0 sein.",
                sheet=sheet, row=n, field="quantity",
            )

        if not row.unit_name:
            summary.add_error(
                "Einheit fehlt.",
                sheet=sheet, row=n, field="unitName",
            )

        discount: Optional[Decimal] = None
        if not is_blank(row.discount_percentage):
            discount = self.prices.parse_amount(row.discount_percentage)
            if discount is None or not (0 <= discount <= 100):
                summary.add_error(
                    "Rabatt muss zwischen 0 und 100 liegen.",
                    sheet=sheet, row=n, field="discountPercentage",
                )

        if not is_blank(row.tax_rate_percentage):
            rate = self.prices.parse_amount(row.tax_rate_percentage)
            if rate is None or rate < 0:
                summary.add_error(
                    "Steuersatz muss eine Zahl ab 0 sein.",
                    sheet=sheet, row=n, field="taxRatePercentage",
                )

        fetch_article = self._article_fetcher(row.article_id)

        unit_price: Optional[UnitPrice] = None
        if line_type in self.article_required_types and not row.article_id:
            summary.add_error(
                f"articleId ist für {line_type} erforderlich.",
                sheet=sheet, row=n, field="articleId",
            )
        elif offer.tax_type in cfg.VALID_TAX_TYPES:
            unit_price = self._resolve_price(
                row, offer, fetch_article, summary, allow_price_override
            )

        if len(summary.errors) > errors_before:
            return None

        return QuotationLineItem(
            type=line_type,
            name=self._resolve_name(row, fetch_article, summary),
            description=row.description,
            quantity=quantity,
            unit_name=row.unit_name,
            unit_price=unit_price,
            discount_percentage=discount,
            article_id=row.article_id,
            row_number=n,
        )

    def _resolve_price(
        self,
        row: LineItemRow,
        offer: OfferMetadata,
        fetch_article: Callable[[], Optional[CatalogArticle]],
        summary: ValidationSummary,
        allow_price_override: bool,
    ) -> Optional[UnitPrice]:
        sheet = cfg.SHEET_POSITIONS
        n = row.row_number
        supplied = row.unit_price_amount

        if row.article_id and not is_blank(supplied):
            if row.type == "material" or not allow_price_override:
                summary.add_warning(
                    f"Preis aus der Tabelle ignoriert, Katalogpreis von "
                    f"Artikel {row.article_id} wird verwendet.",
                    sheet=sheet, row=n, field="unitPriceAmount",
                )
                supplied = None

        resolution = self.prices.resolve(
            offer.tax_type,
            supplied,
            row.tax_rate_percentage,
            article_id=row.article_id,
            fetch_article=fetch_article,
            currency=offer.currency,
            default_tax_rate=offer.tax_rate_default,
        )
        if not resolution.ok:
            summary.add_error(
                resolution.message,
                sheet=sheet, row=n, field="unitPriceAmount",
            )
            return None

        if resolution.from_catalog:
            summary.add_warning(
                f"Preis automatisch aus Artikel {row.article_id} übernommen.",
                sheet=sheet, row=n, field="unitPriceAmount",
            )
        return resolution.unit_price

    def _resolve_name(
        self,
        row: LineItemRow,
        fetch_article: Callable[[], Optional[CatalogArticle]],
        summary: ValidationSummary,
    ) -> str:
        if row.name:
            return row.name

        sheet = cfg.SHEET_POSITIONS
        n = row.row_number

        if row.article_id:
            article = None
            if self.live_article_titles:
                try:
                    article = fetch_article()
                except CatalogUnavailableError:
                    article = None
            if article is not None and article.title:
                name = article.title
            else:
                name = f"Artikel {row.article_id}"
            summary.add_warning(
                f"Name fehlt, '{name}' aus Artikel {row.article_id} übernommen.",
                sheet=sheet, row=n, field="name",
            )
            summary.record_auto_name(n, name, article_id=row.article_id)
            return name

        name = f"Position {n}"
        summary.add_warning(
            f"Name fehlt, Platzhalter '{name}' verwendet.",
            sheet=sheet, row=n, field="name",
        )
        summary.record_auto_name(n, name)
        return name

    def _article_fetcher(
        self,
        article_id: str,
    ) -> Callable[[], Optional[CatalogArticle]]:
        """Lazy lookup shared by pricing and naming of one row.

        A CatalogUnavailableError is remembered and raised again on later
        calls for the same row.
        """
        fetched: List[Optional[CatalogArticle]] = []
        failed: List[CatalogUnavailableError] = []

        def fetch() -> Optional[CatalogArticle]:
            if failed:
                raise failed[0]
            if not fetched:
                article = None
                if article_id and self.article_lookup is not None:
                    try:
                        article = self.article_lookup.get_article(article_id)
                    except CatalogUnavailableError as exc:
                        failed.append(exc)
                        raise
                fetched.append(article)
            return fetched[0]

        return fetch
