"""
Price Resolver
Turns a tax type, an optional sheet amount and a tax rate into a Lexware
unitPrice, falling back to the catalog price of a referenced article.

Net/gross conversion keeps the percentage rate fixed:
    gross = net * (1 + rate / 100)
    net   = gross / (1 + rate / 100)
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Optional

from . import quote_config as cfg
from .models import (
    CatalogArticle,
    CatalogPrice,
    CatalogUnavailableError,
    PriceResolution,
    PriceStatus,
    UnitPrice,
)

_CENT = Decimal("0.01")
_HUNDRED = Decimal("100")


class PriceResolver:
    """Resolve unit prices from sheet values or catalog data."""

    def __init__(
        self,
        default_tax_rate: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> None:
        parsed_rate = self.parse_amount(
            cfg.DEFAULT_TAX_RATE if default_tax_rate is None else default_tax_rate
        )
        self.default_tax_rate = parsed_rate if parsed_rate is not None else Decimal("19")
        self.currency = currency or cfg.DEFAULT_CURRENCY

    # ------------------------------------------------------------------
    # Number helpers
    # ------------------------------------------------------------------

    @staticmethod
    def parse_amount(value: Any) -> Optional[Decimal]:
        """Parse a sheet value into a Decimal.

        Accepts "6,9", "6.9", "1.234,56" and "1,234.56": with both
        separators present the rightmost one is the decimal point. Returns
        None for empty or unparseable input (never 0), so callers can fall
        back.
        """
        if value is None or isinstance(value, bool):
            return None

        if isinstance(value, Decimal):
            return value if value.is_finite() else None

        if isinstance(value, (int, float)):
            if isinstance(value, float) and not math.isfinite(value):
                return None
            return Decimal(str(value))

        text = str(value).strip()
        text = text.replace("€", "").replace(" ", "").replace(" ", "")
        if not text:
            return None

        if "," in text and "." in text:
            if text.rfind(",") > text.rfind("."):
                text = text.replace(".", "").replace(",", ".")
            else:
                text = text.replace(",", "")
        else:
            text = text.replace(",", ".")

        try:
            parsed = Decimal(text)
        except (InvalidOperation, ValueError):
            return None
        return parsed if parsed.is_finite() else None

    @staticmethod
    def round_money(value: Decimal) -> Decimal:
        """Round half-up to cents."""
        return value.quantize(_CENT, rounding=ROUND_HALF_UP)

    @classmethod
    def net_to_gross(cls, net: Decimal, rate: Decimal) -> Decimal:
        return cls.round_money(net * (1 + rate / _HUNDRED))

    @classmethod
    def gross_to_net(cls, gross: Decimal, rate: Decimal) -> Decimal:
        return cls.round_money(gross / (1 + rate / _HUNDRED))

    def effective_tax_rate(
        self,
        row_rate: Any,
        default_rate: Optional[Decimal] = None,
    ) -> Decimal:
        """Row rate if parseable, else the offer default, else the process default."""
        parsed = self.parse_amount(row_rate)
        if parsed is not None:
            return parsed
        if default_rate is not None:
            return default_rate
        return self.default_tax_rate

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(
        self,
        tax_type: str,
        supplied_amount: Any,
        tax_rate_percentage: Any = None,
        article_id: str = "",
        fetch_article: Optional[Callable[[], Optional[CatalogArticle]]] = None,
        currency: Optional[str] = None,
        default_tax_rate: Optional[Decimal] = None,
    ) -> PriceResolution:
        """Resolve a unit price.

        Args:
            tax_type: "net" or "gross"; decides which amount side is set.
            supplied_amount: Raw sheet value, or None to use the catalog.
            tax_rate_percentage: Raw row tax rate (optional).
            article_id: Catalog reference used when no amount is supplied.
            fetch_article: Zero-argument callable returning the catalog
                article (or None if not found). Called at most once; may
                raise CatalogUnavailableError.
            currency: ISO currency code for the unitPrice.
            default_tax_rate: Offer-level default rate.

        Returns:
            PriceResolution; check ``.ok`` and ``.status``.
        """
        currency = currency or self.currency

        if tax_type not in cfg.VALID_TAX_TYPES:
            return PriceResolution(
                status=PriceStatus.MALFORMED_INPUT,
                message=f"Unbekannter Steuertyp '{tax_type}' (erlaubt: net, gross).",
            )

        rate = self.effective_tax_rate(tax_rate_percentage, default_tax_rate)
        amount = self.parse_amount(supplied_amount)

        if amount is not None:
            if amount < 0:
                return PriceResolution(
                    status=PriceStatus.MALFORMED_INPUT,
                    message="Preis muss 0 oder größer sein.",
                )
            return PriceResolution(
                status=PriceStatus.RESOLVED,
                unit_price=self._unit_price(tax_type, amount, rate, currency),
            )

        if not article_id:
            return PriceResolution(
                status=PriceStatus.MISSING_PRICE,
                message="Preis fehlt (ohne articleId ist ein Preis Pflicht).",
            )

        try:
            article = fetch_article() if fetch_article else None
        except CatalogUnavailableError:
            return PriceResolution(
                status=PriceStatus.CATALOG_UNAVAILABLE,
                message=(
                    f"Katalog nicht erreichbar, Preis für Artikel {article_id} "
                    "konnte nicht geladen werden. Bitte später erneut versuchen."
                ),
            )
        if article is None:
            return PriceResolution(
                status=PriceStatus.ARTICLE_NOT_FOUND,
                message=f"Artikel {article_id} nicht gefunden, Preis kann nicht ermittelt werden.",
            )

        return self.resolve_from_catalog(tax_type, article.price, rate, currency)

    def resolve_from_catalog(
        self,
        tax_type: str,
        catalog_price: Optional[CatalogPrice],
        fallback_rate: Decimal,
        currency: Optional[str] = None,
    ) -> PriceResolution:
        """Build a unitPrice from catalog data, deriving the missing side."""
        currency = currency or self.currency

        if catalog_price is None or (
            catalog_price.net_price is None and catalog_price.gross_price is None
        ):
            return PriceResolution(
                status=PriceStatus.INCOMPLETE_CATALOG,
                message="Katalogartikel hat weder Netto- noch Bruttopreis.",
            )

        rate = (
            catalog_price.tax_rate
            if catalog_price.tax_rate is not None
            else fallback_rate
        )

        if tax_type == "net":
            if catalog_price.net_price is not None:
                amount = self.round_money(catalog_price.net_price)
            else:
                amount = self.gross_to_net(catalog_price.gross_price, rate)
        else:
            if catalog_price.gross_price is not None:
                amount = self.round_money(catalog_price.gross_price)
            else:
                amount = self.net_to_gross(catalog_price.net_price, rate)

        return PriceResolution(
            status=PriceStatus.RESOLVED_FROM_CATALOG,
            unit_price=self._unit_price(tax_type, amount, rate, currency),
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _unit_price(
        tax_type: str,
        amount: Decimal,
        rate: Decimal,
        currency: str,
    ) -> UnitPrice:
        if tax_type == "gross":
            return UnitPrice(
                currency=currency,
                tax_rate_percentage=rate,
                gross_amount=amount,
            )
        return UnitPrice(
            currency=currency,
            tax_rate_percentage=rate,
            net_amount=amount,
        )
