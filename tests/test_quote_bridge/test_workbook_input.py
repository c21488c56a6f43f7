"""
Tests for the input side of the Quote Bridge: number parsing and price
resolution, row/section mapping and workbook loading.
"""

import sys
import unittest
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from quote_fixtures import article, make_builder, workbook_bytes  # noqa: E402

from quote_bridge.models import CatalogUnavailableError, PriceStatus  # noqa: E402
from quote_bridge.price_resolver import PriceResolver  # noqa: E402
from quote_bridge.row_mapper import RowMapper, cell_text, parse_date  # noqa: E402
from quote_bridge.workbook_loader import WorkbookLoader, WorkbookReadError  # noqa: E402
from quote_bridge.workbook_template import template_bytes  # noqa: E402
from quote_bridge import quote_config as cfg  # noqa: E402


# ======================================================================
# Test: PriceResolver
# ======================================================================


class TestPriceResolver(unittest.TestCase):
    """Amount parsing, net/gross conversion and catalog fallback."""

    def setUp(self):
        self.prices = PriceResolver(default_tax_rate="19", currency="EUR")

    def test_parse_amount(self):
        self.assertEqual(PriceResolver.parse_amount("6,9"), Decimal("6.9"))
        self.assertEqual(PriceResolver.parse_amount("6.9"), Decimal("6.9"))
        self.assertEqual(PriceResolver.parse_amount("1.234,56"), Decimal("1234.56"))
        self.assertEqual(PriceResolver.parse_amount("1,234.56"), Decimal("1234.56"))
        self.assertEqual(PriceResolver.parse_amount("1.234.567,8"), Decimal("1234567.8"))
        self.assertEqual(PriceResolver.parse_amount("1,234,567.8"), Decimal("1234567.8"))
        self.assertEqual(PriceResolver.parse_amount("12 €"), Decimal("12"))
        self.assertEqual(PriceResolver.parse_amount(7), Decimal("7"))
        self.assertEqual(PriceResolver.parse_amount(2.5), Decimal("2.5"))

    def test_parse_amount_rejects_garbage(self):
        self.assertIsNone(PriceResolver.parse_amount("abc"))
        self.assertIsNone(PriceResolver.parse_amount(""))
        self.assertIsNone(PriceResolver.parse_amount(None))
        self.assertIsNone(PriceResolver.parse_amount(True))
        self.assertIsNone(PriceResolver.parse_amount(float("nan")))
        self.assertIsNone(PriceResolver.parse_amount("NaN"))
        self.assertIsNone(PriceResolver.parse_amount(float("inf")))

    def test_conversion_rounds_half_up(self):
        self.assertEqual(PriceResolver.net_to_gross(Decimal("10"), Decimal("19")), Decimal("11.90"))
        self.assertEqual(PriceResolver.gross_to_net(Decimal("11.9"), Decimal("19")), Decimal("10.00"))
        self.assertEqual(PriceResolver.round_money(Decimal("0.125")), Decimal("0.13"))

    def test_supplied_net_amount(self):
        resolution = self.prices.resolve("net", "10")
        self.assertEqual(resolution.status, PriceStatus.RESOLVED)
        self.assertEqual(resolution.unit_price.net_amount, Decimal("10"))
        self.assertIsNone(resolution.unit_price.gross_amount)
        self.assertEqual(resolution.unit_price.tax_rate_percentage, Decimal("19"))

    def test_supplied_gross_amount_with_row_rate(self):
        resolution = self.prices.resolve("gross", "10,70", tax_rate_percentage="7")
        self.assertEqual(resolution.unit_price.gross_amount, Decimal("10.70"))
        self.assertEqual(resolution.unit_price.tax_rate_percentage, Decimal("7"))

    def test_zero_default_rate_is_kept(self):
        resolution = self.prices.resolve("net", 5, default_tax_rate=Decimal("0"))
        self.assertEqual(resolution.unit_price.tax_rate_percentage, Decimal("0"))

    def test_failures_are_typed(self):
        self.assertEqual(self.prices.resolve("brutto", 1).status, PriceStatus.MALFORMED_INPUT)
        self.assertEqual(self.prices.resolve("net", -1).status, PriceStatus.MALFORMED_INPUT)
        self.assertEqual(self.prices.resolve("net", None).status, PriceStatus.MISSING_PRICE)

        missing = self.prices.resolve(
            "net", None, article_id="a-1", fetch_article=lambda: None
        )
        self.assertEqual(missing.status, PriceStatus.ARTICLE_NOT_FOUND)
        self.assertFalse(missing.ok)

    def test_catalog_outage_is_its_own_failure(self):
        def unavailable():
            raise CatalogUnavailableError("a-1", "HTTP 503")

        resolution = self.prices.resolve(
            "net", None, article_id="a-1", fetch_article=unavailable
        )
        self.assertEqual(resolution.status, PriceStatus.CATALOG_UNAVAILABLE)
        self.assertFalse(resolution.ok)
        self.assertIn("erneut versuchen", resolution.message)

    def test_catalog_derives_missing_side(self):
        net_only = article("a-1", net=5, rate=19)
        gross = self.prices.resolve(
            "gross", None, article_id="a-1", fetch_article=lambda: net_only
        )
        self.assertTrue(gross.from_catalog)
        self.assertEqual(gross.unit_price.gross_amount, Decimal("5.95"))

        gross_only = article("a-2", gross=5.95, rate=19)
        net = self.prices.resolve(
            "net", None, article_id="a-2", fetch_article=lambda: gross_only
        )
        self.assertEqual(net.unit_price.net_amount, Decimal("5.00"))

    def test_catalog_rate_wins_over_row_rate(self):
        catalog = article("a-1", net=10, rate=7)
        resolution = self.prices.resolve(
            "gross", None, tax_rate_percentage=19,
            article_id="a-1", fetch_article=lambda: catalog,
        )
        self.assertEqual(resolution.unit_price.tax_rate_percentage, Decimal("7"))
        self.assertEqual(resolution.unit_price.gross_amount, Decimal("10.70"))

    def test_catalog_without_amounts(self):
        resolution = self.prices.resolve_from_catalog("net", None, Decimal("19"))
        self.assertEqual(resolution.status, PriceStatus.INCOMPLETE_CATALOG)

    def test_fetch_called_once(self):
        calls = []

        def fetch():
            calls.append(1)
            return article("a-1", net=1)

        self.prices.resolve("net", None, article_id="a-1", fetch_article=fetch)
        self.assertEqual(len(calls), 1)


# ======================================================================
# Test: RowMapper
# ======================================================================


class TestRowMapper(unittest.TestCase):
    """Section layouts, alias columns, dates and cell rendering."""

    def setUp(self):
        self.mapper = RowMapper()

    def test_vertical_with_header(self):
        values, layout = self.mapper.extract_section(
            [["Feld", "Wert"], ["TAXTYPE", "net"], [None, None], ["currency", "EUR"]],
            cfg.OFFER_FIELDS,
        )
        self.assertEqual(layout, "vertical")
        self.assertEqual(values, {"taxType": "net", "currency": "EUR"})

    def test_vertical_by_known_field_names(self):
        values, layout = self.mapper.extract_section(
            [["Kundendaten"], ["name", "Acme GmbH"], ["city", "Berlin"]],
            cfg.CUSTOMER_FIELDS,
        )
        self.assertEqual(layout, "vertical")
        self.assertEqual(values["name"], "Acme GmbH")

    def test_horizontal(self):
        values, layout = self.mapper.extract_section(
            [["Name", "City"], ["Acme GmbH", "Berlin"]],
            cfg.CUSTOMER_FIELDS,
        )
        self.assertEqual(layout, "horizontal")
        self.assertEqual(values, {"name": "Acme GmbH", "city": "Berlin"})

    def test_empty_section(self):
        self.assertEqual(self.mapper.extract_section([[None]], cfg.OFFER_FIELDS), ({}, "empty"))

    def test_line_items_row_numbers_start_at_two(self):
        rows = self.mapper.map_line_items([
            ["Type", "Name", "Qty"],
            ["Custom", "Druck", 3],
            [None, None, None],
            ["text", "Hinweis", None],
        ])
        self.assertEqual([r.row_number for r in rows], [2, 3, 4])
        self.assertEqual(rows[0].type, "custom")
        self.assertEqual(rows[0].quantity, 3)
        self.assertTrue(rows[1].is_blank)

    def test_alias_order(self):
        rows = self.mapper.map_line_items([
            ["price", "unitPriceAmount", "menge", "qty"],
            [1, 2, 5, 7],
            [1, None, None, 7],
        ])
        self.assertEqual(rows[0].unit_price_amount, 2)
        self.assertEqual(rows[0].source_columns["unitPriceAmount"], "unitPriceAmount")
        self.assertEqual(rows[0].quantity, 7)
        # Blank cells fall through to the next alias
        self.assertEqual(rows[1].unit_price_amount, 1)

    def test_map_records(self):
        rows = self.mapper.map_records([{"type": "custom", "name": "A"}], first_row=1)
        self.assertEqual(rows[0].row_number, 1)

    def test_parse_date(self):
        self.assertEqual(parse_date("31.01.2025"), date(2025, 1, 31))
        self.assertEqual(parse_date("31.01.25"), date(2025, 1, 31))
        self.assertEqual(parse_date("2025-01-31"), date(2025, 1, 31))
        self.assertEqual(parse_date(datetime(2025, 1, 31, 10, 0)), date(2025, 1, 31))
        self.assertEqual(parse_date(date(2025, 1, 31)), date(2025, 1, 31))
        self.assertEqual(parse_date(45658), date(2025, 1, 1))

    def test_parse_date_garbage(self):
        self.assertIsNone(parse_date("31.02.2025"))
        self.assertIsNone(parse_date("bald"))
        self.assertIsNone(parse_date(""))
        self.assertIsNone(parse_date(None))

    def test_cell_text(self):
        self.assertEqual(cell_text(1234.0), "1234")
        self.assertEqual(cell_text(12.5), "12.5")
        self.assertEqual(cell_text("  x "), "x")
        self.assertEqual(cell_text(None), "")


# ======================================================================
# Test: WorkbookLoader
# ======================================================================


class TestWorkbookLoader(unittest.TestCase):
    """File checks, sheet reading and the required-sheet check."""

    def setUp(self):
        self.loader = WorkbookLoader()

    def test_load_canonicalises_sheet_names(self):
        content = workbook_bytes({
            "angebot": [["field", "value"], ["taxType", "net"]],
            "KUNDE": [["field", "value"], ["name", "Acme GmbH"]],
            "Positionen": [["type", "name"], ["text", "Hinweis"]],
            "Notizen": [["frei"]],
        })
        sheets = self.loader.load(content)

        self.assertEqual(set(sheets), {"Angebot", "Kunde", "Positionen", "Notizen"})
        self.assertEqual(sheets["Angebot"][1], ["taxType", "net"])
        self.assertEqual(self.loader.check_required_sheets(sheets), [])

    def test_garbage_bytes(self):
        with self.assertRaises(WorkbookReadError):
            self.loader.load(b"this is not a workbook")

    def test_file_basics(self):
        ok, errors = self.loader.validate_file_basics(b"data", "angebot.csv")
        self.assertFalse(ok)
        self.assertIn("angebot.csv", errors[0].message)

        ok, errors = self.loader.validate_file_basics(b"", "angebot.xlsx")
        self.assertFalse(ok)
        self.assertEqual(errors[0].message, "Excel-Datei ist leer")

        ok, errors = self.loader.validate_file_basics(b"data", "Angebot.XLSX")
        self.assertTrue(ok)
        self.assertEqual(errors, [])

    def test_missing_sheets(self):
        issues = self.loader.check_required_sheets({"Angebot": []})
        self.assertEqual(
            [i.message for i in issues],
            ["Tabelle fehlt: Kunde", "Tabelle fehlt: Positionen"],
        )
        self.assertEqual(issues[0].row, 0)


# ======================================================================
# Test: Template
# ======================================================================


class TestWorkbookTemplate(unittest.TestCase):
    """The generated template must pass validation unchanged."""

    def test_template_validates(self):
        sheets = WorkbookLoader().load(template_bytes())
        builder, lookup = make_builder(service_requires_article_id=False)

        result = builder.build(sheets)

        self.assertTrue(result.success, [e.message for e in result.summary.errors])
        self.assertEqual(len(result.payload.line_items), 3)
        self.assertEqual(
            result.summary.by_type, {"custom": 1, "service": 1, "text": 1}
        )
        self.assertEqual(lookup.calls, [])


if __name__ == "__main__":
    unittest.main()
