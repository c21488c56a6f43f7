"""
Row Mapper
Turns raw sheet rows into keyed sections and canonical LineItemRow objects.

Angebot and Kunde come in two layouts:
  * vertical   - one (field, value) pair per row
  * horizontal - a header row of field names and one row of values
Positionen is always a header row plus data rows; alias columns
(qty/quantity, price/unitPriceAmount, ...) are resolved once here.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from openpyxl.utils.datetime import from_excel

from . import quote_config as cfg
from .models import LineItemRow

_DE_DATE_RE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{2}|\d{4})$")


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------

def cell_text(value: Any) -> str:
    """Render a cell as trimmed text; 1234.0 becomes "1234"."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def is_blank(value: Any) -> bool:
    return cell_text(value) == ""


def parse_date(value: Any) -> Optional[date]:
    """Parse a sheet date.

    Accepts date/datetime cells, Excel serial numbers, ISO strings
    (2025-01-31, 2025-01-31T10:00:00) and German dates (31.01.2025).
    Returns None if the value cannot be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        try:
            converted = from_excel(value)
        except (ValueError, OverflowError, TypeError):
            return None
        if isinstance(converted, datetime):
            return converted.date()
        if isinstance(converted, date):
            return converted
        return None

    text = str(value).strip()
    if not text:
        return None

    match = _DE_DATE_RE.match(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
        if year < 100:
            year += 2000
        try:
            return date(year, month, day)
        except ValueError:
            return None

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def _lookup_table(names: Iterable[str]) -> Dict[str, str]:
    """lower-case name -> canonical name."""
    return {n.lower(): n for n in names}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

class RowMapper:
    """Map raw sheet rows to keyed sections and LineItemRows."""

    def __init__(self, column_aliases: Optional[Dict[str, List[str]]] = None) -> None:
        self.column_aliases = column_aliases or cfg.LINE_ITEM_COLUMN_ALIASES

    # ------------------------------------------------------------------
    # Angebot / Kunde
    # ------------------------------------------------------------------

    def extract_section(
        self,
        rows: List[List[Any]],
        known_fields: List[str],
    ) -> Tuple[Dict[str, Any], str]:
        """Read a key/value section.

        Vertical layout is tried first; horizontal is the fallback.

        Returns:
            (values, layout) where layout is "vertical", "horizontal" or
            "empty".
        """
        rows = [r for r in rows if r and not all(is_blank(c) for c in r)]
        if not rows:
            return {}, "empty"

        known = _lookup_table(known_fields)

        columns = self._vertical_columns(rows, known)
        if columns is not None:
            field_col, value_col = columns
            values: Dict[str, Any] = {}
            for row in rows[1:]:
                key = cell_text(row[field_col]) if field_col < len(row) else ""
                if not key:
                    continue
                value = row[value_col] if value_col < len(row) else None
                values[known.get(key.lower(), key)] = value
            return values, "vertical"

        header = rows[0]
        data = rows[1] if len(rows) > 1 else []
        values = {}
        for idx, head in enumerate(header):
            key = cell_text(head)
            if not key:
                continue
            values[known.get(key.lower(), key)] = data[idx] if idx < len(data) else None
        return values, "horizontal"

    # ------------------------------------------------------------------
    # Positionen
    # ------------------------------------------------------------------

    def map_line_items(
        self,
        rows: List[List[Any]],
        first_row: int = 2,
    ) -> List[LineItemRow]:
        """Map a header + data rows sheet into LineItemRows.

        Row numbers follow the spreadsheet: the header is row 1, so the
        first data row is row 2.
        """
        if not rows:
            return []

        header = [cell_text(h) for h in rows[0]]
        records: List[Dict[str, Any]] = []
        for raw in rows[1:]:
            record: Dict[str, Any] = {}
            for idx, head in enumerate(header):
                if head:
                    record[head] = raw[idx] if idx < len(raw) else None
            records.append(record)

        return self.map_records(records, first_row=first_row)

    def map_records(
        self,
        records: List[Dict[str, Any]],
        first_row: int = 2,
    ) -> List[LineItemRow]:
        """Map dict records (sheet rows or parsed text lines) to LineItemRows."""
        return [
            self._to_line_item_row(record, first_row + offset)
            for offset, record in enumerate(records)
        ]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _vertical_columns(
        rows: List[List[Any]],
        known: Dict[str, str],
    ) -> Optional[Tuple[int, int]]:
        """Find the (field, value) column pair of a vertical sheet.

        Either the header names them (field/value, feld/wert, ...) or the
        header is free text and the first column below it holds known
        field names.
        """
        header = [cell_text(h).lower() for h in rows[0]]
        field_col = next(
            (i for i, h in enumerate(header) if h in cfg.VERTICAL_FIELD_HEADERS),
            None,
        )
        value_col = next(
            (i for i, h in enumerate(header) if h in cfg.VERTICAL_VALUE_HEADERS),
            None,
        )
        if field_col is not None and value_col is not None:
            return field_col, value_col

        first_column = [cell_text(r[0]).lower() for r in rows[1:] if r]
        if any(name in known for name in first_column):
            return 0, 1
        return None

    def _to_line_item_row(self, record: Dict[str, Any], row_number: int) -> LineItemRow:
        resolved: Dict[str, Any] = {}
        sources: Dict[str, str] = {}

        # Aliases are checked in their configured order
        lowered = {str(k).strip().lower(): (str(k).strip(), v) for k, v in record.items()}
        for canonical, aliases in self.column_aliases.items():
            for alias in aliases:
                hit = lowered.get(alias.lower())
                if hit is None or is_blank(hit[1]):
                    continue
                resolved[canonical] = hit[1]
                sources[canonical] = hit[0]
                break

        return LineItemRow(
            row_number=row_number,
            type=cell_text(resolved.get("type")).lower(),
            article_id=cell_text(resolved.get("articleId")),
            name=cell_text(resolved.get("name")),
            description=cell_text(resolved.get("description")),
            quantity=resolved.get("quantity"),
            unit_name=cell_text(resolved.get("unitName")),
            unit_price_amount=resolved.get("unitPriceAmount"),
            tax_rate_percentage=resolved.get("taxRatePercentage"),
            discount_percentage=resolved.get("discountPercentage"),
            source_columns=sources,
        )

