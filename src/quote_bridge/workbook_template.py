"""
Workbook Template
Generates the quotation workbook template (Angebot, Kunde, Positionen)
with example rows that pass validation as they are.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any, List, Tuple

from openpyxl import Workbook
from openpyxl.styles import Font

from . import quote_config as cfg

OFFER_EXAMPLE: List[Tuple[str, Any]] = [
    ("taxType", "net"),
    ("voucherDate", ""),
    ("expirationDate", ""),
    ("currency", "EUR"),
    ("taxRateDefault", 19),
    ("title", "Angebot"),
    ("introduction", "Vielen Dank für Ihre Anfrage."),
    ("remark", ""),
    ("shippingType", "service"),
]

CUSTOMER_EXAMPLE: List[Tuple[str, Any]] = [
    ("name", "Muster GmbH"),
    ("contactId", ""),
    ("street", "Musterstraße 1"),
    ("zip", "12345"),
    ("city", "Musterstadt"),
    ("countryCode", "DE"),
    ("email", ""),
    ("contactPerson", ""),
]

POSITION_HEADERS = [
    "type", "articleId", "name", "description", "quantity",
    "unitName", "unitPriceAmount", "taxRatePercentage", "discountPercent",
]

POSITION_EXAMPLES = [
    ["custom", "", "Siebdruck 1-farbig", "Brust vorne", 50, "Stk", "2,50", 19, ""],
    ["service", "", "Druckvorlage erstellen", "", 1, "Stk", 45, 19, ""],
    ["text", "", "", "Lieferzeit ca. 10 Werktage nach Freigabe", "", "", "", "", ""],
]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _bold_header(sheet) -> None:
    for cell in sheet[1]:
        cell.font = Font(bold=True)


def build_template() -> Workbook:
    """Create the template workbook in memory."""
    workbook = Workbook()

    offer = workbook.active
    offer.title = cfg.SHEET_OFFER
    offer.append(["field", "value"])
    for key, value in OFFER_EXAMPLE:
        offer.append([key, value])
    _bold_header(offer)

    customer = workbook.create_sheet(cfg.SHEET_CUSTOMER)
    customer.append(["field", "value"])
    for key, value in CUSTOMER_EXAMPLE:
        customer.append([key, value])
    _bold_header(customer)

    positions = workbook.create_sheet(cfg.SHEET_POSITIONS)
    positions.append(POSITION_HEADERS)
    for row in POSITION_EXAMPLES:
        positions.append(row)
    _bold_header(positions)

    return workbook


def template_bytes() -> bytes:
    """The template as .xlsx bytes."""
    buffer = io.BytesIO()
    build_template().save(buffer)
    return buffer.getvalue()


def write_template(path: str) -> str:
    """Write the template to ``path`` and return the path."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    build_template().save(path)
    return path
