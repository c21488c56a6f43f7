"""
Free-Text Order Parser
Turns pasted order text (one position per line, e.g. from an e-mail) into
Positionen records with the canonical line-item keys, so they can run
through the same QuotationBuilder validation as workbook rows.

Classification is keyword based. A line whose quantity cannot be found is
kept as a text row and reported as a warning.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple

from .price_resolver import PriceResolver

UUID_RE = re.compile(
    r"\b[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}\b",
    re.IGNORECASE,
)
SIZE_RE = re.compile(
    r"\b(XXXS|XXS|XS|S|M|L|XL|XXL|XXXL|XXXXL|5XL|4XL|3XL|2XL|\d{2,3})\b",
    re.IGNORECASE,
)
MONEY_RE = re.compile(r"(\d{1,4}(?:[.,]\d{1,2})?)\s?(?:€|eur\b)", re.IGNORECASE)
ARTNR_RE = re.compile(
    r"\b(?:art(?:ikel)?\.?\s?(?:nr\.?|no\.?|number)?|sku|ean|gtin|#)"
    r"\s*[:=]?\s*([A-Z0-9][A-Z0-9\-_./]{2,})\b",
    re.IGNORECASE,
)
_NOISE_RE = re.compile(
    r"\b(?:menge|qty|quantity|anzahl|art(?:ikel)?\.?\s?(?:nr\.?|no\.?|number)?"
    r"|sku|ean|gtin)\b\s*[:=]?\s*",
    re.IGNORECASE,
)
_BULLET_RE = re.compile(r"^[-*•●]+\s*")
_MULTI_SPACE_RE = re.compile(r" {2,}")

# (pattern, anchored at line start) - anchored matches are cut from the name
_QTY_PATTERNS = [
    (re.compile(
        r"^\s*(\d+(?:[.,]\d+)?)\s*"
        r"(x|stk|stck|stück|stueck|pcs|pc|pieces|piece|units|unit)\b",
        re.IGNORECASE,
    ), True),
    (re.compile(
        r"\b(?:menge|qty|quantity|anzahl)\s*[:=]\s*(\d+(?:[.,]\d+)?)\b",
        re.IGNORECASE,
    ), False),
    (re.compile(
        r"\b(\d+(?:[.,]\d+)?)\s*(stk|stück|stueck|pcs|pc|x)\s*$",
        re.IGNORECASE,
    ), False),
    (re.compile(r"^\s*(\d+(?:[.,]\d+)?)\s*\t"), True),
]

TEXT_KEYWORDS = (
    "lieferzeit", "hinweis", "bemerkung", "note", "info", "achtung", "bitte",
    "wichtig", "druckfreigabe", "freigabe", "required",
)
MATERIAL_KEYWORDS = (
    "t-?shirt", "shirt", "hoodie", "sweat", "zip", "jacke", "softshell", "cap",
    "mütze", "beanie", "hose", "textil", "rohware", "polo", "b&c", "gildan",
    "fruit", "stanley", "stella",
)
SERVICE_KEYWORDS = (
    "design", "grafik", "layout", "setup", "einrichtung", "digitalisierung",
    "stickprogramm", "vektor", "freistellung", "versand", "porto", "shipping",
)

_TYPE_RULES = [
    ("text", re.compile("|".join(TEXT_KEYWORDS), re.IGNORECASE)),
    ("material", re.compile("|".join(MATERIAL_KEYWORDS), re.IGNORECASE)),
    ("service", re.compile("|".join(SERVICE_KEYWORDS), re.IGNORECASE)),
]

DEFAULT_UNIT = "Stk"

# Text lines longer than this become a "Hinweis" row with the line as description
MAX_TEXT_NAME_LENGTH = 40


def clean_line(line: str) -> str:
    """Strip bullets and collapse repeated spaces."""
    text = (line or "").strip()
    text = _BULLET_RE.sub("", text)
    return _MULTI_SPACE_RE.sub(" ", text)


def guess_type(line: str) -> str:
    for line_type, pattern in _TYPE_RULES:
        if pattern.search(line):
            return line_type
    return "custom"


def extract_quantity(line: str) -> Tuple[Optional[float], Optional[str], str]:
    """Find a quantity in the line.

    Returns (quantity, unit, rest). Unit is always "Stk" when a quantity
    was found; rest is the line without a leading quantity.
    """
    for pattern, anchored in _QTY_PATTERNS:
        match = pattern.search(line)
        if not match:
            continue
        qty = PriceResolver.parse_amount(match.group(1))
        if qty is None:
            continue
        rest = pattern.sub("", line, count=1) if anchored else line
        return float(qty), DEFAULT_UNIT, rest.strip()
    return None, None, line.strip()


def extract_article_id(line: str) -> Optional[str]:
    match = UUID_RE.search(line)
    return match.group(0) if match else None


def extract_article_number(line: str) -> Optional[str]:
    match = ARTNR_RE.search(line)
    return match.group(1) if match else None


def extract_size(line: str) -> Optional[str]:
    match = SIZE_RE.search(line)
    return match.group(1) if match else None


def extract_price_hint(line: str) -> Optional[str]:
    """"12,50 €" -> "12.50"."""
    match = MONEY_RE.search(line)
    return match.group(1).replace(",", ".") if match else None


def _strip_noise(line: str) -> str:
    text = MONEY_RE.sub("", line, count=1).strip()
    text = _NOISE_RE.sub("", text)
    return _MULTI_SPACE_RE.sub(" ", text).strip()


def _expand_tab_quantity(line: str) -> str:
    """"5<TAB>Hoodie<TAB>navy" -> "5 Stk Hoodie navy"."""
    parts = [p.strip() for p in line.split("\t") if p.strip()]
    if len(parts) >= 2 and PriceResolver.parse_amount(parts[0]) is not None:
        return f"{parts[0]} {DEFAULT_UNIT} {' '.join(parts[1:])}"
    return line


def parse_lines(text: str) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Parse pasted order text.

    Args:
        text: Raw text, one position per line.

    Returns:
        (rows, warnings). Each row is a dict with the Positionen keys
        (type, articleId, name, description, quantity, unitName,
        unitPriceAmount) plus articleNumber. Warnings carry the 1-based
        line number of the non-empty line they refer to.
    """
    lines = [clean_line(raw) for raw in (text or "").splitlines()]
    lines = [line for line in lines if line]

    rows: List[Dict[str, Any]] = []
    warnings: List[Dict[str, Any]] = []

    for idx, original in enumerate(lines, start=1):
        work = _expand_tab_quantity(original)

        article_id = extract_article_id(work)
        article_number = extract_article_number(work)
        price_hint = extract_price_hint(work)
        line_type = guess_type(work)
        qty, unit, rest = extract_quantity(work)

        if line_type != "text" and qty is None:
            warnings.append({
                "line": idx,
                "message": (
                    "Keine Menge erkannt → als Hinweiszeile übernommen: "
                    f'"{original}"'
                ),
            })
            rows.append({
                "type": "text",
                "articleId": article_id,
                "articleNumber": article_number,
                "name": "Hinweis",
                "description": original,
                "quantity": None,
                "unitName": None,
                "unitPriceAmount": None,
            })
            continue

        name = _strip_noise(rest or work) or original
        size = extract_size(name)
        description: Optional[str] = None

        if line_type == "text":
            if len(name) > MAX_TEXT_NAME_LENGTH:
                description = name
                name = "Hinweis"
        else:
            hints = []
            if article_number:
                hints.append(f"ArtNr/SKU: {article_number}")
            if size:
                hints.append(f"Größe: {size}")
            if price_hint:
                hints.append(f"Preis-Hinweis: {price_hint} EUR")
            if hints:
                description = " • ".join(hints)

        rows.append({
            "type": line_type,
            "articleId": article_id,
            "articleNumber": article_number,
            "name": name,
            "description": description,
            "quantity": qty if line_type != "text" else None,
            "unitName": unit if line_type != "text" else None,
            "unitPriceAmount": price_hint if line_type != "text" else None,
        })

    return rows, warnings
