"""
Quote Bridge Configuration
Loads environment variables (and a local .env file when present) and
provides defaults for the Excel-to-Lexware quotation pipeline.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Project root (two levels up from this file: src/quote_bridge/quote_config.py)
# ---------------------------------------------------------------------------
QUOTE_BRIDGE_ROOT = Path(__file__).parent
PROJECT_ROOT = QUOTE_BRIDGE_ROOT.parent.parent

# Local development only; deployed environments inject real variables
_env_file = PROJECT_ROOT / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


# ---------------------------------------------------------------------------
# Lexware API
# ---------------------------------------------------------------------------
LEXWARE_API_KEY: str = os.getenv("LEXWARE_API_KEY", "")
LEXWARE_BASE_URL: str = os.getenv("LEXWARE_BASE_URL", "https://api.lexware.io")
LEXWARE_TIMEOUT_CONNECT: int = int(os.getenv("LEXWARE_TIMEOUT_CONNECT", "10"))
LEXWARE_TIMEOUT_READ: int = int(os.getenv("LEXWARE_TIMEOUT_READ", "30"))
LEXWARE_MAX_RETRIES: int = int(os.getenv("LEXWARE_MAX_RETRIES", "3"))

# Lexware allows 2 requests per second per API key
LEXWARE_RATE_LIMIT_PER_SECOND: int = int(os.getenv("LEXWARE_RATE_LIMIT_PER_SECOND", "2"))

# ---------------------------------------------------------------------------
# Quotation defaults
# ---------------------------------------------------------------------------
DEFAULT_TAX_RATE: str = os.getenv("QUOTE_DEFAULT_TAX_RATE", "19")
DEFAULT_CURRENCY: str = os.getenv("QUOTE_DEFAULT_CURRENCY", "EUR")
DEFAULT_COUNTRY_CODE: str = os.getenv("QUOTE_DEFAULT_COUNTRY_CODE", "DE")
DEFAULT_SHIPPING_TYPE: str = os.getenv("QUOTE_DEFAULT_SHIPPING_TYPE", "service")
EXPIRATION_DAYS: int = int(os.getenv("QUOTE_EXPIRATION_DAYS", "14"))

# ---------------------------------------------------------------------------
# Validation policy
# ---------------------------------------------------------------------------
# True: a price in the sheet wins over the catalog price for rows that also
# carry an articleId. Material rows always take the catalog price.
ALLOW_PRICE_OVERRIDE: bool = _env_bool("QUOTE_ALLOW_PRICE_OVERRIDE", "true")

# Some sheet templates require an articleId on service rows as well
SERVICE_REQUIRES_ARTICLE_ID: bool = _env_bool("QUOTE_SERVICE_REQUIRES_ARTICLE_ID", "false")

# False: blank names on catalog rows become "Artikel <id>" without a lookup
LIVE_ARTICLE_TITLES: bool = _env_bool("QUOTE_LIVE_ARTICLE_TITLES", "true")

# ---------------------------------------------------------------------------
# Processing limits
# ---------------------------------------------------------------------------
MAX_FILE_SIZE_MB: int = int(os.getenv("QUOTE_MAX_FILE_SIZE_MB", "5"))
MAX_FILE_SIZE_BYTES: int = MAX_FILE_SIZE_MB * 1024 * 1024
MAX_ROWS: int = int(os.getenv("QUOTE_MAX_ROWS", "500"))

TEMPLATE_PATH: str = os.getenv(
    "QUOTE_TEMPLATE_PATH",
    str(PROJECT_ROOT / "templates" / "Lexware_Template.xlsx"),
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR: str = os.getenv("LOG_DIR", str(PROJECT_ROOT / "logs"))
LOG_FILE_MAX_MB: int = int(os.getenv("LOG_FILE_MAX_MB", "10"))
LOG_FILE_BACKUP_COUNT: int = int(os.getenv("LOG_FILE_BACKUP_COUNT", "5"))

AUDIT_LOG_DIR: str = os.getenv(
    "QUOTE_AUDIT_LOG_DIR",
    str(PROJECT_ROOT / "logs" / "quote_bridge"),
)
AUDIT_LOG_MAX_MB: int = int(os.getenv("QUOTE_AUDIT_LOG_MAX_MB", "10"))
AUDIT_LOG_BACKUP_COUNT: int = int(os.getenv("QUOTE_AUDIT_LOG_BACKUP_COUNT", "5"))

# ---------------------------------------------------------------------------
# REST API
# ---------------------------------------------------------------------------
API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", os.getenv("PORT", "3000")))
API_CORS_ORIGINS = [
    o.strip() for o in os.getenv("API_CORS_ORIGINS", "*").split(",") if o.strip()
]
API_RATE_LIMIT_PER_MINUTE: int = int(os.getenv("API_RATE_LIMIT_PER_MINUTE", "60"))

# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------
SHEET_OFFER = "Angebot"
SHEET_CUSTOMER = "Kunde"
SHEET_POSITIONS = "Positionen"
REQUIRED_SHEETS = [SHEET_OFFER, SHEET_CUSTOMER, SHEET_POSITIONS]

VALID_TAX_TYPES = {"net", "gross"}
VALID_LINE_ITEM_TYPES = {"custom", "material", "service", "text"}

# Types whose rows must reference a catalog article
ARTICLE_REQUIRED_TYPES = {"material"}

# Header names accepted for the two columns of a vertical (field/value) sheet
VERTICAL_FIELD_HEADERS = {"field", "feld", "key", "schluessel"}
VERTICAL_VALUE_HEADERS = {"value", "wert"}

# ---------------------------------------------------------------------------
# Positionen columns: canonical name -> accepted header aliases (in order)
# ---------------------------------------------------------------------------
LINE_ITEM_COLUMN_ALIASES = {
    "type": ["type", "typ"],
    "articleId": ["articleId", "article_id", "artikelId"],
    "name": ["name", "bezeichnung"],
    "description": ["description", "beschreibung"],
    "quantity": ["quantity", "qty", "menge"],
    "unitName": ["unitName", "unit", "einheit"],
    "unitPriceAmount": ["unitPriceAmount", "price", "preis"],
    "taxRatePercentage": ["taxRatePercentage", "taxRate", "steuersatz"],
    "discountPercentage": ["discountPercent", "discountPercentage", "discount", "rabatt"],
}

OFFER_FIELDS = [
    "taxType",
    "voucherDate",
    "expirationDate",
    "currency",
    "taxRateDefault",
    "title",
    "introduction",
    "remark",
    "shippingType",
    "shippingDate",
]

CUSTOMER_FIELDS = [
    "name",
    "contactId",
    "street",
    "zip",
    "city",
    "countryCode",
    "email",
    "contactPerson",
    "phone",
    "supplement",
]


def validate_config():
    """Validate settings that would break the pipeline at runtime.

    A missing LEXWARE_API_KEY is not fatal here: validation still works,
    only submission and catalog lookups need it.
    """
    errors = []

    if LEXWARE_RATE_LIMIT_PER_SECOND < 1:
        errors.append("LEXWARE_RATE_LIMIT_PER_SECOND must be at least 1")

    if LEXWARE_MAX_RETRIES < 1:
        errors.append("LEXWARE_MAX_RETRIES must be at least 1")

    if MAX_ROWS < 1:
        errors.append("QUOTE_MAX_ROWS must be at least 1")

    if EXPIRATION_DAYS < 0:
        errors.append("QUOTE_EXPIRATION_DAYS must not be negative")

    if errors:
        raise ValueError("Configuration errors:\n" + "\n".join(errors))

    return True
