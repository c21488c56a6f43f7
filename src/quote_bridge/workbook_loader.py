"""
Workbook Loader
Reads an uploaded .xlsx workbook into plain row lists and performs the
structural checks (file basics, required sheets) before any business
validation runs.
"""

from __future__ import annotations

import io
import zipfile
from typing import Any, Dict, List, Tuple

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from . import quote_config as cfg
from .models import ValidationIssue

SheetRows = List[List[Any]]


class WorkbookReadError(Exception):
    """Raised when the uploaded bytes are not a readable workbook."""


class WorkbookLoader:
    """Load workbook bytes and check the sheet structure."""

    ALLOWED_EXTENSIONS = (".xlsx", ".xlsm")

    def validate_file_basics(
        self,
        content: bytes,
        filename: str = "",
    ) -> Tuple[bool, List[ValidationIssue]]:
        """Check extension, emptiness and size of an upload.

        Returns (ok, errors).
        """
        errors: List[ValidationIssue] = []

        if filename and not filename.lower().endswith(self.ALLOWED_EXTENSIONS):
            errors.append(
                ValidationIssue(
                    message=f"Excel-Datei (.xlsx) erwartet, erhalten: {filename}",
                )
            )
            return False, errors

        if not content:
            errors.append(ValidationIssue(message="Excel-Datei ist leer"))
            return False, errors

        if len(content) > cfg.MAX_FILE_SIZE_BYTES:
            size_mb = round(len(content) / (1024 * 1024), 1)
            errors.append(
                ValidationIssue(
                    message=(
                        f"Excel-Datei überschreitet die Maximalgröße von "
                        f"{cfg.MAX_FILE_SIZE_MB} MB ({size_mb} MB)"
                    ),
                )
            )
            return False, errors

        return True, errors

    def load(self, content: bytes) -> Dict[str, SheetRows]:
        """Parse workbook bytes into ``{sheet_name: [[cell, ...], ...]}``.

        Cell values are returned as openpyxl delivers them with
        ``data_only=True`` (formulas resolved to their cached values).

        Raises:
            WorkbookReadError: if the bytes are not a readable workbook.
        """
        try:
            workbook = load_workbook(
                io.BytesIO(content), read_only=True, data_only=True
            )
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
            raise WorkbookReadError(
                f"Excel-Datei kann nicht gelesen werden: {exc}"
            ) from exc

        sheets: Dict[str, SheetRows] = {}
        try:
            for worksheet in workbook.worksheets:
                rows = [list(r) for r in worksheet.iter_rows(values_only=True)]
                sheets[self._canonical_sheet_name(worksheet.title)] = rows
        finally:
            workbook.close()

        return sheets

    def check_required_sheets(
        self,
        sheets: Dict[str, SheetRows],
    ) -> List[ValidationIssue]:
        """Return one structural error per missing required sheet."""
        return [
            ValidationIssue(
                sheet=name,
                row=0,
                field="",
                message=f"Tabelle fehlt: {name}",
            )
            for name in cfg.REQUIRED_SHEETS
            if name not in sheets
        ]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _canonical_sheet_name(title: str) -> str:
        """Map " kunde " to "Kunde"; unknown sheet names pass through."""
        stripped = (title or "").strip()
        for name in cfg.REQUIRED_SHEETS:
            if stripped.lower() == name.lower():
                return name
        return stripped
