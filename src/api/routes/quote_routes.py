"""
Quotation routes - template download, workbook validation, quotation
creation (workbook or free text) and PDF download.
Calls the quote_bridge tool functions; no business logic lives here.
"""
import os
from typing import Any, Dict, Optional

from fastapi import APIRouter, File, Form, Query, UploadFile
from fastapi.responses import FileResponse, JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from quote_bridge import quote_config as cfg
from quote_bridge import quote_tools
from quote_bridge.workbook_template import XLSX_MEDIA_TYPE, template_bytes

router = APIRouter()

TEMPLATE_FILENAME = "Lexware_Template.xlsx"

# error_code -> HTTP status
_STATUS_BY_ERROR_CODE = {
    "FILE_INVALID": 400,
    "EXCEL_UNREADABLE": 400,
    "MISSING_ID": 400,
    "STRUCTURE_INVALID": 422,
    "VALIDATION_FAILED": 422,
    "API_KEY_MISSING": 500,
    "RATE_LIMITED": 429,
    "LEXWARE_ERROR": 502,
    "LEXWARE_UNREACHABLE": 503,
}


# ── Pydantic models ──────────────────────────────────────────────

class TextQuoteRequest(BaseModel):
    """Free-text order plus the offer and customer fields."""
    model_config = ConfigDict(populate_by_name=True)

    text: str
    offer: Dict[str, Any] = Field(default_factory=dict)
    customer: Dict[str, Any] = Field(default_factory=dict)
    allow_price_override: Optional[bool] = Field(default=None, alias="allowPriceOverride")


class TextPreviewRequest(BaseModel):
    """Free-text order to preview."""
    text: str


# ── Helpers ───────────────────────────────────────────────────────

def _respond(result: Dict[str, Any]) -> JSONResponse:
    """Map a tool result dict to a JSON response with the right status."""
    content = dict(result)
    content["ok"] = bool(result.get("success"))
    if content["ok"]:
        return JSONResponse(status_code=200, content=content)

    content.setdefault("message", result.get("error", ""))
    status_code = _STATUS_BY_ERROR_CODE.get(result.get("error_code", ""), 500)
    return JSONResponse(status_code=status_code, content=content)


def _no_file() -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "ok": False,
            "success": False,
            "message": "Keine Datei hochgeladen",
            "error_code": "FILE_MISSING",
        },
    )


# ── Routes ────────────────────────────────────────────────────────

@router.get(
    "/download-template-with-articles",
    summary="Download the quotation workbook template",
)
async def download_template():
    """
    Serve the Excel template with the Angebot, Kunde and Positionen sheets.

    A file at QUOTE_TEMPLATE_PATH wins; otherwise the built-in template is
    generated on the fly.
    """
    if os.path.exists(cfg.TEMPLATE_PATH):
        return FileResponse(
            cfg.TEMPLATE_PATH,
            filename=TEMPLATE_FILENAME,
            media_type=XLSX_MEDIA_TYPE,
        )
    content = await run_in_threadpool(template_bytes)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{TEMPLATE_FILENAME}"'},
    )


@router.post(
    "/validate-excel",
    summary="Validate a quotation workbook (no submission)",
)
async def validate_excel(
    file: Optional[UploadFile] = File(default=None),
    allow_price_override: Optional[bool] = Form(default=None, alias="allowPriceOverride"),
):
    """
    Run the full validation on an uploaded workbook.

    Returns the error/warning summary and, if valid, the payload that
    would be sent to Lexware.
    """
    if file is None:
        return _no_file()

    content = await file.read()
    result = await run_in_threadpool(
        quote_tools.validate_workbook,
        content,
        file.filename or "",
        allow_price_override,
    )
    return _respond(result)


@router.post(
    "/create-quote-from-excel",
    summary="Validate a workbook and create the quotation in Lexware",
)
async def create_quote_from_excel(
    file: Optional[UploadFile] = File(default=None),
    allow_price_override: Optional[bool] = Form(default=None, alias="allowPriceOverride"),
):
    """
    Create a finalized quotation from an uploaded workbook.

    Nothing is sent to Lexware when validation reports errors.
    """
    if file is None:
        return _no_file()

    content = await file.read()
    result = await run_in_threadpool(
        quote_tools.create_quote_from_workbook,
        content,
        file.filename or "",
        allow_price_override,
    )
    return _respond(result)


@router.post(
    "/create-quote-from-text",
    summary="Create a quotation from pasted order text",
)
async def create_quote_from_text(body: TextQuoteRequest):
    """Parse the text into positions, validate and create the quotation."""
    result = await run_in_threadpool(
        quote_tools.create_quote_from_text,
        body.text,
        body.offer,
        body.customer,
        body.allow_price_override,
    )
    return _respond(result)


@router.post(
    "/preview-text",
    summary="Preview how pasted text is split into positions",
)
async def preview_text(body: TextPreviewRequest):
    return _respond(quote_tools.preview_text_order(body.text))


@router.get(
    "/download-quote-pdf",
    summary="Download the PDF of an existing quotation",
)
async def download_quote_pdf(quotation_id: str = Query(default="", alias="id")):
    """Proxy the quotation document from Lexware."""
    result = await run_in_threadpool(quote_tools.download_quote_pdf, quotation_id)
    if not result["success"]:
        response = _respond(result)
        # Pass through Lexware's own status (e.g. 404 for an unknown id)
        if result.get("error_code") == "LEXWARE_ERROR" and result.get("status_code"):
            response.status_code = result["status_code"]
        return response

    document = result["document"]
    return Response(
        content=document.content,
        media_type=document.content_type,
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )
