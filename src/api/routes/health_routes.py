"""
Health and connectivity routes - public, no authentication required.
"""
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from quote_bridge import __version__
from quote_bridge import quote_tools

router = APIRouter()


@router.get(
    "/health",
    summary="Liveness check",
)
async def health_check():
    """Always answers while the process is up. No Lexware call is made."""
    return {"ok": True, "service": "Quote Bridge API", "version": __version__}


@router.get(
    "/api-test",
    summary="Lexware connection test",
)
async def api_test():
    """
    Read the Lexware profile with the configured API key.

    Returns the organisation name on success.
    """
    result = await run_in_threadpool(quote_tools.api_connection_test)
    if result["success"]:
        return {"ok": True, "org": result["organization"]}

    status_code = 500 if result["error_code"] == "API_KEY_MISSING" else 502
    return JSONResponse(
        status_code=status_code,
        content={
            "ok": False,
            "message": result["error"],
            "error_code": result["error_code"],
            "status": result.get("status_code"),
        },
    )
