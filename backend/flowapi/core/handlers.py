"""Exception handlers registered on the PalletFlow FastAPI app

Every error leaves the service with the same JSON body:

    {"detail", "error_code", "timestamp", "path", "details"}

so clients driving a simulation session can tell a missing session apart
from a refused spawn or an out-of-range tick without parsing messages.
"""
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from .exceptions import PalletFlowException
from .logging import logger


def error_body(request: Request, detail: str, error_code: str, details: Optional[Any] = None) -> dict:
    return {
        "detail": detail,
        "error_code": error_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
        "details": details,
    }


async def palletflow_exception_handler(request: Request, exc: PalletFlowException) -> JSONResponse:
    # 4xx responses log at warning level
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{request.method} {request.url.path} -> {exc.status_code} {exc.__class__.__name__}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.message, exc.__class__.__name__, exc.details),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")

    return JSONResponse(
        status_code=500,
        content=error_body(request, "An unexpected error occurred", "InternalServerError"),
    )
