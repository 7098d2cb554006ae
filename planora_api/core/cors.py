"""Fixed CORS headers for the public account-lifecycle endpoints."""

from typing import Any

from starlette.responses import JSONResponse, PlainTextResponse

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def preflight_response() -> PlainTextResponse:
    """Answer an OPTIONS preflight."""
    return PlainTextResponse("ok", headers=CORS_HEADERS)


def cors_json(content: Any, status_code: int = 200) -> JSONResponse:
    """JSON response carrying the CORS headers."""
    return JSONResponse(content=content, status_code=status_code, headers=CORS_HEADERS)
