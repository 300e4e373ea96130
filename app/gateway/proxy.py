# =====================================================
# FILE: app/gateway/proxy.py
# API route handlers of the user and admin apps.
# Each request is forwarded to the backend as-is, with the
# session cookie and CSRF header, and the backend's answer
# is returned unchanged.
# =====================================================

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from typing import Optional
import logging

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

FORWARDED_REQUEST_HEADERS = (
    "cookie",
    "x-csrf-token",
    "content-type",
    "authorization",
    "x-request-id",
)

FORWARDED_RESPONSE_HEADERS = (
    "content-disposition",
    "x-request-id",
)


def build_backend_url(backend_url: str, path: str, query: str = "") -> str:
    url = f"{backend_url.rstrip('/')}/{path.lstrip('/')}"
    return f"{url}?{query}" if query else url


def forwarded_headers(request: Request) -> dict:
    return {
        name: request.headers[name]
        for name in FORWARDED_REQUEST_HEADERS
        if name in request.headers
    }


def to_client_response(backend_response: httpx.Response) -> Response:
    response = Response(
        content=backend_response.content,
        status_code=backend_response.status_code,
        media_type=backend_response.headers.get("content-type"),
    )
    for name in FORWARDED_RESPONSE_HEADERS:
        if name in backend_response.headers:
            response.headers[name] = backend_response.headers[name]
    for cookie in backend_response.headers.get_list("set-cookie"):
        response.headers.append("set-cookie", cookie)
    return response


async def forward(
    request: Request,
    backend_url: str,
    path: str,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> Response:
    url = build_backend_url(backend_url, path, request.url.query)
    body = await request.body()

    try:
        async with httpx.AsyncClient(
            transport=transport,
            timeout=settings.GATEWAY_TIMEOUT_SECONDS
        ) as client:
            backend_response = await client.request(
                request.method,
                url,
                content=body or None,
                headers=forwarded_headers(request),
            )
    except httpx.ConnectError as e:
        logger.error(f"❌ Backend unreachable for {request.method} /{path}: {e}")
        return JSONResponse(status_code=502, content={"message": "Backend service unavailable"})
    except httpx.TimeoutException as e:
        logger.error(f"❌ Backend timeout for {request.method} /{path}: {e}")
        return JSONResponse(status_code=504, content={"message": "Backend request timed out"})
    except Exception as e:
        logger.error(f"❌ Proxy error for {request.method} /{path}: {e}")
        return JSONResponse(status_code=500, content={"message": "Internal proxy error"})

    logger.debug(f"{request.method} /{path} -> {backend_response.status_code}")
    return to_client_response(backend_response)


def create_gateway_app(
    backend_url: str,
    app_name: str,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> FastAPI:
    """
    Build the API layer of a browser-facing app. `/api/health` bootstraps the
    CSRF cookie and `/api/{path}` reaches `{backend_url}/{path}`.
    """
    app = FastAPI(title=app_name, docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/api/health")
    async def health(request: Request):
        return await forward(request, backend_url, "health", transport)

    @app.api_route("/api/{path:path}", methods=PROXY_METHODS)
    async def proxy(path: str, request: Request):
        return await forward(request, backend_url, path, transport)

    return app
