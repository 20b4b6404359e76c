"""
HTML to Image API: FastAPI transport around the screenshot service.
"""

import logging
import os
import time
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import settings
from .errors import CaptureFailure, InvalidBody
from .middleware import RateLimiter, add_security_headers, apply_rate_limit
from .models import HealthResponse
from .screenshot_service import ScreenshotService
from .utils import image_headers
from .validation import MAX_DIMENSION, MIN_DIMENSION, flatten_body, parse_capture_request

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
log = logging.getLogger(__name__)

START_TIME = time.monotonic()

AVAILABLE_ENDPOINTS = [
    "GET /health",
    "GET /api/docs",
    "GET /screenshot",
    "POST /screenshot",
]

# Process-wide state: one stateless service and the rate-limit counters
screenshot_service = ScreenshotService(settings)
rate_limiter = RateLimiter(settings.RATE_LIMIT_WINDOW_MS, settings.RATE_LIMIT_MAX_REQUESTS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("HTML to Image API %s starting (output format: %s)", __version__, settings.OUTPUT_FORMAT)
    yield
    await screenshot_service.shutdown()
    log.info("HTML to Image API stopped")


app = FastAPI(
    title="HTML to Image API",
    description="Render a web page in headless Chromium and return an optimized screenshot",
    version=__version__,
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

if settings.ALLOWED_HOSTS != ["*"]:
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Image-Width", "X-Image-Height", "X-Original-Size",
                    "X-Compressed-Size", "X-Capture-Time-Ms"],
)


@app.middleware("http")
async def transport_guards(request: Request, call_next):
    if request.url.path == "/screenshot" and request.method != "OPTIONS":
        response = await apply_rate_limit(request, call_next, rate_limiter)
    else:
        response = await call_next(request)
    return add_security_headers(response, hsts=settings.tls_enabled)


@app.exception_handler(CaptureFailure)
async def capture_failure_handler(request: Request, exc: CaptureFailure):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse(
            status_code=404,
            content={"error": "Endpoint not found", "availableEndpoints": AVAILABLE_ENDPOINTS},
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail},
                        headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    content: Dict[str, Any] = {"error": "Internal server error", "code": "INTERNAL_ERROR"}
    if settings.DEBUG:
        content["message"] = str(exc)
        content["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return add_security_headers(JSONResponse(status_code=500, content=content), hsts=settings.tls_enabled)


async def _capture_response(raw: Dict[str, Any]) -> Response:
    capture_request = parse_capture_request(raw, settings)
    started = time.monotonic()
    image = await screenshot_service.capture(capture_request)
    elapsed_ms = (time.monotonic() - started) * 1000
    return Response(
        content=image.data,
        media_type=image.content_type,
        headers=image_headers(capture_request.url, image, elapsed_ms),
    )


@app.get("/screenshot")
async def screenshot_get(request: Request):
    """Capture a screenshot from query parameters"""
    return await _capture_response(dict(request.query_params))


@app.post("/screenshot")
async def screenshot_post(request: Request):
    """Capture a screenshot from a JSON body {url, options}"""
    try:
        body = await request.json()
    except ValueError as exc:
        raise InvalidBody("Request body must be valid JSON") from exc
    return await _capture_response(flatten_body(body))


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Liveness check"""
    return HealthResponse(
        status="OK",
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime=round(time.monotonic() - START_TIME, 3),
    )


@app.get("/api/docs")
async def api_docs():
    """Static description of the API"""
    dimension_range = f"{MIN_DIMENSION}-{MAX_DIMENSION}"
    return {
        "title": "HTML to Image API",
        "version": __version__,
        "description": "Convert web pages to optimized images",
        "outputFormat": settings.OUTPUT_FORMAT,
        "endpoints": {
            "GET /screenshot": {
                "description": "Take a screenshot using query parameters",
                "parameters": {
                    "url": "required - URL to capture (http:// or https://)",
                    "width": f"optional - viewport width in pixels ({dimension_range}, default: {settings.DEFAULT_WIDTH})",
                    "height": f"optional - viewport height in pixels ({dimension_range}, default: {settings.DEFAULT_HEIGHT})",
                    "quality": f"optional - image quality (1-100, default: {settings.DEFAULT_QUALITY})",
                    "fullPage": "optional - capture the full scrollable page (default: false)",
                    "waitUntil": "optional - load, domcontentloaded or network-idle (default: network-idle)",
                    "timeout": f"optional - navigation timeout in ms (default: {settings.DEFAULT_NAVIGATION_TIMEOUT_MS})",
                },
            },
            "POST /screenshot": {
                "description": "Take a screenshot using a JSON body",
                "body": {
                    "url": "required - URL to capture",
                    "options": "optional - width, height, quality, fullPage, waitUntil, timeout",
                },
            },
            "GET /health": {"description": "Health check"},
            "GET /api/docs": {"description": "This document"},
        },
        "limits": {
            "captureTimeoutMs": settings.CAPTURE_TIMEOUT_MS,
            "rateLimit": {
                "windowMs": settings.RATE_LIMIT_WINDOW_MS,
                "maxRequests": settings.RATE_LIMIT_MAX_REQUESTS,
            },
        },
    }


def run() -> None:
    import uvicorn

    ssl_options = {}
    if settings.tls_enabled:
        if os.path.exists(settings.SSL_CERT_PATH) and os.path.exists(settings.SSL_KEY_PATH):
            ssl_options = {"ssl_certfile": settings.SSL_CERT_PATH, "ssl_keyfile": settings.SSL_KEY_PATH}
        else:
            log.warning("TLS certificate or key not found, serving plain HTTP")
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, **ssl_options)


if __name__ == "__main__":
    run()
