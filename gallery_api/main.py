import logging
import traceback
import time
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from gallery_api.core.config import settings
from gallery_api.core.logging_config import setup_logging
from gallery_api.db.session import init_db
from gallery_api.routers import admin, health, media, photos

setup_logging()
logger = logging.getLogger("gallery.api")

app = FastAPI(title="Wedding Gallery API", version="0.1.0")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": settings.cors_allow_origins,
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Max-Age": "86400",  # cache preflight for 24h
}


@app.on_event("startup")
def startup():
    """Log config status at startup (no secrets) and make sure the photos table exists."""
    cfg = {
        "APP_ENV": settings.app_env,
        "DATABASE_URL_set": bool(settings.database_url),
        "BLOB_BACKEND": settings.blob_backend,
        "PUBLIC_BASE_URL": settings.resolved_public_base_url(),
        "AZURE_STORAGE_ACCOUNT": settings.azure_storage_account or "(empty)",
        "AZURE_STORAGE_ACCOUNT_KEY_set": bool(settings.azure_storage_account_key),
        "ADMIN_TOKEN_set": bool(settings.admin_token),
        "CORS_ALLOW_ORIGINS": settings.cors_allow_origins[:80],
        "MAX_UPLOAD_BYTES": settings.max_upload_bytes,
        "CLEANUP_ORPHANED_BLOBS": settings.cleanup_orphaned_blobs,
    }
    logger.info("Gallery API startup config: %s", cfg)
    if not settings.admin_token:
        logger.warning("ADMIN_TOKEN is not set: photo deletion is disabled")
    try:
        init_db()
    except Exception as e:
        # GET creates the table lazily, so a cold database is not fatal here
        logger.warning("startup: init_db failed: %s", e)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request and response for troubleshooting."""
    rid = f"{id(request):x}"
    path = request.url.path
    method = request.method
    start = time.perf_counter()
    logger.info("[%s] -> %s %s", rid, method, path)
    try:
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        status = response.status_code
        level = logging.WARNING if status >= 400 else logging.INFO
        logger.log(level, "[%s] <- %s %s %d %.0fms", rid, method, path, status, elapsed_ms)
        return response
    except Exception as e:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.exception("[%s] ERROR %s %s after %.0fms: %s", rid, method, path, elapsed_ms, e)
        raise


@app.middleware("http")
async def cors(request: Request, call_next):
    """Permissive CORS on every response; preflight is answered here with 204 and no body."""
    if request.method == "OPTIONS" and request.url.path.startswith("/api/"):
        return Response(status_code=204, headers=CORS_HEADERS)
    response = await call_next(request)
    for key, value in CORS_HEADERS.items():
        response.headers[key] = value
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Error bodies are {"error": message} with optional "details"."""
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [{"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()]


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch unhandled exceptions, log full traceback, return 500."""
    logger.exception(
        "Unhandled exception %s %s: %s\n%s",
        request.method,
        request.url.path,
        exc,
        traceback.format_exc(),
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": str(exc),
            "type": type(exc).__name__,
            "_traceback": traceback.format_exc() if settings.app_env != "production" else None,
        },
        headers=CORS_HEADERS,
    )


app.include_router(health.router)
app.include_router(photos.router)
app.include_router(admin.router)
app.include_router(media.router)
