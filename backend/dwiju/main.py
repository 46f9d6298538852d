import logging
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dwiju.core.config import settings
from dwiju.core.database import init_db
from dwiju.core.errors import AppError
from dwiju.core.rate_limit import rate_limit
from dwiju.api import auth, chat, conversations, features
from dwiju.services.llm import get_llm_provider

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Configure logging based on debug setting
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s" if settings.debug
        else "%(levelname)-8s %(name)s: %(message)s",
    )

    init_db()

    # One provider client for the life of the process, injected via chat.get_provider
    app.state.llm_provider = get_llm_provider()
    logger.info(f"{settings.app_name} started with {settings.llm_provider} provider")

    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(message: str, code: str, details: dict | None = None, exc: Exception | None = None) -> dict:
    body: dict = {"success": False, "error": message, "code": code}
    if details:
        body["details"] = details
    if settings.debug and exc is not None:
        body["stack"] = "".join(traceback.format_exception(exc))
    return body


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    else:
        logger.debug(f"{request.method} {request.url.path}: {exc.code} {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, exc.code, exc.details, exc),
        headers=exc.headers or None,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = {
        "errors": [
            {"field": ".".join(str(p) for p in err["loc"][1:]), "message": err["msg"]}
            for err in exc.errors()
        ]
    }
    return JSONResponse(status_code=400, content=_error_body("Validation Error", "VALIDATION_ERROR", details))


_HTTP_ERROR_CODES = {404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # Raised by routing itself: unknown paths and unsupported methods
    if exc.status_code == 404:
        message, details = "Route not found", {"path": request.url.path}
    else:
        message, details = str(exc.detail), None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(message, _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"), details),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=_error_body("Internal server error", "INTERNAL_ERROR", exc=exc))


limited = [Depends(rate_limit)]
app.include_router(auth.router, prefix="/api/auth", tags=["auth"], dependencies=limited)
app.include_router(conversations.router, prefix="/api/chat/sessions", tags=["sessions"], dependencies=limited)
app.include_router(chat.router, prefix="/api/chat", tags=["chat"], dependencies=limited)
app.include_router(features.router, prefix="/api/features", tags=["features"], dependencies=limited)


@app.get("/api/health")
async def health():
    return {"status": "ok", "app": settings.app_name, "timestamp": datetime.now(timezone.utc).isoformat()}


def run() -> None:
    uvicorn.run(app, host=settings.host, port=settings.port, log_level="debug" if settings.debug else "info")


if __name__ == "__main__":
    run()
