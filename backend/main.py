# main.py — QMS Boards API
# Features:
# - Request correlation IDs + timing
# - Sanitised validation errors
# - Health check with DB verification
# - Board and task routers registered

import os
import json
import uuid
import time
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text

from database import init_db, close_db, get_db_session

VERSION = "1.0.0"

# Logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
)
logger = logging.getLogger("qms-boards")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🚀 Starting QMS Boards v{VERSION}...")
    await init_db()
    logger.info("✅ Database initialized")
    yield
    logger.info("🛑 Shutting down QMS Boards...")
    await close_db()


app = FastAPI(
    title="QMS Boards",
    description="Kanban boards for quality-management workflows",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ============================================================
# CORS
# ============================================================

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173"
    ).split(",")
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID", "X-Correlation-ID"],
    expose_headers=["X-Request-ID", "X-Correlation-ID"],
)


# ============================================================
# MIDDLEWARE: Request tracing
# ============================================================

TRACE_HEADERS = ("X-Request-ID", "X-Correlation-ID")


@app.middleware("http")
async def request_trace_middleware(request: Request, call_next):
    """Tag every request with request/correlation ids and log its outcome"""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    request.state.correlation_id = request.headers.get("X-Correlation-ID") or request_id

    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started

    for header, value in zip(TRACE_HEADERS, (request.state.request_id, request.state.correlation_id)):
        response.headers[header] = value
    response.headers["X-Response-Time"] = f"{elapsed:.4f}s"

    level = logging.WARNING if response.status_code >= 500 else logging.INFO
    logger.log(
        level,
        f"{request.method} {request.url.path} → {response.status_code} in {elapsed * 1000:.1f}ms "
        f"[cid={request.state.correlation_id}]",
    )
    return response


# ============================================================
# EXCEPTION HANDLERS
# ============================================================

def _error_body(request: Request, detail) -> dict:
    return {
        "detail": detail,
        "request_id": getattr(request.state, "request_id", None),
        "correlation_id": getattr(request.state, "correlation_id", None),
    }


def _jsonable_input(value):
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """422 with pydantic errors reduced to type/loc/msg/input"""
    errors = [
        {
            "type": str(err.get("type", "unknown")),
            "loc": list(err.get("loc", [])),
            "msg": str(err.get("msg", "")),
            **({"input": _jsonable_input(err["input"])} if "input" in err else {}),
        }
        for err in exc.errors()
    ]
    logger.info(f"Rejected {request.method} {request.url.path}: {len(errors)} validation error(s)")
    return JSONResponse(status_code=422, content=_error_body(request, errors))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path} "
        f"[cid={getattr(request.state, 'correlation_id', '-')}]: {exc}",
        exc_info=True,
    )
    return JSONResponse(status_code=500, content=_error_body(request, "Internal server error"))


# ============================================================
# ROUTERS
# ============================================================

from routers import boards, tasks

app.include_router(boards.router)
app.include_router(tasks.router)


# ============================================================
# HEALTH & ROOT
# ============================================================

@app.get("/health")
async def health_check():
    """Health check with database connectivity verification"""
    db_status = "unknown"
    try:
        async for db in get_db_session():
            await db.execute(text("SELECT 1"))
            db_status = "connected"
            break
    except Exception as e:
        db_status = f"error: {str(e)[:100]}"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "version": VERSION,
        "environment": os.getenv("ENVIRONMENT", "development"),
        "database": db_status,
    }


@app.get("/")
async def root():
    return {
        "name": "QMS Boards",
        "version": VERSION,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=os.getenv("ENVIRONMENT") != "production",
        workers=int(os.getenv("WORKERS", 1)),
    )
