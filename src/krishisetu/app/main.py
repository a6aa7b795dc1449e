"""FastAPI application entry point for the KrishiSetu marketplace API."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from krishisetu.app.config import get_settings
from krishisetu.infra.backend import build_backend
from krishisetu.infra.database import init_db
from krishisetu.services.exceptions import (
    BackendError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from krishisetu.services.offer_state_machine import InvalidTransitionError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: initialize storage and the backend on startup."""
    settings = get_settings()
    if settings.document_backend == "sql":
        await init_db()
    app.state.backend = build_backend(settings)
    logger.info("Backend ready (%s)", settings.document_backend)
    yield


settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.debug else logging.WARNING,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

app = FastAPI(
    title="KrishiSetu Marketplace API",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS middleware - allow all origins in debug mode for LAN/IP access
_cors_origins = settings.cors_origins_list
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=("*" not in _cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

_STATUS_BY_ERROR = [
    (NotFoundError, 404),
    (ValidationFailedError, 422),
    (InvalidTransitionError, 409),
    (PermissionDeniedError, 403),
    (BackendError, 502),
]


def _make_handler(status_code: int):
    async def handler(request: Request, exc: Exception):
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


for _error, _status in _STATUS_BY_ERROR:
    app.add_exception_handler(_error, _make_handler(_status))

# ---------------------------------------------------------------------------
# Route includes
# ---------------------------------------------------------------------------
from krishisetu.app.routes.auth import router as auth_router
from krishisetu.app.routes.profiles import router as profiles_router
from krishisetu.app.routes.listings import router as listings_router
from krishisetu.app.routes.offers import router as offers_router
from krishisetu.app.routes.transactions import router as transactions_router
from krishisetu.app.routes.ws import router as ws_router
from krishisetu.app.routes.demo import router as demo_router

app.include_router(auth_router)
app.include_router(profiles_router)
app.include_router(listings_router)
app.include_router(offers_router)
app.include_router(transactions_router)
app.include_router(ws_router)
app.include_router(demo_router)

# Static file mount for uploaded photos
_uploads_dir = Path(settings.uploads_dir)
_uploads_dir.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(_uploads_dir)), name="uploads")


@app.get("/health", tags=["health"])
async def health_check():
    """Return service health status."""
    return {"status": "ok", "service": "krishisetu"}


def run() -> None:
    """Run the application with uvicorn (used by project.scripts entry point)."""
    uvicorn.run(
        "krishisetu.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
