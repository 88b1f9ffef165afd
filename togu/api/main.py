"""
togu.api.main — FastAPI application entry point
================================================

Run with::

    uvicorn togu.api.main:app --reload --port 8000

Requires ``AIRTABLE_KEY`` and ``JWT_SECRET`` (usually from ``.env``) and a
``config.yaml`` (or the path in ``TOGU_CONFIG``).
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from togu.api.deps import get_config  # noqa: E402
from togu.api.routes.feed import router as feed_router  # noqa: E402
from togu.api.routes.profile import router as profile_router  # noqa: E402
from togu.api.routes.questions import router as questions_router  # noqa: E402
from togu.api.serialize import level_dict  # noqa: E402
from togu.constants import DEFAULT_XP_PER_LEVEL, level_info  # noqa: E402
from togu.errors import (  # noqa: E402
    ContributionRejected,
    IdentityUnavailable,
    StoreError,
    VoteFailed,
)
from togu.session import SessionRegistry  # noqa: E402
from togu.store.client import RemoteStore  # noqa: E402

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — open the store client, drain sessions on exit."""
    if getattr(app.state, "registry", None) is None:
        cfg = get_config()
        api_key = os.getenv("AIRTABLE_KEY", "")
        if not api_key:
            raise RuntimeError("AIRTABLE_KEY environment variable is not set.")
        store = RemoteStore(
            cfg.base_id,
            api_key,
            store_url=cfg.store_url,
            timeout=cfg.request_timeout,
        )
        app.state.registry = SessionRegistry(store, cfg)
        logger.info("Togu API started — base %s", cfg.base_id)
    yield
    await app.state.registry.aclose()
    logger.info("Togu API shutting down")


app = FastAPI(
    title="Togu API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(feed_router, prefix="/api")
app.include_router(questions_router, prefix="/api")
app.include_router(profile_router, prefix="/api")


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
@app.exception_handler(IdentityUnavailable)
async def _identity_unavailable(request: Request, exc: IdentityUnavailable):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": IdentityUnavailable.user_message},
    )


@app.exception_handler(ContributionRejected)
async def _contribution_rejected(request: Request, exc: ContributionRejected):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc)},
    )


@app.exception_handler(VoteFailed)
async def _vote_failed(request: Request, exc: VoteFailed):
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": "Couldn't register your vote. Please try again.", "partial": exc.partial},
    )


@app.exception_handler(StoreError)
async def _store_error(request: Request, exc: StoreError):
    logger.warning("Store error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": "The question store is unavailable. Please try again."},
    )


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.get("/api/level")
def get_level(request: Request, points: int = Query(0, ge=0)):
    """Level projection of a point total."""
    registry = getattr(request.app.state, "registry", None)
    xp_per_level = registry.config.xp_per_level if registry else DEFAULT_XP_PER_LEVEL
    return level_dict(level_info(points, xp_per_level))
