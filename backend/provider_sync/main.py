"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from provider_sync.config import get_settings
from provider_sync.db.session import SessionLocal
from provider_sync.routers import sync

logger = logging.getLogger(__name__)


def _check_database() -> None:
    """Open one connection at process start so a bad DATABASE_URL shows up early."""

    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database check failed; continuing without startup connection.")


@asynccontextmanager
async def lifespan(_: FastAPI):
    _check_database()
    yield


app = FastAPI(title=get_settings().app_name, version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sync.router, tags=["sync"])


@app.get("/health")
def health() -> dict[str, str]:
    """Simple health check endpoint."""

    return {"status": "ok"}
