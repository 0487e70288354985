"""FastAPI application for Casegraph.

Wires together settings, the SQLite signal store and the API routes.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from casegraph.config import Settings
from casegraph.db import InvestigationStore, SQLiteDB
from casegraph.selection import ViewPreferences

settings = Settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the store on startup and close it on shutdown."""
    data_dir = Path(settings.DATABASE_DIR)
    data_dir.mkdir(parents=True, exist_ok=True)

    db = SQLiteDB(str(data_dir / "casegraph.db"))
    app.state.settings = settings
    app.state.db = db
    app.state.store = InvestigationStore(db)
    app.state.preferences = ViewPreferences.from_settings(settings)
    logger.info("Signal store opened at %s", data_dir)

    yield

    db.close()


app = FastAPI(
    title="Casegraph",
    description="Evidence graphs and views for investigation threads",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from casegraph.api.routes import router as api_router  # noqa: E402

app.include_router(api_router)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/api/v1/preferences")
async def preferences() -> dict[str, object]:
    """Startup view preferences for the workspace UI."""
    return app.state.preferences.model_dump()
