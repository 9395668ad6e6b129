"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from remote.config import get_settings
from remote.controller import detach_all
from remote.db import close_db, init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hook."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    await init_db()
    logger.info("Device registry ready at %s", settings.db_abs_path)
    yield
    await detach_all()
    await close_db()
    logger.info("Sessions detached, registry closed")


app = FastAPI(
    title="cider-remote",
    version="0.1.0",
    lifespan=lifespan,
)

# Routers
from remote.routes_devices import router as devices_router  # noqa: E402
from remote.routes_player import router as player_router  # noqa: E402

app.include_router(devices_router)
app.include_router(player_router)


@app.get("/health")
async def health():
    """Simple health-check endpoint."""
    return JSONResponse({"status": "ok", "version": app.version})
