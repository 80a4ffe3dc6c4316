"""FastAPI application -- Workflow Review entrypoint."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

import wfreview.deps as deps
from wfreview.api.lint import router as lint_router
from wfreview.api.settings import router as settings_router
from wfreview.config import load_config
from wfreview.reviewer.engine import ReviewEngine
from wfreview.reviewer.registry import RULES

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init resources on startup, clean up on shutdown."""
    log_level = logging.DEBUG if os.environ.get("WFREVIEW_DEV_MODE") else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    deps._config = load_config()
    deps._review_engine = ReviewEngine(deps._config)
    logger.info("Workflow Review starting with %d rules", len(RULES))

    yield

    deps._config = None
    deps._review_engine = None


app = FastAPI(
    title="Workflow Review",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(lint_router)
app.include_router(settings_router)


@app.get("/api/health")
async def health() -> dict:
    """Report whether the review engine is ready."""
    return {"healthy": deps._review_engine is not None, "rules": len(RULES)}
