"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from .. import __version__
from ..auth import TokenValidator
from ..service import WorkflowService
from .errors import register_error_handlers
from .routes import router

logger = logging.getLogger(__name__)


def create_app(service: WorkflowService, validator: TokenValidator) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if service.tracker is not None:
            logger.info("Closing issue tracker client")
            await service.tracker.aclose()

    app = FastAPI(
        title="storyflow",
        description="Multi-turn agent workflows for user stories and test cases",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service
    app.state.validator = validator
    register_error_handlers(app)
    app.include_router(router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
