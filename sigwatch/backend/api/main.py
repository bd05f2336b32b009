"""
api/main.py

FastAPI application factory and the process-wide collaborators the routes
depend on (alert repository, search client).
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..search.client import SearchClient
from ..storage.repository import AlertRepository
from .routes import alerts as alerts_router
from .routes import preview as preview_router
from .routes import stats as stats_router

logger = logging.getLogger(__name__)

_repository: AlertRepository | None = None
_search_client: SearchClient | None = None


def set_repository(repo: AlertRepository) -> None:
    global _repository
    _repository = repo


def get_repository() -> AlertRepository:
    if _repository is None:
        raise RuntimeError("Repository not initialised — call set_repository() first")
    return _repository


def set_search_client(client: SearchClient) -> None:
    global _search_client
    _search_client = client


def get_search_client() -> SearchClient:
    if _search_client is None:
        raise RuntimeError("Search client not initialised — call set_search_client() first")
    return _search_client


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("FastAPI startup")
        yield
        logger.info("FastAPI shutdown")

    app = FastAPI(
        title="SigWatch — Detection Alerts",
        version="1.0.0",
        description="Query-rule alerting over a search backend",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(alerts_router.router,  prefix="/api")
    app.include_router(stats_router.router,   prefix="/api")
    app.include_router(preview_router.router, prefix="/api")

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "repository": _repository is not None,
            "search_client": _search_client is not None,
        }

    return app
