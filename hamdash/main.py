"""HAM Dashboard FastAPI backend: main application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from hamdash import config
from hamdash.observability import initialize as initialize_observability, shutdown as shutdown_observability
from hamdash.routers.analytics import analytics_router
from hamdash.routers.benchmark import benchmark_router
from hamdash.routers.cache import cache_router
from hamdash.routers.carbon import carbon_router
from hamdash.snapshot import SessionStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("hamdash")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    store: SessionStore = app.state.session_store
    logger.info("HAM dashboard starting up (project=%s)", store.project_path)
    initialize_observability(app)

    try:
        snapshot = await store.refresh()
        logger.info("Found %d sessions", len(snapshot.sessions))
    except Exception:
        # Requests retry the load through SessionStore.get_snapshot().
        logger.exception("Initial session parse failed")

    yield

    logger.info("HAM dashboard shutting down")
    shutdown_observability(app)


def create_app(project_path: Path | str | None = None, *, static_dir: str | None = None) -> FastAPI:
    app = FastAPI(
        title="HAM Dashboard API",
        description="Token, context-coverage and carbon analytics for Claude Code sessions",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.session_store = SessionStore(project_path or config.PROJECT_PATH)

    # CORS: allow the Vite dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            config.FRONTEND_ORIGIN,
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(analytics_router)
    app.include_router(carbon_router)
    app.include_router(benchmark_router)
    app.include_router(cache_router)

    dist = static_dir if static_dir is not None else config.STATIC_DIR
    if dist:
        if Path(dist).is_dir():
            app.mount("/", StaticFiles(directory=dist, html=True), name="dashboard")
        else:
            logger.warning("Dashboard not built: %s does not exist", dist)

    return app


app = create_app()
