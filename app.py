"""
Origami Feed – filtered photo uploads and workspace feeds (FastAPI + SQLite)

Quick start
-----------
1) python -m venv .venv && source .venv/bin/activate
2) pip install -e .
3) python app.py  # auto-writes templates/static, DB and the out/ store
4) Open http://localhost:8001 → pick a workspace → Upload

Notes
-----
• Metadata lives in ./origami.db, image files under ./out/ (see ORIGAMI_* settings).
• Files are named <hash>.in.<ext>, <hash>.out.<ext> and <hash>.thumb.jpg.
• Thumbnails are generated on first request and cached forever.
"""

import logging
import sys
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from typing import Optional

from anyio import to_thread
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import Settings, get_settings
from database import build_engine, init_db
from gallery import GalleryService
from ingest import IngestionPipeline
from repository import OrigamiRepository
from routes import (
    comment,
    delete_origami,
    get_origami,
    health,
    index,
    like,
    list_filters,
    list_origami,
    list_tags,
    open_workspace,
    preview,
    share,
    stats,
    thumbnail,
    update_tags,
    upload_form,
    upload_image,
    upload_page,
    workspace_page,
)
from store import ContentStore
from templates_static import ensure_assets

LOG_FORMAT = "[%(asctime)s] %(levelname)s in %(module)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S%z"

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Console logging, plus a rotating file when ``log_file`` is set."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    root = logging.getLogger()
    root.setLevel(level)
    if settings.log_file:
        path = str(settings.log_file.resolve())
        if not any(getattr(h, "baseFilename", None) == path for h in root.handlers):
            settings.log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
            )
            handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
            root.addHandler(handler)


async def bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed parameters are a 400, not FastAPI's default 422."""
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application and its services from ``settings``."""
    settings = settings or get_settings()
    configure_logging(settings)

    engine = build_engine(settings)
    init_db(engine)
    store = ContentStore(settings.storage_dir, thumbnail_width=settings.thumbnail_width)
    repository = OrigamiRepository(engine)

    # Ensure templates and static files exist
    ensure_assets(settings.templates_dir, settings.static_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # bounds the worker pool shared by sync routes and upload processing
        to_thread.current_default_thread_limiter().total_tokens = settings.worker_threads
        logger.info(
            "Starting %s (store=%s, workers=%d)",
            settings.app_name, store.root.resolve(), settings.worker_threads,
        )
        yield
        engine.dispose()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.store = store
    app.state.repository = repository
    app.state.gallery = GalleryService(repository, page_size=settings.page_size)
    app.state.pipeline = IngestionPipeline(
        store, repository, default_workspace=settings.default_workspace
    )
    app.state.jinja_env = Environment(
        loader=FileSystemLoader(str(settings.templates_dir)),
        autoescape=select_autoescape(["html", "xml"]),
    )
    app.add_exception_handler(RequestValidationError, bad_request)

    # Mount static files
    app.mount("/static", StaticFiles(directory=str(settings.static_dir)), name="static")
    app.mount("/out", StaticFiles(directory=str(store.root)), name="out")

    # Routes
    app.get("/", response_class=HTMLResponse)(index)
    app.get("/health")(health)
    app.get("/w")(open_workspace)
    app.get("/w/")(open_workspace)
    app.get("/w/{workspace}", response_class=HTMLResponse)(workspace_page)
    app.get("/w/{workspace}/upload", response_class=HTMLResponse)(upload_page)

    # Uploads - MUST come before {origami_id} routes
    app.post("/origami/preview")(preview)
    app.post("/origami/image")(upload_image)
    app.post("/origami/form")(upload_form)

    # API endpoints
    app.get("/origami/list")(list_origami)
    app.get("/origami/json/{origami_id}")(get_origami)
    app.get("/origami/tags")(list_tags)
    app.get("/origami/filters")(list_filters)
    app.get("/origami/stats")(stats)
    app.get("/origami/thumbnail/{hash}")(thumbnail)
    app.post("/origami/{origami_id}/like")(like)
    app.post("/origami/{origami_id}/share")(share)
    app.post("/origami/{origami_id}/comment")(comment)
    app.post("/origami/{origami_id}/tag")(update_tags)
    app.delete("/origami/{origami_id}")(delete_origami)

    return app


if __name__ == "__main__":
    # Allow `python app.py 8000`
    settings = get_settings()
    port = int(sys.argv[1]) if len(sys.argv) > 1 else settings.port
    print(f"→ Open http://localhost:{port}")
    import uvicorn

    uvicorn.run("app:create_app", factory=True, host=settings.host, port=port)
