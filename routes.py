"""FastAPI routes for Origami Feed."""
from typing import Dict, List, Optional
from urllib.parse import quote

from fastapi import Depends, Form, HTTPException, Query, Request
from fastapi.responses import FileResponse, HTMLResponse, RedirectResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import FormData

from config import Settings
from filters import available_filters
from gallery import GalleryService
from ingest import IngestionPipeline, Part, render_preview
from models import IngestReport, OrigamiRead
from repository import SORT_NEWEST, OrigamiRepository, encode_comments, present
from store import ContentStore


# Dependencies
def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_repository(request: Request) -> OrigamiRepository:
    return request.app.state.repository


def get_store(request: Request) -> ContentStore:
    return request.app.state.store


def get_gallery(request: Request) -> GalleryService:
    return request.app.state.gallery


def get_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.pipeline


def render(request: Request, name: str, **ctx) -> HTMLResponse:
    """Render template with context."""
    template = request.app.state.jinja_env.get_template(name)
    ctx.setdefault("title", "Origami Feed")
    ctx.setdefault("workspace", None)
    return HTMLResponse(template.render(**ctx))


async def read_parts(form: FormData) -> List[Part]:
    """Flatten a parsed multipart form into ingestion parts, in order."""
    parts = []
    for name, value in form.multi_items():
        if isinstance(value, str):
            parts.append(Part(name=name, value=value))
        else:
            parts.append(Part(name=name, filename=value.filename, data=await value.read()))
    return parts


# JSON API
def list_origami(
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    tag: Optional[str] = Query(None),
    sort: str = Query(SORT_NEWEST),
    workspace: Optional[str] = Query(None),
    gallery: GalleryService = Depends(get_gallery),
    settings: Settings = Depends(get_app_settings),
) -> List[OrigamiRead]:
    """One page of a workspace feed."""
    limit = min(limit or settings.page_size, settings.max_page_size)
    page = gallery.next_page(
        workspace or settings.default_workspace, offset, tag=tag, sort_by=sort, limit=limit
    )
    return [present(row) for row in page.items]


def get_origami(
    origami_id: int, repository: OrigamiRepository = Depends(get_repository)
) -> OrigamiRead:
    row = repository.get(origami_id)
    if not row:
        raise HTTPException(404, "Not found")
    return present(row)


def list_tags(
    workspace: Optional[str] = Query(None),
    gallery: GalleryService = Depends(get_gallery),
    settings: Settings = Depends(get_app_settings),
) -> List[str]:
    return gallery.tag_facets(workspace or settings.default_workspace)


def list_filters() -> List[str]:
    return available_filters()


def stats(gallery: GalleryService = Depends(get_gallery)) -> Dict[str, int]:
    """Image count per workspace."""
    return gallery.stats()


def thumbnail(hash: int, store: ContentStore = Depends(get_store)):
    """Serve the cached thumbnail, generating it on first request."""
    path = store.get_thumbnail(hash)
    if path is None:
        raise HTTPException(404, "Not found")
    return FileResponse(path)


def like(origami_id: int, repository: OrigamiRepository = Depends(get_repository)):
    likes = repository.increment_likes(origami_id)
    if likes is None:
        raise HTTPException(404, "Not found")
    return {"likes": likes}


def share(origami_id: int, repository: OrigamiRepository = Depends(get_repository)):
    shares = repository.increment_shares(origami_id)
    if shares is None:
        raise HTTPException(404, "Not found")
    return {"shares": shares}


def comment(
    origami_id: int,
    text: Optional[str] = Form(None),
    repository: OrigamiRepository = Depends(get_repository),
):
    """Append a comment and return the serialized comment log."""
    text = (text or "").strip()
    if not text:
        raise HTTPException(400, "Comment text required")
    comments = repository.append_comment(origami_id, text)
    if comments is None:
        raise HTTPException(404, "Not found")
    return {"comments": encode_comments(comments)}


def update_tags(
    origami_id: int,
    tags: str = Form(""),
    repository: OrigamiRepository = Depends(get_repository),
) -> OrigamiRead:
    if not repository.update_tags(origami_id, tags):
        raise HTTPException(404, "Not found")
    row = repository.get(origami_id)
    if not row:
        raise HTTPException(404, "Not found")
    return present(row)


def delete_origami(
    origami_id: int,
    purge: bool = Query(False),
    repository: OrigamiRepository = Depends(get_repository),
    store: ContentStore = Depends(get_store),
):
    """Delete the metadata row; stored files stay unless ``purge`` is set."""
    row = repository.get(origami_id)
    if not row or not repository.delete(origami_id):
        raise HTTPException(404, "Not found")
    removed = store.remove(row.hash) if purge else 0
    return {"deleted": origami_id, "files_removed": removed}


async def preview(request: Request, settings: Settings = Depends(get_app_settings)):
    """Filtered preview of ``customFile``; nothing is stored."""
    async with request.form() as form:
        parts = await read_parts(form)
    data = await run_in_threadpool(render_preview, parts, settings.preview_max_width)
    if data is None:
        raise HTTPException(400, "An image in 'customFile' is required")
    return Response(content=data, media_type="image/jpeg")


async def upload_image(
    request: Request, pipeline: IngestionPipeline = Depends(get_pipeline)
) -> IngestReport:
    async with request.form() as form:
        parts = await read_parts(form)
    return await run_in_threadpool(pipeline.ingest, parts)


async def upload_form(request: Request, pipeline: IngestionPipeline = Depends(get_pipeline)):
    """Browser form upload; lands back on the workspace feed."""
    async with request.form() as form:
        parts = await read_parts(form)
    report = await run_in_threadpool(pipeline.ingest, parts)
    return RedirectResponse(f"/w/{quote(report.workspace_id)}", 303)


def health():
    return {"status": "ok"}


# Pages
def index(request: Request, gallery: GalleryService = Depends(get_gallery)):
    """Landing page listing workspaces."""
    return render(request, "index.html", stats=gallery.stats())


def open_workspace(
    name: str = Query(""), settings: Settings = Depends(get_app_settings)
):
    return RedirectResponse(f"/w/{quote(name.strip() or settings.default_workspace)}", 303)


def workspace_page(
    request: Request,
    workspace: str,
    tag: Optional[str] = Query(None),
    sort: str = Query(SORT_NEWEST),
    gallery: GalleryService = Depends(get_gallery),
    settings: Settings = Depends(get_app_settings),
):
    """First page of a workspace feed; later pages come from /origami/list."""
    page = gallery.first_page(workspace, tag=tag, sort_by=sort)
    return render(
        request,
        "gallery.html",
        title=workspace,
        workspace=workspace,
        page=page,
        tags=gallery.tag_facets(workspace),
        tag=tag,
        sort=sort,
        limit=settings.page_size,
    )


def upload_page(
    request: Request, workspace: str, gallery: GalleryService = Depends(get_gallery)
):
    return render(
        request,
        "upload.html",
        title=f"Upload to {workspace}",
        workspace=workspace,
        filters=available_filters(),
        tags=gallery.tag_facets(workspace),
    )
