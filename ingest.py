"""Upload ingestion: filter resolution, storage, transform, registration."""
import logging
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from typing import IO, Iterable, Iterator, Optional, Sequence

from PIL import Image as PILImage

import imaging
from filters import Filter, FilterError, NoOp, build_filter, parse_description
from models import CreatedImage, FailedImage, IngestReport
from repository import OrigamiRepository
from store import OUT, ContentStore
from utils import DEFAULT_EXTENSION, extension_of, normalize_tags

logger = logging.getLogger(__name__)

FILTER_CLASS_FIELD = "filterClass"
FILTER_FIELD = "filter"
TAGS_FIELD = "tags"
WORKSPACE_FIELD = "workspace"
PREVIEW_FILE_FIELD = "customFile"
CONTROL_FIELDS = {FILTER_CLASS_FIELD, FILTER_FIELD, TAGS_FIELD, WORKSPACE_FIELD}
PREVIEW_MAX_WIDTH = 800


@dataclass
class Part:
    """One named part of a multipart request: a form field or a file."""
    name: str
    value: Optional[str] = None
    filename: Optional[str] = None
    data: Optional[bytes] = None

    @property
    def is_file(self) -> bool:
        return self.data is not None


def _field(parts: Sequence[Part], name: str) -> Optional[str]:
    for p in parts:
        if p.name == name and not p.is_file:
            return p.value
    return None


@contextmanager
def description_buffer(part: Part) -> Iterator[IO[bytes]]:
    """Temporary file holding a filter description, removed on exit."""
    with tempfile.TemporaryFile(prefix="tmp_", suffix=".filter") as buf:
        buf.write(part.data if part.is_file else (part.value or "").encode("utf-8"))
        buf.seek(0)
        yield buf


def resolve_filter(parts: Sequence[Part]) -> Filter:
    """Pick the request's filter; never raises.

    Order: registered ``filterClass`` identifier, then a ``filter`` part (file
    or text) parsed as a description, then the identity filter.
    """
    identifier = (_field(parts, FILTER_CLASS_FIELD) or "").strip()
    if identifier:
        try:
            return build_filter(identifier)
        except FilterError as exc:
            logger.warning("could not load filter class %r: %s", identifier, exc)

    part = next((p for p in parts if p.name == FILTER_FIELD), None)
    if part is None or not (part.data if part.is_file else (part.value or "").strip()):
        return NoOp()
    try:
        with description_buffer(part) as buf:
            return parse_description(buf.read())
    except (FilterError, OSError, RecursionError) as exc:
        logger.warning("could not load filter description: %s", exc)
        return NoOp()


def upload_extension(filename: Optional[str]) -> str:
    """Extension used for both stored files; jpg when Pillow cannot write it."""
    ext = extension_of(filename)
    return ext if imaging.has_encoder(ext) else DEFAULT_EXTENSION


def apply_filter(image_filter: Filter, image: PILImage.Image) -> PILImage.Image:
    """Run a filter, reporting any failure as an encode error for this item."""
    try:
        return image_filter.apply(image)
    except (ArithmeticError, TypeError, ValueError, OSError, MemoryError) as exc:
        raise imaging.ImageEncodeError(f"{image_filter!r} failed: {exc}") from exc


class IngestionPipeline:
    """Stores uploads, applies the resolved filter and registers metadata."""

    def __init__(
        self,
        store: ContentStore,
        repository: OrigamiRepository,
        default_workspace: str = "default",
    ):
        self.store = store
        self.repository = repository
        self.default_workspace = default_workspace

    def ingest(self, parts: Iterable[Part]) -> IngestReport:
        parts = list(parts)
        workspace_id = (_field(parts, WORKSPACE_FIELD) or "").strip() or self.default_workspace
        tags = normalize_tags(_field(parts, TAGS_FIELD))
        image_filter = resolve_filter(parts)
        report = IngestReport(workspace_id=workspace_id)

        for part in parts:
            if part.name in CONTROL_FIELDS or not part.is_file:
                continue
            filename = part.filename or part.name
            try:
                created = self._ingest_one(part, image_filter, tags, workspace_id)
            except (imaging.ImageDecodeError, imaging.ImageEncodeError, OSError, ValueError) as exc:
                logger.warning("ingest of %s failed: %s", filename, exc)
                report.failed.append(FailedImage(filename=filename, error=str(exc)))
                continue
            report.created.append(created)

        logger.info(
            "ingested %d image(s) into %s, %d failed, filter=%r",
            len(report.created), workspace_id, len(report.failed), image_filter,
        )
        return report

    def _ingest_one(
        self, part: Part, image_filter: Filter, tags: str, workspace_id: str
    ) -> CreatedImage:
        if not part.data:
            raise ValueError("empty upload")
        ext = upload_extension(part.filename)
        key, original = self.store.put_original(part.data, ext)
        image = imaging.decode(original)
        out = imaging.encode(apply_filter(image_filter, image), ext)
        self.store.put(key, OUT, out, ext)
        row = self.repository.insert(key, tags, workspace_id)
        return CreatedImage(id=row.id, hash=row.hash)


def render_preview(
    parts: Sequence[Part], max_width: int = PREVIEW_MAX_WIDTH
) -> Optional[bytes]:
    """Filtered JPEG preview of the ``customFile`` part; nothing is stored."""
    upload = next((p for p in parts if p.name == PREVIEW_FILE_FIELD and p.is_file), None)
    if upload is None or not upload.data:
        return None
    image_filter = resolve_filter(parts)
    try:
        image = imaging.fit_width(imaging.decode(upload.data), max_width)
        return imaging.encode(apply_filter(image_filter, image), "jpg")
    except (imaging.ImageDecodeError, imaging.ImageEncodeError, OSError, ValueError) as exc:
        logger.warning("preview failed: %s", exc)
        return None
