"""Content-addressed file store and thumbnail cache.

Every ingested image owns up to three files named after its fingerprint:

    <hash>.in.<ext>     original upload
    <hash>.out.<ext>    filtered output
    <hash>.thumb.jpg    cached thumbnail, created on first request

Fingerprints are derived from the upload's temporary path, not from its
contents, so they are cheap but weak: two keys may collide, in which case
the later write replaces the earlier file.
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Tuple

import imaging
from utils import DEFAULT_EXTENSION

logger = logging.getLogger(__name__)

IN = "in"
OUT = "out"
THUMB = "thumb"
THUMB_EXT = "jpg"
THUMB_WIDTH = 600


def fingerprint(path: str) -> int:
    """32-bit signed polynomial hash (base 31) of a path string."""
    h = 0
    for ch in path:
        h = (31 * h + ord(ch)) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


class ContentStore:
    """Filesystem area keyed by image fingerprint."""

    def __init__(self, root: Path, thumbnail_width: int = THUMB_WIDTH):
        self.root = Path(root)
        self.thumbnail_width = thumbnail_width
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: int, kind: str, ext: str = DEFAULT_EXTENSION) -> Path:
        if kind == THUMB:
            ext = THUMB_EXT
        return self.root / f"{key}.{kind}.{ext}"

    def find(self, key: int, kind: str) -> Optional[Path]:
        """Locate the file of ``kind`` for ``key`` whatever its extension."""
        if kind == THUMB:
            p = self.path_for(key, THUMB)
            return p if p.is_file() else None
        matches = sorted(p for p in self.root.glob(f"{key}.{kind}.*") if p.is_file())
        return matches[0] if matches else None

    def get(self, key: int, kind: str) -> Optional[bytes]:
        p = self.find(key, kind)
        return p.read_bytes() if p else None

    def put_original(self, data: bytes, ext: str = DEFAULT_EXTENSION) -> Tuple[int, Path]:
        """Store an upload and return its fingerprint and final path.

        The bytes land in a temporary file inside the store first; the
        fingerprint of that temporary path becomes the key.
        """
        fd, tmp_name = tempfile.mkstemp(prefix="tmp_", suffix=f".{ext}", dir=self.root)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            key = fingerprint(os.path.abspath(tmp_name))
            dest = self.path_for(key, IN, ext)
            if dest.exists():
                logger.warning("fingerprint %s already stored, overwriting %s", key, dest.name)
            os.replace(tmp_name, dest)
        except BaseException:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise
        return key, dest

    def put(self, key: int, kind: str, data: bytes, ext: str = DEFAULT_EXTENSION) -> Path:
        """Write ``data`` for ``key`` atomically (temp file, then rename)."""
        dest = self.path_for(key, kind, ext)
        fd, tmp_name = tempfile.mkstemp(prefix=f"{key}.", suffix=".part", dir=self.root)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_name, dest)
        except BaseException:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise
        return dest

    def remove(self, key: int) -> int:
        """Delete every artifact of ``key``; returns how many files went."""
        removed = 0
        for p in self.root.glob(f"{key}.*.*"):
            if p.name.split(".")[1] in (IN, OUT, THUMB):
                p.unlink(missing_ok=True)
                removed += 1
        return removed

    def get_thumbnail(self, key: int) -> Optional[Path]:
        """Return the cached thumbnail, generating it on first use.

        Falls back to the unmodified output file when it cannot be decoded;
        ``None`` only when there is no output file at all.
        """
        cached = self.path_for(key, THUMB)
        if cached.is_file():
            return cached
        source = self.find(key, OUT)
        if source is None:
            return None
        try:
            image = imaging.decode(source)
            thumb = imaging.resize_to_width(image, self.thumbnail_width)
            data = imaging.encode(thumb, THUMB_EXT)
        except (imaging.ImageDecodeError, imaging.ImageEncodeError) as exc:
            logger.info("thumbnail for %s unavailable (%s), serving output file", key, exc)
            return source
        return self.put(key, THUMB, data, THUMB_EXT)
