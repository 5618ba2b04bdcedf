"""Utility functions."""
import re
from pathlib import Path
from typing import Iterable, List, Optional, Union

TAG_SEPARATOR = ", "
DEFAULT_EXTENSION = "jpg"

_EXT_RE = re.compile(r"^[a-z0-9]{1,8}$")


def split_tags(raw: Optional[Union[str, Iterable[str]]]) -> List[str]:
    """Split comma-joined tags, trimming and dropping empties and repeats."""
    if raw is None:
        return []
    pieces = raw.split(",") if isinstance(raw, str) else raw
    seen = set()
    tags = []
    for piece in pieces:
        tag = piece.strip()
        if tag and tag not in seen:
            seen.add(tag)
            tags.append(tag)
    return tags


def normalize_tags(raw: Optional[Union[str, Iterable[str]]]) -> str:
    """Canonical stored form of a tag set: ``"beach, summer"``."""
    return TAG_SEPARATOR.join(split_tags(raw))


def extension_of(filename: Optional[str]) -> str:
    """File extension of an upload, lower-cased, defaulting to jpg."""
    if not filename:
        return DEFAULT_EXTENSION
    ext = Path(filename).suffix.lower().lstrip(".")
    return ext if _EXT_RE.match(ext) else DEFAULT_EXTENSION
