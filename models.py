"""Database models for Origami Feed."""
import time
from typing import List, Optional

from sqlmodel import Field, SQLModel

DEFAULT_AUTHOR = "User"


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class Comment(SQLModel):
    """One entry of an image's comment log."""
    text: str
    date: int
    author: str = DEFAULT_AUTHOR


class Origami(SQLModel, table=True):
    """One ingested image and its social metadata."""
    id: Optional[int] = Field(default=None, primary_key=True)
    hash: int = Field(index=True, description="Fingerprint naming the stored files")
    date: int = Field(default_factory=now_millis)
    tags: str = ""
    likes: int = 0
    shares: int = 0
    comments: str = Field(default="[]", description="Serialized comment log")
    last_updated: int = Field(default_factory=now_millis, index=True)
    workspace_id: str = Field(default="default", index=True)


class OrigamiRead(SQLModel):
    """Public JSON shape of a record."""
    id: int
    hash: int
    date: int
    tags: str
    likes: int
    shares: int
    comments: List[Comment]
    last_updated: int
    workspace_id: str


class CreatedImage(SQLModel):
    id: int
    hash: int


class FailedImage(SQLModel):
    filename: str
    error: str


class IngestReport(SQLModel):
    """Outcome of one upload request."""
    workspace_id: str
    created: List[CreatedImage] = Field(default_factory=list)
    failed: List[FailedImage] = Field(default_factory=list)

    @property
    def hashes(self) -> List[int]:
        return [item.hash for item in self.created]
