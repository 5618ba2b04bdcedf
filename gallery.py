"""Feed queries composed from repository reads."""
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from models import Origami
from repository import SORT_NEWEST, SORT_OPTIONS, OrigamiRepository


@dataclass
class FeedPage:
    items: List[Origami] = field(default_factory=list)
    offset: int = 0

    @property
    def next_offset(self) -> int:
        return self.offset + len(self.items)

    @property
    def exhausted(self) -> bool:
        """An empty page marks the end of the feed."""
        return not self.items


class GalleryService:
    """Stateless feed view; pagination state belongs to the caller."""

    def __init__(self, repository: OrigamiRepository, page_size: int = 20):
        self.repository = repository
        self.page_size = page_size

    def next_page(
        self,
        workspace_id: str,
        offset: int,
        tag: Optional[str] = None,
        sort_by: str = SORT_NEWEST,
        limit: Optional[int] = None,
    ) -> FeedPage:
        if sort_by not in SORT_OPTIONS:
            sort_by = SORT_NEWEST
        items = self.repository.list(
            limit or self.page_size, offset, workspace_id, tag=tag, sort_by=sort_by
        )
        return FeedPage(items=items, offset=offset)

    def first_page(
        self,
        workspace_id: str,
        tag: Optional[str] = None,
        sort_by: str = SORT_NEWEST,
        limit: Optional[int] = None,
    ) -> FeedPage:
        return self.next_page(workspace_id, 0, tag=tag, sort_by=sort_by, limit=limit)

    def iter_feed(
        self,
        workspace_id: str,
        tag: Optional[str] = None,
        sort_by: str = SORT_NEWEST,
        limit: Optional[int] = None,
    ) -> Iterator[Origami]:
        """Walk the whole feed page by page until an empty page."""
        page = self.first_page(workspace_id, tag=tag, sort_by=sort_by, limit=limit)
        while not page.exhausted:
            yield from page.items
            page = self.next_page(
                workspace_id, page.next_offset, tag=tag, sort_by=sort_by, limit=limit
            )

    def tag_facets(self, workspace_id: str) -> List[str]:
        return self.repository.list_tags(workspace_id)

    def stats(self) -> Dict[str, int]:
        return self.repository.stats()
