"""Metadata repository for ingested images."""
import logging
from typing import Dict, List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import Engine, func, literal, update
from sqlmodel import col, select

from database import get_session
from models import DEFAULT_AUTHOR, Comment, Origami, OrigamiRead, now_millis
from utils import TAG_SEPARATOR, normalize_tags, split_tags

logger = logging.getLogger(__name__)

SORT_NEWEST = "id"
SORT_RECENT = "recent"
SORT_OPTIONS = (SORT_NEWEST, SORT_RECENT)

_comment_log = TypeAdapter(List[Comment])


def decode_comments(raw: Optional[str]) -> List[Comment]:
    """Deserialize a stored comment log; corrupt data reads as empty."""
    if not raw:
        return []
    try:
        return _comment_log.validate_json(raw)
    except ValidationError:
        logger.warning("discarding unreadable comment log (%d bytes)", len(raw))
        return []


def encode_comments(comments: Sequence[Comment]) -> str:
    return _comment_log.dump_json(list(comments)).decode("utf-8")


def present(row: Origami) -> OrigamiRead:
    """Public view of a record with the comment log decoded."""
    return OrigamiRead(
        id=row.id,
        hash=row.hash,
        date=row.date,
        tags=row.tags,
        likes=row.likes,
        shares=row.shares,
        comments=decode_comments(row.comments),
        last_updated=row.last_updated,
        workspace_id=row.workspace_id,
    )


class OrigamiRepository:
    """Reads and narrow updates over the ``origami`` table.

    Every method opens its own session and commits before returning, so each
    call is one short transaction against the pooled engine.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, origami_id: int) -> Optional[Origami]:
        with get_session(self.engine) as s:
            return s.get(Origami, origami_id)

    def insert(self, hash: int, tags: str, workspace_id: str) -> Origami:
        """Create a record with zeroed counters and return it re-read."""
        now = now_millis()
        row = Origami(
            hash=hash,
            tags=normalize_tags(tags),
            workspace_id=workspace_id,
            date=now,
            last_updated=now,
        )
        with get_session(self.engine) as s:
            s.add(row)
            s.commit()
            s.refresh(row)
            return row

    def delete(self, origami_id: int) -> bool:
        with get_session(self.engine) as s:
            row = s.get(Origami, origami_id)
            if row is None:
                return False
            s.delete(row)
            s.commit()
        return True

    def list(
        self,
        limit: int,
        offset: int,
        workspace_id: str,
        tag: Optional[str] = None,
        sort_by: str = SORT_NEWEST,
    ) -> List[Origami]:
        """One page of a workspace feed, optionally restricted to a tag."""
        stmt = select(Origami).where(Origami.workspace_id == workspace_id)
        tag = (tag or "").strip()
        if tag:
            # stored tags look like "a, b, c"; wrap so every entry is ", x,"
            wrapped = literal(TAG_SEPARATOR) + col(Origami.tags) + literal(",")
            stmt = stmt.where(self._position(wrapped, f"{TAG_SEPARATOR}{tag},") > 0)
        if sort_by == SORT_RECENT:
            stmt = stmt.order_by(col(Origami.last_updated).desc(), col(Origami.id).desc())
        else:
            stmt = stmt.order_by(col(Origami.id).desc())
        stmt = stmt.offset(max(offset, 0)).limit(max(limit, 0))
        with get_session(self.engine) as s:
            return list(s.exec(stmt).all())

    def _position(self, haystack, needle: str):
        # case-sensitive on every backend, unlike LIKE on SQLite
        if self.engine.dialect.name == "postgresql":
            return func.strpos(haystack, needle)
        return func.instr(haystack, needle)

    def list_tags(self, workspace_id: str) -> List[str]:
        """Distinct tags used in a workspace, sorted."""
        with get_session(self.engine) as s:
            rows = s.exec(
                select(Origami.tags).where(Origami.workspace_id == workspace_id)
            ).all()
        tags = set()
        for raw in rows:
            tags.update(split_tags(raw))
        return sorted(tags)

    def stats(self) -> Dict[str, int]:
        """Number of images per workspace."""
        with get_session(self.engine) as s:
            rows = s.exec(
                select(Origami.workspace_id, func.count(col(Origami.id)))
                .group_by(Origami.workspace_id)
                .order_by(Origami.workspace_id)
            ).all()
        return {workspace: count for workspace, count in rows}

    # -- narrow updates -------------------------------------------------

    def _set(self, origami_id: int, **values) -> bool:
        values["last_updated"] = now_millis()
        with get_session(self.engine) as s:
            result = s.exec(
                update(Origami).where(col(Origami.id) == origami_id).values(**values)
            )
            s.commit()
            return result.rowcount > 0

    def update_tags(self, origami_id: int, tags: str) -> bool:
        return self._set(origami_id, tags=normalize_tags(tags))

    def update_likes(self, origami_id: int, count: int) -> bool:
        return self._set(origami_id, likes=count)

    def update_shares(self, origami_id: int, count: int) -> bool:
        return self._set(origami_id, shares=count)

    def update_comments(self, origami_id: int, comments: Sequence[Comment]) -> bool:
        return self._set(origami_id, comments=encode_comments(comments))

    def _increment(self, column, origami_id: int) -> Optional[int]:
        with get_session(self.engine) as s:
            result = s.exec(
                update(Origami)
                .where(col(Origami.id) == origami_id)
                .values({column: column + 1, Origami.last_updated: now_millis()})
            )
            if result.rowcount == 0:
                s.rollback()
                return None
            value = s.exec(select(column).where(col(Origami.id) == origami_id)).one()
            s.commit()
            return value

    def increment_likes(self, origami_id: int) -> Optional[int]:
        """Atomically add one like; the new count, or None for unknown ids."""
        return self._increment(col(Origami.likes), origami_id)

    def increment_shares(self, origami_id: int) -> Optional[int]:
        return self._increment(col(Origami.shares), origami_id)

    def comments_of(self, row: Origami) -> List[Comment]:
        return decode_comments(row.comments)

    def append_comment(
        self, origami_id: int, text: str, author: str = DEFAULT_AUTHOR
    ) -> Optional[List[Comment]]:
        """Append to a record's comment log and return the whole log.

        Read and write share one session but nothing locks the row, so two
        concurrent appends can drop one of them.
        """
        with get_session(self.engine) as s:
            row = s.get(Origami, origami_id)
            if row is None:
                return None
            comments = decode_comments(row.comments)
            comments.append(Comment(text=text, date=now_millis(), author=author))
            row.comments = encode_comments(comments)
            row.last_updated = now_millis()
            s.add(row)
            s.commit()
        return comments
