"""Tests for the metadata repository."""

import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from config import Settings
from database import build_engine, get_session, init_db
from models import Comment, Origami
from repository import (
    SORT_NEWEST,
    SORT_RECENT,
    OrigamiRepository,
    decode_comments,
    encode_comments,
    present,
)


def _ids(rows):
    return [r.id for r in rows]


class TestInsertAndGet:
    def test_insert_sets_defaults(self, repository):
        row = repository.insert(-123456, " beach ,summer,, beach", "w1")
        assert row.id is not None
        assert row.hash == -123456
        assert row.tags == "beach, summer"
        assert (row.likes, row.shares) == (0, 0)
        assert repository.comments_of(row) == []
        assert row.last_updated == row.date
        assert row.workspace_id == "w1"

    def test_get(self, repository):
        row = repository.insert(1, "", "w1")
        assert repository.get(row.id).hash == 1
        assert repository.get(row.id + 100) is None

    def test_delete(self, repository):
        row = repository.insert(1, "", "w1")
        assert repository.delete(row.id) is True
        assert repository.get(row.id) is None
        assert repository.delete(row.id) is False


class TestList:
    def test_scoped_to_workspace_newest_first(self, repository):
        a = repository.insert(1, "", "w1")
        repository.insert(2, "", "w2")
        c = repository.insert(3, "", "w1")
        assert _ids(repository.list(10, 0, "w1")) == [c.id, a.id]
        assert repository.list(10, 0, "nobody") == []

    def test_limit_and_offset(self, repository):
        rows = [repository.insert(i, "", "w1") for i in range(5)]
        newest_first = _ids(reversed(rows))
        assert _ids(repository.list(2, 0, "w1")) == newest_first[:2]
        assert _ids(repository.list(2, 4, "w1")) == newest_first[4:]
        assert repository.list(2, 5, "w1") == []

    def test_tag_filter_matches_whole_entries(self, repository):
        both = repository.insert(1, "beach, summer", "w1")
        repository.insert(2, "beachball", "w1")
        only_summer = repository.insert(3, "summer", "w1")
        repository.insert(4, "beach", "w2")

        assert _ids(repository.list(10, 0, "w1", tag="beach")) == [both.id]
        assert _ids(repository.list(10, 0, "w1", tag=" summer ")) == [only_summer.id, both.id]
        assert repository.list(10, 0, "w1", tag="%") == []

    def test_tag_filter_is_case_sensitive(self, repository):
        upper = repository.insert(1, "Summer", "w1")
        lower = repository.insert(2, "summer, beach", "w1")
        assert _ids(repository.list(10, 0, "w1", tag="summer")) == [lower.id]
        assert _ids(repository.list(10, 0, "w1", tag="Summer")) == [upper.id]
        assert repository.list(10, 0, "w1", tag="SUMMER") == []

    def test_sort_by_recent_activity(self, repository, clock):
        old = repository.insert(1, "", "w1")
        new = repository.insert(2, "", "w1")
        assert _ids(repository.list(10, 0, "w1", sort_by=SORT_RECENT)) == [new.id, old.id]

        repository.increment_likes(old.id)
        assert _ids(repository.list(10, 0, "w1", sort_by=SORT_RECENT)) == [old.id, new.id]
        assert _ids(repository.list(10, 0, "w1", sort_by=SORT_NEWEST)) == [new.id, old.id]

    def test_unknown_sort_falls_back_to_newest(self, repository):
        a = repository.insert(1, "", "w1")
        b = repository.insert(2, "", "w1")
        assert _ids(repository.list(10, 0, "w1", sort_by="bogus")) == [b.id, a.id]

    @pytest.mark.parametrize("sort_by", [SORT_NEWEST, SORT_RECENT])
    @pytest.mark.parametrize("tag", [None, "odd"])
    def test_pagination_is_exhaustive_and_disjoint(self, repository, clock, sort_by, tag):
        rows = []
        for i in range(23):
            rows.append(repository.insert(i, "odd" if i % 2 else "even", "w1"))
        for row in rows[::3]:
            repository.increment_shares(row.id)
        expected = {r.id for r in rows if tag is None or r.tags == tag}

        seen, offset = [], 0
        while True:
            page = repository.list(4, offset, "w1", tag=tag, sort_by=sort_by)
            if not page:
                break
            seen.extend(_ids(page))
            offset += len(page)

        assert len(seen) == len(set(seen))
        assert set(seen) == expected


class TestTags:
    def test_list_tags_sorted_distinct(self, repository, engine):
        repository.insert(1, "beach, summer", "w1")
        repository.insert(2, "Summer, autumn, beach", "w1")
        repository.insert(3, "winter", "w2")
        with get_session(engine) as s:
            # raw, unnormalised tag strings written behind the repository's back
            s.add(Origami(hash=4, tags=" zebra ,, ,beach,", workspace_id="w1"))
            s.add(Origami(hash=5, tags="", workspace_id="w1"))
            s.commit()

        tags = repository.list_tags("w1")
        assert tags == ["Summer", "autumn", "beach", "summer", "zebra"]
        assert repository.list_tags("w1") == tags
        assert repository.list_tags("empty") == []

    def test_update_tags_normalises(self, repository, clock):
        row = repository.insert(1, "a", "w1")
        assert repository.update_tags(row.id, " b, ,c , b") is True
        updated = repository.get(row.id)
        assert updated.tags == "b, c"
        assert updated.last_updated > row.last_updated
        assert repository.update_tags(row.id + 1, "x") is False


class TestCounters:
    def test_update_likes_then_get(self, repository, clock):
        row = repository.insert(1, "", "w1")
        assert repository.update_likes(row.id, 5) is True
        assert repository.get(row.id).likes == 5
        assert repository.update_shares(row.id, 2) is True
        updated = repository.get(row.id)
        assert updated.shares == 2
        assert updated.last_updated > row.last_updated
        assert repository.update_likes(row.id + 1, 1) is False

    def test_increments_are_sequentially_monotonic(self, repository):
        row = repository.insert(1, "", "w1")
        assert [repository.increment_likes(row.id) for _ in range(3)] == [1, 2, 3]
        assert repository.increment_shares(row.id) == 1
        assert repository.get(row.id).likes == 3
        assert repository.increment_likes(row.id + 1) is None
        assert repository.increment_shares(row.id + 1) is None

    def test_read_then_write_loses_concurrent_updates(self, repository):
        # two requests that both read before either writes: one like is lost
        row = repository.insert(1, "", "w1")
        first_read = repository.get(row.id).likes
        second_read = repository.get(row.id).likes
        repository.update_likes(row.id, first_read + 1)
        repository.update_likes(row.id, second_read + 1)
        assert repository.get(row.id).likes == 1

    def test_concurrent_increments_are_not_lost(self, tmp_path):
        settings = Settings(_env_file=None, database_url=f"sqlite:///{tmp_path / 'c.db'}")
        engine = build_engine(settings)
        init_db(engine)
        repo = OrigamiRepository(engine)
        row = repo.insert(1, "", "w1")
        try:
            with ThreadPoolExecutor(max_workers=4) as pool:
                list(pool.map(lambda _: repo.increment_likes(row.id), range(40)))
            assert repo.get(row.id).likes == 40
        finally:
            engine.dispose()


class TestComments:
    def test_append_keeps_order(self, repository):
        row = repository.insert(1, "", "w1")
        repository.append_comment(row.id, "first")
        log = repository.append_comment(row.id, "second", author="Ann")
        assert [(c.text, c.author) for c in log] == [("first", "User"), ("second", "Ann")]
        stored = repository.comments_of(repository.get(row.id))
        assert [c.text for c in stored] == ["first", "second"]
        assert all(isinstance(c.date, int) for c in stored)

    def test_append_to_unknown_record(self, repository):
        assert repository.append_comment(999, "hi") is None

    def test_corrupt_log_reads_as_empty(self, repository, engine):
        row = repository.insert(1, "", "w1")
        with get_session(engine) as s:
            stored = s.get(Origami, row.id)
            stored.comments = "{this is not json"
            s.add(stored)
            s.commit()

        assert repository.comments_of(repository.get(row.id)) == []
        assert present(repository.get(row.id)).comments == []
        log = repository.append_comment(row.id, "fresh start")
        assert [c.text for c in log] == ["fresh start"]

    def test_update_comments_round_trips_through_storage(self, repository):
        row = repository.insert(1, "", "w1")
        log = repository.append_comment(row.id, "a")
        assert repository.update_comments(row.id, log + log) is True
        assert [c.text for c in repository.comments_of(repository.get(row.id))] == ["a", "a"]

    def test_encoded_log_decodes_to_the_same_comments(self):
        log = [
            Comment(text='a "quoted" word', date=1),
            Comment(text="b", date=2, author="Ann"),
        ]
        raw = encode_comments(log)
        assert json.loads(raw)[1] == {"text": "b", "date": 2, "author": "Ann"}
        assert decode_comments(raw) == log

    def test_decode_wrong_shape(self):
        assert decode_comments('{"text": "not a list"}') == []
        assert decode_comments(None) == []


def test_stats_counts_per_workspace(repository):
    for ws in ("w1", "w2", "w1", "default"):
        repository.insert(1, "", ws)
    assert repository.stats() == {"default": 1, "w1": 2, "w2": 1}
