"""Tests for the blob store and the server's article store."""

import sqlite3

import pytest

from newscast.storage import ArticleStore, BlobStore
from newscast.storage.article_store import ARTICLES_KEY


@pytest.fixture
def blobs():
    """Create an in-memory BlobStore."""
    store = BlobStore(":memory:")
    store.connect()
    yield store
    store.close()


def fixed_clock() -> str:
    return "2024-05-01 12:00:00"


@pytest.fixture
def store(blobs):
    articles = ArticleStore(blobs, clock=fixed_clock)
    articles.load_or_init()
    return articles


class TestBlobStore:
    """Tests for BlobStore."""

    def test_connect_memory(self, blobs):
        assert blobs.is_connected

    def test_missing_key_returns_default(self, blobs):
        assert blobs.load("absent") is None
        assert blobs.load("absent", []) == []

    def test_save_and_load(self, blobs):
        assert blobs.save("replica", [{"id": "1"}]) is True
        assert blobs.load("replica") == [{"id": "1"}]

    def test_save_replaces(self, blobs):
        blobs.save("k", {"a": 1})
        blobs.save("k", {"b": 2})

        assert blobs.load("k") == {"b": 2}

    def test_corrupt_blob_returns_default(self, blobs):
        """Test that unreadable JSON degrades to the default."""
        blobs._conn.execute(
            "INSERT INTO blobs (key, value, updated_at) VALUES (?, ?, ?)",
            ("k", "{not json", "now"),
        )

        assert blobs.load("k", "fallback") == "fallback"

    def test_disconnected_store(self):
        """Test that an unopened store loads defaults and refuses saves."""
        store = BlobStore(":memory:")

        assert store.load("k", 5) == 5
        assert store.save("k", 1) is False

    def test_unserializable_value(self, blobs):
        assert blobs.save("k", {"bad": object()}) is False

    def test_persists_across_connections(self, tmp_path):
        """Test that data written to a file survives reconnecting."""
        path = tmp_path / "data" / "server.db"
        first = BlobStore(path)
        first.connect()
        first.save("k", {"n": 1})
        first.close()

        second = BlobStore(path)
        second.connect()
        assert second.load("k") == {"n": 1}
        second.close()

    def test_connect_failure(self, tmp_path):
        """Test that an unusable path leaves the store disconnected."""
        blocker = tmp_path / "file"
        blocker.write_text("")
        store = BlobStore(blocker / "server.db")

        assert store.connect() is False
        assert not store.is_connected


class TestArticleStore:
    """Tests for ArticleStore."""

    def test_starts_empty(self, store):
        assert len(store) == 0
        assert store.next_id == 1
        assert store.list_articles() == []

    def test_create_assigns_sequential_ids(self, store):
        first = store.create("A", "alpha")
        second = store.create("B", "beta")

        assert (first.id, second.id) == ("1", "2")
        assert first.timestamp == "2024-05-01 12:00:00"
        assert store.next_id == 3
        assert "1" in store

    def test_create_persists(self, store, blobs):
        store.create("A", "alpha")

        data = blobs.load(ARTICLES_KEY)
        assert data["next_id"] == 2
        assert data["articles"]["1"]["headline"] == "A"
        assert not store.dirty

    def test_delete(self, store):
        store.create("A", "alpha")

        assert store.delete("1") is True
        assert "1" not in store
        assert store.delete("1") is False

    def test_delete_unknown_id(self, store):
        assert store.delete("99") is False

    def test_snapshot_is_a_copy(self, store):
        store.create("A", "alpha")
        snapshot = store.snapshot()
        snapshot.clear()

        assert len(store) == 1

    def test_ids_never_reused_after_restart(self, blobs):
        """Test that deleting the newest article does not free its id."""
        store = ArticleStore(blobs, clock=fixed_clock)
        store.load_or_init()
        store.create("A", "alpha")
        store.create("B", "beta")
        store.delete("2")

        restarted = ArticleStore(blobs, clock=fixed_clock)
        assert restarted.load_or_init() == 1
        assert restarted.next_id == 3
        assert restarted.create("C", "gamma").id == "3"

    def test_next_id_recovered_from_ids(self, blobs):
        """Test that a stale counter is raised past the highest stored id."""
        blobs.save(ARTICLES_KEY, {
            "next_id": 2,
            "articles": {
                "5": {"id": "5", "headline": "E", "content": "", "timestamp": ""},
                "note": {"id": "note", "headline": "N", "content": "", "timestamp": ""},
            },
        })
        store = ArticleStore(blobs)

        assert store.load_or_init() == 2
        assert store.next_id == 6

    def test_corrupt_data_starts_empty(self, blobs):
        blobs.save(ARTICLES_KEY, ["not", "a", "mapping"])
        store = ArticleStore(blobs)

        assert store.load_or_init() == 0
        assert store.next_id == 1

    def test_unreadable_article_skipped(self, blobs):
        blobs.save(ARTICLES_KEY, {
            "next_id": 3,
            "articles": {
                "1": {"id": "1", "headline": "A", "content": "", "timestamp": ""},
                "2": {"headline": "No id"},
            },
        })
        store = ArticleStore(blobs)

        assert store.load_or_init() == 1
        assert store.next_id == 3

    def test_save_failure_keeps_article_in_memory(self, store, blobs):
        """Test that a failed save keeps the change and marks the store dirty."""
        blobs._conn.close()
        blobs._conn = sqlite3.connect(":memory:")  # no schema, writes fail

        article = store.create("A", "alpha")

        assert article.id == "1"
        assert "1" in store
        assert store.dirty

    def test_dirty_clears_after_successful_save(self, store, blobs):
        real_conn = blobs._conn
        blobs._conn = None
        store.create("A", "alpha")
        assert store.dirty

        blobs._conn = real_conn
        store.create("B", "beta")
        assert not store.dirty
