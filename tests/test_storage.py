"""
Tests for schema setup and the caption history stores.
"""
import os
import sqlite3
import tempfile

import pytest

from caption_engine.core.errors import StorageError
from caption_engine.core.ranking import CaptionVariant
from caption_engine.core.request import GenerationRequest
from caption_engine.storage.db import get_connection
from caption_engine.storage.models import UsageCounter
from caption_engine.storage.repository import (
    HistoryRepository,
    HistoryStore,
    InMemoryHistoryStore,
    initialize_schema,
)


def build_request(**overrides):
    fields = dict(mood="confident", media_description="beach sunset", goal="promote", tone="bold")
    fields.update(overrides)
    return GenerationRequest(**fields)


def make_variant(caption="Sunset vibes #sunset", score=0.8):
    return CaptionVariant(
        caption=caption,
        hashtags=("sunset",),
        alt_text="Image showing beach sunset",
        quality_score=score,
        tone="bold",
    )


class TestSchema:
    """Test database initialization."""

    def test_initialize_schema_creates_tables(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)

            conn = get_connection(db_path)
            try:
                tables = {
                    row[0] for row in conn.execute(
                        "SELECT name FROM sqlite_master WHERE type='table'"
                    )
                }
                assert "usage_counter" in tables
                assert "caption_history" in tables

                columns = [row[1] for row in conn.execute("PRAGMA table_info(usage_counter)")]
                assert columns == ["user_id", "period_key", "generations"]
            finally:
                conn.close()

    def test_initialize_schema_is_idempotent(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            initialize_schema(db_path)

    def test_negative_usage_rejected_by_schema(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)

            conn = get_connection(db_path)
            try:
                with pytest.raises(sqlite3.IntegrityError):
                    conn.execute(
                        "INSERT INTO usage_counter VALUES (?, ?, ?)",
                        ("user-1", "2025-10", -1)
                    )
            finally:
                conn.close()


class TestModels:
    """Test storage dataclasses."""

    def test_usage_counter_defaults_to_zero(self):
        assert UsageCounter("user-1", "2025-10").generations == 0

    def test_usage_counter_rejects_negative(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            UsageCounter("user-1", "2025-10", -3)


class TestHistoryRepository:
    """Test the SQLite history store."""

    def test_record_and_read_back(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            repo = HistoryRepository(db_path)
            request = build_request()

            repo.record("user-1", request, make_variant())

            records = repo.recent("user-1")
            assert len(records) == 1
            record = records[0]
            assert record.request_id == request.request_id
            assert record.variant["caption"] == "Sunset vibes #sunset"
            assert record.variant["qualityScore"] == 0.8
            assert record.request["mediaDescription"] == "beach sunset"
            assert record.request["mediaType"] == "photo"

    def test_image_data_is_not_stored(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            repo = HistoryRepository(db_path)

            repo.record("user-1", build_request(image_data=b"\x89PNG"), make_variant())

            record = repo.recent("user-1")[0]
            assert "imageData" not in record.request
            assert "image_data" not in record.request

    def test_recent_is_newest_first_and_limited(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            repo = HistoryRepository(db_path)

            for i in range(12):
                repo.record("user-1", build_request(), make_variant(caption=f"Caption {i}"))
            repo.record("user-2", build_request(), make_variant(caption="Not mine"))

            records = repo.recent("user-1")
            assert len(records) == 10
            assert records[0].variant["caption"] == "Caption 11"
            assert records[-1].variant["caption"] == "Caption 2"

            assert [r.variant["caption"] for r in repo.recent("user-1", limit=2)] == [
                "Caption 11", "Caption 10"
            ]

    def test_record_failure_raises_storage_error(self):
        """Writing to a database without the schema fails loudly."""
        with tempfile.TemporaryDirectory() as temp_dir:
            repo = HistoryRepository(os.path.join(temp_dir, "empty.db"))

            with pytest.raises(StorageError, match="Failed to record caption"):
                repo.record("user-1", build_request(), make_variant())

    def test_satisfies_history_store_protocol(self):
        assert isinstance(HistoryRepository("unused.db"), HistoryStore)


class TestInMemoryHistoryStore:
    """Test the in-memory history store."""

    def test_recent_is_newest_first_per_user(self):
        store = InMemoryHistoryStore()
        store.record("user-1", build_request(), make_variant(caption="first"))
        store.record("user-2", build_request(), make_variant(caption="other"))
        store.record("user-1", build_request(), make_variant(caption="second"))

        assert [r.variant["caption"] for r in store.recent("user-1")] == ["second", "first"]
        assert [r.variant["caption"] for r in store.recent("user-1", limit=1)] == ["second"]
        assert store.recent("nobody") == []

    def test_satisfies_history_store_protocol(self):
        assert isinstance(InMemoryHistoryStore(), HistoryStore)
