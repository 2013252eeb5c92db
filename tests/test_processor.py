"""Tests for the receipt processing pipeline."""

import base64
import json
import sqlite3
from unittest.mock import patch

import pytest

from receiptbox.db import ReceiptDB, ensure_schema
from receiptbox.extraction import ExtractionBackend
from receiptbox.extraction.strategy import ExtractionStrategy
from receiptbox.models import ExtractionResult
from receiptbox.processor import ReceiptProcessor, import_files
from receiptbox.store import ReceiptStore


def _reply(item_total=10.0, total=10.0, merchant="Cafe X"):
    return json.dumps({
        "merchant_name": merchant,
        "receipt_date": "2024-05-01",
        "total_amount": total,
        "currency": "USD",
        "items": [{"item_name": "Lunch", "quantity": 1, "total_price": item_total}],
        "confidence": 90,
    })


class FakeBackend(ExtractionBackend):
    def __init__(self, replies=None):
        self.replies = dict(replies or {})
        self.calls = 0

    async def extract_from_text(self, text):
        raise AssertionError("text path not expected")

    async def extract_from_document(self, data_b64, media_type, context_text=None):
        self.calls += 1
        reply = self.replies.get(data_b64, _reply())
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def store(tmp_path):
    s = ReceiptStore(tmp_path / "receipts")
    s.ensure()
    return s


@pytest.fixture
def db(tmp_path):
    receipts = ReceiptDB(ensure_schema(tmp_path / "receipts.db"))
    yield receipts
    receipts.close()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def processor(store, db, backend):
    return ReceiptProcessor(store, db, ExtractionStrategy(backend))


def _stored(store, name, content=b"%PDF-1.4"):
    (store.location() / name).write_bytes(content)
    return name


def _b64(content):
    return base64.standard_b64encode(content).decode()


class TestProcess:
    @pytest.mark.asyncio
    async def test_complete_receipt(self, processor, store, db):
        _stored(store, "cafe.pdf")

        result = await processor.process("cafe.pdf")

        assert result.success is True
        assert result.message == "Receipt processed successfully"
        assert result.used_vision is True
        assert result.validation_issues == []
        receipt = db.get_receipt_with_items(result.receipt_id)
        assert receipt["merchant_name"] == "Cafe X"
        assert receipt["processing_status"] == "complete"
        assert len(receipt["items"]) == 1
        assert receipt["items"][0]["receipt_id"] == result.receipt_id

    @pytest.mark.asyncio
    async def test_sum_mismatch_needs_review(self, store, db):
        _stored(store, "cafe.pdf", b"mismatch")
        backend = FakeBackend({_b64(b"mismatch"): _reply(item_total=2.0)})
        processor = ReceiptProcessor(store, db, ExtractionStrategy(backend))

        result = await processor.process("cafe.pdf")

        assert result.success is True
        assert result.message == "Receipt processed with validation issues"
        assert len(result.validation_issues) == 1
        assert "doesn't match" in result.validation_issues[0]
        receipt = db.get_receipt(result.receipt_id)
        assert receipt["processing_status"] == "needs_review"

    @pytest.mark.asyncio
    async def test_second_run_is_noop(self, processor, store, db, backend):
        _stored(store, "cafe.pdf")
        first = await processor.process("cafe.pdf")
        assert backend.calls == 1

        second = await processor.process("cafe.pdf")

        assert second.success is False
        assert second.message == "Receipt already processed"
        assert second.receipt_id == first.receipt_id
        assert backend.calls == 1
        assert len(db.list_receipts()) == 1

    @pytest.mark.asyncio
    async def test_extraction_failure_persists_nothing(self, store, db):
        _stored(store, "bad.pdf", b"bad")
        backend = FakeBackend({_b64(b"bad"): "not json at all"})
        processor = ReceiptProcessor(store, db, ExtractionStrategy(backend))

        result = await processor.process("bad.pdf")

        assert result.success is False
        assert "vision extraction failed" in result.message
        assert db.get_receipt_by_filename("bad.pdf") is None

    @pytest.mark.asyncio
    async def test_failed_document_can_be_retried(self, store, db):
        _stored(store, "flaky.pdf", b"flaky")
        backend = FakeBackend({_b64(b"flaky"): TimeoutError("timed out")})
        processor = ReceiptProcessor(store, db, ExtractionStrategy(backend))

        assert (await processor.process("flaky.pdf")).success is False

        backend.replies.clear()
        retry = await processor.process("flaky.pdf")
        assert retry.success is True

    @pytest.mark.asyncio
    async def test_missing_document(self, processor, backend):
        result = await processor.process("ghost.pdf")
        assert result.success is False
        assert "ghost.pdf" in result.message
        assert backend.calls == 0

    @pytest.mark.asyncio
    async def test_insert_race_reports_already_processed(self, processor, store, db):
        _stored(store, "race.pdf")
        # Another run stores the same filename after our idempotency check
        other_id = db.insert_receipt(
            "race.pdf", ExtractionResult(receipt_date="2024-05-01", total_amount=1.0)
        )
        real_get = db.get_receipt_by_filename
        lookups = []

        def get_by_filename(filename):
            lookups.append(filename)
            if len(lookups) == 1:
                return None
            return real_get(filename)

        with patch.object(db, "get_receipt_by_filename", side_effect=get_by_filename):
            result = await processor.process("race.pdf")

        assert result.success is False
        assert result.message == "Receipt already processed"
        assert result.receipt_id == other_id
        assert len(db.list_receipts()) == 1

    @pytest.mark.asyncio
    async def test_text_path_keeps_raw_text(self, store, db):
        _stored(store, "cafe.txt", b"CAFE X\nLunch 10.00\nTOTAL 10.00\n")

        class TextBackend(FakeBackend):
            async def extract_from_text(self, text):
                self.calls += 1
                return _reply()

        backend = TextBackend()
        strategy = ExtractionStrategy(backend, vision_enabled=False)
        processor = ReceiptProcessor(store, db, strategy)

        result = await processor.process("cafe.txt")

        assert result.success is True
        assert result.used_vision is False
        assert backend.calls == 1
        receipt = db.get_receipt(result.receipt_id)
        assert receipt["raw_text"] == "CAFE X\nLunch 10.00\nTOTAL 10.00"

    @pytest.mark.asyncio
    async def test_vision_path_stores_empty_raw_text(self, processor, store, db):
        _stored(store, "cafe.pdf")
        result = await processor.process("cafe.pdf")
        assert db.get_receipt(result.receipt_id)["raw_text"] == ""

    @pytest.mark.asyncio
    async def test_lookup_failure_reported(self, processor, store, db, backend):
        _stored(store, "cafe.pdf")
        with patch.object(
            db,
            "get_receipt_by_filename",
            side_effect=sqlite3.OperationalError("database is locked"),
        ):
            result = await processor.process("cafe.pdf")

        assert result.success is False
        assert result.message == "Failed to read receipt: database is locked"
        assert backend.calls == 0

    @pytest.mark.asyncio
    async def test_storage_failure_reported(self, processor, store, db):
        _stored(store, "cafe.pdf")
        with patch.object(
            db, "insert_receipt", side_effect=sqlite3.OperationalError("disk I/O error")
        ):
            result = await processor.process("cafe.pdf")

        assert result.success is False
        assert "disk I/O error" in result.message
        assert db.get_receipt_by_filename("cafe.pdf") is None


class TestProcessMany:
    @pytest.mark.asyncio
    async def test_failures_do_not_stop_batch(self, store, db):
        _stored(store, "a.pdf", b"a")
        _stored(store, "b.pdf", b"b")
        _stored(store, "c.pdf", b"c")
        backend = FakeBackend({_b64(b"b"): ConnectionError("offline")})
        processor = ReceiptProcessor(store, db, ExtractionStrategy(backend))

        results = await processor.process_many(["a.pdf", "b.pdf", "c.pdf"])

        assert [r.filename for r in results] == ["a.pdf", "b.pdf", "c.pdf"]
        assert [r.success for r in results] == [True, False, True]
        assert backend.calls == 3

    @pytest.mark.asyncio
    async def test_locked_database_does_not_stop_batch(self, processor, store, db):
        for name in ("a.pdf", "b.pdf", "c.pdf"):
            _stored(store, name)
        real_get = db.get_receipt_by_filename

        def get_by_filename(filename):
            if filename == "b.pdf":
                raise sqlite3.OperationalError("database is locked")
            return real_get(filename)

        with patch.object(db, "get_receipt_by_filename", side_effect=get_by_filename):
            results = await processor.process_many(["a.pdf", "b.pdf", "c.pdf"])

        assert [r.success for r in results] == [True, False, True]
        assert "database is locked" in results[1].message
        assert db.get_receipt_by_filename("b.pdf") is None


class TestUnprocessed:
    @pytest.mark.asyncio
    async def test_lists_pdfs_without_receipts(self, processor, store):
        _stored(store, "a.pdf")
        _stored(store, "b.pdf")
        (store.location() / "notes.txt").write_text("x")

        assert processor.unprocessed() == ["a.pdf", "b.pdf"]
        await processor.process("a.pdf")
        assert processor.unprocessed() == ["b.pdf"]


class TestImportFiles:
    def test_moves_resolved_paths(self, store, tmp_path):
        inbox = tmp_path / "inbox"
        inbox.mkdir()
        a = inbox / "a receipt.pdf"
        a.write_bytes(b"a")
        b = inbox / "b.pdf"
        b.write_bytes(b"b")

        text = f'"{a}"\n/not/there.pdf\nfile://{b}'
        results = import_files(store, text)

        assert [r.filename for r in results] == ["a receipt.pdf", "b.pdf"]
        assert all(r.success for r in results)
        assert not a.exists() and not b.exists()

    def test_conflict_recorded_and_rest_moved(self, store, tmp_path):
        _stored(store, "dup.pdf", b"old")
        inbox = tmp_path / "inbox"
        inbox.mkdir()
        dup = inbox / "dup.pdf"
        dup.write_bytes(b"new")
        fresh = inbox / "fresh.pdf"
        fresh.write_bytes(b"fresh")

        results = import_files(store, f"{dup}\n{fresh}")

        assert results[0].success is False
        assert "dup.pdf" in results[0].error
        assert dup.exists()
        assert results[1].filename == "fresh.pdf"

    def test_processor_delegates(self, processor, tmp_path):
        src = tmp_path / "x.pdf"
        src.write_bytes(b"x")
        assert [r.filename for r in processor.import_files(str(src))] == ["x.pdf"]
