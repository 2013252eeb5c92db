"""Receipt processing pipeline: intake, extraction, validation, persistence."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass

from .db import ReceiptDB
from .extraction import ExtractionError
from .extraction.strategy import ExtractionStrategy
from .models import STATUS_COMPLETE, STATUS_NEEDS_REVIEW, ProcessingResult
from .paths import parse_file_paths
from .store import ReceiptStore
from .validation import validate_extraction

logger = logging.getLogger(__name__)

MSG_ALREADY_PROCESSED = "Receipt already processed"
MSG_SUCCESS = "Receipt processed successfully"
MSG_NEEDS_REVIEW = "Receipt processed with validation issues"


@dataclass
class ImportResult:
    source: str
    filename: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


def import_files(store: ReceiptStore, pasted_text: str) -> list[ImportResult]:
    """Resolve pasted paths and move each existing file into the store.

    A failure on one file is recorded and the rest are still moved.
    """
    store.ensure()
    results: list[ImportResult] = []
    for path in parse_file_paths(pasted_text):
        try:
            filename = store.move_in(path)
        except (OSError, RuntimeError) as e:
            logger.warning("Could not import %s: %s", path, e)
            results.append(ImportResult(source=path, error=str(e)))
        else:
            results.append(ImportResult(source=path, filename=filename))
    return results


def _read_failure(filename: str, error: sqlite3.Error) -> ProcessingResult:
    return ProcessingResult(
        success=False,
        filename=filename,
        message=f"Failed to read receipt: {error}",
    )


class ReceiptProcessor:
    """Runs stored receipt documents through extraction and into the database.

    One document is handled at a time. A failed document leaves nothing in
    the database, so it can simply be processed again later.
    """

    def __init__(
        self,
        store: ReceiptStore,
        db: ReceiptDB,
        strategy: ExtractionStrategy,
    ) -> None:
        self._store = store
        self._db = db
        self._strategy = strategy

    def import_files(self, pasted_text: str) -> list[ImportResult]:
        return import_files(self._store, pasted_text)

    def unprocessed(self, pattern: str = "*.pdf") -> list[str]:
        """Filenames in the store with no receipt yet (or one in error)."""
        return [
            doc.filename
            for doc in self._store.list_documents(pattern)
            if not self._db.is_processed(doc.filename)
        ]

    async def process(self, filename: str) -> ProcessingResult:
        """Process one stored document into a receipt.

        Returns a ProcessingResult; errors are reported in it, not raised.
        """
        try:
            existing = self._db.get_receipt_by_filename(filename)
        except sqlite3.Error as e:
            logger.exception("Failed to look up %s", filename)
            return _read_failure(filename, e)
        if existing is not None:
            return ProcessingResult(
                success=False,
                filename=filename,
                receipt_id=existing["id"],
                message=MSG_ALREADY_PROCESSED,
            )

        try:
            document = self._store.get(filename)
            logger.info("Processing %s (%d bytes)", filename, document.size)
            outcome = await self._strategy.extract(document.path)
        except (OSError, ExtractionError) as e:
            logger.exception("Failed to process %s", filename)
            return ProcessingResult(success=False, filename=filename, message=str(e))

        data = outcome.result
        logger.info(
            "Extracted %s: %s, %d items", filename, data.merchant_name, len(data.items)
        )

        validation = validate_extraction(data)
        if not validation.valid:
            logger.warning("Validation issues for %s: %s", filename, validation.issues)
        status = STATUS_COMPLETE if validation.valid else STATUS_NEEDS_REVIEW

        try:
            receipt_id = self._db.insert_receipt(
                filename, data, status=status, raw_text=outcome.text or ""
            )
        except sqlite3.IntegrityError:
            # Another run stored this filename between the check and the insert
            try:
                existing = self._db.get_receipt_by_filename(filename)
            except sqlite3.Error as e:
                logger.exception("Failed to look up %s", filename)
                return _read_failure(filename, e)
            if existing is None:
                logger.exception("Failed to store %s", filename)
                return ProcessingResult(
                    success=False,
                    filename=filename,
                    message="Failed to store receipt: constraint violation",
                )
            return ProcessingResult(
                success=False,
                filename=filename,
                receipt_id=existing["id"],
                message=MSG_ALREADY_PROCESSED,
            )
        except sqlite3.Error as e:
            logger.exception("Failed to store %s", filename)
            return ProcessingResult(
                success=False,
                filename=filename,
                message=f"Failed to store receipt: {e}",
            )

        return ProcessingResult(
            success=True,
            filename=filename,
            receipt_id=receipt_id,
            message=MSG_SUCCESS if validation.valid else MSG_NEEDS_REVIEW,
            used_vision=outcome.used_vision,
            text_quality=outcome.quality,
            extracted=data,
            validation_issues=validation.issues,
        )

    async def process_many(self, filenames: list[str]) -> list[ProcessingResult]:
        """Process documents one after another, in order."""
        results: list[ProcessingResult] = []
        for filename in filenames:
            results.append(await self.process(filename))
        return results
