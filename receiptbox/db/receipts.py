"""Receipt and receipt item storage."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

from ..models import STATUS_ERROR, STATUS_PENDING
from .schema import ensure_schema

if TYPE_CHECKING:
    from ..models import ExtractionResult, LineItem


class ReceiptDB:
    """Manages the receipts and receipt_items tables.

    The connection is handed in by the caller, who decides when it is
    opened and closed. ``ReceiptDB.open(path)`` is a shortcut that opens one
    and can be used as a context manager.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @classmethod
    def open(cls, db_path: str | Path = "~/receipts.db") -> ReceiptDB:
        return cls(ensure_schema(db_path))

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> ReceiptDB:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def insert_receipt(
        self,
        filename: str,
        data: ExtractionResult,
        *,
        status: str = STATUS_PENDING,
        raw_text: str = "",
    ) -> int:
        """Insert a receipt header and all of its items in one transaction.

        Either both the header and every item are written, or nothing is.

        Returns:
            The new receipt ID.

        Raises:
            sqlite3.IntegrityError: If a receipt with this filename exists.
        """
        conn = self._conn
        with conn:
            cur = conn.execute(
                """INSERT INTO receipts
                   (filename, merchant_name, receipt_date, total_amount,
                    currency, raw_text, processing_status)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    filename,
                    data.merchant_name,
                    data.receipt_date,
                    data.total_amount,
                    data.currency,
                    raw_text,
                    status,
                ),
            )
            receipt_id = cur.lastrowid
            if data.items:
                self._insert_items(receipt_id, data.items)
        return receipt_id

    def _insert_items(self, receipt_id: int, items: list[LineItem]) -> None:
        self._conn.executemany(
            """INSERT INTO receipt_items
               (receipt_id, item_name, quantity, unit_price, total_price, category)
               VALUES (?, ?, ?, ?, ?, ?)""",
            [
                (
                    receipt_id,
                    item.item_name,
                    item.quantity,
                    item.unit_price,
                    item.total_price,
                    item.category,
                )
                for item in items
            ],
        )

    def get_receipt(self, receipt_id: int) -> dict | None:
        row = self._conn.execute(
            "SELECT * FROM receipts WHERE id = ?", (receipt_id,)
        ).fetchone()
        return dict(row) if row else None

    def get_receipt_by_filename(self, filename: str) -> dict | None:
        row = self._conn.execute(
            "SELECT * FROM receipts WHERE filename = ?", (filename,)
        ).fetchone()
        return dict(row) if row else None

    def get_receipt_items(self, receipt_id: int) -> list[dict]:
        rows = self._conn.execute(
            "SELECT * FROM receipt_items WHERE receipt_id = ? ORDER BY id",
            (receipt_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def get_receipt_with_items(self, receipt_id: int) -> dict | None:
        """Return the receipt with an ``items`` list, or None."""
        receipt = self.get_receipt(receipt_id)
        if receipt is None:
            return None
        receipt["items"] = self.get_receipt_items(receipt_id)
        return receipt

    def list_receipts(self) -> list[dict]:
        """Return all receipts (without items), newest first."""
        rows = self._conn.execute(
            "SELECT * FROM receipts ORDER BY processed_at DESC, id DESC"
        ).fetchall()
        return [dict(r) for r in rows]

    def is_processed(self, filename: str) -> bool:
        """True if a receipt row exists for the file and is not in error."""
        receipt = self.get_receipt_by_filename(filename)
        return receipt is not None and receipt["processing_status"] != STATUS_ERROR

    def update_status(self, receipt_id: int, status: str) -> int:
        """Set processing_status. Returns the number of rows changed."""
        with self._conn:
            cur = self._conn.execute(
                "UPDATE receipts SET processing_status = ? WHERE id = ?",
                (status, receipt_id),
            )
        return cur.rowcount

    def delete_receipt(self, receipt_id: int) -> int:
        """Delete a receipt; its items go with it. Returns rows deleted."""
        with self._conn:
            cur = self._conn.execute(
                "DELETE FROM receipts WHERE id = ?", (receipt_id,)
            )
        return cur.rowcount
