"""Consistency checks for extracted receipt data."""

from __future__ import annotations

import re

from .models import ExtractionResult, ValidationResult

# Relative tolerance covers rounding and tax lines the model may skip.
SUM_TOLERANCE_RATIO = 0.05
SUM_TOLERANCE_FLOOR = 0.50

_ISO_DATE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def validate_extraction(data: ExtractionResult) -> ValidationResult:
    """Check that the items add up to the total, items exist and the date is ISO.

    The checks are independent and advisory: an invalid result can still be
    stored, marked for review. The date check is syntactic only, so
    ``2024-13-40`` passes.
    """
    issues: list[str] = []

    items_sum = sum(item.total_price for item in data.items)
    tolerance = max(SUM_TOLERANCE_RATIO * data.total_amount, SUM_TOLERANCE_FLOOR)
    if abs(items_sum - data.total_amount) > tolerance:
        issues.append(
            f"Items sum (${items_sum:.2f}) doesn't match "
            f"total (${data.total_amount:.2f})"
        )

    if not data.items:
        issues.append("No items found in receipt")

    if not _ISO_DATE.fullmatch(data.receipt_date):
        issues.append("Invalid date format (expected YYYY-MM-DD)")

    return ValidationResult(valid=not issues, issues=issues)
