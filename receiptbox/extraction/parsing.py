"""Prompts and response parsing shared by the extraction backends."""

from __future__ import annotations

import json
import math
import re
from typing import Any

from ..models import DEFAULT_CURRENCY, ExtractionResult, LineItem

_RESPONSE_SHAPE = """\
{
  "merchant_name": "string",
  "receipt_date": "YYYY-MM-DD",
  "total_amount": number,
  "currency": "string",
  "items": [
    {
      "item_name": "string",
      "quantity": number,
      "unit_price": number or null,
      "total_price": number,
      "category": "string or null"
    }
  ],
  "confidence": number (0-100, your confidence in the extraction accuracy)
}"""

_DEFAULT_RULES = """\
If you cannot find certain information, use reasonable defaults:
- merchant_name: "Unknown Merchant"
- receipt_date: current date
- currency: "USD"
- confidence: lower score if information is missing"""

TEXT_SYSTEM_PROMPT = f"""\
You are a receipt data extraction specialist.
Extract structured data from receipts with high accuracy.

Extract the following information:
- Merchant name (business name)
- Receipt date (convert to ISO format YYYY-MM-DD)
- Total amount (numeric value only)
- Currency (3-letter code: USD, EUR, CAD, etc.)
- Individual items with:
  - Item name
  - Quantity (default to 1 if not specified)
  - Unit price (if available)
  - Total price for that item
  - Category (optional: food, beverage, retail, etc.)

Return ONLY a JSON object matching this exact structure:
{_RESPONSE_SHAPE}

{_DEFAULT_RULES}"""

VISION_SYSTEM_PROMPT = f"""\
You are a receipt data extraction specialist analyzing receipt images.
Extract structured data with high accuracy from the attached receipt.

Extract the following information:
- Merchant name (business name)
- Receipt date (convert to ISO format YYYY-MM-DD)
- Total amount (numeric value only)
- Currency (3-letter code: USD, EUR, CAD, etc.)
- Individual items with names, quantities, and prices

Return ONLY a JSON object matching this exact structure:
{_RESPONSE_SHAPE}

{_DEFAULT_RULES}"""

# Low temperature keeps repeated extractions of the same receipt stable.
TEMPERATURE = 0.1

_CURRENCY_CODE = re.compile(r"[A-Za-z]{3}")


def text_user_prompt(text: str) -> str:
    return f"Extract receipt data from:\n\n{text}"


def vision_user_prompt(context_text: str | None = None) -> str:
    if context_text:
        return (
            "Analyze this receipt. Here's some extracted text for context "
            f"(may be incomplete):\n\n{context_text}\n\n"
            "Please correct any errors and extract complete receipt data "
            "from the document."
        )
    return "Analyze this receipt and extract all receipt data."


class MalformedResponseError(ValueError):
    """The model reply could not be turned into an ExtractionResult.

    Every problem found is listed in ``problems``.
    """

    def __init__(self, problems: list[str], incomplete: bool = False) -> None:
        self.problems = list(problems)
        self.incomplete = incomplete
        prefix = (
            "Incomplete receipt data extracted"
            if incomplete
            else "Malformed receipt data"
        )
        super().__init__(f"{prefix}: {'; '.join(self.problems)}")


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned


def _as_number(value: Any) -> float | None:
    """Coerce JSON numbers (and numeric strings) to float; None if impossible."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(",", ""))
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class _FieldReader:
    """Collects problems while reading fields out of untyped JSON data."""

    def __init__(self) -> None:
        self.problems: list[str] = []
        self.missing: list[str] = []

    def required_str(self, data: dict, key: str, label: str | None = None) -> str:
        label = label or key
        value = data.get(key)
        if _is_blank(value):
            self.missing.append(f"missing {label}")
            return ""
        if not isinstance(value, str):
            self.problems.append(f"{label} is not a string")
            return ""
        return value.strip()

    def optional_str(self, data: dict, key: str, label: str) -> str | None:
        value = data.get(key)
        if _is_blank(value):
            return None
        if not isinstance(value, str):
            self.problems.append(f"{label} is not a string")
            return None
        return value.strip()

    def number(
        self,
        data: dict,
        key: str,
        label: str,
        *,
        required: bool = False,
        default: float | None = None,
        non_negative: bool = True,
    ) -> float | None:
        value = data.get(key)
        if value is None:
            if required:
                self.missing.append(f"missing {label}")
            return default
        number = _as_number(value)
        if number is None:
            self.problems.append(f"{label} is not a number: {value!r}")
            return default
        if non_negative and number < 0:
            self.problems.append(f"{label} is negative: {number}")
            return default
        return number


def _read_items(raw_items: Any, reader: _FieldReader) -> list[LineItem]:
    if raw_items is None:
        return []
    if not isinstance(raw_items, list):
        reader.problems.append("items is not a list")
        return []

    items: list[LineItem] = []
    for i, raw in enumerate(raw_items):
        label = f"items[{i}]"
        if not isinstance(raw, dict):
            reader.problems.append(f"{label} is not an object")
            continue
        name = reader.required_str(raw, "item_name", f"{label}.item_name")
        total_price = reader.number(
            raw, "total_price", f"{label}.total_price", required=True
        )
        quantity = reader.number(raw, "quantity", f"{label}.quantity", default=1.0)
        unit_price = reader.number(raw, "unit_price", f"{label}.unit_price")
        category = reader.optional_str(raw, "category", f"{label}.category")
        if name and total_price is not None:
            items.append(
                LineItem(
                    item_name=name,
                    total_price=total_price,
                    quantity=quantity if quantity is not None else 1.0,
                    unit_price=unit_price,
                    category=category,
                )
            )
    return items


def parse_extraction(text: str) -> ExtractionResult:
    """Parse a model reply into an ExtractionResult.

    The reply is loaded as untyped JSON and then read field by field; all
    problems are reported together in one MalformedResponseError.

    Raises:
        MalformedResponseError: If the reply is not JSON or any field is
            missing or has the wrong type.
    """
    try:
        data = json.loads(_strip_fences(text))
    except json.JSONDecodeError as e:
        raise MalformedResponseError([f"response is not valid JSON: {e}"]) from e

    if not isinstance(data, dict):
        raise MalformedResponseError(["response is not a JSON object"])

    reader = _FieldReader()
    merchant_name = reader.required_str(data, "merchant_name")
    receipt_date = reader.required_str(data, "receipt_date")
    total_amount = reader.number(data, "total_amount", "total_amount", required=True)

    currency = DEFAULT_CURRENCY
    raw_currency = data.get("currency")
    if not _is_blank(raw_currency):
        if isinstance(raw_currency, str) and _CURRENCY_CODE.fullmatch(
            raw_currency.strip()
        ):
            currency = raw_currency.strip().upper()
        else:
            reader.problems.append(
                f"currency is not a 3-letter code: {raw_currency!r}"
            )

    items = _read_items(data.get("items"), reader)

    confidence = reader.number(
        data, "confidence", "confidence", default=0.0, non_negative=False
    )
    confidence = min(max(confidence or 0.0, 0.0), 100.0)

    if reader.missing or reader.problems:
        raise MalformedResponseError(
            reader.missing + reader.problems, incomplete=bool(reader.missing)
        )

    return ExtractionResult(
        merchant_name=merchant_name,
        receipt_date=receipt_date,
        total_amount=total_amount,
        currency=currency,
        items=items,
        confidence=confidence,
    )
