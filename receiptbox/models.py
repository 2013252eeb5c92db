"""Data models for extracted receipt data and pipeline outcomes."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

UNKNOWN_MERCHANT = "Unknown Merchant"
DEFAULT_CURRENCY = "USD"

# Values of receipts.processing_status
STATUS_PENDING = "pending"
STATUS_COMPLETE = "complete"
STATUS_NEEDS_REVIEW = "needs_review"
STATUS_ERROR = "error"


@dataclass
class LineItem:
    """A single purchased entry on a receipt."""

    item_name: str
    total_price: float
    quantity: float = 1.0
    unit_price: float | None = None
    category: str | None = None


@dataclass
class ExtractionResult:
    """Structured data extracted from one receipt document."""

    receipt_date: str
    total_amount: float
    merchant_name: str = UNKNOWN_MERCHANT
    currency: str = DEFAULT_CURRENCY
    items: list[LineItem] = field(default_factory=list)
    confidence: float = 0.0  # 0〜100

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ValidationResult:
    valid: bool
    issues: list[str] = field(default_factory=list)


@dataclass
class ProcessingResult:
    """Outcome of running one stored document through the pipeline."""

    success: bool
    filename: str
    message: str
    receipt_id: int | None = None
    used_vision: bool = False
    text_quality: float | None = None
    extracted: ExtractionResult | None = None
    validation_issues: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "filename": self.filename,
            "message": self.message,
            "receipt_id": self.receipt_id,
            "used_vision": self.used_vision,
            "text_quality": self.text_quality,
            "extracted": self.extracted.to_dict() if self.extracted else None,
            "validation_issues": list(self.validation_issues),
        }
