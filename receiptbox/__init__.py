"""Receipt intake and LLM extraction into a local SQLite database."""

from .config import (
    DatabaseConfig,
    ExtractionConfig,
    ReceiptsConfig,
    StoreConfig,
    load_config,
)
from .db import ReceiptDB, ensure_schema
from .extraction import (
    ExtractionBackend,
    ExtractionError,
    MalformedResponseError,
    create_backend,
    select_path,
)
from .extraction.strategy import ExtractionStrategy, create_strategy
from .models import (
    ExtractionResult,
    LineItem,
    ProcessingResult,
    ValidationResult,
)
from .paths import looks_like_file_path, parse_file_paths
from .processor import ImportResult, ReceiptProcessor, import_files
from .store import ReceiptStore, StoredDocument
from .validation import validate_extraction

__all__ = [
    "ReceiptStore",
    "StoredDocument",
    "parse_file_paths",
    "looks_like_file_path",
    "ExtractionBackend",
    "ExtractionStrategy",
    "ExtractionError",
    "MalformedResponseError",
    "create_backend",
    "create_strategy",
    "select_path",
    "validate_extraction",
    "ReceiptDB",
    "ensure_schema",
    "ReceiptProcessor",
    "ImportResult",
    "import_files",
    "ExtractionResult",
    "LineItem",
    "ProcessingResult",
    "ValidationResult",
    "ReceiptsConfig",
    "StoreConfig",
    "DatabaseConfig",
    "ExtractionConfig",
    "load_config",
]
