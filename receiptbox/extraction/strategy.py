"""Choose between the text and vision extraction paths for a stored document."""

from __future__ import annotations

import base64
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from ..models import ExtractionResult
from . import (
    DEFAULT_QUALITY_THRESHOLD,
    ExtractionBackend,
    ExtractionError,
    ExtractionPath,
    create_backend,
    select_path,
)
from .parsing import parse_extraction

if TYPE_CHECKING:
    from ..config import ReceiptsConfig

logger = logging.getLogger(__name__)

# Formats whose text can be read without OCR or PDF parsing
TEXT_SUFFIXES = {".txt", ".text"}

QualityScorer = Callable[[str], float]


@dataclass
class ExtractionOutcome:
    result: ExtractionResult
    path: ExtractionPath
    quality: float | None = None
    # Document text read for the text path or as vision context, if any
    text: str | None = None

    @property
    def used_vision(self) -> bool:
        return self.path == "vision"


def read_document_text(path: str | Path) -> str | None:
    """Return the document's text, or None when the format has no readable text."""
    path = Path(path)
    if path.suffix.lower() not in TEXT_SUFFIXES:
        return None
    text = path.read_text(encoding="utf-8", errors="replace").strip()
    return text or None


def encode_document(path: str | Path) -> tuple[str, str]:
    """Read a document as base64 and guess its media type (PDF by default)."""
    path = Path(path)
    media_type = mimetypes.guess_type(path.name)[0] or "application/pdf"
    data = base64.standard_b64encode(path.read_bytes()).decode()
    return data, media_type


class ExtractionStrategy:
    """Runs the cheap text path or the vision path, guarded by a quality gate.

    No quality scorer ships with the package; without one there is never a
    quality signal, so with the vision fallback enabled every document goes
    through the vision path.
    """

    def __init__(
        self,
        backend: ExtractionBackend,
        threshold: float = DEFAULT_QUALITY_THRESHOLD,
        vision_enabled: bool = True,
        quality_scorer: QualityScorer | None = None,
    ) -> None:
        self._backend = backend
        self._threshold = threshold
        self._vision_enabled = vision_enabled
        self._quality_scorer = quality_scorer

    async def extract(self, document_path: str | Path) -> ExtractionOutcome:
        """Extract structured data from one document.

        Raises:
            ExtractionError: On any transport, parse or missing-field failure,
                naming the path that failed. Nothing is retried.
        """
        document_path = Path(document_path)
        text = read_document_text(document_path)
        quality = None
        if text is not None and self._quality_scorer is not None:
            try:
                quality = float(self._quality_scorer(text))
            except Exception as e:
                raise ExtractionError("text", f"quality scoring failed: {e}") from e

        path = select_path(quality, self._threshold, self._vision_enabled)
        logger.info(
            "Extracting %s via %s path (quality=%s)",
            document_path.name,
            path,
            "n/a" if quality is None else f"{quality:.0f}",
        )

        try:
            if path == "text":
                if text is None:
                    raise ExtractionError(
                        "text",
                        "no document text available and vision fallback is disabled",
                    )
                raw = await self._backend.extract_from_text(text)
            else:
                data_b64, media_type = encode_document(document_path)
                # Only text that was scored (and found lacking) is sent as context
                context = text if quality is not None else None
                raw = await self._backend.extract_from_document(
                    data_b64, media_type, context_text=context
                )
            result = parse_extraction(raw)
        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(path, str(e) or type(e).__name__) from e

        return ExtractionOutcome(result=result, path=path, quality=quality, text=text)


def create_strategy(
    config: ReceiptsConfig, quality_scorer: QualityScorer | None = None
) -> ExtractionStrategy:
    """Build the strategy with the configured backend, threshold and fallback switch."""
    return ExtractionStrategy(
        backend=create_backend(config),
        threshold=config.extraction.quality_threshold,
        vision_enabled=config.extraction.vision_fallback,
        quality_scorer=quality_scorer,
    )
