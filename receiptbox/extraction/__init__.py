"""Extraction backend base class, path selection, and factory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Literal

from .parsing import MalformedResponseError, parse_extraction

if TYPE_CHECKING:
    from ..config import ReceiptsConfig

ExtractionPath = Literal["text", "vision"]

DEFAULT_QUALITY_THRESHOLD = 80.0


class ExtractionError(RuntimeError):
    """Extraction failed on the given path ("text" or "vision")."""

    def __init__(self, path: ExtractionPath, message: str) -> None:
        self.path = path
        super().__init__(f"{path} extraction failed: {message}")


class ExtractionBackend(ABC):
    """Abstract base for LLM services that read receipts.

    Both methods return the raw model reply; parsing is done by the caller
    with :func:`parse_extraction`.
    """

    @abstractmethod
    async def extract_from_text(self, text: str) -> str:
        """Ask the model to structure already-extracted receipt text."""
        ...

    @abstractmethod
    async def extract_from_document(
        self,
        data_b64: str,
        media_type: str,
        context_text: str | None = None,
    ) -> str:
        """Ask the model to read a base64-encoded document directly.

        ``context_text`` is optional low-confidence text sent alongside.
        """
        ...


def select_path(
    quality: float | None,
    threshold: float = DEFAULT_QUALITY_THRESHOLD,
    vision_enabled: bool = True,
) -> ExtractionPath:
    """Pick the extraction path for a document.

    With vision disabled the text path always runs. Without a quality
    signal the vision path runs. Otherwise scores strictly below the
    threshold escalate to vision.
    """
    if not vision_enabled:
        return "text"
    if quality is None:
        return "vision"
    return "vision" if quality < threshold else "text"


def create_backend(config: ReceiptsConfig) -> ExtractionBackend:
    """Create an extraction backend based on configuration."""
    backend_name = config.extraction.backend

    match backend_name:
        case "claude":
            from .claude import ClaudeExtractionBackend

            return ClaudeExtractionBackend(
                api_key=config.extraction.claude.api_key,
                model=config.extraction.claude.model,
            )
        case "gemini":
            from .gemini import GeminiExtractionBackend

            return GeminiExtractionBackend(
                api_key=config.extraction.gemini.api_key,
                model=config.extraction.gemini.model,
            )
        case _:
            raise ValueError(
                f"Unknown extraction backend: {backend_name!r} "
                f"(choose claude or gemini)"
            )


__all__ = [
    "DEFAULT_QUALITY_THRESHOLD",
    "ExtractionBackend",
    "ExtractionError",
    "ExtractionPath",
    "MalformedResponseError",
    "create_backend",
    "parse_extraction",
    "select_path",
]
