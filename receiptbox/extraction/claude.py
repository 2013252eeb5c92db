"""Claude API extraction backend."""

from __future__ import annotations

import base64

from . import ExtractionBackend
from .parsing import (
    TEMPERATURE,
    TEXT_SYSTEM_PROMPT,
    VISION_SYSTEM_PROMPT,
    text_user_prompt,
    vision_user_prompt,
)


class ClaudeExtractionBackend(ExtractionBackend):
    """Extract receipt data using Claude, including its PDF and vision input."""

    def __init__(
        self,
        api_key: str = "",
        model: str = "claude-sonnet-4-5-20250929",
        max_tokens: int = 4096,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._max_tokens = max_tokens
        self._async_client = None

    def _client(self):
        # One client (and connection pool) per backend, reused across documents
        if self._async_client is not None:
            return self._async_client

        if not self._api_key:
            raise ValueError(
                "Anthropic API key is not set. "
                "Check the config file or the ANTHROPIC_API_KEY environment variable."
            )

        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic SDK is required: pip install anthropic"
            ) from None

        self._async_client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._async_client

    async def extract_from_text(self, text: str) -> str:
        client = self._client()
        response = await client.messages.create(
            model=self._model,
            max_tokens=self._max_tokens,
            temperature=TEMPERATURE,
            system=TEXT_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": text_user_prompt(text)}],
        )
        return _reply_text(response)

    async def extract_from_document(
        self,
        data_b64: str,
        media_type: str,
        context_text: str | None = None,
    ) -> str:
        client = self._client()
        content: list[dict] = [
            _document_block(data_b64, media_type),
            {"type": "text", "text": vision_user_prompt(context_text)},
        ]

        response = await client.messages.create(
            model=self._model,
            max_tokens=self._max_tokens,
            temperature=TEMPERATURE,
            system=VISION_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": content}],
        )
        return _reply_text(response)


def _document_block(data_b64: str, media_type: str) -> dict:
    """PDFs and plain text go in as document blocks, everything else as images."""
    if media_type.startswith("text/"):
        return {
            "type": "document",
            "source": {
                "type": "text",
                "media_type": "text/plain",
                "data": base64.b64decode(data_b64).decode("utf-8", errors="replace"),
            },
        }
    block_type = "document" if media_type == "application/pdf" else "image"
    return {
        "type": block_type,
        "source": {
            "type": "base64",
            "media_type": media_type,
            "data": data_b64,
        },
    }


def _reply_text(response) -> str:
    parts = [
        block.text
        for block in response.content
        if isinstance(getattr(block, "text", None), str)
    ]
    if not parts:
        raise ValueError("No response from Claude")
    return "".join(parts)
