"""Gemini API extraction backend."""

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


class GeminiExtractionBackend(ExtractionBackend):
    """Extract receipt data using Google Gemini."""

    def __init__(self, api_key: str = "", model: str = "gemini-2.0-flash") -> None:
        self._api_key = api_key
        self._model = model

    def _model_for(self, system_prompt: str):
        if not self._api_key:
            raise ValueError(
                "Gemini API key is not set. "
                "Check the config file or the GEMINI_API_KEY environment variable."
            )

        try:
            import google.generativeai as genai
        except ImportError:
            raise ImportError(
                "google-generativeai SDK is required: pip install 'receiptbox[gemini]'"
            ) from None

        genai.configure(api_key=self._api_key)
        return genai.GenerativeModel(self._model, system_instruction=system_prompt)

    @staticmethod
    def _generation_config() -> dict:
        return {
            "temperature": TEMPERATURE,
            "response_mime_type": "application/json",
        }

    async def extract_from_text(self, text: str) -> str:
        model = self._model_for(TEXT_SYSTEM_PROMPT)
        response = await model.generate_content_async(
            [text_user_prompt(text)],
            generation_config=self._generation_config(),
        )
        return response.text

    async def extract_from_document(
        self,
        data_b64: str,
        media_type: str,
        context_text: str | None = None,
    ) -> str:
        model = self._model_for(VISION_SYSTEM_PROMPT)
        parts: list = [
            {"mime_type": media_type, "data": base64.b64decode(data_b64)},
            vision_user_prompt(context_text),
        ]
        response = await model.generate_content_async(
            parts,
            generation_config=self._generation_config(),
        )
        return response.text
