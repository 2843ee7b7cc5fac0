from __future__ import annotations

import logging

from valuation_studio.config import settings
from valuation_studio.errors import ProviderError


logger = logging.getLogger(__name__)


class GeminiTextProvider:
    name = "gemini"

    def __init__(self, api_key: str, model: str | None = None, temperature: float | None = None) -> None:
        # Imported lazily so the app can start without the dependency installed.
        from google import genai  # type: ignore
        from google.genai import types  # type: ignore

        self._types = types
        self.client = genai.Client(api_key=api_key)
        self.model = model or settings.gemini_text_model
        self.temperature = settings.generation_temperature if temperature is None else temperature

    async def generate_text(self, prompt: str, max_tokens: int | None = None) -> str:
        config = self._types.GenerateContentConfig(
            temperature=self.temperature,
            max_output_tokens=max_tokens,
        )
        try:
            resp = self.client.models.generate_content(
                model=self.model,
                contents=[prompt],
                config=config,
            )
        except Exception as exc:
            raise ProviderError(f"{type(exc).__name__}: {exc}") from exc

        text = getattr(resp, "text", "") or ""
        if not text.strip():
            logger.warning("gemini returned no text (model=%s)", self.model)
            raise ProviderError("provider returned no text")
        return text

