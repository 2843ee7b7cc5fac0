from __future__ import annotations

import logging

from valuation_studio.config import settings
from valuation_studio.errors import ProviderError


logger = logging.getLogger(__name__)


class OpenAITextProvider:
    name = "openai"

    def __init__(self, api_key: str, model: str | None = None, temperature: float | None = None) -> None:
        from openai import OpenAI  # type: ignore

        self.client = OpenAI(api_key=api_key)
        self.model = model or settings.openai_text_model
        self.temperature = settings.generation_temperature if temperature is None else temperature

    async def generate_text(self, prompt: str, max_tokens: int | None = None) -> str:
        kwargs = {"model": self.model, "input": prompt, "temperature": self.temperature}
        if max_tokens:
            kwargs["max_output_tokens"] = max_tokens

        try:
            resp = self.client.responses.create(**kwargs)
        except Exception as exc:
            # SDK errors (auth, rate limit, transport) all surface the same way to the core.
            raise ProviderError(f"{type(exc).__name__}: {exc}") from exc

        text = getattr(resp, "output_text", None) or ""
        if not text.strip():
            logger.warning("openai returned no text (model=%s)", self.model)
            raise ProviderError("provider returned no text")
        return text
