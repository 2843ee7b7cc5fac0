from __future__ import annotations

from typing import Protocol

from valuation_studio.models import PendingUpload


class TextProvider(Protocol):
    name: str
    model: str

    async def generate_text(self, prompt: str, max_tokens: int | None = None) -> str:
        """Return generated text, or raise ProviderError."""
        ...


class BinaryUploader(Protocol):
    async def upload(self, payload: PendingUpload) -> str:
        """Store the binary and return its retrieval URL, or raise UploadError."""
        ...
