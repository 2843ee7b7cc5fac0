from __future__ import annotations

import logging
from typing import Mapping

from valuation_studio.config import settings
from valuation_studio.errors import (
    GenerationFailed,
    MissingValuation,
    ProviderError,
    StoreError,
    StoreWriteFailed,
)
from valuation_studio.models import (
    ContentSlot,
    EditedText,
    EmptyText,
    GeneratedText,
    GenerationInput,
    PropertyDataSnapshot,
    SlotKind,
    state_from_record,
)
from valuation_studio.prompts import DEFAULT_TEMPLATES, build_prompt
from valuation_studio.providers.base import TextProvider
from valuation_studio.storage import RecordStore


logger = logging.getLogger(__name__)


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    cut = text[:limit]
    # Prefer a word boundary when one exists in the kept part.
    head, sep, _ = cut.rpartition(" ")
    return (head if sep and head.strip() else cut).rstrip()


class ContentSlotManager:
    """
    Lifecycle of the AI-assisted text slots of a report.

    `generate` replaces a slot's text with provider output, `edit` records a human
    override, and `persist` writes the current text and provenance to the record store.
    Calls on the same slot must not overlap; the manager does no locking.
    """

    def __init__(
        self,
        provider: TextProvider | None = None,
        store: RecordStore | None = None,
        templates: Mapping[SlotKind, str] | None = None,
        max_tokens: Mapping[str, int] | None = None,
        max_chars: Mapping[str, int] | None = None,
    ) -> None:
        self.provider = provider
        self.store = store
        self.templates = {**DEFAULT_TEMPLATES, **(templates or {})}
        self.max_tokens = dict(settings.slot_max_tokens if max_tokens is None else max_tokens)
        self.max_chars = dict(settings.slot_max_chars if max_chars is None else max_chars)

    def load(self, report_id: str, kind: SlotKind) -> ContentSlot:
        if self.store is None:
            raise RuntimeError("load needs a record store")
        record = self.store.read_slot(report_id, kind.value)
        return ContentSlot(report_id=report_id, kind=kind, state=state_from_record(record))

    async def generate(
        self,
        slot: ContentSlot,
        snapshot: PropertyDataSnapshot,
        valuation: float | None = None,
    ) -> str:
        kind = slot.kind
        if kind is SlotKind.EXECUTIVE_SUMMARY and valuation is None:
            raise MissingValuation(kind.value)
        if self.provider is None:
            raise GenerationFailed(kind.value, "no text provider configured")
        if kind is not SlotKind.EXECUTIVE_SUMMARY:
            valuation = None

        prompt = build_prompt(kind, snapshot, valuation, self.templates)
        logger.info(
            "generating %s for report %s (provider=%s, model=%s)",
            kind.value,
            slot.report_id,
            self.provider.name,
            getattr(self.provider, "model", "?"),
        )
        try:
            text = await self.provider.generate_text(prompt, max_tokens=self.max_tokens.get(kind.value))
        except ProviderError as exc:
            logger.warning("generation of %s for report %s failed: %s", kind.value, slot.report_id, exc)
            raise GenerationFailed(kind.value, str(exc)) from exc

        text = (text or "").strip()
        limit = self.max_chars.get(kind.value)
        if limit:
            text = _truncate(text, limit)
        if not text:
            raise GenerationFailed(kind.value, "provider returned empty text")

        # Slot is only touched once the provider call has succeeded.
        slot.state = GeneratedText(text)
        slot.last_input = GenerationInput(snapshot=snapshot, valuation=valuation)
        return text

    def edit(self, slot: ContentSlot, new_text: str) -> ContentSlot:
        # Empty text carries no provenance.
        slot.state = EditedText(new_text) if new_text else EmptyText()
        return slot

    def persist(self, slot: ContentSlot) -> None:
        if self.store is None:
            raise RuntimeError("persist needs a record store")
        key = f"{slot.report_id}/{slot.kind.value}"
        try:
            self.store.write_slot(slot.report_id, slot.kind.value, slot.to_record())
        except StoreWriteFailed:
            logger.error("persisting slot %s failed", key)
            raise
        except StoreError as exc:
            logger.error("persisting slot %s failed: %s", key, exc.reason)
            raise StoreWriteFailed(key, exc.reason) from exc
