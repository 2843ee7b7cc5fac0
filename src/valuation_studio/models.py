from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SlotKind(str, Enum):
    DESCRIPTION = "description"
    MARKET_ANALYSIS = "market-analysis"
    EXECUTIVE_SUMMARY = "executive-summary"


class Provenance(str, Enum):
    NONE = "none"
    GENERATED = "generated"
    EDITED = "edited"


@dataclass(frozen=True)
class PendingUpload:
    filename: str
    content: bytes
    content_type: str | None = None


@dataclass(frozen=True)
class Image:
    """
    One image of a property's ordered image set.

    A staged image carries `pending` and has no url yet. After its upload it carries a url,
    and once the record store accepted it, an `image_id` as well.
    """

    url: str | None = None
    is_primary: bool = False
    image_id: str | None = None
    pending: PendingUpload | None = None

    @property
    def is_persisted(self) -> bool:
        return self.image_id is not None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Image:
        return cls(
            url=record["url"],
            is_primary=bool(record.get("is_primary", False)),
            image_id=record["image_id"],
        )


@dataclass(frozen=True)
class Address:
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""


@dataclass(frozen=True)
class PropertyDataSnapshot:
    title: str
    property_type: str
    price: float | None = None
    bedrooms: int | None = None
    bathrooms: float | None = None
    area: float | None = None
    year_built: int | None = None
    address: Address = field(default_factory=Address)
    features: tuple[str, ...] = ()
    amenities: tuple[str, ...] = ()

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> PropertyDataSnapshot:
        addr = record.get("address") or {}
        return cls(
            title=str(record.get("title") or ""),
            property_type=str(record.get("property_type") or ""),
            price=record.get("price"),
            bedrooms=record.get("bedrooms"),
            bathrooms=record.get("bathrooms"),
            area=record.get("area"),
            year_built=record.get("year_built"),
            address=Address(
                street=str(addr.get("street") or ""),
                city=str(addr.get("city") or ""),
                state=str(addr.get("state") or ""),
                zip_code=str(addr.get("zip_code") or ""),
            ),
            features=tuple(record.get("features") or ()),
            amenities=tuple(record.get("amenities") or ()),
        )


# Slot states. Text-carrying states refuse empty text, so "generated/edited without text"
# cannot be constructed.


@dataclass(frozen=True)
class EmptyText:
    provenance = Provenance.NONE

    @property
    def text(self) -> str:
        return ""


@dataclass(frozen=True)
class GeneratedText:
    text: str
    provenance = Provenance.GENERATED

    def __post_init__(self) -> None:
        if not self.text:
            raise ValueError("generated text must not be empty")


@dataclass(frozen=True)
class EditedText:
    text: str
    provenance = Provenance.EDITED

    def __post_init__(self) -> None:
        if not self.text:
            raise ValueError("edited text must not be empty")


SlotState = EmptyText | GeneratedText | EditedText


def state_from_record(record: dict[str, Any] | None) -> SlotState:
    record = record or {}
    text = record.get("text") or ""
    provenance = record.get("provenance") or Provenance.NONE.value
    if not text:
        return EmptyText()
    if provenance == Provenance.EDITED.value:
        return EditedText(text)
    return GeneratedText(text)


@dataclass(frozen=True)
class GenerationInput:
    snapshot: PropertyDataSnapshot
    valuation: float | None = None


@dataclass
class ContentSlot:
    report_id: str
    kind: SlotKind
    state: SlotState = field(default_factory=EmptyText)
    last_input: GenerationInput | None = None

    @property
    def text(self) -> str:
        return self.state.text

    @property
    def provenance(self) -> Provenance:
        return self.state.provenance

    def to_record(self) -> dict[str, str]:
        return {"text": self.text, "provenance": self.provenance.value}
