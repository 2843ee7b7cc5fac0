from __future__ import annotations

from typing import Any, Mapping

from valuation_studio.models import PropertyDataSnapshot, SlotKind


DESCRIPTION_TEMPLATE = (
    "You are an expert real-estate copywriter. Write an attractive, professional listing description "
    "for this property based on the data provided.\n"
    "Highlight unique features, location and benefits. Length: 200-300 words.\n"
    "\n"
    "Property data:\n"
    "- Title: {title}\n"
    "- Type: {property_type}\n"
    "- Price: {price}\n"
    "- Bedrooms: {bedrooms}\n"
    "- Bathrooms: {bathrooms}\n"
    "- Square feet: {area}\n"
    "- Year built: {year_built}\n"
    "- Address: {street}, {city}\n"
    "- Features: {features}\n"
    "- Amenities: {amenities}\n"
    "\n"
    "Write a description that brings out the value and appeal of the property.\n"
)

MARKET_ANALYSIS_TEMPLATE = (
    "You are an expert real-estate analyst. Write a professional market analysis covering price trends, "
    "comparison with similar properties, value drivers and investment outlook.\n"
    "Length: 300-500 words.\n"
    "\n"
    "Property data:\n"
    "- Type: {property_type}\n"
    "- Price: {price}\n"
    "- Location: {city}, {state}\n"
    "- Size: {area} square feet\n"
    "- Bedrooms: {bedrooms}\n"
    "- Year built: {year_built}\n"
    "\n"
    "Give a detailed view of the local market and the factors affecting the value.\n"
)

EXECUTIVE_SUMMARY_TEMPLATE = (
    "Write an executive summary for a valuation report covering the recommended valuation, "
    "price justification, key points and confidence level.\n"
    "Length: 150-250 words.\n"
    "\n"
    "Estimated valuation: {valuation}\n"
    "\n"
    "Property data:\n"
    "- Title: {title}\n"
    "- Type: {property_type}\n"
    "- Location: {city}\n"
    "- Size: {area} square feet\n"
    "- Bedrooms: {bedrooms}\n"
    "- Bathrooms: {bathrooms}\n"
    "\n"
    "Write a professional executive summary that justifies the valuation.\n"
)

DEFAULT_TEMPLATES: dict[SlotKind, str] = {
    SlotKind.DESCRIPTION: DESCRIPTION_TEMPLATE,
    SlotKind.MARKET_ANALYSIS: MARKET_ANALYSIS_TEMPLATE,
    SlotKind.EXECUTIVE_SUMMARY: EXECUTIVE_SUMMARY_TEMPLATE,
}


def _money(value: float | None) -> str:
    if value is None:
        return "N/A"
    return f"${value:,.0f}" if float(value).is_integer() else f"${value:,.2f}"


def _plain(value: Any) -> str:
    if value is None or value == "":
        return "N/A"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _joined(items: tuple[str, ...]) -> str:
    return ", ".join(items) if items else "N/A"


def template_fields(snapshot: PropertyDataSnapshot, valuation: float | None = None) -> dict[str, str]:
    """Flatten a snapshot into the placeholder values every template may reference."""
    return {
        "title": _plain(snapshot.title),
        "property_type": _plain(snapshot.property_type),
        "price": _money(snapshot.price),
        "bedrooms": _plain(snapshot.bedrooms),
        "bathrooms": _plain(snapshot.bathrooms),
        "area": _plain(snapshot.area),
        "year_built": _plain(snapshot.year_built),
        "street": _plain(snapshot.address.street),
        "city": _plain(snapshot.address.city),
        "state": _plain(snapshot.address.state),
        "zip_code": _plain(snapshot.address.zip_code),
        "features": _joined(snapshot.features),
        "amenities": _joined(snapshot.amenities),
        "valuation": _money(valuation),
    }


def build_prompt(
    kind: SlotKind,
    snapshot: PropertyDataSnapshot,
    valuation: float | None = None,
    templates: Mapping[SlotKind, str] | None = None,
) -> str:
    template = (templates or DEFAULT_TEMPLATES)[kind]
    return template.format(**template_fields(snapshot, valuation))
