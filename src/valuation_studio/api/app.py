from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, File, Header, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

from valuation_studio.assets import AssetCurator, CommitResult
from valuation_studio.config import settings
from valuation_studio.errors import (
    CapacityExceeded,
    CurationError,
    GenerationFailed,
    IndexOutOfRange,
    InvalidImage,
    MissingValuation,
    StoreError,
    StoreWriteFailed,
)
from valuation_studio.imaging import validate_upload
from valuation_studio.models import ContentSlot, Image, PropertyDataSnapshot, SlotKind
from valuation_studio.providers.base import TextProvider
from valuation_studio.providers.gemini_provider import GeminiTextProvider
from valuation_studio.providers.openai_provider import OpenAITextProvider
from valuation_studio.slots import ContentSlotManager
from valuation_studio.storage import LocalBlobStore, RecordStore


logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="valuation_studio")

store = RecordStore()
blob_store = LocalBlobStore()
app.mount("/media", StaticFiles(directory=str(blob_store.media_dir)), name="media")

_STATUS: dict[type[CurationError], int] = {
    CapacityExceeded: 400,
    IndexOutOfRange: 404,
    InvalidImage: 400,
    MissingValuation: 400,
    GenerationFailed: 502,
    StoreError: 404,
    StoreWriteFailed: 500,
}


@app.exception_handler(CurationError)
async def curation_error_handler(request: Request, exc: CurationError) -> JSONResponse:
    status = _STATUS.get(type(exc), 400)
    return JSONResponse(status_code=status, content={"error": exc.kind, "detail": exc.detail(), "message": str(exc)})


def _get_text_provider() -> TextProvider:
    if settings.text_provider == "gemini":
        if not settings.gemini_api_key:
            raise HTTPException(status_code=400, detail="GEMINI_API_KEY is not set")
        return GeminiTextProvider(api_key=settings.gemini_api_key)
    if not settings.openai_api_key:
        raise HTTPException(status_code=400, detail="OPENAI_API_KEY is not set")
    return OpenAITextProvider(api_key=settings.openai_api_key)


def _parse_slot_kind(value: str) -> SlotKind:
    try:
        return SlotKind(value)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"unknown slot '{value}'")


def _owned_property(property_id: str, user_id: str) -> dict[str, Any]:
    prop = store.read_property(property_id)
    if prop.get("owner_id") != user_id:
        # Do not reveal records owned by someone else.
        raise HTTPException(status_code=404, detail="property not found")
    return prop


def _owned_report(report_id: str, user_id: str) -> dict[str, Any]:
    report = store.read_report(report_id)
    if report.get("owner_id") != user_id:
        raise HTTPException(status_code=404, detail="report not found")
    return report


def _image_json(img: Image) -> dict[str, Any]:
    return {"image_id": img.image_id, "url": img.url, "is_primary": img.is_primary}


def _failure_json(result: CommitResult, index: int, error: CurationError | None) -> dict[str, Any]:
    img = result.images[index]
    # Failed uploads are not kept between requests; the filename lets the client resend just those.
    return {
        "index": index,
        "filename": img.pending.filename if img.pending else None,
        "url": img.url,
        "error": error.kind if error else None,
        "detail": error.detail() if error else {},
    }


def _commit_json(result: CommitResult) -> dict[str, Any]:
    return {
        "images": [_image_json(img) for img in result.images],
        "committed": result.committed,
        "failed": [_failure_json(result, o.index, o.error) for o in result.outcomes if not o.committed],
        "primary_error": result.primary_error.detail() if result.primary_error else None,
    }


def _slot_json(slot: ContentSlot) -> dict[str, Any]:
    return {"report_id": slot.report_id, "kind": slot.kind.value, "text": slot.text, "provenance": slot.provenance.value}


class AddressIn(BaseModel):
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""


class PropertyIn(BaseModel):
    title: str = Field(min_length=1)
    property_type: str = Field(min_length=1)
    description: str = ""
    price: float | None = Field(default=None, ge=0)
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: float | None = Field(default=None, ge=0)
    area: float | None = Field(default=None, ge=0)
    year_built: int | None = Field(default=None, ge=1800)
    address: AddressIn = Field(default_factory=AddressIn)
    features: list[str] = Field(default_factory=list)
    amenities: list[str] = Field(default_factory=list)


class ReportIn(BaseModel):
    property_id: str
    valuation: float | None = None


class GenerateIn(BaseModel):
    # Falls back to the valuation stored on the report.
    valuation: float | None = None


class SlotEditIn(BaseModel):
    text: str


@app.post("/properties")
def create_property(payload: PropertyIn, x_user_id: str = Header(...)):
    return store.create_property(x_user_id, payload.model_dump())


@app.get("/properties/{property_id}")
def get_property(property_id: str, x_user_id: str = Header(...)):
    return _owned_property(property_id, x_user_id)


@app.get("/properties/{property_id}/images")
def list_images(property_id: str, x_user_id: str = Header(...)):
    _owned_property(property_id, x_user_id)
    return {"images": [_image_json(img) for img in store.list_images(property_id)]}


@app.post("/properties/{property_id}/images")
async def upload_images(
    property_id: str,
    files: list[UploadFile] = File(...),
    x_user_id: str = Header(...),
):
    _owned_property(property_id, x_user_id)
    payloads = [validate_upload(f.filename or "upload.bin", await f.read()) for f in files]

    curator = AssetCurator(uploader=blob_store, store=store)
    staged = curator.stage_images(store.list_images(property_id), payloads)
    result = await curator.commit(property_id, staged)
    if result.failed:
        logger.info("property %s: %d of %d image(s) not committed", property_id, len(result.failed), len(payloads))
    return _commit_json(result)


@app.post("/properties/{property_id}/images/{index}/primary")
def set_primary_image(property_id: str, index: int, x_user_id: str = Header(...)):
    _owned_property(property_id, x_user_id)
    curator = AssetCurator(store=store)
    images = curator.set_primary(store.list_images(property_id), index)
    curator.sync(property_id, images)
    return {"images": [_image_json(img) for img in images]}


@app.post("/properties/{property_id}/images/{index}/delete")
def delete_image(property_id: str, index: int, x_user_id: str = Header(...)):
    _owned_property(property_id, x_user_id)
    curator = AssetCurator(store=store)
    images = curator.remove_image(store.list_images(property_id), index)
    curator.sync(property_id, images)
    return {"images": [_image_json(img) for img in images]}


@app.post("/reports")
def create_report(payload: ReportIn, x_user_id: str = Header(...)):
    _owned_property(payload.property_id, x_user_id)
    return store.create_report(x_user_id, payload.property_id, payload.valuation)


@app.get("/reports/{report_id}")
def get_report(report_id: str, x_user_id: str = Header(...)):
    return _owned_report(report_id, x_user_id)


@app.post("/reports/{report_id}/delete")
def delete_report(report_id: str, x_user_id: str = Header(...)):
    _owned_report(report_id, x_user_id)
    store.delete_report(report_id)
    return {"deleted": report_id}


@app.get("/reports/{report_id}/slots/{kind}")
def get_slot(report_id: str, kind: str, x_user_id: str = Header(...)):
    _owned_report(report_id, x_user_id)
    manager = ContentSlotManager(store=store)
    return _slot_json(manager.load(report_id, _parse_slot_kind(kind)))


@app.post("/reports/{report_id}/slots/{kind}/generate")
async def generate_slot(
    report_id: str,
    kind: str,
    payload: GenerateIn | None = None,
    x_user_id: str = Header(...),
):
    report = _owned_report(report_id, x_user_id)
    slot_kind = _parse_slot_kind(kind)
    snapshot = PropertyDataSnapshot.from_record(store.read_property(report["property_id"]))
    valuation = payload.valuation if payload and payload.valuation is not None else report.get("valuation")

    manager = ContentSlotManager(provider=_get_text_provider(), store=store)
    slot = manager.load(report_id, slot_kind)
    await manager.generate(slot, snapshot, valuation)
    manager.persist(slot)
    return _slot_json(slot)


@app.put("/reports/{report_id}/slots/{kind}")
def save_slot(report_id: str, kind: str, payload: SlotEditIn, x_user_id: str = Header(...)):
    _owned_report(report_id, x_user_id)
    manager = ContentSlotManager(store=store)
    slot = manager.edit(manager.load(report_id, _parse_slot_kind(kind)), payload.text)
    manager.persist(slot)
    return _slot_json(slot)
