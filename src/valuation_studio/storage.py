from __future__ import annotations

import hashlib
import json
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from valuation_studio.config import settings
from valuation_studio.errors import StoreError, StoreWriteFailed, UploadError
from valuation_studio.models import Image, PendingUpload, SlotKind


logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _safe_filename(name: str) -> str:
    # Prevent path traversal.
    return os.path.basename(name).replace("..", "_") or "upload.bin"


def _empty_slots() -> dict[str, dict[str, str]]:
    return {k.value: {"text": "", "provenance": "none"} for k in SlotKind}


class RecordStore:
    """
    JSON-file record store: one directory per property and per report.

    properties/<property_id>/property.json  (fields + ordered image records)
    reports/<report_id>/report.json         (property ref, valuation, slots)
    """

    def __init__(self, root_dir: Path | str | None = None) -> None:
        self.root_dir = Path(root_dir or settings.data_dir).resolve()
        self.properties_dir = self.root_dir / "properties"
        self.reports_dir = self.root_dir / "reports"
        self.properties_dir.mkdir(parents=True, exist_ok=True)
        self.reports_dir.mkdir(parents=True, exist_ok=True)

    # Properties

    def create_property(self, owner_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        property_id = uuid.uuid4().hex[:12]
        record = dict(fields)
        record.update(
            {
                "property_id": property_id,
                "owner_id": owner_id,
                "created_at": _now_iso(),
                "images": [],
            }
        )
        self._write(self.properties_dir / property_id / "property.json", record)
        return record

    def read_property(self, property_id: str) -> dict[str, Any]:
        return self._read(self.properties_dir / property_id / "property.json")

    def list_images(self, property_id: str) -> list[Image]:
        proj = self.read_property(property_id)
        return [Image.from_record(r) for r in proj.get("images", [])]

    def insert_images(self, property_id: str, records: Sequence[dict[str, Any]]) -> list[str]:
        """Append image records (url, is_primary) and return their new ids in order."""
        path = self.properties_dir / property_id / "property.json"
        try:
            prop = self._read(path)
        except StoreError as exc:
            raise StoreWriteFailed(exc.key, exc.reason) from exc

        ids: list[str] = []
        for rec in records:
            image_id = uuid.uuid4().hex[:12]
            prop["images"].append(
                {
                    "image_id": image_id,
                    "url": rec["url"],
                    "is_primary": bool(rec.get("is_primary", False)),
                    "created_at": _now_iso(),
                }
            )
            ids.append(image_id)
        self._write(path, prop)
        return ids

    def update_images(self, property_id: str, images: Sequence[Image]) -> None:
        """
        Make the stored image list match `images`: persisted images missing from it are
        dropped, primary flags are taken from it, and stored order follows it.
        """
        path = self.properties_dir / property_id / "property.json"
        try:
            prop = self._read(path)
        except StoreError as exc:
            raise StoreWriteFailed(exc.key, exc.reason) from exc

        by_id = {r["image_id"]: r for r in prop.get("images", [])}
        refreshed: list[dict[str, Any]] = []
        for img in images:
            rec = by_id.get(img.image_id or "")
            if rec is None:
                continue
            rec = dict(rec)
            rec["is_primary"] = img.is_primary
            refreshed.append(rec)
        prop["images"] = refreshed
        self._write(path, prop)

    def update_image_flags(self, property_id: str, flags: dict[str, bool]) -> None:
        """Set `is_primary` on the listed image ids; other stored images are left as they are."""
        path = self.properties_dir / property_id / "property.json"
        try:
            prop = self._read(path)
        except StoreError as exc:
            raise StoreWriteFailed(exc.key, exc.reason) from exc

        for rec in prop.get("images", []):
            if rec["image_id"] in flags:
                rec["is_primary"] = bool(flags[rec["image_id"]])
        self._write(path, prop)

    # Reports

    def create_report(self, owner_id: str, property_id: str, valuation: float | None = None) -> dict[str, Any]:
        # Reports reference their property by id only.
        self.read_property(property_id)
        report_id = uuid.uuid4().hex[:12]
        record = {
            "report_id": report_id,
            "property_id": property_id,
            "owner_id": owner_id,
            "valuation": valuation,
            "created_at": _now_iso(),
            "slots": _empty_slots(),
        }
        self._write(self.reports_dir / report_id / "report.json", record)
        return record

    def read_report(self, report_id: str) -> dict[str, Any]:
        return self._read(self.reports_dir / report_id / "report.json")

    def delete_report(self, report_id: str) -> None:
        path = self.reports_dir / report_id / "report.json"
        try:
            path.unlink(missing_ok=True)
            path.parent.rmdir()
        except OSError as exc:
            raise StoreWriteFailed(report_id, str(exc)) from exc

    def write_slot(self, report_id: str, slot_kind: str, content: dict[str, str]) -> None:
        path = self.reports_dir / report_id / "report.json"
        key = f"{report_id}/{slot_kind}"
        try:
            report = self._read(path)
        except StoreError as exc:
            raise StoreWriteFailed(key, exc.reason) from exc
        if slot_kind not in report.get("slots", {}):
            raise StoreWriteFailed(key, "unknown slot")
        report["slots"][slot_kind] = {
            "text": content.get("text", ""),
            "provenance": content.get("provenance", "none"),
            "updated_at": _now_iso(),
        }
        self._write(path, report, key=key)

    def read_slot(self, report_id: str, slot_kind: str) -> dict[str, str]:
        report = self.read_report(report_id)
        slot = (report.get("slots") or {}).get(slot_kind)
        if slot is None:
            raise StoreError(f"{report_id}/{slot_kind}", "unknown slot")
        return slot

    def _read(self, path: Path) -> dict[str, Any]:
        key = path.parent.name
        try:
            data = json.loads(path.read_text("utf-8"))
        except FileNotFoundError as exc:
            raise StoreError(key, "not found") from exc
        except (OSError, ValueError) as exc:
            raise StoreError(key, str(exc)) from exc
        if not isinstance(data, dict):
            raise StoreError(key, "record is not an object")
        return data

    def _write(self, path: Path, data: dict[str, Any], key: str | None = None) -> None:
        key = key or path.parent.name
        tmp = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            logger.error("store write failed for %s: %s", key, exc)
            raise StoreWriteFailed(key, str(exc)) from exc


class LocalBlobStore:
    """Content-addressed binary storage on local disk, served under `public_base_url`."""

    def __init__(self, root_dir: Path | str | None = None, base_url: str | None = None) -> None:
        self.media_dir = Path(root_dir or Path(settings.data_dir) / "media").resolve()
        self.media_dir.mkdir(parents=True, exist_ok=True)
        self.base_url = (base_url if base_url is not None else settings.public_base_url).rstrip("/")

    async def upload(self, payload: PendingUpload) -> str:
        digest = hashlib.sha256(payload.content).hexdigest()
        name = f"{digest[:16]}_{_safe_filename(payload.filename)}"
        try:
            (self.media_dir / name).write_bytes(payload.content)
        except OSError as exc:
            raise UploadError(str(exc)) from exc
        return f"{self.base_url}/{name}"
