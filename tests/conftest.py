"""Pytest fixtures for valuation_studio tests."""

from __future__ import annotations

import os
import tempfile
from io import BytesIO
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Keep import-time stores (the HTTP app's) out of the working directory.
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="valuation_studio_"))

from PIL import Image as PILImage  # noqa: E402

from valuation_studio.models import Address, PendingUpload, PropertyDataSnapshot  # noqa: E402
from valuation_studio.storage import LocalBlobStore, RecordStore  # noqa: E402


@pytest.fixture
def record_store(tmp_path: Path) -> RecordStore:
    return RecordStore(tmp_path / "records")


@pytest.fixture
def blob_store(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "media", base_url="/media")


@pytest.fixture
def property_record(record_store: RecordStore) -> dict:
    return record_store.create_property(
        "user-1",
        {
            "title": "Sunny Bungalow",
            "property_type": "Single Family Home",
            "price": 450000,
            "bedrooms": 3,
            "bathrooms": 2,
            "area": 1650,
            "year_built": 1998,
            "address": {"street": "12 Oak Lane", "city": "Austin", "state": "TX", "zip_code": "78701"},
            "features": ["Fireplace", "Garage"],
            "amenities": [],
        },
    )


@pytest.fixture
def snapshot() -> PropertyDataSnapshot:
    return PropertyDataSnapshot(
        title="Sunny Bungalow",
        property_type="Single Family Home",
        price=450000,
        bedrooms=3,
        bathrooms=2,
        area=1650,
        year_built=1998,
        address=Address(street="12 Oak Lane", city="Austin", state="TX", zip_code="78701"),
        features=("Fireplace", "Garage"),
    )


def make_png(size: tuple[int, int] = (8, 8), fmt: str = "PNG") -> bytes:
    buf = BytesIO()
    PILImage.new("RGB", size, (200, 120, 40)).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


def make_files(n: int, prefix: str = "photo") -> list[PendingUpload]:
    return [PendingUpload(filename=f"{prefix}{i}.png", content=f"{prefix}-{i}".encode()) for i in range(n)]


@pytest.fixture
def text_provider() -> AsyncMock:
    provider = AsyncMock()
    provider.name = "fake"
    provider.model = "fake-model"
    provider.generate_text = AsyncMock(return_value="A lovely home.")
    return provider
