"""Tests for the HTTP surface."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from conftest import make_png
from valuation_studio.api import app as app_module
from valuation_studio.errors import ProviderError, UploadError

HEADERS = {"X-User-Id": "user-1"}

PROPERTY = {
    "title": "Sunny Bungalow",
    "property_type": "Single Family Home",
    "price": 450000,
    "bedrooms": 3,
    "bathrooms": 2,
    "area": 1650,
    "year_built": 1998,
    "address": {"street": "12 Oak Lane", "city": "Austin", "state": "TX", "zip_code": "78701"},
    "features": ["Fireplace"],
}


@pytest.fixture
def provider():
    p = AsyncMock()
    p.name = "fake"
    p.model = "fake-model"
    p.generate_text = AsyncMock(return_value="Generated text.")
    return p


@pytest.fixture
def client(monkeypatch, record_store, blob_store, provider) -> TestClient:
    monkeypatch.setattr(app_module, "store", record_store)
    monkeypatch.setattr(app_module, "blob_store", blob_store)
    monkeypatch.setattr(app_module, "_get_text_provider", lambda: provider)
    return TestClient(app_module.app)


@pytest.fixture
def property_id(client) -> str:
    resp = client.post("/properties", json=PROPERTY, headers=HEADERS)
    assert resp.status_code == 200
    return resp.json()["property_id"]


@pytest.fixture
def report_id(client, property_id) -> str:
    resp = client.post("/reports", json={"property_id": property_id, "valuation": 455000}, headers=HEADERS)
    assert resp.status_code == 200
    return resp.json()["report_id"]


def _upload(client, property_id, n, prefix="img"):
    files = [("files", (f"{prefix}{i}.png", make_png((4 + i, 4)), "image/png")) for i in range(n)]
    return client.post(f"/properties/{property_id}/images", files=files, headers=HEADERS)


class TestProperties:
    def test_create_and_read(self, client, property_id):
        resp = client.get(f"/properties/{property_id}", headers=HEADERS)
        assert resp.status_code == 200
        assert resp.json()["title"] == "Sunny Bungalow"

    def test_other_owner_cannot_read(self, client, property_id):
        resp = client.get(f"/properties/{property_id}", headers={"X-User-Id": "someone-else"})
        assert resp.status_code == 404

    def test_missing_identity(self, client, property_id):
        assert client.get(f"/properties/{property_id}").status_code == 422

    def test_validation(self, client):
        resp = client.post("/properties", json={"title": "", "property_type": "Land"}, headers=HEADERS)
        assert resp.status_code == 422

    def test_unknown_property(self, client):
        resp = client.get("/properties/missing", headers=HEADERS)
        assert resp.status_code == 404
        assert resp.json()["error"] == "store_error"


class TestImages:
    def test_upload_commits_and_marks_first_primary(self, client, property_id):
        resp = _upload(client, property_id, 2)
        assert resp.status_code == 200
        body = resp.json()
        assert body["committed"] == [0, 1]
        assert body["failed"] == []
        assert [img["is_primary"] for img in body["images"]] == [True, False]

        listed = client.get(f"/properties/{property_id}/images", headers=HEADERS).json()["images"]
        assert len(listed) == 2

    def test_capacity(self, client, property_id, monkeypatch):
        monkeypatch.setattr(app_module.settings, "max_images", 2)
        assert _upload(client, property_id, 2).status_code == 200

        resp = _upload(client, property_id, 1, prefix="extra")
        assert resp.status_code == 400
        assert resp.json()["error"] == "capacity_exceeded"
        assert resp.json()["detail"] == {"current": 2, "requested": 1, "limit": 2}
        assert len(client.get(f"/properties/{property_id}/images", headers=HEADERS).json()["images"]) == 2

    def test_failed_primary_upload(self, client, property_id, monkeypatch):
        uploader = MagicMock()
        uploader.upload = AsyncMock(side_effect=[UploadError("disk full"), "/media/b.png"])
        monkeypatch.setattr(app_module, "blob_store", uploader)

        resp = _upload(client, property_id, 2)
        assert resp.status_code == 200
        body = resp.json()
        assert body["committed"] == [1]
        assert [(f["index"], f["filename"], f["error"]) for f in body["failed"]] == [(0, "img0.png", "upload_failed")]
        assert body["primary_error"] is None

        listed = client.get(f"/properties/{property_id}/images", headers=HEADERS).json()["images"]
        assert [(img["url"], img["is_primary"]) for img in listed] == [("/media/b.png", True)]

    def test_rejects_non_image(self, client, property_id):
        files = [("files", ("notes.txt", b"hello", "text/plain"))]
        resp = client.post(f"/properties/{property_id}/images", files=files, headers=HEADERS)
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_image"

    def test_set_primary_and_delete(self, client, property_id):
        _upload(client, property_id, 3)

        resp = client.post(f"/properties/{property_id}/images/2/primary", headers=HEADERS)
        assert [img["is_primary"] for img in resp.json()["images"]] == [False, False, True]

        resp = client.post(f"/properties/{property_id}/images/2/delete", headers=HEADERS)
        assert [img["is_primary"] for img in resp.json()["images"]] == [True, False]

        listed = client.get(f"/properties/{property_id}/images", headers=HEADERS).json()["images"]
        assert [img["is_primary"] for img in listed] == [True, False]

    def test_index_out_of_range(self, client, property_id):
        resp = client.post(f"/properties/{property_id}/images/5/delete", headers=HEADERS)
        assert resp.status_code == 404
        assert resp.json()["error"] == "index_out_of_range"


class TestSlots:
    def test_generate_then_edit(self, client, report_id, provider):
        resp = client.post(f"/reports/{report_id}/slots/description/generate", headers=HEADERS)
        assert resp.status_code == 200
        assert resp.json() == {
            "report_id": report_id,
            "kind": "description",
            "text": "Generated text.",
            "provenance": "generated",
        }

        resp = client.put(f"/reports/{report_id}/slots/description", json={"text": "Mine"}, headers=HEADERS)
        assert resp.json()["provenance"] == "edited"

        resp = client.get(f"/reports/{report_id}/slots/description", headers=HEADERS)
        assert (resp.json()["text"], resp.json()["provenance"]) == ("Mine", "edited")

    def test_executive_summary_uses_report_valuation(self, client, report_id, provider):
        resp = client.post(f"/reports/{report_id}/slots/executive-summary/generate", headers=HEADERS)
        assert resp.status_code == 200
        assert "$455,000" in provider.generate_text.await_args.args[0]

    def test_executive_summary_without_valuation(self, client, property_id, provider):
        rid = client.post("/reports", json={"property_id": property_id}, headers=HEADERS).json()["report_id"]
        resp = client.post(f"/reports/{rid}/slots/executive-summary/generate", headers=HEADERS)
        assert resp.status_code == 400
        assert resp.json()["error"] == "missing_valuation"
        provider.generate_text.assert_not_awaited()

    def test_generation_failure_keeps_text(self, client, report_id, provider):
        client.put(f"/reports/{report_id}/slots/market-analysis", json={"text": "Keep"}, headers=HEADERS)
        provider.generate_text.side_effect = ProviderError("boom")

        resp = client.post(f"/reports/{report_id}/slots/market-analysis/generate", headers=HEADERS)
        assert resp.status_code == 502
        assert resp.json()["detail"]["slot_kind"] == "market-analysis"

        resp = client.get(f"/reports/{report_id}/slots/market-analysis", headers=HEADERS)
        assert (resp.json()["text"], resp.json()["provenance"]) == ("Keep", "edited")

    def test_unknown_slot(self, client, report_id):
        assert client.get(f"/reports/{report_id}/slots/appendix", headers=HEADERS).status_code == 404

    def test_delete_report(self, client, report_id):
        assert client.post(f"/reports/{report_id}/delete", headers=HEADERS).status_code == 200
        assert client.get(f"/reports/{report_id}", headers=HEADERS).status_code == 404
