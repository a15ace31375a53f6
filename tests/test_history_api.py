"""Tests for the /history endpoints."""

import pytest

HEADERS = {"X-User-Id": "user-1"}
OTHER = {"X-User-Id": "user-2"}


def test_history_empty(api):
    r = api.get("/history", headers=HEADERS)

    assert r.status_code == 200
    assert r.json() == []


def test_create_list_get_delete(api, invoice, receipt):
    first = api.post("/history", json=invoice.model_dump(mode="json"), headers=HEADERS)
    second = api.post("/history", json=receipt.model_dump(mode="json"), headers=HEADERS)
    assert first.status_code == 201

    listing = api.get("/history", headers=HEADERS).json()
    assert [h["id"] for h in listing] == [second.json()["id"], first.json()["id"]]
    assert listing[1]["invoice_number"] == "INV-1001"
    assert listing[1]["client_name"] == "Globex Ltd"
    assert listing[1]["total"] == pytest.approx(17.6 + 50)
    assert listing[0]["kind"] == "receipt"

    record = api.get(f"/history/{first.json()['id']}", headers=HEADERS).json()
    assert record["data"]["items"][0]["description"] == "Consulting"

    assert api.delete(f"/history/{first.json()['id']}", headers=HEADERS).status_code == 204
    assert len(api.get("/history", headers=HEADERS).json()) == 1


def test_records_are_private(api, invoice):
    record_id = api.post("/history", json=invoice.model_dump(mode="json"), headers=HEADERS).json()["id"]

    assert api.get("/history", headers=OTHER).json() == []
    missing = api.get(f"/history/{record_id}", headers=OTHER)
    assert missing.status_code == 404
    assert missing.json()["error_type"] == "RecordNotFound"
    assert api.delete(f"/history/{record_id}", headers=OTHER).status_code == 404
    assert api.get(f"/history/{record_id}", headers=HEADERS).status_code == 200


def test_delete_missing_is_404(api):
    assert api.delete("/history/does-not-exist", headers=HEADERS).status_code == 404
