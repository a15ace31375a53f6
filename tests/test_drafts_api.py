"""Tests for the autosave endpoints (drafts, profile, clients, shared items)."""

import time

HEADERS = {"X-User-Id": "user-1"}


def test_get_missing_draft_returns_defaults(api):
    r = api.get("/drafts/invoice", headers=HEADERS)

    assert r.status_code == 200
    data = r.json()
    assert data["kind"] == "invoice"
    assert data["invoice_number"].startswith("INVOICE-")
    assert data["currency"] == "NGN"


def test_unknown_kind_is_422(api):
    assert api.get("/drafts/quote", headers=HEADERS).status_code == 422


def test_put_draft_is_accepted_and_visible_immediately(api, store):
    r = api.put("/drafts/receipt", json={"notes": "Paid in cash"}, headers=HEADERS)

    assert r.status_code == 202
    assert r.json()["notes"] == "Paid in cash"
    assert api.get("/drafts/receipt", headers=HEADERS).json()["notes"] == "Paid in cash"


def test_put_draft_persists_after_flush(api, store):
    api.put("/drafts/invoice", json={"invoice_number": "INV-77"}, headers=HEADERS)
    api.put("/drafts/invoice", json={"terms": "Net 14"}, headers=HEADERS)

    assert api.post("/sync/flush", headers=HEADERS).status_code == 200

    draft = store.get_draft("user-1", "invoice")
    assert draft.invoice_number == "INV-77"
    assert draft.terms == "Net 14"


def test_put_draft_persists_after_debounce_window(api, store):
    api.put("/drafts/invoice", json={"notes": "later"}, headers=HEADERS)

    deadline = time.monotonic() + 2
    while store.get_draft("user-1", "invoice") is None and time.monotonic() < deadline:
        time.sleep(0.02)

    assert store.get_draft("user-1", "invoice").notes == "later"


def test_invalid_draft_edit_is_rejected(api, store):
    r = api.put("/drafts/invoice", json={"amount_paid": -10}, headers=HEADERS)

    assert r.status_code == 422
    assert r.json()["errors"][0]["field"] == "amount_paid"
    api.post("/sync/flush", headers=HEADERS)
    assert store.get_draft("user-1", "invoice") is None


def test_profile_round_trip(api):
    assert api.get("/profile", headers=HEADERS).status_code == 404

    r = api.put("/profile", json={"business_name": "Acme", "default_currency": "USD"}, headers=HEADERS)
    assert r.status_code == 202
    api.post("/sync/flush", headers=HEADERS)

    profile = api.get("/profile", headers=HEADERS).json()
    assert profile["business_name"] == "Acme"
    assert api.get("/drafts/receipt", headers=HEADERS).json()["currency"] == "USD"


def test_current_client_and_contact_book(api):
    assert api.get("/clients/current", headers=HEADERS).json()["id"] is None

    api.put("/clients/current", json={"name": "Globex", "email": "ap@globex.test"}, headers=HEADERS)
    api.post("/sync/flush", headers=HEADERS)

    current = api.get("/clients/current", headers=HEADERS).json()
    assert current["name"] == "Globex"
    assert current["id"]
    assert [c["name"] for c in api.get("/clients", headers=HEADERS).json()] == ["Globex"]
    assert api.get("/clients", headers={"X-User-Id": "user-2"}).json() == []


def test_shared_items_default_and_replace(api, store):
    items = api.get("/items/shared", headers=HEADERS).json()
    assert len(items) == 1
    assert items[0]["id"] == "1"

    r = api.put(
        "/items/shared",
        json=[{"id": "a", "description": "Paper", "quantity": 2, "unit_price": 5}],
        headers=HEADERS,
    )
    assert r.status_code == 202
    api.post("/sync/flush", headers=HEADERS)

    assert [i.description for i in store.get_shared_items("user-1")] == ["Paper"]


def test_pending_edits_flushed_on_shutdown(store):
    from fastapi.testclient import TestClient
    from invoicemax.api.deps import get_store, get_sync
    from invoicemax.api.main import app
    from invoicemax.services.sync import DraftSyncService

    sync = DraftSyncService(store, window=60)
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_sync] = lambda: sync
    try:
        with TestClient(app) as client:
            client.put("/drafts/invoice", json={"notes": "unsaved"}, headers=HEADERS)
            assert store.get_draft("user-1", "invoice") is None
        assert store.get_draft("user-1", "invoice").notes == "unsaved"
    finally:
        app.dependency_overrides.clear()


def test_failed_save_is_reported_and_edit_kept(api, store, monkeypatch):
    real_save = store.save_draft

    def broken_save(draft):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(store, "save_draft", broken_save)
    api.put("/drafts/invoice", json={"notes": "hello"}, headers=HEADERS)

    r = api.post("/sync/flush", headers=HEADERS)

    assert r.status_code == 503
    body = r.json()
    assert body["error_type"] == "SaveFailed"
    assert body["context"]["failures"] == [{"target": "draft:invoice", "detail": "database is locked"}]

    r = api.get("/drafts/invoice", headers=HEADERS)
    assert r.json()["notes"] == "hello"
    assert r.headers["x-sync-failed"] == "draft:invoice"
    assert "x-sync-failed" not in api.get("/drafts/invoice", headers={"X-User-Id": "user-2"}).headers

    monkeypatch.setattr(store, "save_draft", real_save)
    assert api.post("/sync/flush", headers=HEADERS).status_code == 200
    assert store.get_draft("user-1", "invoice").notes == "hello"
    assert "x-sync-failed" not in api.get("/drafts/invoice", headers=HEADERS).headers
