from __future__ import annotations

from decimal import Decimal
from urllib.parse import urlparse

import pytest
from fastapi.testclient import TestClient

from share_cards.core.config import settings
from share_cards.core.db import SessionLocal
from share_cards.core.storage import get_storage
from share_cards.main import app
from share_cards.modules.cards.api import get_renderer
from sharecard_helpers import (
    FailingStorage,
    RecordingRenderer,
    add_admin_invite,
    add_business,
    add_fund,
    add_product,
    new_id,
)


@pytest.fixture
def renderer():
    recording = RecordingRenderer()
    app.dependency_overrides[get_renderer] = lambda: recording
    yield recording
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


def test_product_card_redirects_to_published_blob(client, renderer):
    with SessionLocal() as session:
        product_id = add_product(session)

    resp = client.get("/og/product", params={"id": product_id}, follow_redirects=False)

    assert resp.status_code == 302
    location = resp.headers["location"]
    assert location.startswith(f"http://cards.test/media/product/{product_id}_")
    assert resp.headers["cache-control"] == settings.share_card_redirect_cache_control
    assert resp.headers["access-control-allow-origin"] == "*"
    assert resp.headers["x-request-id"]
    assert len(renderer.calls) == 1

    blob = client.get(urlparse(location).path)
    assert blob.status_code == 200
    assert blob.content.startswith(b"\x89PNG")
    assert blob.headers["cache-control"] == settings.share_card_cache_control


def test_repeat_request_is_served_from_cache(client, renderer):
    with SessionLocal() as session:
        business_id = add_business(session)

    first = client.get("/og/business", params={"id": business_id}, follow_redirects=False)
    second = client.get("/og/business", params={"id": business_id}, follow_redirects=False)

    assert first.status_code == second.status_code == 302
    assert first.headers["location"] == second.headers["location"]
    assert len(renderer.calls) == 1


def test_refresh_true_rerenders(client, renderer):
    with SessionLocal() as session:
        fund_id = add_fund(session, current_amount=Decimal("450"), target_amount=Decimal("1000"))

    client.get("/og/fund", params={"id": fund_id}, follow_redirects=False)
    resp = client.get(
        "/og/fund", params={"id": fund_id, "refresh": "true"}, follow_redirects=False
    )

    assert resp.status_code == 302
    assert f"/media/fund/{fund_id}_" in resp.headers["location"]
    assert len(renderer.calls) == 2


def test_admin_invite_card_uses_code_param(client, renderer):
    with SessionLocal() as session:
        code = add_admin_invite(session, code="ADM-AB12")

    resp = client.get("/og/admin", params={"code": code}, follow_redirects=False)

    assert resp.status_code == 302
    assert "/media/admin/ADM-AB12_" in resp.headers["location"]


@pytest.mark.parametrize(
    ("path", "params"),
    [
        ("/og/product", {}),
        ("/og/product", {"id": "   "}),
        ("/og/fund", {"id": "123"}),
        ("/og/business", {"id": "not-a-uuid"}),
        ("/og/admin", {}),
        ("/og/admin", {"code": "USR-1"}),
        ("/og/admin", {"code": "ADM-../../secrets"}),
    ],
)
def test_missing_or_malformed_identifier_is_400(client, renderer, path, params):
    resp = client.get(path, params=params, follow_redirects=False)
    assert resp.status_code == 400
    assert renderer.calls == []


@pytest.mark.parametrize("path", ["/og/product", "/og/fund", "/og/business"])
def test_unknown_entity_is_404(client, renderer, path):
    resp = client.get(path, params={"id": new_id()}, follow_redirects=False)
    assert resp.status_code == 404
    assert renderer.calls == []


def test_render_failure_is_500(client):
    def _broken(_payload):
        raise RuntimeError("template error")

    app.dependency_overrides[get_renderer] = lambda: _broken
    try:
        with SessionLocal() as session:
            product_id = add_product(session)
        resp = client.get("/og/product", params={"id": product_id}, follow_redirects=False)
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 500


def test_storage_failure_serves_image_directly(client, renderer):
    app.dependency_overrides[get_storage] = lambda: FailingStorage()
    with SessionLocal() as session:
        product_id = add_product(session)

    resp = client.get("/og/product", params={"id": product_id}, follow_redirects=False)

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/png"
    assert resp.headers["cache-control"] == settings.share_card_cache_control
    assert resp.content.startswith(b"\x89PNG")


def test_storage_failure_is_500_when_direct_serve_disabled(client, renderer, monkeypatch):
    monkeypatch.setattr(settings, "share_card_direct_serve_on_storage_failure", False)
    app.dependency_overrides[get_storage] = lambda: FailingStorage()
    with SessionLocal() as session:
        product_id = add_product(session)

    resp = client.get("/og/product", params={"id": product_id}, follow_redirects=False)

    assert resp.status_code == 500


def test_healthz_storage_write_test(client):
    assert client.get("/healthz").json() == {"status": "ok"}

    resp = client.get("/healthz/storage", params={"write_test": "true"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["backend"] == "local"
    assert body["write_test"]["ok"] is True
    assert get_storage().root.exists()
