from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from share_cards.core.db import SessionLocal
from share_cards.core.storage import StorageError, get_storage
from share_cards.modules.cards.errors import (
    EntityNotFound,
    InvalidRequest,
    RenderFailure,
    StorageWriteFailure,
)
from share_cards.modules.cards.models import EntityType, ShareCardCacheEntry
from share_cards.modules.cards.service import resolve_share_card
from sharecard_helpers import (
    FailingStorage,
    RecordingRenderer,
    add_admin_invite,
    add_fund,
    add_product,
    as_utc,
    new_id,
    rename_product,
    set_fund_amount,
)

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _resolve(session, entity_type, entity_id, renderer, **kwargs):
    return resolve_share_card(
        session,
        entity_type=entity_type,
        entity_id=entity_id,
        storage=get_storage(),
        renderer=renderer,
        **kwargs,
    )


def _rows(session) -> list[ShareCardCacheEntry]:
    return list(session.scalars(select(ShareCardCacheEntry)))


def test_miss_renders_publishes_and_records():
    renderer = RecordingRenderer()
    with SessionLocal() as session:
        product_id = add_product(session)
        result = _resolve(session, EntityType.PRODUCT, product_id, renderer)

        assert result.cache_hit is False
        assert result.cache_key == f"product_{product_id}"
        assert result.storage_path == f"product/{product_id}_{result.data_hash}.png"
        assert result.url == f"http://cards.test/media/{result.storage_path}"
        assert len(renderer.calls) == 1

        rows = _rows(session)
        assert len(rows) == 1
        assert rows[0].cache_key == result.cache_key
        assert rows[0].data_hash == result.data_hash
        assert rows[0].storage_path == result.storage_path

    assert get_storage().get(key=result.storage_path).startswith(b"\x89PNG")


def test_hit_returns_stored_url_without_rendering():
    renderer = RecordingRenderer()
    with SessionLocal() as session:
        product_id = add_product(session)
        first = _resolve(session, EntityType.PRODUCT, product_id, renderer)
        second = _resolve(session, EntityType.PRODUCT, product_id, renderer)

    assert len(renderer.calls) == 1
    assert second.cache_hit is True
    assert second.url == first.url
    assert second.data_hash == first.data_hash


def test_expired_entry_forces_render_and_extends_expiry():
    renderer = RecordingRenderer()
    with SessionLocal() as session:
        product_id = add_product(session)
        _resolve(session, EntityType.PRODUCT, product_id, renderer, now=T0)

        later = T0 + timedelta(days=8)
        result = _resolve(session, EntityType.PRODUCT, product_id, renderer, now=later)

        assert result.cache_hit is False
        assert len(renderer.calls) == 2
        rows = _rows(session)
        assert len(rows) == 1
        assert as_utc(rows[0].expires_at) > later


def test_changed_entity_publishes_new_blob_and_keeps_old_one():
    renderer = RecordingRenderer()
    with SessionLocal() as session:
        product_id = add_product(session, name="Panier gourmand")
        old = _resolve(session, EntityType.PRODUCT, product_id, renderer)

        rename_product(session, product_id, "Panier royal")
        new = _resolve(session, EntityType.PRODUCT, product_id, renderer)

        assert new.cache_hit is False
        assert new.cache_key == old.cache_key
        assert new.data_hash != old.data_hash
        assert new.data_hash in new.storage_path
        assert len(renderer.calls) == 2

        rows = _rows(session)
        assert len(rows) == 1
        assert rows[0].data_hash == new.data_hash
        assert rows[0].storage_path == new.storage_path

    storage = get_storage()
    assert storage.get(key=old.storage_path)
    assert storage.get(key=new.storage_path)


def test_fund_progress_buckets_bound_rerenders():
    renderer = RecordingRenderer()
    with SessionLocal() as session:
        fund_id = add_fund(session, current_amount=Decimal("450"), target_amount=Decimal("1000"))

        first = _resolve(session, EntityType.FUND, fund_id, renderer)
        assert first.cache_key == f"fund_{fund_id}_progress40"
        assert len(renderer.calls) == 1

        set_fund_amount(session, fund_id, Decimal("480"))
        same_bucket = _resolve(session, EntityType.FUND, fund_id, renderer)
        assert same_bucket.cache_hit is True
        assert same_bucket.cache_key == first.cache_key
        assert len(renderer.calls) == 1

        set_fund_amount(session, fund_id, Decimal("500"))
        next_bucket = _resolve(session, EntityType.FUND, fund_id, renderer)
        assert next_bucket.cache_hit is False
        assert next_bucket.cache_key == f"fund_{fund_id}_progress50"
        assert len(renderer.calls) == 2

        assert {row.cache_key for row in _rows(session)} == {
            f"fund_{fund_id}_progress40",
            f"fund_{fund_id}_progress50",
        }


def test_force_refresh_rerenders_fresh_entry():
    renderer = RecordingRenderer()
    with SessionLocal() as session:
        product_id = add_product(session)
        first = _resolve(session, EntityType.PRODUCT, product_id, renderer)
        forced = _resolve(session, EntityType.PRODUCT, product_id, renderer, force_refresh=True)

        assert forced.cache_hit is False
        assert len(renderer.calls) == 2
        # Same entity state: same content-addressed path, still a single row.
        assert forced.storage_path == first.storage_path
        assert session.scalar(select(func.count(ShareCardCacheEntry.id))) == 1

    assert get_storage().get(key=forced.storage_path)


def test_invalid_identifier_has_no_side_effects():
    renderer = RecordingRenderer()
    with SessionLocal() as session:
        with pytest.raises(InvalidRequest):
            _resolve(session, EntityType.PRODUCT, "not-a-uuid", renderer)
        assert _rows(session) == []
    assert renderer.calls == []


def test_unknown_entity_is_not_found_without_cache_interaction():
    renderer = RecordingRenderer()
    with SessionLocal() as session:
        with pytest.raises(EntityNotFound):
            _resolve(session, EntityType.FUND, new_id(), renderer)
        with pytest.raises(EntityNotFound):
            _resolve(session, EntityType.ADMIN_INVITE, "ADM-UNKNOWN", renderer)
        assert _rows(session) == []
    assert renderer.calls == []


def test_render_failure_writes_nothing():
    def _broken(_payload):
        raise ValueError("font exploded")

    with SessionLocal() as session:
        product_id = add_product(session)
        with pytest.raises(RenderFailure):
            _resolve(session, EntityType.PRODUCT, product_id, _broken)
        with pytest.raises(RenderFailure):
            _resolve(session, EntityType.PRODUCT, product_id, lambda _payload: b"")
        assert _rows(session) == []

    assert not list(get_storage().root.rglob("*.png"))


def test_storage_failure_skips_metadata_and_carries_image():
    renderer = RecordingRenderer()
    with SessionLocal() as session:
        product_id = add_product(session)
        with pytest.raises(StorageWriteFailure) as excinfo:
            resolve_share_card(
                session,
                entity_type=EntityType.PRODUCT,
                entity_id=product_id,
                storage=FailingStorage(),
                renderer=renderer,
            )
        assert _rows(session) == []

    assert excinfo.value.body.startswith(b"\x89PNG")
    assert excinfo.value.storage_path.startswith(f"product/{product_id}_")


def test_metadata_write_failure_still_returns_published_url(monkeypatch):
    renderer = RecordingRenderer()
    with SessionLocal() as session:
        product_id = add_product(session)

        def _commit_fails():
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(session, "commit", _commit_fails)
        result = _resolve(session, EntityType.PRODUCT, product_id, renderer)

    assert result.cache_hit is False
    assert get_storage().get(key=result.storage_path)
    with SessionLocal() as session:
        assert _rows(session) == []


def test_metadata_read_failure_falls_back_to_render(monkeypatch):
    renderer = RecordingRenderer()
    with SessionLocal() as session:
        product_id = add_product(session)
        _resolve(session, EntityType.PRODUCT, product_id, renderer)

        def _read_fails(*_args, **_kwargs):
            raise OperationalError("SELECT", {}, Exception("connection reset"))

        monkeypatch.setattr(session, "scalar", _read_fails)
        result = _resolve(session, EntityType.PRODUCT, product_id, renderer)

    assert result.cache_hit is False
    assert len(renderer.calls) == 2


def test_admin_invite_card_round_trip():
    renderer = RecordingRenderer()
    with SessionLocal() as session:
        code = add_admin_invite(session, code="ADM-KM01")
        first = _resolve(session, EntityType.ADMIN_INVITE, code, renderer)
        second = _resolve(session, EntityType.ADMIN_INVITE, code, renderer)

    assert first.cache_key == "admin_ADM-KM01"
    assert first.storage_path.startswith("admin/ADM-KM01_")
    assert second.cache_hit is True
    assert renderer.calls[0].admin_name == "Koffi Mensah"


def test_missing_blob_is_not_checked_on_hit():
    # Hits trust the metadata row; the blob is never probed on the read path.
    renderer = RecordingRenderer()
    with SessionLocal() as session:
        product_id = add_product(session)
        first = _resolve(session, EntityType.PRODUCT, product_id, renderer)
        get_storage().delete(key=first.storage_path)
        second = _resolve(session, EntityType.PRODUCT, product_id, renderer)

    assert second.cache_hit is True
    with pytest.raises(StorageError):
        get_storage().get(key=first.storage_path)
