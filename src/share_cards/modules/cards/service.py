from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from share_cards.core.config import settings
from share_cards.core.logging import get_logger, log_event, log_exception, monotonic_ms
from share_cards.core.models import utcnow
from share_cards.core.storage import ObjectStorage, get_storage
from share_cards.modules.cards.errors import EntityNotFound, RenderFailure, StorageWriteFailure
from share_cards.modules.cards.hashing import hash_payload
from share_cards.modules.cards.keys import build_cache_key, storage_path_for
from share_cards.modules.cards.metadata import lookup_entry, upsert_entry
from share_cards.modules.cards.models import EntityType
from share_cards.modules.cards.payloads import CardPayload, FundCard
from share_cards.modules.cards.render import Renderer, render_card
from share_cards.modules.cards.sources import load_card_payload, normalize_entity_id

logger = get_logger(__name__)

PNG_CONTENT_TYPE = "image/png"


@dataclass(frozen=True)
class ShareCardResult:
    entity_type: EntityType
    entity_id: str
    cache_key: str
    storage_path: str
    data_hash: str
    url: str
    cache_hit: bool


def cache_key_for(entity_type: EntityType, entity_id: str, payload: CardPayload) -> str:
    bucket = payload.progress_bucket if isinstance(payload, FundCard) else None
    return build_cache_key(entity_type, entity_id, bucket)


def resolve_share_card(
    session: Session,
    *,
    entity_type: EntityType,
    entity_id: str | None,
    force_refresh: bool = False,
    storage: ObjectStorage | None = None,
    renderer: Renderer | None = None,
    now: datetime | None = None,
) -> ShareCardResult:
    """
    Return the URL of an up-to-date share card, rendering and publishing on a miss.

    Raises InvalidRequest, EntityNotFound, RenderFailure or StorageWriteFailure.
    Metadata read and write failures are logged and never raised.
    """
    entity_type = EntityType(entity_type)
    storage = storage or get_storage()
    renderer = renderer or render_card
    now = now or utcnow()

    entity_id = normalize_entity_id(entity_type, entity_id)
    payload = load_card_payload(session, entity_type=entity_type, entity_id=entity_id)
    if payload is None:
        log_event(
            logger, "share_card.entity.not_found", entity_type=entity_type.value, entity_id=entity_id
        )
        raise EntityNotFound(f"{entity_type.value.capitalize()} not found")

    cache_key = cache_key_for(entity_type, entity_id, payload)
    data_hash = hash_payload(payload)

    state = "refresh"
    if not force_refresh:
        entry = lookup_entry(session, cache_key, now=now)
        if entry is None:
            state = "miss"
        elif entry.data_hash == data_hash:
            log_event(logger, "share_card.cache.hit", cache_key=cache_key, data_hash=data_hash)
            return ShareCardResult(
                entity_type=entity_type,
                entity_id=entity_id,
                cache_key=cache_key,
                storage_path=entry.storage_path,
                data_hash=data_hash,
                url=storage.public_url(key=entry.storage_path),
                cache_hit=True,
            )
        else:
            state = "stale"

    log_event(
        logger,
        "share_card.cache.miss",
        cache_key=cache_key,
        data_hash=data_hash,
        reason=state,
    )
    body = _render(renderer, payload, cache_key=cache_key)
    storage_path = storage_path_for(entity_type, entity_id, data_hash)

    try:
        storage.put(
            key=storage_path,
            body=body,
            content_type=PNG_CONTENT_TYPE,
            cache_control=settings.share_card_cache_control,
        )
    except Exception as e:  # noqa: BLE001
        raise StorageWriteFailure(
            f"Failed to upload {storage_path}", body=body, storage_path=storage_path
        ) from e

    upsert_entry(
        session,
        entity_type=entity_type,
        entity_id=entity_id,
        cache_key=cache_key,
        storage_path=storage_path,
        data_hash=data_hash,
        now=now,
    )

    return ShareCardResult(
        entity_type=entity_type,
        entity_id=entity_id,
        cache_key=cache_key,
        storage_path=storage_path,
        data_hash=data_hash,
        url=storage.public_url(key=storage_path),
        cache_hit=False,
    )


def _render(renderer: Renderer, payload: CardPayload, *, cache_key: str) -> bytes:
    start = time.monotonic()
    try:
        body = renderer(payload)
    except Exception as e:  # noqa: BLE001
        log_exception(
            logger, "share_card.render.failure", cache_key=cache_key, duration_ms=monotonic_ms(start)
        )
        raise RenderFailure(f"Failed to render {cache_key}") from e
    if not body:
        log_event(logger, "share_card.render.empty", cache_key=cache_key)
        raise RenderFailure(f"Renderer returned no bytes for {cache_key}")
    log_event(
        logger,
        "share_card.render.success",
        cache_key=cache_key,
        byte_size=len(body),
        duration_ms=monotonic_ms(start),
    )
    return body
