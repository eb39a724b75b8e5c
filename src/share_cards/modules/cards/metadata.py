from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from share_cards.core.config import settings
from share_cards.core.logging import get_logger, log_event, log_exception
from share_cards.core.models import utcnow
from share_cards.modules.cards.models import EntityType, ShareCardCacheEntry

logger = get_logger(__name__)

_UPSERT_DIALECTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


def retention_window() -> timedelta:
    return timedelta(days=settings.share_card_retention_days)


def lookup_entry(
    session: Session, cache_key: str, *, now: datetime | None = None
) -> ShareCardCacheEntry | None:
    """
    Fetch the unexpired entry for ``cache_key``.

    A read error is reported as a miss: the caller re-renders rather than
    trusting a row it could not read.
    """
    now = now or utcnow()
    try:
        return session.scalar(
            select(ShareCardCacheEntry).where(
                ShareCardCacheEntry.cache_key == cache_key,
                ShareCardCacheEntry.expires_at > now,
            )
        )
    except SQLAlchemyError:
        session.rollback()
        log_exception(logger, "share_card.cache.lookup.failure", cache_key=cache_key)
        return None


def upsert_entry(
    session: Session,
    *,
    entity_type: EntityType,
    entity_id: str,
    cache_key: str,
    storage_path: str,
    data_hash: str,
    now: datetime | None = None,
) -> bool:
    """Write the entry for ``cache_key`` (last writer wins). Returns False on failure."""
    now = now or utcnow()
    values = {
        "entity_type": EntityType(entity_type),
        "entity_id": entity_id,
        "cache_key": cache_key,
        "storage_path": storage_path,
        "data_hash": data_hash,
        "expires_at": now + retention_window(),
    }
    try:
        insert = _UPSERT_DIALECTS.get(session.get_bind().dialect.name)
        if insert is not None:
            stmt = insert(ShareCardCacheEntry).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["cache_key"],
                set_={
                    "entity_type": stmt.excluded.entity_type,
                    "entity_id": stmt.excluded.entity_id,
                    "storage_path": stmt.excluded.storage_path,
                    "data_hash": stmt.excluded.data_hash,
                    "expires_at": stmt.excluded.expires_at,
                    "updated_at": now,
                },
            )
            session.execute(stmt)
        else:
            _select_then_update(session, values)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        log_exception(
            logger,
            "share_card.cache.upsert.failure",
            cache_key=cache_key,
            storage_path=storage_path,
        )
        return False

    log_event(
        logger,
        "share_card.cache.upsert",
        level=logging.DEBUG,
        cache_key=cache_key,
        data_hash=data_hash,
    )
    return True


def _select_then_update(session: Session, values: dict) -> None:
    entry = session.scalar(
        select(ShareCardCacheEntry).where(ShareCardCacheEntry.cache_key == values["cache_key"])
    )
    if not entry:
        session.add(ShareCardCacheEntry(**values))
        return
    for key, value in values.items():
        setattr(entry, key, value)
    session.add(entry)
