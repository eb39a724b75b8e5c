from __future__ import annotations

# Ensure all models are registered before any task runs
# isort: off
import share_cards.models  # noqa: F401
# isort: on

import time

from share_cards.core.db import session_scope
from share_cards.core.logging import (
    get_logger,
    log_event,
    log_exception,
    monotonic_ms,
    reset_task_context,
    set_task_context,
)
from share_cards.modules.cards.errors import EntityNotFound, InvalidRequest
from share_cards.modules.cards.models import EntityType
from share_cards.modules.cards.service import resolve_share_card
from share_cards.worker.celery_app import celery_app

logger = get_logger(__name__)


@celery_app.task(name="refresh_share_card", bind=True, max_retries=3, default_retry_delay=30)
def refresh_share_card_task(self, entity_type: str, entity_id: str) -> dict[str, str] | None:
    """Re-render and re-publish a share card outside the request path."""
    task_id = getattr(self.request, "id", None)
    token = set_task_context(task_id)
    start = time.monotonic()
    log_event(
        logger,
        "celery.task.start",
        task_name="refresh_share_card",
        entity_type=entity_type,
        entity_id=entity_id,
    )
    try:
        with session_scope() as session:
            result = resolve_share_card(
                session,
                entity_type=EntityType(entity_type),
                entity_id=entity_id,
                force_refresh=True,
            )
    except (InvalidRequest, EntityNotFound):
        # Nothing to refresh; retrying will not change the outcome.
        log_event(
            logger,
            "celery.task.skipped",
            task_name="refresh_share_card",
            entity_type=entity_type,
            entity_id=entity_id,
            duration_ms=monotonic_ms(start),
        )
        return None
    except Exception as e:
        log_exception(
            logger,
            "celery.task.error",
            task_name="refresh_share_card",
            entity_type=entity_type,
            entity_id=entity_id,
            duration_ms=monotonic_ms(start),
        )
        raise self.retry(exc=e) from e
    finally:
        reset_task_context(token)

    log_event(
        logger,
        "celery.task.finish",
        task_name="refresh_share_card",
        cache_key=result.cache_key,
        duration_ms=monotonic_ms(start),
    )
    return {"cache_key": result.cache_key, "url": result.url}


def enqueue_share_card_refresh(entity_type: EntityType, entity_id: str) -> str:
    async_result = refresh_share_card_task.delay(EntityType(entity_type).value, entity_id)
    log_event(
        logger,
        "celery.task.enqueued",
        task_name="refresh_share_card",
        celery_task_id=async_result.id,
        entity_type=EntityType(entity_type).value,
        entity_id=entity_id,
    )
    return async_result.id
