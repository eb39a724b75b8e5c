from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.orm import Session

from share_cards.core.config import settings
from share_cards.core.db import db_session
from share_cards.core.logging import get_logger, log_event, log_exception
from share_cards.core.storage import ObjectStorage, get_storage
from share_cards.modules.cards.errors import (
    EntityNotFound,
    InvalidRequest,
    RenderFailure,
    StorageWriteFailure,
)
from share_cards.modules.cards.models import EntityType
from share_cards.modules.cards.render import Renderer, render_card
from share_cards.modules.cards.service import PNG_CONTENT_TYPE, resolve_share_card

router = APIRouter(prefix="/og", tags=["share-cards"])
logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def get_renderer() -> Renderer:
    return render_card


def redirect_response(url: str) -> RedirectResponse:
    return RedirectResponse(
        url=url,
        status_code=status.HTTP_302_FOUND,
        headers={"Cache-Control": settings.share_card_redirect_cache_control, **CORS_HEADERS},
    )


def direct_image_response(body: bytes) -> Response:
    return Response(
        content=body,
        media_type=PNG_CONTENT_TYPE,
        headers={"Cache-Control": settings.share_card_cache_control, **CORS_HEADERS},
    )


def _serve_card(
    *,
    entity_type: EntityType,
    entity_id: str | None,
    refresh: str | None,
    session: Session,
    storage: ObjectStorage,
    renderer: Renderer,
) -> Response:
    try:
        result = resolve_share_card(
            session,
            entity_type=entity_type,
            entity_id=entity_id,
            force_refresh=refresh == "true",
            storage=storage,
            renderer=renderer,
        )
    except InvalidRequest as e:
        raise HTTPException(status_code=400, detail=str(e), headers=CORS_HEADERS) from e
    except EntityNotFound as e:
        raise HTTPException(status_code=404, detail=str(e), headers=CORS_HEADERS) from e
    except RenderFailure as e:
        raise HTTPException(
            status_code=500, detail="Error generating image", headers=CORS_HEADERS
        ) from e
    except StorageWriteFailure as e:
        log_exception(
            logger,
            "share_card.publish.failure",
            entity_type=entity_type.value,
            storage_path=e.storage_path,
            direct_serve=settings.share_card_direct_serve_on_storage_failure,
        )
        if not settings.share_card_direct_serve_on_storage_failure:
            raise HTTPException(
                status_code=500, detail="Error storing image", headers=CORS_HEADERS
            ) from e
        return direct_image_response(e.body)

    log_event(
        logger,
        "share_card.respond",
        entity_type=entity_type.value,
        cache_key=result.cache_key,
        cache_hit=result.cache_hit,
    )
    return redirect_response(result.url)


@router.get("/product")
def product_card(
    id: str | None = Query(default=None),  # noqa: A002
    refresh: str | None = Query(default=None),
    session: Session = Depends(db_session),
    storage: ObjectStorage = Depends(get_storage),
    renderer: Renderer = Depends(get_renderer),
) -> Response:
    return _serve_card(
        entity_type=EntityType.PRODUCT,
        entity_id=id,
        refresh=refresh,
        session=session,
        storage=storage,
        renderer=renderer,
    )


@router.get("/fund")
def fund_card(
    id: str | None = Query(default=None),  # noqa: A002
    refresh: str | None = Query(default=None),
    session: Session = Depends(db_session),
    storage: ObjectStorage = Depends(get_storage),
    renderer: Renderer = Depends(get_renderer),
) -> Response:
    return _serve_card(
        entity_type=EntityType.FUND,
        entity_id=id,
        refresh=refresh,
        session=session,
        storage=storage,
        renderer=renderer,
    )


@router.get("/business")
def business_card(
    id: str | None = Query(default=None),  # noqa: A002
    refresh: str | None = Query(default=None),
    session: Session = Depends(db_session),
    storage: ObjectStorage = Depends(get_storage),
    renderer: Renderer = Depends(get_renderer),
) -> Response:
    return _serve_card(
        entity_type=EntityType.BUSINESS,
        entity_id=id,
        refresh=refresh,
        session=session,
        storage=storage,
        renderer=renderer,
    )


@router.get("/admin")
def admin_invite_card(
    code: str | None = Query(default=None),
    refresh: str | None = Query(default=None),
    session: Session = Depends(db_session),
    storage: ObjectStorage = Depends(get_storage),
    renderer: Renderer = Depends(get_renderer),
) -> Response:
    return _serve_card(
        entity_type=EntityType.ADMIN_INVITE,
        entity_id=code,
        refresh=refresh,
        session=session,
        storage=storage,
        renderer=renderer,
    )
