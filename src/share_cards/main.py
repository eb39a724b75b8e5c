from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from share_cards.api.router import router as api_router
from share_cards.bootstrap import bootstrap
from share_cards.core.config import settings
from share_cards.core.logging import RequestContextMiddleware
from share_cards.core.storage import LOCAL_MEDIA_PREFIX, MediaFiles, local_storage_root


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI):
        bootstrap()
        yield

    app = FastAPI(title="Share Cards", version="0.1.0", lifespan=lifespan)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )
    app.include_router(api_router)
    if settings.storage_backend == "local":
        # Blobs are served straight from the storage root in local mode.
        app.mount(
            LOCAL_MEDIA_PREFIX,
            MediaFiles(directory=str(local_storage_root()), check_dir=False),
            name="media",
        )
    return app


app = create_app()
