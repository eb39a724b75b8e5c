from __future__ import annotations

from share_cards.core.config import settings
from share_cards.core.db import engine
from share_cards.core.logging import get_logger, log_event
from share_cards.core.models import Base
from share_cards.modules.cards.tables import marketplace_metadata

logger = get_logger(__name__)


def bootstrap() -> None:
    import share_cards.models  # noqa: F401

    if settings.environment != "dev" or not str(settings.database_url).startswith("sqlite"):
        return
    Base.metadata.create_all(engine)
    # Marketplace tables are owned elsewhere; create them only for a local dev database.
    marketplace_metadata.create_all(engine)
    log_event(logger, "bootstrap.dev_schema_created", dialect=engine.dialect.name)
