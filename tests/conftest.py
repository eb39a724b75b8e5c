from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest

# Set env before any share_cards imports (settings/engine are created at import time).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./.share_cards_test.db")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("LOCAL_STORAGE_PATH", ".tmp_storage_test")
os.environ.setdefault("BASE_URL", "http://cards.test")
# No network in tests: render with the built-in font unless a test opts in.
os.environ.setdefault("FONT_URL", "")


@pytest.fixture(autouse=True)
def _reset_db_and_storage() -> None:
    import share_cards.models  # noqa: F401
    from share_cards.core import fonts
    from share_cards.core.db import engine
    from share_cards.core.models import Base
    from share_cards.modules.cards.tables import marketplace_metadata

    import share_cards.core.storage as storage_mod

    storage_mod._storage = None
    fonts.reset_font_cache()

    storage_path = Path(os.environ["LOCAL_STORAGE_PATH"])
    if storage_path.exists():
        shutil.rmtree(storage_path)

    Base.metadata.drop_all(engine)
    marketplace_metadata.drop_all(engine)
    marketplace_metadata.create_all(engine)
    Base.metadata.create_all(engine)

    yield
